"""MomentumClient — the composition root.

Learn: Everything is built here, once, and handed to whoever needs it.
No module holds a global store, session or socket; tests build a client
with fake HTTP and push transports and get a fully wired system.

Wiring:
    gateways  ──token──▶  SessionManager
    gateways  ──AuthExpired──▶  SessionManager.expire()
    SessionManager ──listener──▶  channel.set_token() + store.load()/clear()
    registry  ──invalidation events──▶  store.refresh(silent=True)

The invalidation handlers are registered on the SubscriptionRegistry once,
in __init__, so they survive every reconnect and token change without being
registered again. Each event starts its own background refresh; bursts are
not coalesced.
"""

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from momentum.api import MomentumApi
from momentum.auth import Session, SessionManager, SessionStorage
from momentum.config import Settings
from momentum.config import settings as default_settings
from momentum.gateway import RequestGateway
from momentum.optimistic import OptimisticExecutor
from momentum.realtime import RealtimeChannel, SubscriptionRegistry, Transport
from momentum.realtime import events
from momentum.services import ChoresService, RewardsService
from momentum.store import MEMBERS, CacheStore

logger = structlog.get_logger()

NotificationHandler = Callable[[dict[str, Any]], Any]


class MomentumClient:
    """One signed-in (or signed-out) household client."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        storage: Optional[SessionStorage] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or default_settings
        s = self.settings

        self.core = RequestGateway.from_settings(
            s.core_api_url,
            s,
            name="core",
            token_provider=self._current_token,
            transport=http_transport,
            sleep=sleep,
        )
        self.bff = RequestGateway.from_settings(
            s.bff_api_url,
            s,
            name="bff",
            token_provider=self._current_token,
            transport=http_transport,
            sleep=sleep,
        )
        self.api = MomentumApi(self.core, self.bff)

        self.session = SessionManager(self.api.auth, storage)
        for gateway in self.api.gateways:
            gateway.on_auth_expired(self.session.expire)

        self.store = CacheStore(self.api)
        self.registry = SubscriptionRegistry()
        channel_kwargs: dict[str, Any] = {"sleep": sleep}
        if transport_factory is not None:
            channel_kwargs["transport_factory"] = transport_factory
        self.channel = RealtimeChannel.from_settings(s, self.registry, **channel_kwargs)

        self.executor = OptimisticExecutor(serialize=s.serialize_optimistic)
        self.rewards = RewardsService(self.store, self.api, self.executor)
        self.chores = ChoresService(self.store, self.api, self.executor)

        self._background: set[asyncio.Task] = set()
        self._notification_handlers: list[NotificationHandler] = []

        self.session.add_listener(self._on_session_changed)
        self._register_realtime_handlers()

    def _current_token(self) -> Optional[str]:
        return self.session.token

    # ─── Lifecycle ───────────────────────────────────────

    async def start(self) -> bool:
        """Restore a stored session, if any. Returns whether one is active."""
        return await self.session.restore()

    async def wait_idle(self) -> None:
        """Wait for every background refresh started so far (and any they start)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        await self.channel.close()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*list(self._background), return_exceptions=True)
        for gateway in self.api.gateways:
            await gateway.aclose()
        logger.info("client.closed")

    async def __aenter__(self) -> "MomentumClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _on_session_changed(self, session: Session) -> None:
        if session.is_authenticated:
            await self.channel.set_token(session.token)
            await self.store.load()
        else:
            await self.channel.set_token(None)
            self.store.clear()

    # ─── Realtime wiring ─────────────────────────────────

    def _register_realtime_handlers(self) -> None:
        for event in events.INVALIDATION_EVENTS:
            self.registry.on(event, functools.partial(self._on_invalidation, event))
        self.registry.on(events.NOTIFICATION, self._on_notification)

    def _on_invalidation(self, event: str, data: Any) -> None:
        if isinstance(data, dict):
            if event == events.MEMBER_POINTS_UPDATED:
                self._patch_points(data.get("memberId"), data.get("pointsTotal"))
            elif event == events.TASK_UPDATED and isinstance(data.get("memberUpdate"), dict):
                update = data["memberUpdate"]
                self._patch_points(update.get("memberId"), update.get("pointsTotal"))
        logger.debug("client.invalidated", event_name=event)
        self._spawn(self.store.refresh(silent=True))

    def _patch_points(self, member_id: Any, points: Any) -> None:
        if not member_id or isinstance(points, bool) or not isinstance(points, (int, float)):
            return
        self.store.merge_patch(MEMBERS, str(member_id), {"pointsTotal": points})

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("client.background_failed", error=str(task.exception()))

    # ─── Notifications ───────────────────────────────────

    def on_notification(self, handler: NotificationHandler) -> Callable[[], None]:
        self._notification_handlers.append(handler)

        def remove() -> None:
            if handler in self._notification_handlers:
                self._notification_handlers.remove(handler)

        return remove

    async def _on_notification(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        recipients = data.get("recipients")
        user_id = self.session.session.user_id
        # No recipient list means a household-wide broadcast.
        if recipients and user_id and user_id not in recipients:
            return
        for handler in list(self._notification_handlers):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("client.notification_handler_failed")
