"""Realtime channel — authenticated push connection with auto-reconnect.

Learn: The channel is a small state machine:

    DISCONNECTED → CONNECTING → CONNECTED
    CONNECTED    → DISCONNECTED                 (transport error, token removed)
    DISCONNECTED → RECONNECTING → CONNECTED | DISCONNECTED

It lives as long as the process. Whenever the session token changes, the
current transport is torn down and a new one is opened with the new token;
when the token goes away the channel just stays DISCONNECTED.

After a transport error the channel retries on its own: up to 5 attempts,
starting 1s apart and doubling, capped at 5s. Once the budget is spent it
stays DISCONNECTED until the next set_token()/connect().

Two concurrent tasks may exist per channel:
1. Reader — receives frames and dispatches them through the registry
2. Reconnector — the backoff loop, only while RECONNECTING
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog

from momentum.config import Settings
from momentum.realtime.subscriptions import Callback, SubscriptionRegistry
from momentum.realtime.transport import TRANSPORTS, SocketIOTransport, Transport

logger = structlog.get_logger()


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


StateListener = Callable[[ChannelState], Any]


class RealtimeChannel:
    """Push channel that dispatches named events to registered callbacks."""

    def __init__(
        self,
        url: str,
        registry: Optional[SubscriptionRegistry] = None,
        *,
        transport_factory: Callable[[], Transport] = SocketIOTransport,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        reconnect_delay_max: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.registry = registry if registry is not None else SubscriptionRegistry()
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.reconnect_delay_max = reconnect_delay_max
        self._transport_factory = transport_factory
        self._sleep = sleep
        self._state = ChannelState.DISCONNECTED
        self._token: Optional[str] = None
        self._transport: Optional[Transport] = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnector: Optional[asyncio.Task] = None
        self._state_listeners: list[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: Optional[SubscriptionRegistry] = None,
        **kwargs: Any,
    ) -> "RealtimeChannel":
        kwargs.setdefault("reconnect_attempts", settings.reconnect_attempts)
        kwargs.setdefault("reconnect_delay", settings.reconnect_delay_seconds)
        kwargs.setdefault("reconnect_delay_max", settings.reconnect_delay_max_seconds)
        kwargs.setdefault("transport_factory", TRANSPORTS[settings.socket_transport])
        return cls(settings.socket_url, registry, **kwargs)

    # ─── State ───────────────────────────────────────────

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ChannelState.CONNECTED

    @property
    def token(self) -> Optional[str]:
        return self._token

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.info("realtime.state_changed", from_state=previous.value, to_state=state.value)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("realtime.state_listener_failed")

    # ─── Subscriptions ───────────────────────────────────

    def on(self, event: str, callback: Callback) -> None:
        self.registry.on(event, callback)

    def off(self, event: str, callback: Callback) -> None:
        self.registry.off(event, callback)

    # ─── Lifecycle ───────────────────────────────────────

    async def set_token(self, token: Optional[str]) -> None:
        """Follow the session: connect with a new token, disconnect without one.

        A channel that is already live (or getting there) on the same token
        is left alone.
        """
        live = (ChannelState.CONNECTED, ChannelState.CONNECTING, ChannelState.RECONNECTING)
        if token is not None and token == self._token and self._state in live:
            return

        await self._teardown()
        self._token = token
        if token is None:
            logger.info("realtime.token_cleared")
            return
        await self.connect()

    async def connect(self) -> bool:
        """Open a connection with the current token.

        Returns True when CONNECTED. On failure the reconnect loop takes
        over in the background.
        """
        if not self._token:
            logger.warning("realtime.connect_without_token")
            return False
        if self._state is ChannelState.CONNECTED:
            return True
        if self._state in (ChannelState.CONNECTING, ChannelState.RECONNECTING):
            # An attempt is already under way; it owns the next transport.
            logger.debug("realtime.connect_in_progress", state=self._state.value)
            return False

        self._set_state(ChannelState.CONNECTING)
        if await self._open():
            return True
        self._set_state(ChannelState.DISCONNECTED)
        self._schedule_reconnect()
        return False

    async def close(self) -> None:
        """Disconnect for good (until the next set_token)."""
        self._token = None
        await self._teardown()

    async def _open(self) -> bool:
        transport = self._transport_factory()
        try:
            await transport.connect(self.url, self._token)
        except Exception as e:
            logger.warning("realtime.connect_error", url=self.url, error=str(e))
            await self._close_transport(transport)
            return False

        self._transport = transport
        self._set_state(ChannelState.CONNECTED)
        self._reader = asyncio.create_task(self._read_loop(transport))
        return True

    async def _read_loop(self, transport: Transport) -> None:
        try:
            while True:
                event, data = await transport.receive()
                await self.registry.dispatch(event, data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("realtime.transport_lost", error=str(e))

        # Only react if this transport is still the current one; a
        # deliberate teardown has already moved on.
        if self._transport is transport:
            self._transport = None
            await self._close_transport(transport)
            self._set_state(ChannelState.DISCONNECTED)
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._token is None:
            return
        if self._reconnector is not None and not self._reconnector.done():
            return
        self._reconnector = asyncio.create_task(self._reconnect_loop(self._token))

    async def _reconnect_loop(self, token: str) -> None:
        for attempt in range(1, self.reconnect_attempts + 1):
            self._set_state(ChannelState.RECONNECTING)
            delay = min(self.reconnect_delay * 2 ** (attempt - 1), self.reconnect_delay_max)
            logger.info("realtime.reconnecting", attempt=attempt, delay=delay)
            await self._sleep(delay)
            if self._token != token:
                return
            if await self._open():
                logger.info("realtime.reconnected", attempt=attempt)
                return

        self._set_state(ChannelState.DISCONNECTED)
        logger.error("realtime.reconnect_exhausted", attempts=self.reconnect_attempts)

    async def _teardown(self) -> None:
        current = asyncio.current_task()
        for task in (self._reconnector, self._reader):
            if task is None or task.done() or task is current:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reconnector = None
        self._reader = None

        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)
        self._set_state(ChannelState.DISCONNECTED)

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.debug("realtime.close_error", error=str(e))

    # ─── Outbound ────────────────────────────────────────

    async def emit(self, event: str, data: Any = None) -> bool:
        """Send an event. Only honoured while CONNECTED.

        Anywhere else the event is dropped with a warning and no I/O
        happens. Returns whether the event was handed to the transport.
        """
        if self._state is not ChannelState.CONNECTED or self._transport is None:
            logger.warning("realtime.emit_dropped", event_name=event, state=self._state.value)
            return False
        try:
            await self._transport.send(event, data)
        except Exception as e:
            logger.warning("realtime.emit_failed", event_name=event, error=str(e))
            return False
        return True
