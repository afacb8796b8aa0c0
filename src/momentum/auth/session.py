"""Session — who is signed in, and the token every request carries.

Learn: The SessionManager is the single owner of the session. The gateways
read the token through a provider callable, the realtime channel follows it
through a listener, and nothing else writes it.

Lifecycle:
    login / google_login / register  → authenticated, saved, listeners told
    restore                          → stored session re-verified via /auth/me
    logout                           → cleared, listeners told
    expire                           → same as logout, triggered by AuthExpired

Only AuthExpired ends a session involuntarily. A restore that fails on a
timeout or a 5xx keeps the stored session: the backend may just be waking
up, and signing the user out for that would be wrong.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from momentum.api.auth import AuthApi
from momentum.auth.storage import MemorySessionStorage, SessionStorage
from momentum.gateway.errors import AuthExpired, InvalidAuthResponse
from momentum.schemas.envelope import ApiEnvelope, LoginData, MeData, RegisterData

logger = structlog.get_logger()


@dataclass
class Session:
    token: Optional[str] = None
    user: Optional[dict[str, Any]] = None
    household_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        if self.user is None:
            return None
        value = self.user.get("id") or self.user.get("_id")
        return str(value) if value is not None else None


SessionListener = Callable[[Session], Any]  # sync or async


class SessionManager:
    """Owns the Session. Every change is saved and broadcast."""

    def __init__(self, auth_api: AuthApi, storage: Optional[SessionStorage] = None):
        self.auth_api = auth_api
        self.storage = storage if storage is not None else MemorySessionStorage()
        self.session = Session()
        self._listeners: list[SessionListener] = []

    @property
    def token(self) -> Optional[str]:
        return self.session.token

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ─── Sign in ─────────────────────────────────────────

    async def login(self, email: str, password: str) -> Session:
        envelope = await self.auth_api.login(email, password)
        data = self._parse(envelope, LoginData)
        return await self._start(envelope.token, data.parent, data.primaryHouseholdId)

    async def google_login(self, id_token: str, server_auth_code: Optional[str] = None) -> Session:
        envelope = await self.auth_api.google_login(id_token, server_auth_code)
        data = self._parse(envelope, LoginData)
        return await self._start(envelope.token, data.parent, data.primaryHouseholdId)

    async def register(self, user_data: dict[str, Any]) -> Session:
        envelope = await self.auth_api.register(user_data)
        data = self._parse(envelope, RegisterData)
        return await self._start(envelope.token, data.parent, data.household_id)

    async def start_with_token(self, token: str) -> Session:
        """Adopt a token obtained elsewhere and load its user via /auth/me."""
        self.session = Session(token=token)
        try:
            me = MeData.model_validate(await self.auth_api.me())
        except ValidationError as e:
            self.session = Session()
            raise InvalidAuthResponse(f"Unexpected /auth/me payload: {e}") from e
        except Exception:
            self.session = Session()
            raise
        return await self._start(token, me.user, me.householdId)

    def _parse(self, envelope: ApiEnvelope, model):
        if not envelope.token or not isinstance(envelope.data, dict):
            raise InvalidAuthResponse("Invalid response from server")
        try:
            return model.model_validate(envelope.data)
        except ValidationError as e:
            raise InvalidAuthResponse(f"Invalid response from server: {e}") from e

    async def _start(
        self, token: Optional[str], user: dict[str, Any], household_id: Optional[str]
    ) -> Session:
        self.session = Session(token=token, user=user, household_id=household_id)
        await self.storage.save(self.session)
        logger.info(
            "session.started",
            user_id=self.session.user_id,
            household_id=household_id,
        )
        await self._notify()
        return self.session

    # ─── Restore ─────────────────────────────────────────

    async def restore(self) -> bool:
        """Bring back a stored session after verifying it with /auth/me.

        Returns True when a session is active afterwards.
        """
        stored = await self.storage.load()
        if stored is None or not stored.token:
            logger.info("session.nothing_to_restore")
            return False

        # The gateway reads the token from here while /auth/me runs.
        self.session = stored
        try:
            payload = await self.auth_api.me()
        except AuthExpired:
            logger.info("session.restore_rejected")
            await self._end("expired")
            return False
        except Exception as e:
            logger.warning(
                "session.restore_unverified",
                error_type=type(e).__name__,
                error=str(e),
            )
            if not stored.is_authenticated:
                self.session = Session()
                return False
        else:
            try:
                me = MeData.model_validate(payload)
                self.session = Session(
                    token=stored.token,
                    user=me.user,
                    household_id=me.householdId or stored.household_id,
                )
                await self.storage.save(self.session)
            except ValidationError as e:
                logger.warning("session.restore_bad_payload", error=str(e))
                if not stored.is_authenticated:
                    self.session = Session()
                    return False

        logger.info("session.restored", user_id=self.session.user_id)
        await self._notify()
        return True

    # ─── Sign out ────────────────────────────────────────

    async def logout(self) -> None:
        await self._end("logout")

    async def expire(self, error: Optional[AuthExpired] = None) -> None:
        """AuthExpired hook: drop the session the server no longer accepts."""
        if self.session.token is None:
            return
        await self._end("expired", error=str(error) if error else None)

    async def _end(self, reason: str, **log_kw: Any) -> None:
        had_session = self.session.token is not None
        self.session = Session()
        await self.storage.clear()
        logger.info("session.ended", reason=reason, **log_kw)
        if had_session:
            await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(self.session)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("session.listener_failed")
