"""Request gateway — the single path every remote call takes.

Learn: The gateway wraps an httpx.AsyncClient and adds what the backends
need from every caller:

1. Standard headers — JSON content type, cache busting, and the session's
   bearer token when there is one
2. A per-attempt timeout (60s: the backends sleep when idle and a cold start
   can take most of a minute)
3. Retries for transient failures only — 1s, 2s, 4s backoff via tenacity
4. Failure classification into the taxonomy in gateway/errors.py
5. Envelope unwrapping — callers get `data`, not {status, data, ...}

Retries apply to every HTTP method, including POSTs that are not
idempotent. If the first attempt reached the server but the response was
lost, the retry repeats the side effect. Enable `idempotency_keys` to send
an Idempotency-Key header that stays constant across one call's retries.
"""

import asyncio
import inspect
import json
import uuid
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from momentum.config import Settings, health_url_for
from momentum.gateway.errors import (
    AuthExpired,
    ClientError,
    NetworkUnavailable,
    ParseError,
    RequestTimeout,
    ResponseError,
    RetriesExhausted,
    ServerError,
    TransientNetworkError,
)
from momentum.schemas.envelope import ApiEnvelope

logger = structlog.get_logger()

TokenProvider = Callable[[], Optional[str]]
AuthExpiredHandler = Callable[[AuthExpired], Any]
Sleep = Callable[[float], Awaitable[None]]

BASE_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Expires": "0",
}

# Messages the auth middleware produces for a rejected token.
AUTH_MARKERS = ("unauthorized", "invalid token", "jwt malformed", "invalid signature")
# An expired token that the server failed to catch comes back as a bare 500.
EXPIRED_MARKERS = ("jwt expired", "token expired", "expired token", "tokenexpirederror")

NON_IDEMPOTENT_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


# ─── Response helpers ────────────────────────────────────


def extract_error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of a non-2xx response.

    JSON `message` or `error` field first, then the JSON itself, then the
    raw text, then a generic status line.
    """
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"Request failed with status {response.status_code}"

    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if message:
            return message if isinstance(message, str) else json.dumps(message)
    return json.dumps(payload)


def classify_response_error(status: int, message: str) -> ResponseError:
    """Map a non-2xx status + message onto the failure taxonomy."""
    lowered = message.lower()
    expired = any(marker in lowered for marker in EXPIRED_MARKERS)

    if status == 401:
        return AuthExpired(status, message)
    if status >= 500:
        if expired:
            return AuthExpired(status, message)
        return ServerError(status, message)
    if expired or any(marker in lowered for marker in AUTH_MARKERS):
        return AuthExpired(status, message)
    return ClientError(status, message)


# ─── Gateway ─────────────────────────────────────────────


class RequestGateway:
    """Async HTTP gateway for one backend (core API or mobile BFF)."""

    def __init__(
        self,
        base_url: str,
        *,
        name: str = "api",
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 60.0,
        health_url: Optional[str] = None,
        health_timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
        idempotency_keys: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.name = name
        self.health_url = health_url or health_url_for(self.base_url)
        self.health_timeout = health_timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.idempotency_keys = idempotency_keys
        self._token_provider = token_provider
        self._sleep = sleep
        self._auth_expired_handlers: list[AuthExpiredHandler] = []
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_settings(
        cls,
        base_url: str,
        settings: Settings,
        **kwargs: Any,
    ) -> "RequestGateway":
        """Build a gateway with timeouts and retry policy taken from Settings."""
        kwargs.setdefault("timeout", settings.request_timeout_seconds)
        kwargs.setdefault("health_timeout", settings.health_timeout_seconds)
        kwargs.setdefault("retry_attempts", settings.retry_attempts)
        kwargs.setdefault("retry_backoff", settings.retry_backoff_seconds)
        kwargs.setdefault("idempotency_keys", settings.idempotency_keys)
        return cls(base_url, **kwargs)

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def on_auth_expired(self, handler: AuthExpiredHandler) -> None:
        """Register a callback run (and awaited) before AuthExpired is raised."""
        self._auth_expired_handlers.append(handler)

    # ─── Requests ────────────────────────────────────────

    async def request(self, path: str, method: str = "GET", body: Any = None) -> Any:
        """Issue a call and return the envelope's `data`, unmodified."""
        envelope = await self.request_envelope(path, method, body)
        return envelope.data

    async def request_envelope(
        self, path: str, method: str = "GET", body: Any = None
    ) -> ApiEnvelope:
        """Issue a call and return the whole response envelope."""
        method = method.upper()
        url = f"{self.base_url}{path}"
        idempotency_key = None
        if self.idempotency_keys and method in NON_IDEMPOTENT_METHODS:
            idempotency_key = str(uuid.uuid4())

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=wait_exponential(multiplier=self.retry_backoff, exp_base=2),
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, url, body, idempotency_key)
        except TransientNetworkError as e:
            attempts = self.retry_attempts + 1
            logger.error(
                "gateway.retries_exhausted",
                gateway=self.name,
                method=method,
                path=path,
                attempts=attempts,
                error=str(e),
            )
            raise RetriesExhausted(
                "Request timed out. The server might be waking up (cold start). "
                "Please try again.",
                attempts=attempts,
                last_error=e,
            ) from e
        except AuthExpired as e:
            await self._notify_auth_expired(e)
            raise
        raise AssertionError("unreachable: retry loop ended without an outcome")

    async def _send_once(
        self,
        method: str,
        url: str,
        body: Any,
        idempotency_key: Optional[str],
    ) -> ApiEnvelope:
        """One attempt. Raises a classified GatewayError on any failure."""
        logger.debug("gateway.request", gateway=self.name, method=method, url=url)
        try:
            response = await self._client.request(
                method,
                url,
                json=body,
                headers=self._headers(idempotency_key),
            )
        except httpx.TimeoutException as e:
            logger.warning("gateway.timeout", gateway=self.name, url=url)
            raise RequestTimeout(f"Timeout waiting for {url}") from e
        except httpx.TransportError as e:
            logger.warning("gateway.network_error", gateway=self.name, url=url, error=str(e))
            raise NetworkUnavailable(str(e) or "Network request failed") from e

        if not response.is_success:
            message = extract_error_message(response)
            logger.warning(
                "gateway.non_ok",
                gateway=self.name,
                url=url,
                status=response.status_code,
                message=message[:200],
            )
            raise classify_response_error(response.status_code, message)

        # 204 No Content and other empty 2xx bodies carry no data.
        if response.status_code == 204 or not response.content.strip():
            logger.debug(
                "gateway.empty_response", gateway=self.name, url=url, status=response.status_code
            )
            return ApiEnvelope(data=None)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(response.status_code, f"Invalid JSON from {url}") from e

        logger.debug("gateway.response", gateway=self.name, url=url, status=response.status_code)
        if not isinstance(payload, dict):
            return ApiEnvelope(data=payload)
        return ApiEnvelope.model_validate(payload)

    def _headers(self, idempotency_key: Optional[str]) -> dict[str, str]:
        headers = dict(BASE_HEADERS)
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "gateway.retrying",
            gateway=self.name,
            attempt=retry_state.attempt_number,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )

    async def _notify_auth_expired(self, error: AuthExpired) -> None:
        for handler in list(self._auth_expired_handlers):
            try:
                result = handler(error)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("gateway.auth_expired_handler_failed", gateway=self.name)

    # ─── Wake-up probe ───────────────────────────────────

    async def wake_up(self) -> bool:
        """Ping the health endpoint so a sleeping backend starts booting.

        Never raises and never retries: a failed probe must not block the
        call it precedes.
        """
        logger.info("gateway.waking_up", gateway=self.name, url=self.health_url)
        try:
            response = await self._client.get(self.health_url, timeout=self.health_timeout)
        except Exception as e:
            logger.warning("gateway.wake_up_failed", gateway=self.name, error=str(e))
            return False

        if response.is_success:
            logger.info("gateway.awake", gateway=self.name)
            return True
        logger.warning("gateway.wake_up_non_ok", gateway=self.name, status=response.status_code)
        return False
