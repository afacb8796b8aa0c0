"""Request failure taxonomy.

Learn: Callers care about three questions, and the class hierarchy answers
each with a single isinstance check:

1. Is it worth retrying?           → TransientNetworkError
2. Did the server say no?          → ResponseError (ClientError / ServerError)
3. Must the session be destroyed?  → AuthExpired

AuthExpired is deliberately a sibling of ClientError/ServerError rather than
a subclass: code that handles "server said no" must not accidentally treat
an expired session as an ordinary failure, or the reverse.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for every failure raised by a RequestGateway."""


# ─── Transient (retried) ─────────────────────────────────


class TransientNetworkError(GatewayError):
    """Timeout or connectivity loss. Retried automatically."""


class RequestTimeout(TransientNetworkError):
    """The per-attempt timeout fired and the request was aborted."""


class NetworkUnavailable(TransientNetworkError):
    """The request never reached the server (DNS, refused, reset...)."""


class RetriesExhausted(RequestTimeout):
    """Every attempt failed transiently.

    Timeout-classified so callers see a single "the server might be waking
    up" failure; the underlying cause is kept on last_error.
    """

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


# ─── Server responses (not retried) ──────────────────────


class ResponseError(GatewayError):
    """Non-2xx response. The server's message is surfaced verbatim."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class ClientError(ResponseError):
    """4xx response."""


class ServerError(ResponseError):
    """5xx response."""


class AuthExpired(ResponseError):
    """The session token is no longer accepted.

    The only failure that may clear stored credentials.
    """


class ParseError(GatewayError):
    """A 2xx response whose body is not valid JSON."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class InvalidAuthResponse(GatewayError):
    """Login/registration envelope without a token or user payload."""
