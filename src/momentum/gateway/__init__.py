"""Request gateway — HTTP calls, retries and failure classification.

Learn: Nothing else in the package talks to httpx directly. Endpoint
modules in momentum.api call RequestGateway.request(), and every failure
they can see is a GatewayError subclass from gateway/errors.py.
"""

from momentum.gateway.client import RequestGateway, classify_response_error
from momentum.gateway.errors import (
    AuthExpired,
    ClientError,
    GatewayError,
    InvalidAuthResponse,
    NetworkUnavailable,
    ParseError,
    RequestTimeout,
    ResponseError,
    RetriesExhausted,
    ServerError,
    TransientNetworkError,
)

__all__ = [
    "AuthExpired",
    "ClientError",
    "GatewayError",
    "InvalidAuthResponse",
    "NetworkUnavailable",
    "ParseError",
    "RequestGateway",
    "RequestTimeout",
    "ResponseError",
    "RetriesExhausted",
    "ServerError",
    "TransientNetworkError",
    "classify_response_error",
]
