"""Client configuration via environment variables.

Uses pydantic-settings to load config from env vars with MOMENTUM_ prefix.
No config files — just env vars (12-factor app style).

Learn: Two HTTP backends are involved. The core API owns auth, tasks and
quests; the mobile BFF (backend-for-frontend) owns everything the screens
aggregate (dashboard, family, store, meals, routines, wishlist). Both run on
hosts that sleep when idle, hence the generous timeouts.
"""

from urllib.parse import urlsplit, urlunsplit

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All client configuration. Set via MOMENTUM_* env vars."""

    # Backends
    core_api_url: str = "https://momentum-api-vpkw.onrender.com/api/v1"
    bff_api_url: str = "https://momentum-mobile-bff.onrender.com/mobile-bff"
    socket_url: str = "https://momentum-mobile-bff.onrender.com"
    socket_transport: str = "socketio"  # or "websocket" for a plain ws endpoint

    # Request gateway
    request_timeout_seconds: float = 60.0  # cold starts can take most of this
    health_timeout_seconds: float = 30.0
    retry_attempts: int = 3  # retries after the first attempt
    retry_backoff_seconds: float = 1.0  # doubles on every retry
    idempotency_keys: bool = False

    # Realtime channel
    reconnect_attempts: int = 5
    reconnect_delay_seconds: float = 1.0
    reconnect_delay_max_seconds: float = 5.0

    # Optimistic updates
    serialize_optimistic: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    environment: str = "development"

    model_config = {"env_prefix": "MOMENTUM_"}

    @field_validator("core_api_url", "bff_api_url")
    @classmethod
    def validate_http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"API URL must be http(s): {value!r}")
        return value.rstrip("/")

    @field_validator("socket_transport")
    @classmethod
    def validate_socket_transport(cls, value: str) -> str:
        if value not in ("socketio", "websocket"):
            raise ValueError(f"socket_transport must be socketio or websocket: {value!r}")
        return value

    @field_validator(
        "request_timeout_seconds",
        "health_timeout_seconds",
        "retry_backoff_seconds",
        "reconnect_delay_seconds",
        "reconnect_delay_max_seconds",
    )
    @classmethod
    def validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts and delays must be positive")
        return value


def health_url_for(base_url: str) -> str:
    """Health endpoint for a backend: its origin plus /health.

    Both backends mount their API under a prefix (/api/v1, /mobile-bff) but
    serve the health check from the root.
    """
    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, "/health", "", ""))


# Module-level singleton
settings = Settings()
