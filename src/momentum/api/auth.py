"""Auth endpoints (core API).

Login and Google sign-in wake the core API first: a cold start otherwise
eats most of the login timeout, and the probe costs nothing when the
backend is already up.
"""

from typing import Any, Optional

from momentum.gateway.client import RequestGateway
from momentum.schemas.envelope import ApiEnvelope


class AuthApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def login(self, email: str, password: str) -> ApiEnvelope:
        await self.gateway.wake_up()
        return await self.gateway.request_envelope(
            "/auth/login", "POST", {"email": email, "password": password}
        )

    async def google_login(
        self, id_token: str, server_auth_code: Optional[str] = None
    ) -> ApiEnvelope:
        await self.gateway.wake_up()
        return await self.gateway.request_envelope(
            "/auth/google",
            "POST",
            {"idToken": id_token, "serverAuthCode": server_auth_code},
        )

    async def register(self, user_data: dict[str, Any]) -> ApiEnvelope:
        return await self.gateway.request_envelope("/auth/signup", "POST", user_data)

    async def me(self) -> Any:
        return await self.gateway.request("/auth/me")

    async def complete_onboarding(self, data: dict[str, Any]) -> Any:
        return await self.gateway.request("/auth/onboarding/complete", "POST", data)
