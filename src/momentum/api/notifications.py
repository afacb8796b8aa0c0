"""Notification endpoints (mobile BFF)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class NotificationsApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def list_notifications(self) -> Any:
        return await self.gateway.request("/notifications")

    async def mark_read(self, notification_id: str) -> Any:
        return await self.gateway.request(f"/notifications/{notification_id}/read", "PATCH")

    async def mark_all_read(self) -> Any:
        return await self.gateway.request("/notifications/read-all", "PATCH")

    async def remind_parent(self) -> Any:
        return await self.gateway.request("/notifications/remind", "POST")
