"""Reward store endpoints (mobile BFF)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class StoreApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def list_items(self) -> Any:
        return await self.gateway.request("/store")

    async def create_item(self, item: dict[str, Any]) -> Any:
        return await self.gateway.request("/store", "POST", item)

    async def update_item(self, item_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/store/{item_id}", "PATCH", changes)

    async def delete_item(self, item_id: str) -> Any:
        return await self.gateway.request(f"/store/{item_id}", "DELETE")

    async def purchase_item(self, item_id: str, member_id: str) -> Any:
        """Returns {newPointsTotal} — the server's balance after the purchase."""
        return await self.gateway.request(
            f"/store/{item_id}/purchase", "POST", {"memberId": member_id}
        )
