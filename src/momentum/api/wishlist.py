"""Wishlist endpoints (mobile BFF)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class WishlistApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def member_wishlist(self, member_id: str, include_purchased: bool = False) -> Any:
        """Returns {wishlistItems, currentPoints} for one member."""
        query = "?includePurchased=true" if include_purchased else ""
        return await self.gateway.request(f"/wishlist/member/{member_id}{query}")

    async def household_wishlist(self, household_id: str, include_purchased: bool = False) -> Any:
        query = "?includePurchased=true" if include_purchased else ""
        return await self.gateway.request(f"/wishlist/household/{household_id}{query}")

    async def create_item(self, item: dict[str, Any]) -> Any:
        return await self.gateway.request("/wishlist", "POST", item)

    async def update_item(self, item_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/wishlist/{item_id}", "PUT", changes)

    async def delete_item(self, item_id: str) -> Any:
        return await self.gateway.request(f"/wishlist/{item_id}", "DELETE")

    async def purchase_item(self, item_id: str) -> Any:
        """Returns {wishlistItem, newPointsTotal}."""
        return await self.gateway.request(f"/wishlist/{item_id}/purchase", "POST")
