"""Routine endpoints (mobile BFF)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class RoutinesApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def list_routines(self) -> Any:
        return await self.gateway.request("/routines")

    async def member_routines(self, member_id: str) -> Any:
        return await self.gateway.request(f"/routines/member/{member_id}")

    async def create_routine(self, routine: dict[str, Any]) -> Any:
        return await self.gateway.request("/routines", "POST", routine)

    async def update_routine(self, routine_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/routines/{routine_id}", "PUT", changes)

    async def delete_routine(self, routine_id: str) -> Any:
        return await self.gateway.request(f"/routines/{routine_id}", "DELETE")

    async def toggle_item(self, routine_id: str, item_id: str) -> Any:
        """Returns {routine, item} with the item's new completion state."""
        return await self.gateway.request(
            f"/routines/{routine_id}/items/{item_id}/toggle", "POST"
        )
