"""Household endpoints (mobile BFF) — dashboard, family, member profiles."""

from typing import Any, Optional

from momentum.gateway.client import RequestGateway


class HouseholdApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    async def dashboard(self) -> Any:
        """Aggregated page data: {household: {id, name, members: [...]}, tasks, ...}."""
        return await self.gateway.request("/dashboard/page-data")

    async def family(self) -> Any:
        return await self.gateway.request("/family/page-data")

    async def create_member(self, member: dict[str, Any]) -> Any:
        return await self.gateway.request("/family/members", "POST", member)

    async def update_member(self, member_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/family/members/{member_id}", "PUT", changes)

    async def delete_member(self, member_id: str, household_id: str) -> Any:
        return await self.gateway.request(
            f"/family/members/{member_id}", "DELETE", {"householdId": household_id}
        )

    async def set_focus_task(
        self, household_id: str, member_id: str, task_id: Optional[str]
    ) -> Any:
        return await self.gateway.request(
            f"/households/{household_id}/members/{member_id}",
            "PATCH",
            {"focusedTaskId": task_id},
        )
