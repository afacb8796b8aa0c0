"""Task and quest endpoints (core API)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class TasksApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    # ─── Tasks ───────────────────────────────────────────

    async def list_tasks(self) -> Any:
        return await self.gateway.request("/tasks")

    async def create_task(self, task: dict[str, Any]) -> Any:
        return await self.gateway.request("/tasks", "POST", task)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/tasks/{task_id}", "PATCH", changes)

    async def delete_task(self, task_id: str) -> Any:
        return await self.gateway.request(f"/tasks/{task_id}", "DELETE")

    async def complete_task(self, task_id: str, member_id: str) -> Any:
        return await self.gateway.request(
            f"/tasks/{task_id}/complete", "POST", {"memberId": member_id}
        )

    async def approve_task(self, task_id: str) -> Any:
        return await self.gateway.request(f"/tasks/{task_id}/approve", "POST")

    # ─── Quests ──────────────────────────────────────────

    async def list_quests(self) -> Any:
        return await self.gateway.request("/quests")

    async def create_quest(self, quest: dict[str, Any]) -> Any:
        return await self.gateway.request("/quests", "POST", quest)

    async def update_quest(self, quest_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/quests/{quest_id}", "PUT", changes)

    async def delete_quest(self, quest_id: str) -> Any:
        return await self.gateway.request(f"/quests/{quest_id}", "DELETE")

    async def claim_quest(self, quest_id: str, member_id: str) -> Any:
        return await self.gateway.request(
            f"/quests/{quest_id}/claim", "POST", {"memberId": member_id}
        )

    async def complete_quest(self, quest_id: str, member_id: str) -> Any:
        return await self.gateway.request(
            f"/quests/{quest_id}/complete", "POST", {"memberId": member_id}
        )

    async def approve_quest(self, quest_id: str, member_id: str) -> Any:
        return await self.gateway.request(
            f"/quests/{quest_id}/approve", "POST", {"memberId": member_id}
        )
