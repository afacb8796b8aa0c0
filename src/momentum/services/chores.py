"""Chores — tasks, quests, routines and focus, all applied optimistically.

Each operation captures exactly the fields it is about to change, patches
them in the cache, and restores those same fields if the server refuses.
Capturing only the touched fields (rather than the whole entity) means a
silent refresh that lands mid-flight is not clobbered by the rollback.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from momentum.optimistic import OptimisticExecutor
from momentum.services.errors import EntityNotFound, NoHousehold
from momentum.store.cache import MEMBERS, QUESTS, ROUTINES, TASKS, CacheStore

logger = structlog.get_logger()

PENDING_APPROVAL = "PendingApproval"
APPROVED = "Approved"


def _fields(entity: dict[str, Any], names: tuple[str, ...]) -> dict[str, Any]:
    return {name: entity.get(name) for name in names}


class ChoresService:
    def __init__(self, store: CacheStore, api, executor: OptimisticExecutor):
        self.store = store
        self.api = api
        self.executor = executor

    def _find(self, collection: str, entity_id: str) -> dict[str, Any]:
        entity = self.store.find(collection, entity_id)
        if entity is None:
            raise EntityNotFound(collection, entity_id)
        return entity

    async def _patch(
        self,
        collection: str,
        entity: dict[str, Any],
        patch: dict[str, Any],
        remote_call,
        label: str,
    ) -> Any:
        eid = entity["id"]
        previous = _fields(entity, tuple(patch))
        return await self.executor.execute(
            apply=lambda: self.store.merge_patch(collection, eid, patch),
            rollback=lambda: self.store.merge_patch(collection, eid, previous),
            remote_call=remote_call,
            key=f"{collection}:{eid}",
            label=label,
        )

    # ─── Tasks ───────────────────────────────────────────

    async def complete_task(self, task_id: str, member_id: str) -> Any:
        task = self._find(TASKS, task_id)
        result = await self._patch(
            TASKS,
            task,
            {"status": PENDING_APPROVAL, "completedBy": member_id},
            lambda: self.api.tasks.complete_task(task["id"], member_id),
            "task.complete",
        )
        self._apply_server_task(result)
        return result

    async def approve_task(self, task_id: str) -> Any:
        task = self._find(TASKS, task_id)
        result = await self._patch(
            TASKS,
            task,
            {"status": APPROVED},
            lambda: self.api.tasks.approve_task(task["id"]),
            "task.approve",
        )
        self._apply_server_task(result)
        return result

    async def delete_task(self, task_id: str) -> None:
        task = self._find(TASKS, task_id)
        tid = task["id"]
        removed: list[tuple[int, dict[str, Any]]] = []

        def apply() -> None:
            hit = self.store.remove(TASKS, tid)
            if hit is not None:
                removed.append(hit)

        def rollback() -> None:
            if removed:
                index, entity = removed.pop()
                self.store.insert(TASKS, index, entity)

        await self.executor.execute(
            apply=apply,
            rollback=rollback,
            remote_call=lambda: self.api.tasks.delete_task(tid),
            key=f"{TASKS}:{tid}",
            label="task.delete",
        )

    def _apply_server_task(self, result: Any) -> None:
        if not isinstance(result, dict):
            return
        task = result.get("task")
        if isinstance(task, dict):
            self.store.upsert(TASKS, task)
        update = result.get("memberUpdate")
        if isinstance(update, dict) and update.get("memberId"):
            self.store.merge_patch(
                MEMBERS, update["memberId"], {"pointsTotal": update.get("pointsTotal")}
            )

    # ─── Quests ──────────────────────────────────────────

    async def claim_quest(self, quest_id: str, member_id: str) -> Any:
        quest = self._find(QUESTS, quest_id)
        claims = list(quest.get("claims") or [])
        claims.append(
            {
                "memberId": member_id,
                "status": "claimed",
                "claimedAt": datetime.now(timezone.utc).isoformat(),
            }
        )
        return await self._patch(
            QUESTS,
            quest,
            {"claims": claims},
            lambda: self.api.tasks.claim_quest(quest["id"], member_id),
            "quest.claim",
        )

    # ─── Routines ────────────────────────────────────────

    async def toggle_routine_item(self, routine_id: str, item_id: str) -> Any:
        routine = self._find(ROUTINES, routine_id)
        items = [dict(item) for item in routine.get("items") or []]
        for item in items:
            if item_id in (item.get("_id"), item.get("id")):
                item["isCompleted"] = not item.get("isCompleted", False)
                break
        else:
            raise EntityNotFound("routine_items", item_id)

        return await self._patch(
            ROUTINES,
            routine,
            {"items": items},
            lambda: self.api.routines.toggle_item(routine["id"], item_id),
            "routine.toggle_item",
        )

    # ─── Focus ───────────────────────────────────────────

    async def set_focus_task(self, member_id: str, task_id: Optional[str]) -> Any:
        """Pin a task as the member's current focus (None clears it)."""
        household_id = self.store.household_id
        if household_id is None:
            raise NoHousehold("No household loaded")
        member = self._find(MEMBERS, member_id)
        result = await self._patch(
            MEMBERS,
            member,
            {"focusedTaskId": task_id},
            lambda: self.api.household.set_focus_task(household_id, member["id"], task_id),
            "member.focus_task",
        )
        logger.info("chores.focus_set", member_id=member["id"], task_id=task_id)
        return result
