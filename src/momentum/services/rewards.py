"""Rewards — spending points in the store and on wishlist items.

Learn: A purchase is the textbook optimistic operation. The balance drops
the moment the member taps "buy"; the server then either confirms with its
own figure (`newPointsTotal`), which replaces our guess, or refuses, and
the balance goes back to what it was.

The affordability check runs first, against the cached balance, and raises
InsufficientPoints without touching the cache or the network. The server
checks again; the local check only saves a round trip.
"""

from typing import Any, Optional

import structlog

from momentum.optimistic import OptimisticExecutor
from momentum.services.errors import EntityNotFound, InsufficientPoints
from momentum.store.cache import MEMBERS, STORE_ITEMS, WISHLIST, CacheStore

logger = structlog.get_logger()


def _points(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def server_points_total(result: Any) -> Optional[int]:
    """The authoritative balance from a purchase response, if it sent one."""
    if not isinstance(result, dict):
        return None
    value = result.get("newPointsTotal")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class RewardsService:
    def __init__(self, store: CacheStore, api, executor: OptimisticExecutor):
        self.store = store
        self.api = api
        self.executor = executor

    def _member(self, member_id: str) -> dict[str, Any]:
        member = self.store.find(MEMBERS, member_id)
        if member is None:
            raise EntityNotFound(MEMBERS, member_id)
        return member

    async def purchase_item(self, member_id: str, item_id: str) -> int:
        """Buy a store item for a member. Returns the resulting balance."""
        member = self._member(member_id)
        item = self.store.find(STORE_ITEMS, item_id)
        if item is None:
            raise EntityNotFound(STORE_ITEMS, item_id)

        balance = _points(member.get("pointsTotal"))
        cost = _points(item.get("cost"))
        if balance < cost:
            raise InsufficientPoints(balance, cost)

        mid = member["id"]
        result = await self.executor.execute(
            apply=lambda: self.store.merge_patch(MEMBERS, mid, {"pointsTotal": balance - cost}),
            rollback=lambda: self.store.merge_patch(MEMBERS, mid, {"pointsTotal": balance}),
            remote_call=lambda: self.api.store.purchase_item(
                item["id"], member.get("userId") or mid
            ),
            key=f"member:{mid}",
            label="store.purchase",
        )
        logger.info("rewards.purchased", member_id=mid, item_id=item["id"], cost=cost)
        return await self._settle(mid, result, balance - cost)

    async def purchase_wishlist_item(self, item_id: str) -> int:
        """Buy a wishlist item with its owner's points. Returns the resulting balance."""
        item = self.store.find(WISHLIST, item_id)
        if item is None:
            raise EntityNotFound(WISHLIST, item_id)
        member = self._member(item.get("memberId") or "")

        balance = _points(member.get("pointsTotal"))
        cost = _points(item.get("pointsCost"))
        if balance < cost:
            raise InsufficientPoints(balance, cost)

        mid, wid = member["id"], item["id"]
        was_purchased = bool(item.get("isPurchased"))

        def apply() -> None:
            self.store.merge_patch(MEMBERS, mid, {"pointsTotal": balance - cost})
            self.store.merge_patch(WISHLIST, wid, {"isPurchased": True})

        def rollback() -> None:
            self.store.merge_patch(MEMBERS, mid, {"pointsTotal": balance})
            self.store.merge_patch(WISHLIST, wid, {"isPurchased": was_purchased})

        result = await self.executor.execute(
            apply=apply,
            rollback=rollback,
            remote_call=lambda: self.api.wishlist.purchase_item(wid),
            key=f"member:{mid}",
            label="wishlist.purchase",
        )
        if isinstance(result, dict) and isinstance(result.get("wishlistItem"), dict):
            self.store.merge_patch(WISHLIST, wid, result["wishlistItem"])
        logger.info("rewards.wishlist_purchased", member_id=mid, item_id=wid, cost=cost)
        return await self._settle(mid, result, balance - cost)

    async def _settle(self, member_id: str, result: Any, guess: int) -> int:
        confirmed = server_points_total(result)
        if confirmed is not None:
            self.store.merge_patch(MEMBERS, member_id, {"pointsTotal": confirmed})
            return confirmed

        # No authoritative figure; resync everything rather than trust the guess.
        await self.store.refresh(silent=True)
        member = self.store.find(MEMBERS, member_id)
        return _points(member.get("pointsTotal")) if member is not None else guess
