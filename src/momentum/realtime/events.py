"""Realtime event names.

Learn: Centralizing event names as constants prevents typos and makes it
easy to discover everything the server can push. Two naming schemes are in
use: the household server emits snake_case names, while older builds of
the BFF emit camelCase ones for the same invalidations. Both are listened
to.
"""

# ─── Invalidations (snake_case) ──────────────────────────

TASK_UPDATED = "task_updated"
QUEST_UPDATED = "quest_updated"
MEMBER_POINTS_UPDATED = "member_points_updated"
STORE_ITEM_UPDATED = "store_item_updated"
HOUSEHOLD_UPDATED = "household_updated"
ROUTINE_UPDATED = "routine_updated"
WISHLIST_UPDATED = "wishlist_updated"

# ─── Invalidations (camelCase) ───────────────────────────

TASK_UPDATED_LEGACY = "taskUpdated"
QUEST_UPDATED_LEGACY = "questUpdated"
MEMBER_UPDATED_LEGACY = "memberUpdated"
STORE_UPDATED_LEGACY = "storeUpdated"

# ─── Other ───────────────────────────────────────────────

NOTIFICATION = "notification"

# Every event that means "cached data may be stale, reload it".
INVALIDATION_EVENTS = (
    TASK_UPDATED,
    QUEST_UPDATED,
    MEMBER_POINTS_UPDATED,
    STORE_ITEM_UPDATED,
    HOUSEHOLD_UPDATED,
    ROUTINE_UPDATED,
    WISHLIST_UPDATED,
    TASK_UPDATED_LEGACY,
    QUEST_UPDATED_LEGACY,
    MEMBER_UPDATED_LEGACY,
    STORE_UPDATED_LEGACY,
)
