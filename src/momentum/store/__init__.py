"""Client-side cache of household data."""

from momentum.store.cache import (
    COLLECTIONS,
    MEALS,
    MEMBERS,
    QUESTS,
    RESTAURANTS,
    ROUTINES,
    STORE_ITEMS,
    TASKS,
    WISHLIST,
    CacheStore,
    DomainSource,
)
from momentum.store.collections import DomainCollection, canonical_id, normalize_entity

__all__ = [
    "COLLECTIONS",
    "CacheStore",
    "DomainCollection",
    "DomainSource",
    "MEALS",
    "MEMBERS",
    "QUESTS",
    "RESTAURANTS",
    "ROUTINES",
    "STORE_ITEMS",
    "TASKS",
    "WISHLIST",
    "canonical_id",
    "normalize_entity",
]
