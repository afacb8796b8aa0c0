"""CacheStore — the client-side mirror of server-owned household data.

Learn: One store instance owns every domain collection. It is created by
the composition root (momentum.client) and handed to whoever needs it;
there is no module-level global. Views read through selectors (get, find,
snapshot) and write through actions (merge_patch, upsert, remove, ...),
and can subscribe to be told when anything changed.

Loading is a two-wave fan-out:

1. First wave — one fetch per domain, all in parallel. A fetch that fails
   (network, server, bad payload) resets only its own collection to empty.
   The load as a whole never fails because one domain did.
2. Second wave — per-member wishlists, keyed off the members the first wave
   returned. Each member's fetch is isolated the same way.

Concurrent loads are not coalesced: each runs in full and overwrites the
collections when its own results land (last writer wins).
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from momentum.store.collections import DomainCollection

logger = structlog.get_logger()

# ─── Collection names ────────────────────────────────────

TASKS = "tasks"
QUESTS = "quests"
MEMBERS = "members"
STORE_ITEMS = "store_items"
MEALS = "meals"
RESTAURANTS = "restaurants"
ROUTINES = "routines"
WISHLIST = "wishlist"

COLLECTIONS = (TASKS, QUESTS, MEMBERS, STORE_ITEMS, MEALS, RESTAURANTS, ROUTINES, WISHLIST)

Listener = Callable[["CacheStore"], Any]


def extract_list(*keys: str) -> Callable[[Any], list[dict[str, Any]]]:
    """Extractor returning the first list found under any of `keys`.

    The kitchen endpoints answer with either `recipes` or `meals`, so some
    domains need more than one key.
    """

    def extract(payload: Any) -> list[dict[str, Any]]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in keys:
                value = payload.get(key)
                if isinstance(value, list):
                    return value
        return []

    return extract


def household_members(payload: Any) -> list[dict[str, Any]]:
    household = payload.get("household") if isinstance(payload, dict) else None
    if not isinstance(household, dict):
        return []
    return list(household.get("members") or [])


@dataclass
class DomainSource:
    """How one collection is fetched during an aggregated load."""
    collection: str
    fetch: Callable[[], Awaitable[Any]]
    extract: Callable[[Any], list[dict[str, Any]]]
    on_payload: Optional[Callable[[Any], None]] = None


class CacheStore:
    """Owner of every DomainCollection."""

    def __init__(self, api=None, sources: Optional[list[DomainSource]] = None):
        self.api = api
        self._collections = {name: DomainCollection(name) for name in COLLECTIONS}
        self._listeners: list[Listener] = []
        self._refreshes = 0
        self.sources = sources if sources is not None else self._default_sources()
        self.household_id: Optional[str] = None
        self.is_initial_load = True
        self.loads_started = 0
        # Bumped by clear(); a load started under an older generation is discarded.
        self.generation = 0

    def _default_sources(self) -> list[DomainSource]:
        if self.api is None:
            return []
        api = self.api
        return [
            DomainSource(TASKS, api.tasks.list_tasks, extract_list("tasks")),
            DomainSource(QUESTS, api.tasks.list_quests, extract_list("quests")),
            DomainSource(
                MEMBERS,
                api.household.dashboard,
                household_members,
                on_payload=self._capture_household,
            ),
            DomainSource(STORE_ITEMS, api.store.list_items, extract_list("storeItems")),
            DomainSource(MEALS, api.kitchen.list_meals, extract_list("recipes", "meals")),
            DomainSource(RESTAURANTS, api.kitchen.list_restaurants, extract_list("restaurants")),
            DomainSource(ROUTINES, api.routines.list_routines, extract_list("routines")),
        ]

    # ─── Loading ─────────────────────────────────────────

    @property
    def is_refreshing(self) -> bool:
        return self._refreshes > 0

    async def load(self, silent: bool = False) -> dict[str, int]:
        """Fetch every domain in parallel and replace the collections.

        `silent` only lowers log verbosity; the work is identical.
        """
        log = logger.debug if silent else logger.info
        self.loads_started += 1
        log("cache.load_started", load=self.loads_started, silent=silent)

        generation = self.generation
        sources = list(self.sources)
        results = await asyncio.gather(*(self._fetch(source, generation) for source in sources))
        if self._is_stale(generation):
            return self.counts()
        for source, entities in zip(sources, results):
            self._collections[source.collection].replace(entities or [])

        if self.api is not None:
            member_ids = self._collections[MEMBERS].ids()
            wishlist = await self._load_wishlists(member_ids)
            if self._is_stale(generation):
                return self.counts()
            self._collections[WISHLIST].replace(wishlist)

        self.is_initial_load = False
        self._notify()
        counts = self.counts()
        log("cache.loaded", silent=silent, **counts)
        return counts

    async def refresh(self, silent: bool = False) -> dict[str, int]:
        """Re-run the aggregated load. Concurrent refreshes are not merged."""
        self._refreshes += 1
        try:
            return await self.load(silent=silent)
        finally:
            self._refreshes -= 1

    def _is_stale(self, generation: int) -> bool:
        if generation == self.generation:
            return False
        logger.info("cache.load_discarded", load_generation=generation, generation=self.generation)
        return True

    async def _fetch(
        self, source: DomainSource, generation: int
    ) -> Optional[list[dict[str, Any]]]:
        try:
            payload = await source.fetch()
            if source.on_payload is not None and generation == self.generation:
                source.on_payload(payload)
            return source.extract(payload)
        except Exception as e:
            logger.warning(
                "cache.domain_failed",
                collection=source.collection,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def _load_wishlists(self, member_ids: list[str]) -> list[dict[str, Any]]:
        async def fetch_member(member_id: str) -> list[dict[str, Any]]:
            try:
                payload = await self.api.wishlist.member_wishlist(member_id)
            except Exception as e:
                logger.warning(
                    "cache.wishlist_failed",
                    member_id=member_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return []
            items = extract_list("wishlistItems")(payload)
            return [{"memberId": member_id, **item} for item in items if isinstance(item, dict)]

        batches = await asyncio.gather(*(fetch_member(mid) for mid in member_ids))
        return [item for batch in batches for item in batch]

    def _capture_household(self, payload: Any) -> None:
        household = payload.get("household") if isinstance(payload, dict) else None
        if isinstance(household, dict):
            self.household_id = household.get("id") or household.get("_id") or self.household_id

    # ─── Selectors ───────────────────────────────────────

    def get(self, collection: str) -> list[dict[str, Any]]:
        return self._collection(collection).items()

    def find(self, collection: str, entity_id: str) -> Optional[dict[str, Any]]:
        return self._collection(collection).get(entity_id)

    def ids(self, collection: str) -> list[str]:
        return self._collection(collection).ids()

    def counts(self) -> dict[str, int]:
        return {name: len(coll) for name, coll in self._collections.items()}

    def snapshot(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: coll.items() for name, coll in self._collections.items()}
        data["household_id"] = self.household_id
        return data

    @property
    def tasks(self) -> list[dict[str, Any]]:
        return self.get(TASKS)

    @property
    def quests(self) -> list[dict[str, Any]]:
        return self.get(QUESTS)

    @property
    def members(self) -> list[dict[str, Any]]:
        return self.get(MEMBERS)

    @property
    def members_by_id(self) -> dict[str, dict[str, Any]]:
        return {member["id"]: member for member in self.members}

    @property
    def store_items(self) -> list[dict[str, Any]]:
        return self.get(STORE_ITEMS)

    @property
    def routines(self) -> list[dict[str, Any]]:
        return self.get(ROUTINES)

    @property
    def wishlist(self) -> list[dict[str, Any]]:
        return self.get(WISHLIST)

    # ─── Actions ─────────────────────────────────────────

    def merge_patch(self, collection: str, entity_id: str, patch: dict[str, Any]) -> bool:
        """Update only the patched fields of the entity matching `entity_id`.

        Matches the canonical id or any alias. No-op when nothing matches.
        """
        changed = self._collection(collection).merge_patch(entity_id, patch)
        if changed:
            self._notify()
        return changed

    def upsert(self, collection: str, entity: dict[str, Any]) -> Optional[str]:
        cid = self._collection(collection).upsert(entity)
        if cid is not None:
            self._notify()
        return cid

    def remove(self, collection: str, entity_id: str) -> Optional[tuple[int, dict[str, Any]]]:
        removed = self._collection(collection).remove(entity_id)
        if removed is not None:
            self._notify()
        return removed

    def insert(self, collection: str, index: int, entity: dict[str, Any]) -> Optional[str]:
        cid = self._collection(collection).insert(index, entity)
        if cid is not None:
            self._notify()
        return cid

    def replace(self, collection: str, entities: list[dict[str, Any]]) -> None:
        self._collection(collection).replace(entities)
        self._notify()

    def clear(self) -> None:
        """Drop everything (session ended). Loads still in flight are discarded."""
        self.generation += 1
        for coll in self._collections.values():
            coll.clear()
        self.household_id = None
        self.is_initial_load = True
        self._notify()
        logger.info("cache.cleared")

    # ─── Change notification ─────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(store)` after every change. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("cache.listener_failed")

    def _collection(self, name: str) -> DomainCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name!r}") from None
