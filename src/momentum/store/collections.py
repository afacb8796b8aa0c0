"""Domain collections — ordered, alias-aware entity arenas.

Learn: Upstream services disagree on identifiers. The core API returns
`id`, Mongo-backed endpoints return `_id`, and some records carry both.
Resolving that at read time means every lookup has to remember to check
both fields, and one that forgets silently misses. So identity is resolved
once, at ingestion:

    canonical id = entity["id"] or entity["_id"]

The entity is stored under its canonical id with `id` filled in, and every
raw identifier value it carried is registered as an alias. Any of them
finds the same entity afterwards.

Reads hand out copies. The only way to change a collection is through its
write methods, which the CacheStore exposes as actions.
"""

from typing import Any, Iterable, Iterator, Optional

import structlog

logger = structlog.get_logger()

IDENTITY_FIELDS = ("id", "_id")


def canonical_id(raw: dict[str, Any]) -> Optional[str]:
    """The single identity an upstream record is indexed by."""
    for field in IDENTITY_FIELDS:
        value = raw.get(field)
        if value not in (None, ""):
            return str(value)
    return None


def normalize_entity(raw: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Copy of `raw` with `id` set to its canonical id, or None if it has none."""
    cid = canonical_id(raw)
    if cid is None:
        return None
    entity = dict(raw)
    entity["id"] = cid
    return entity


class DomainCollection:
    """Ordered sequence of one kind of entity, indexed by canonical id."""

    def __init__(self, name: str, entities: Iterable[dict[str, Any]] = ()):
        self.name = name
        self._order: list[str] = []
        self._entities: dict[str, dict[str, Any]] = {}
        self._aliases: dict[str, str] = {}
        self.replace(entities)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.items())

    def __contains__(self, entity_id: object) -> bool:
        return isinstance(entity_id, str) and self.resolve(entity_id) is not None

    def __repr__(self) -> str:
        return f"DomainCollection({self.name!r}, size={len(self)})"

    # ─── Reads ───────────────────────────────────────────

    def resolve(self, entity_id: str) -> Optional[str]:
        """Canonical id for any alias, or None."""
        return self._aliases.get(str(entity_id))

    def get(self, entity_id: str) -> Optional[dict[str, Any]]:
        cid = self.resolve(entity_id)
        if cid is None:
            return None
        return dict(self._entities[cid])

    def items(self) -> list[dict[str, Any]]:
        return [dict(self._entities[cid]) for cid in self._order]

    def ids(self) -> list[str]:
        return list(self._order)

    def index_of(self, entity_id: str) -> Optional[int]:
        cid = self.resolve(entity_id)
        if cid is None:
            return None
        return self._order.index(cid)

    # ─── Writes ──────────────────────────────────────────

    def replace(self, entities: Iterable[dict[str, Any]]) -> None:
        """Swap the whole contents for freshly fetched records."""
        self._order = []
        self._entities = {}
        self._aliases = {}
        skipped = 0
        for raw in entities:
            if not isinstance(raw, dict) or not self._ingest(raw):
                skipped += 1
        if skipped:
            logger.warning("collection.skipped_entities", collection=self.name, count=skipped)

    def clear(self) -> None:
        self.replace(())

    def upsert(self, raw: dict[str, Any]) -> Optional[str]:
        """Insert a new entity or replace an existing one in place."""
        entity = normalize_entity(raw)
        if entity is None:
            return None
        existing = self._existing_for(raw)
        if existing is not None:
            self._entities[existing] = {**entity, "id": existing}
            self._register_aliases(existing, raw)
            return existing
        self._ingest(raw)
        return entity["id"]

    def insert(self, index: int, raw: dict[str, Any]) -> Optional[str]:
        """Insert at a position (used to undo a removal)."""
        entity = normalize_entity(raw)
        if entity is None or self._existing_for(raw) is not None:
            return None
        cid = entity["id"]
        self._entities[cid] = entity
        self._order.insert(index, cid)
        self._register_aliases(cid, raw)
        return cid

    def merge_patch(self, entity_id: str, patch: dict[str, Any]) -> bool:
        """Overwrite only the patched fields of one entity.

        No-op (returns False) when nothing matches. Identity fields in the
        patch are ignored: a patch never re-keys an entity.
        """
        cid = self.resolve(entity_id)
        if cid is None:
            return False
        changes = {k: v for k, v in patch.items() if k not in IDENTITY_FIELDS}
        self._entities[cid] = {**self._entities[cid], **changes}
        return True

    def remove(self, entity_id: str) -> Optional[tuple[int, dict[str, Any]]]:
        """Remove an entity. Returns (position, entity) so it can be restored."""
        cid = self.resolve(entity_id)
        if cid is None:
            return None
        index = self._order.index(cid)
        self._order.pop(index)
        entity = self._entities.pop(cid)
        self._aliases = {a: c for a, c in self._aliases.items() if c != cid}
        return index, entity

    # ─── Internals ───────────────────────────────────────

    def _ingest(self, raw: dict[str, Any]) -> bool:
        entity = normalize_entity(raw)
        if entity is None:
            return False
        cid = entity["id"]
        if cid in self._entities:
            # Duplicate record in one payload: last one wins, position kept.
            self._entities[cid] = entity
        else:
            self._order.append(cid)
            self._entities[cid] = entity
        self._register_aliases(cid, raw)
        return True

    def _existing_for(self, raw: dict[str, Any]) -> Optional[str]:
        for field in IDENTITY_FIELDS:
            value = raw.get(field)
            if value not in (None, ""):
                cid = self.resolve(str(value))
                if cid is not None:
                    return cid
        return None

    def _register_aliases(self, cid: str, raw: dict[str, Any]) -> None:
        self._aliases[cid] = cid
        for field in IDENTITY_FIELDS:
            value = raw.get(field)
            if value not in (None, ""):
                self._aliases[str(value)] = cid
