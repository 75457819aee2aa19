"""
In-memory data sources.

Used for tests, fixtures and embedding the engine without a database.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Optional

from ..core.errors import ConflictError, NotFound
from ..core.query_types import NormalizedFilter
from .base import AssociationStore, DataSource, Entity

logger = logging.getLogger(__name__)


def match_filter(item: Entity, flt: NormalizedFilter) -> bool:
    """Evaluate one NormalizedFilter against an entity dict."""
    value = item.get(flt.field)
    op = flt.op

    if op == "isnull":
        return (value is None) == bool(flt.value)
    if op == "eq":
        return value == flt.value
    if op == "in":
        return value in flt.value
    if op == "contains":
        return value is not None and flt.value in value
    if value is None:
        return False
    if op == "icontains":
        return str(flt.value).lower() in str(value).lower()
    if op == "gte":
        return value >= flt.value
    if op == "lte":
        return value <= flt.value
    raise ValueError(f"Unsupported filter operator: {op}")


class InMemoryDataSource(DataSource):
    """
    Dict-backed data source.

    Usage:
        photos = InMemoryDataSource("Photo", key="id", items=[{...}])
        await photos.where([NormalizedFilter(field="postedBy", op="eq", value="alice")])
    """

    def __init__(self, entity: str, key: str = "id", items: Optional[Iterable[Entity]] = None):
        super().__init__(entity, key)
        self._items: dict[Any, Entity] = {}
        self.dangling: list[tuple[Any, str, Any]] = []
        for item in items or ():
            self._items[item[key]] = self._copy(item)

    def _copy(self, item: Entity) -> Entity:
        return copy.deepcopy(item)

    async def get(self, key: Any) -> Optional[Entity]:
        item = self._items.get(key)
        return self._copy(item) if item is not None else None

    async def all(self) -> list[Entity]:
        return [self._copy(item) for item in self._items.values()]

    async def where(self, filters: list[NormalizedFilter]) -> list[Entity]:
        return [
            self._copy(item)
            for item in self._items.values()
            if all(match_filter(item, f) for f in filters)
        ]

    async def count(self) -> int:
        return len(self._items)

    async def create(self, entity: Entity) -> Entity:
        key = entity.get(self.key)
        if key is None:
            raise ValueError(f"{self.entity}: '{self.key}' is required")
        if key in self._items:
            raise ConflictError(f"{self.entity} '{key}' already exists")
        self._items[key] = self._copy(entity)
        return self._copy(entity)

    async def update(self, key: Any, changes: Entity) -> Entity:
        if key not in self._items:
            raise NotFound(self.entity, key)
        item = self._items[key]
        item.update(self._copy(changes))
        return self._copy(item)

    async def delete(self, key: Any) -> Optional[Entity]:
        return self._items.pop(key, None)

    async def flag_dangling(self, key: Any, missing: str, missing_key: Any) -> None:
        self.dangling.append((key, missing, missing_key))
        logger.warning(f"{self.entity} '{key}' references missing {missing} '{missing_key}'")


class InMemoryAssociationStore(AssociationStore):
    """Association index keyed by identity pairs, with a lookup map per side."""

    def __init__(self, name: str, pairs: Optional[Iterable[tuple[Any, Any]]] = None):
        super().__init__(name)
        self._pairs: set[tuple[Any, Any]] = set()
        self._by_left: dict[Any, set] = {}
        self._by_right: dict[Any, set] = {}
        for left, right in pairs or ():
            self._add(left, right)

    def _add(self, left: Any, right: Any) -> bool:
        if (left, right) in self._pairs:
            return False
        self._pairs.add((left, right))
        self._by_left.setdefault(left, set()).add(right)
        self._by_right.setdefault(right, set()).add(left)
        return True

    async def link(self, left: Any, right: Any) -> bool:
        return self._add(left, right)

    async def unlink(self, left: Any, right: Any) -> bool:
        if (left, right) not in self._pairs:
            return False
        self._pairs.discard((left, right))
        self._by_left.get(left, set()).discard(right)
        self._by_right.get(right, set()).discard(left)
        return True

    async def right_of(self, left: Any) -> set:
        return set(self._by_left.get(left, ()))

    async def left_of(self, right: Any) -> set:
        return set(self._by_right.get(right, ()))
