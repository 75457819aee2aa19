"""
Data source contracts consumed by the engine.

A DataSource serves one entity type; an AssociationStore holds the link index
of one many-to-many association as (left key, right key) pairs. Every call is
atomic on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..core.query_types import NormalizedFilter

Entity = dict[str, Any]


class DataSource(ABC):
    """
    Storage collaborator for one entity type.

    Entities are plain dicts keyed by schema field names.
    """

    def __init__(self, entity: str, key: str = "id"):
        self.entity = entity
        self.key = key

    @abstractmethod
    async def get(self, key: Any) -> Optional[Entity]:
        """Get by identity, None when missing."""

    async def get_many(self, keys: Iterable[Any]) -> list[Entity]:
        """Get several entities; missing keys are skipped, order follows keys."""
        keys = list(keys)
        if not keys:
            return []
        found = await self.where([NormalizedFilter(field=self.key, op="in", value=keys)])
        by_key = {item.get(self.key): item for item in found}
        return [by_key[k] for k in keys if k in by_key]

    @abstractmethod
    async def all(self) -> list[Entity]:
        """Get every entity."""

    @abstractmethod
    async def where(self, filters: list[NormalizedFilter]) -> list[Entity]:
        """Get entities matching every filter."""

    async def count(self) -> int:
        return len(await self.all())

    @abstractmethod
    async def create(self, entity: Entity) -> Entity:
        """Insert a new entity and return it as stored."""

    @abstractmethod
    async def update(self, key: Any, changes: Entity) -> Entity:
        """Apply a partial update and return the stored entity."""

    async def put(self, entity: Entity) -> Entity:
        """Create or replace by identity."""
        key = entity.get(self.key)
        if key is not None and await self.get(key) is not None:
            return await self.update(key, entity)
        return await self.create(entity)

    @abstractmethod
    async def delete(self, key: Any) -> Optional[Entity]:
        """Delete by identity and return the removed entity (None when missing)."""

    async def flag_dangling(self, key: Any, missing: str, missing_key: Any) -> None:
        """
        Report that entity `key` references `missing` `missing_key`, which no longer exists.

        Default implementation does nothing; sources that track integrity override it.
        """
        return None


class AssociationStore(ABC):
    """Link index of one many-to-many association."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def link(self, left: Any, right: Any) -> bool:
        """Add a link; returns False if it already existed."""

    @abstractmethod
    async def unlink(self, left: Any, right: Any) -> bool:
        """Remove a link; returns False if it did not exist."""

    @abstractmethod
    async def right_of(self, left: Any) -> set:
        """Right keys linked to a left key."""

    @abstractmethod
    async def left_of(self, right: Any) -> set:
        """Left keys linked to a right key."""

    async def related(self, key: Any, side: str) -> set:
        """Keys on the opposite side of `key`, which sits on `side`."""
        if side == "left":
            return await self.right_of(key)
        return await self.left_of(key)

    async def drop(self, key: Any, side: str) -> int:
        """Remove every link of `key`; returns how many were removed."""
        removed = 0
        for other in await self.related(key, side):
            pair = (key, other) if side == "left" else (other, key)
            if await self.unlink(*pair):
                removed += 1
        return removed


@dataclass
class DataSources:
    """Named data sources and association stores handed to the engine."""
    entities: dict[str, DataSource] = field(default_factory=dict)
    associations: dict[str, AssociationStore] = field(default_factory=dict)

    def source(self, name: str) -> DataSource:
        try:
            return self.entities[name]
        except KeyError:
            raise LookupError(f"No data source registered for '{name}'") from None

    def association(self, name: str) -> AssociationStore:
        try:
            return self.associations[name]
        except KeyError:
            raise LookupError(f"No association store registered for '{name}'") from None
