"""
SQLAlchemy data sources.

Maps an entity to a declarative model over an AsyncSession. Schema field
names are camelCase, columns snake_case.

Usage:
    class UserRow(Base):
        __tablename__ = "users"
        github_login: Mapped[str] = mapped_column(primary_key=True)
        name: Mapped[Optional[str]]

    session_maker = async_sessionmaker(create_async_engine(url), expire_on_commit=False)
    users = SQLAlchemyDataSource("User", UserRow, session_maker, key="githubLogin")
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import Column, MetaData, String, Table, and_, delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from ..core.errors import ConflictError, NotFound
from ..core.query_types import NormalizedFilter
from ..core.utils import columns_to_fields, fields_to_columns, to_snake_case
from .base import AssociationStore, DataSource, Entity
from .memory import match_filter

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models served as data sources."""
    pass


class SQLAlchemyDataSource(DataSource):
    """
    Data source over one SQLAlchemy model.

    Filter ops eq, in, gte, lte, icontains and isnull run in SQL. The contains
    op targets list-valued (JSON) columns and is evaluated on the loaded rows.
    """

    def __init__(
        self,
        entity: str,
        model: type[DeclarativeBase],
        session_maker: async_sessionmaker[AsyncSession],
        key: str = "id",
    ):
        super().__init__(entity, key)
        self.model = model
        self.session_maker = session_maker
        self.dangling: list[tuple[Any, str, Any]] = []

    def _column(self, field: str):
        column = getattr(self.model, to_snake_case(field), None)
        if column is None:
            raise ValueError(f"{self.entity}: no column for field '{field}'")
        return column

    def _to_entity(self, row) -> Entity:
        return columns_to_fields({c.name: getattr(row, c.name) for c in row.__table__.columns})

    def _to_row_data(self, entity: Entity) -> dict[str, Any]:
        columns = {c.name for c in self.model.__table__.columns}
        return {k: v for k, v in fields_to_columns(entity).items() if k in columns}

    def _apply_filters(self, stmt, filters: list[NormalizedFilter]):
        """Apply SQL-expressible filters to a select statement."""
        for f in filters:
            column = self._column(f.field)
            if f.op == "eq":
                stmt = stmt.where(column == f.value)
            elif f.op == "in":
                stmt = stmt.where(column.in_(list(f.value)))
            elif f.op == "gte":
                stmt = stmt.where(column >= f.value)
            elif f.op == "lte":
                stmt = stmt.where(column <= f.value)
            elif f.op == "icontains":
                stmt = stmt.where(column.ilike(f"%{f.value}%"))
            elif f.op == "isnull":
                stmt = stmt.where(column.is_(None) if f.value else column.isnot(None))
            elif f.op != "contains":
                raise ValueError(f"Unsupported filter operator: {f.op}")
        return stmt

    async def get(self, key: Any) -> Optional[Entity]:
        async with self.session_maker() as session:
            row = await session.get(self.model, key)
            return self._to_entity(row) if row is not None else None

    async def all(self) -> list[Entity]:
        return await self.where([])

    async def where(self, filters: list[NormalizedFilter]) -> list[Entity]:
        stmt = self._apply_filters(select(self.model), filters)
        async with self.session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        items = [self._to_entity(row) for row in rows]

        in_memory = [f for f in filters if f.op == "contains"]
        if in_memory:
            items = [item for item in items if all(match_filter(item, f) for f in in_memory)]
        return items

    async def count(self) -> int:
        async with self.session_maker() as session:
            result = await session.execute(select(func.count()).select_from(self.model))
            return result.scalar() or 0

    async def create(self, entity: Entity) -> Entity:
        instance = self.model(**self._to_row_data(entity))
        async with self.session_maker() as session:
            session.add(instance)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(f"{self.entity} '{entity.get(self.key)}' already exists") from e
            await session.refresh(instance)
            return self._to_entity(instance)

    async def update(self, key: Any, changes: Entity) -> Entity:
        async with self.session_maker() as session:
            row = await session.get(self.model, key)
            if row is None:
                raise NotFound(self.entity, key)
            for column, value in self._to_row_data(changes).items():
                setattr(row, column, value)
            await session.commit()
            await session.refresh(row)
            return self._to_entity(row)

    async def delete(self, key: Any) -> Optional[Entity]:
        async with self.session_maker() as session:
            row = await session.get(self.model, key)
            if row is None:
                return None
            entity = self._to_entity(row)
            await session.delete(row)
            await session.commit()
            return entity

    async def flag_dangling(self, key: Any, missing: str, missing_key: Any) -> None:
        self.dangling.append((key, missing, missing_key))
        logger.warning(f"{self.entity} '{key}' references missing {missing} '{missing_key}'")


def association_table(name: str, metadata: MetaData) -> Table:
    """Two-column link table for an association."""
    return Table(
        name,
        metadata,
        Column("left_key", String, primary_key=True),
        Column("right_key", String, primary_key=True),
    )


class SQLAlchemyAssociationStore(AssociationStore):
    """Association index stored in a link table (see association_table)."""

    def __init__(self, name: str, table: Table, session_maker: async_sessionmaker[AsyncSession]):
        super().__init__(name)
        self.table = table
        self.session_maker = session_maker

    def _pair(self, left: Any, right: Any):
        return and_(self.table.c.left_key == left, self.table.c.right_key == right)

    async def link(self, left: Any, right: Any) -> bool:
        async with self.session_maker() as session:
            exists = await session.execute(select(self.table).where(self._pair(left, right)))
            if exists.first() is not None:
                return False
            await session.execute(insert(self.table).values(left_key=left, right_key=right))
            await session.commit()
            return True

    async def unlink(self, left: Any, right: Any) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(delete(self.table).where(self._pair(left, right)))
            await session.commit()
            return result.rowcount > 0

    async def _select(self, column, other, key: Any) -> set:
        async with self.session_maker() as session:
            result = await session.execute(select(other).where(column == key))
            return set(result.scalars().all())

    async def right_of(self, left: Any) -> set:
        return await self._select(self.table.c.left_key, self.table.c.right_key, left)

    async def left_of(self, right: Any) -> set:
        return await self._select(self.table.c.right_key, self.table.c.left_key, right)
