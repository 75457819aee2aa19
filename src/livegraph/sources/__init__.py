"""
Sources module - data source contracts and implementations.
"""

from __future__ import annotations

from .base import AssociationStore, DataSource, DataSources
from .http import HTTPDataSource
from .memory import InMemoryAssociationStore, InMemoryDataSource
from .sql import Base, SQLAlchemyAssociationStore, SQLAlchemyDataSource, association_table

__all__ = [
    "AssociationStore",
    "DataSource",
    "DataSources",
    "HTTPDataSource",
    "InMemoryAssociationStore",
    "InMemoryDataSource",
    "Base",
    "SQLAlchemyAssociationStore",
    "SQLAlchemyDataSource",
    "association_table",
]
