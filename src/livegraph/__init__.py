"""
Livegraph - typed schema execution engine for the PhotoShare domain.

Executes queries, mutations and subscriptions against pluggable data sources:
- Relationship resolution (one-to-one, one-to-many, many-to-many, through types)
- Polymorphic dispatch for interfaces and unions
- Filtering, sorting and paging of list fields
- Per-identity serialized mutations with events fanned out to subscribers

Usage:
    from livegraph import create_engine, memory_sources, query, sel

    engine = create_engine(memory_sources(users=[...], photos=[...]))
    result = await engine.execute(query(sel("allPhotos", sel("name"), sel("postedBy", sel("name")))))
"""

from __future__ import annotations

from .config import EngineSettings, configure_logging, get_settings
from .core import (
    ConflictError,
    ExecutionError,
    ExecutionResult,
    GraphConfigError,
    GraphError,
    LivegraphError,
    NormalizedFilter,
    NotFound,
    NullValueError,
    Operation,
    OperationTimeoutError,
    PhotoCategory,
    PhotoFilter,
    SchemaRegistry,
    ServiceError,
    TypeResolutionError,
    ValidationError,
    load_schema,
    mutation,
    on,
    query,
    sel,
    subscription,
)
from .runtime import ExecutionEngine, MutationCoordinator
from .messaging import EventType, GraphEvent, QueueSink, Subscription, SubscriptionBroker
from .sources import DataSource, DataSources, InMemoryAssociationStore, InMemoryDataSource
from .photoshare import build_registry, create_engine, memory_sources

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ExecutionEngine",
    "MutationCoordinator",
    "SchemaRegistry",
    "load_schema",
    "create_engine",
    "build_registry",
    "memory_sources",
    # Config
    "EngineSettings",
    "configure_logging",
    "get_settings",
    # Operations
    "Operation",
    "ExecutionResult",
    "NormalizedFilter",
    "PhotoCategory",
    "PhotoFilter",
    "mutation",
    "on",
    "query",
    "sel",
    "subscription",
    # Messaging
    "EventType",
    "GraphEvent",
    "QueueSink",
    "Subscription",
    "SubscriptionBroker",
    # Sources
    "DataSource",
    "DataSources",
    "InMemoryAssociationStore",
    "InMemoryDataSource",
    # Errors
    "LivegraphError",
    "GraphConfigError",
    "GraphError",
    "ConflictError",
    "ExecutionError",
    "NotFound",
    "NullValueError",
    "OperationTimeoutError",
    "ServiceError",
    "TypeResolutionError",
    "ValidationError",
]
