"""
Core module - schema definitions, registry, argument normalization and types.
"""

from __future__ import annotations

from .defs import (
    ArgumentDef,
    EntryDef,
    EnumDef,
    FieldDef,
    InputFieldDef,
    InputTypeDef,
    InterfaceDef,
    ObjectTypeDef,
    RelationDef,
    RelationKind,
    TypeRef,
    UnionDef,
)
from .errors import (
    ConflictError,
    ExecutionError,
    GraphConfigError,
    GraphError,
    LivegraphError,
    NotFound,
    NullValueError,
    OperationTimeoutError,
    ServiceError,
    TypeResolutionError,
    ValidationError,
)
from .normalizer import ArgumentNormalizer, NormalizedArguments
from .query_types import (
    CreateUserInput,
    DataPage,
    DataSort,
    DateRange,
    ExecutionResult,
    FieldError,
    FieldNode,
    FragmentNode,
    FriendshipInput,
    NormalizedFilter,
    Operation,
    PhotoCategory,
    PhotoFilter,
    PostPhotoInput,
    SortDirection,
    mutation,
    on,
    query,
    sel,
    subscription,
)
from .registry import SchemaRegistry, load_schema

__all__ = [
    # Defs
    "ArgumentDef",
    "EntryDef",
    "EnumDef",
    "FieldDef",
    "InputFieldDef",
    "InputTypeDef",
    "InterfaceDef",
    "ObjectTypeDef",
    "RelationDef",
    "RelationKind",
    "TypeRef",
    "UnionDef",
    # Errors
    "ConflictError",
    "ExecutionError",
    "GraphConfigError",
    "GraphError",
    "LivegraphError",
    "NotFound",
    "NullValueError",
    "OperationTimeoutError",
    "ServiceError",
    "TypeResolutionError",
    "ValidationError",
    # Registry
    "SchemaRegistry",
    "load_schema",
    "ArgumentNormalizer",
    "NormalizedArguments",
    # Query types
    "CreateUserInput",
    "DataPage",
    "DataSort",
    "DateRange",
    "ExecutionResult",
    "FieldError",
    "FieldNode",
    "FragmentNode",
    "FriendshipInput",
    "NormalizedFilter",
    "Operation",
    "PhotoCategory",
    "PhotoFilter",
    "PostPhotoInput",
    "SortDirection",
    "mutation",
    "on",
    "query",
    "sel",
    "subscription",
]
