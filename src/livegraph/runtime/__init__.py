"""
Runtime module - query, mutation and subscription execution.
"""

from __future__ import annotations

from .context import ExecutionContext
from .executor import ExecutionEngine
from .locks import KeyedLocks
from .mutation_executor import MutationCoordinator
from .relations import RelationshipResolver
from .type_resolver import TypeResolver

__all__ = [
    "ExecutionContext",
    "ExecutionEngine",
    "KeyedLocks",
    "MutationCoordinator",
    "RelationshipResolver",
    "TypeResolver",
]
