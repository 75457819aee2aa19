"""
Custom exceptions for the livegraph engine.

Field-level errors (GraphError subclasses) carry the response path they were
raised at, so the executor can attach them to the result and null-propagate.
"""

from __future__ import annotations

from typing import Optional, Union

PathKey = Union[str, int]


class LivegraphError(Exception):
    """Base exception for all livegraph errors."""
    pass


class GraphConfigError(LivegraphError):
    """Raised when the schema configuration is invalid."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Invalid schema: {'; '.join(errors)}")


class GraphError(LivegraphError):
    """Base class for errors attached to a field path in the response."""

    kind = "GraphError"

    def __init__(self, message: str, path: Optional[list[PathKey]] = None):
        self.message = message
        self.path = list(path) if path is not None else None
        super().__init__(message)

    def located(self, path: list[PathKey]) -> "GraphError":
        """Set the path if the error was raised without one."""
        if self.path is None:
            self.path = list(path)
        return self


class NotFound(GraphError):
    """Raised when an identity lookup misses."""

    kind = "NotFound"

    def __init__(self, entity: str, key: object, path: Optional[list[PathKey]] = None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found", path)


class TypeResolutionError(GraphError):
    """Raised when a polymorphic value has no matching schema type."""

    kind = "TypeResolutionError"


class ValidationError(GraphError):
    """Raised when argument input is structurally invalid."""

    kind = "ValidationError"


class OperationTimeoutError(GraphError):
    """Raised for fields that had not started when the operation deadline passed."""

    kind = "TimeoutError"

    def __init__(self, path: Optional[list[PathKey]] = None):
        super().__init__("Operation deadline exceeded", path)


class ConflictError(GraphError):
    """Raised when a mutation could not be serialized on its target identity."""

    kind = "ConflictError"


class NullValueError(GraphError):
    """Raised when a non-null field resolves to no value."""

    kind = "NullValueError"


class ExecutionError(GraphError):
    """Wraps an unexpected collaborator failure at the field that triggered it."""

    kind = "ExecutionError"


class ServiceError(ExecutionError):
    """Raised when a remote data source returns an error status."""

    def __init__(self, service: str, status_code: int, message: str):
        self.service = service
        self.status_code = status_code
        super().__init__(f"Service '{service}' returned {status_code}: {message}")
