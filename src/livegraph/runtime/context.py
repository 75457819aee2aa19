"""
Execution context for operation processing.

Carries everything a single operation needs while its selection tree is walked.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.errors import GraphError, OperationTimeoutError, PathKey
from ..core.query_types import FieldError, Operation


@dataclass
class ExecutionContext:
    """
    Context passed through the executor.

    Contains:
    - operation: the validated operation being executed
    - deadline: loop time after which unstarted fields fail with a timeout
    - errors: field errors recorded at nullable boundaries
    - root_value: source object for root fields (event payloads for subscriptions)
    """
    operation: Operation
    deadline: Optional[float] = None
    root_value: dict[str, Any] = field(default_factory=dict)
    errors: list[GraphError] = field(default_factory=list)

    @classmethod
    def with_timeout(cls, operation: Operation, timeout: Optional[float], **kwargs) -> "ExecutionContext":
        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout
        return cls(operation=operation, deadline=deadline, **kwargs)

    def check_deadline(self, path: list[PathKey]):
        """Raise OperationTimeoutError if the deadline has passed."""
        if self.deadline is not None and asyncio.get_running_loop().time() >= self.deadline:
            raise OperationTimeoutError(path)

    def record(self, error: GraphError):
        self.errors.append(error)

    def field_errors(self) -> list[FieldError]:
        return [
            FieldError(message=e.message, path=e.path or [], kind=e.kind)
            for e in self.errors
        ]
