"""
Execution engine - walks a validated selection tree and assembles the result.

Handles:
- Concurrent resolution of sibling fields (serial for mutation root fields)
- Argument normalization, relation traversal and polymorphic dispatch per field
- Null propagation: a failing non-null field nulls its nearest nullable ancestor,
  the error is recorded once with the path it occurred at
- The operation deadline, checked before each field starts
- Subscriptions: each event payload is run through the subscription's selection
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Optional

from ..config import EngineSettings, get_settings
from ..core.defs import FieldDef, ObjectTypeDef, TypeRef
from ..core.errors import ExecutionError, GraphError, NullValueError, PathKey, ValidationError
from ..core.normalizer import ArgumentNormalizer, NormalizedArguments
from ..core.query_types import ExecutionResult, FieldNode, Operation, Selection
from ..core.registry import SchemaRegistry
from ..messaging.broker import Subscription, SubscriptionBroker
from ..messaging.events import GraphEvent
from ..messaging.sinks import EventSink
from ..sources.base import DataSources
from .context import ExecutionContext
from .mutation_executor import MutationCoordinator
from .relations import RelationshipResolver
from .type_resolver import TYPE_TAG, TypeResolver

logger = logging.getLogger(__name__)

_DEFAULT = object()


class ExecutionEngine:
    """
    Executes queries, mutations and subscriptions against the data sources.

    Usage:
        engine = ExecutionEngine(registry, sources)
        result = await engine.execute(query(sel("allPhotos", sel("id"), sel("postedBy", sel("name")))))
        result.data, result.errors

        sub = await engine.subscribe(subscription(sel("newPhoto", sel("id"), args={"category": "ACTION"})), sink)
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        sources: DataSources,
        *,
        settings: Optional[EngineSettings] = None,
        broker: Optional[SubscriptionBroker] = None,
        coordinator: Optional[MutationCoordinator] = None,
    ):
        self.registry = registry.build()
        self.sources = sources
        self.settings = settings or get_settings()
        self.normalizer = ArgumentNormalizer(self.registry)
        self.relations = RelationshipResolver(self.registry, sources)
        self.types = TypeResolver(self.registry)
        self.broker = broker or SubscriptionBroker(queue_size=self.settings.subscriber_queue_size)
        self.coordinator = coordinator or MutationCoordinator(
            self.registry, sources, self.broker, self.settings
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute(
        self,
        operation: Operation,
        *,
        timeout: Any = _DEFAULT,
        root_value: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Execute a query or mutation (or one subscription event via root_value).

        Args:
            operation: validated operation
            timeout: seconds until the operation deadline; None disables it,
                omitted uses settings.operation_timeout
            root_value: source object for root fields

        Returns:
            ExecutionResult with possibly partial data and path-tagged errors
        """
        if timeout is _DEFAULT:
            timeout = self.settings.operation_timeout

        root_type = self.registry.root(operation.kind)
        if root_type is None:
            raise ValueError(f"Schema has no {operation.kind} root type")

        ctx = ExecutionContext.with_timeout(operation, timeout, root_value=root_value or {})
        try:
            data = await self._execute_selection(
                root_type,
                ctx.root_value,
                operation.selections,
                [],
                ctx,
                serial=operation.kind == "mutation",
            )
        except GraphError as e:
            # bubbled to the operation root
            ctx.record(e)
            data = None

        if ctx.errors:
            logger.debug(f"{operation.kind} finished with {len(ctx.errors)} error(s)")
        return ExecutionResult(data=data, errors=ctx.field_errors())

    async def subscribe(self, operation: Operation, sink: EventSink) -> Subscription:
        """
        Register a subscription operation with the broker.

        Each matching event is executed against the operation's selection and
        the resulting {"data", "errors"} dict is sent to the sink.

        Raises:
            ValidationError: invalid subscription arguments
        """
        if operation.kind != "subscription":
            raise ValueError(f"Expected a subscription operation, got {operation.kind}")

        root_type = self.registry.root("subscription")
        node = next((s for s in operation.selections if isinstance(s, FieldNode)), None)
        if node is None:
            raise ValidationError("A subscription must select a root field")
        field_def = root_type.fields.get(node.name)
        if field_def is None or field_def.event is None:
            raise ValidationError(f"'{node.name}' is not a subscription field", [node.response_key])

        args = self.normalizer.normalize(field_def, node.arguments)
        event_filter = None
        if field_def.event_filter:
            event_filter = self.normalizer.normalize_input(
                field_def.event_filter, dict(args.values), f"{field_def.name}(filter)"
            )

        async def deliver(event: GraphEvent) -> dict[str, Any]:
            result = await self.execute(operation, root_value={field_def.name: event.payload})
            return result.model_dump(mode="json")

        return await self.broker.register(field_def.event, sink, filter=event_filter, deliver=deliver)

    async def close(self):
        await self.broker.close()

    # ------------------------------------------------------------------
    # Selection walk
    # ------------------------------------------------------------------

    def _collect_fields(self, object_type: ObjectTypeDef, selections: list[Selection]) -> dict[str, list[FieldNode]]:
        """Group applicable field nodes by response key, in document order."""
        grouped: dict[str, list[FieldNode]] = {}
        for node in self.types.applicable_fields(object_type, selections):
            grouped.setdefault(node.response_key, []).append(node)
        return grouped

    async def _execute_selection(
        self,
        object_type: ObjectTypeDef,
        source: dict[str, Any],
        selections: list[Selection],
        path: list[PathKey],
        ctx: ExecutionContext,
        serial: bool = False,
    ) -> dict[str, Any]:
        grouped = self._collect_fields(object_type, selections)

        if serial:
            result: dict[str, Any] = {}
            for key, nodes in grouped.items():
                result[key] = await self._execute_field(object_type, source, nodes, path + [key], ctx)
            return result

        values = await self._gather(
            [self._execute_field(object_type, source, nodes, path + [key], ctx) for key, nodes in grouped.items()],
            ctx,
        )
        return dict(zip(grouped.keys(), values))

    async def _gather(self, coros: list[Awaitable[Any]], ctx: ExecutionContext) -> list[Any]:
        """
        Run sibling resolutions concurrently.

        Every sibling runs to completion; the first propagating error is raised
        to the parent and any further ones are recorded.
        """
        if not coros:
            return []
        if len(coros) == 1:
            return [await coros[0]]

        outcomes = await asyncio.gather(*coros, return_exceptions=True)
        first: Optional[GraphError] = None
        for outcome in outcomes:
            if isinstance(outcome, GraphError):
                if first is None:
                    first = outcome
                else:
                    ctx.record(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
        if first is not None:
            raise first
        return outcomes

    async def _execute_field(
        self,
        object_type: ObjectTypeDef,
        source: dict[str, Any],
        nodes: list[FieldNode],
        path: list[PathKey],
        ctx: ExecutionContext,
    ) -> Any:
        node = nodes[0]
        if node.name == TYPE_TAG:
            return object_type.name

        field_def = object_type.fields.get(node.name)
        if field_def is None:
            ctx.record(ValidationError(f"Unknown field '{object_type.name}.{node.name}'", path))
            return None

        try:
            ctx.check_deadline(path)
            args = self.normalizer.normalize(field_def, node.arguments)
            raw = await self._resolve(object_type, source, field_def, args)
            return await self._complete_value(field_def.type_ref, raw, nodes, path, ctx)
        except GraphError as e:
            return self._handle_error(field_def.type_ref, e.located(path), ctx)
        except Exception as e:
            logger.warning(f"Resolver for {object_type.name}.{field_def.name} raised {type(e).__name__}: {e}")
            return self._handle_error(field_def.type_ref, ExecutionError(str(e), path), ctx)

    def _handle_error(self, type_ref: TypeRef, error: GraphError, ctx: ExecutionContext) -> None:
        """Non-null positions re-raise to the parent; nullable ones record and become null."""
        if type_ref.non_null:
            raise error
        ctx.record(error)
        return None

    async def _resolve(
        self,
        object_type: ObjectTypeDef,
        source: dict[str, Any],
        field_def: FieldDef,
        args: NormalizedArguments,
    ) -> Any:
        """Produce the raw value of a field."""
        if field_def.mutation is not None:
            return await self.coordinator.run(field_def.mutation, args)
        if field_def.entry is not None or field_def.relation is not None:
            return await self.relations.resolve(object_type, source, field_def, args)
        return source.get(field_def.name)

    # ------------------------------------------------------------------
    # Value completion
    # ------------------------------------------------------------------

    async def _complete_value(
        self,
        type_ref: TypeRef,
        value: Any,
        nodes: list[FieldNode],
        path: list[PathKey],
        ctx: ExecutionContext,
    ) -> Any:
        if type_ref.non_null:
            completed = await self._complete_value(type_ref.nullable(), value, nodes, path, ctx)
            if completed is None:
                raise NullValueError(f"Cannot return null for non-null field at {'.'.join(map(str, path))}", path)
            return completed

        if value is None:
            return None

        if type_ref.is_list:
            if not isinstance(value, (list, tuple)):
                raise ExecutionError(f"Expected a list, got {type(value).__name__}", path)
            return await self._gather(
                [self._complete_item(type_ref.of_type, item, nodes, path + [i], ctx) for i, item in enumerate(value)],
                ctx,
            )

        name = type_ref.name
        if self.registry.is_leaf(name):
            return self._serialize_leaf(value)

        if self.registry.is_abstract(name):
            object_type = self.types.resolve(name, value)
        else:
            object_type = self.registry.objects[name]

        sub_selections = [s for n in nodes for s in n.selections]
        return await self._execute_selection(object_type, value, sub_selections, path, ctx)

    async def _complete_item(
        self,
        item_type: TypeRef,
        item: Any,
        nodes: list[FieldNode],
        path: list[PathKey],
        ctx: ExecutionContext,
    ) -> Any:
        try:
            return await self._complete_value(item_type, item, nodes, path, ctx)
        except GraphError as e:
            return self._handle_error(item_type, e.located(path), ctx)

    @staticmethod
    def _serialize_leaf(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value
