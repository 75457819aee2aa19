"""
Type resolver for union and interface values.

The concrete type comes from the explicit "__typename" tag on each value and is
looked up in the registry's tag -> type dispatch table for the abstract type.
"""

from __future__ import annotations

from typing import Any, Iterator

from ..core.defs import ObjectTypeDef
from ..core.errors import TypeResolutionError
from ..core.query_types import FieldNode, FragmentNode, Selection
from ..core.registry import SchemaRegistry

TYPE_TAG = "__typename"


class TypeResolver:
    """
    Usage:
        resolver = TypeResolver(registry)
        concrete = resolver.resolve("AgendaItem", {"__typename": "Workout", ...})
        fields = list(resolver.applicable_fields(concrete, selections))
    """

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def resolve(self, abstract_name: str, value: Any) -> ObjectTypeDef:
        """
        Determine the concrete type of a polymorphic value.

        Raises:
            TypeResolutionError: missing tag, tag unknown to the schema, or tag
                not a possible type of the abstract type
        """
        tag = value.get(TYPE_TAG) if isinstance(value, dict) else None
        if tag is None:
            raise TypeResolutionError(f"{abstract_name} value carries no type tag")

        concrete = self.registry.possible_types(abstract_name).get(tag)
        if concrete is None:
            if tag in self.registry.objects:
                raise TypeResolutionError(f"Type '{tag}' is not a possible type of {abstract_name}")
            raise TypeResolutionError(f"Unknown type '{tag}' for {abstract_name}")
        return concrete

    def fragment_applies(self, concrete: ObjectTypeDef, fragment: FragmentNode) -> bool:
        """
        A fragment applies when its type condition is the concrete type, an
        interface the concrete type implements, or an abstract type (union or
        interface) the concrete type belongs to.
        """
        condition = fragment.type_condition
        if condition == concrete.name or condition in concrete.interfaces:
            return True
        return concrete.name in self.registry.possible_types(condition)

    def applicable_fields(self, concrete: ObjectTypeDef, selections: list[Selection]) -> Iterator[FieldNode]:
        """Flatten selections to the field nodes that apply to a concrete type."""
        for selection in selections:
            if isinstance(selection, FieldNode):
                yield selection
            elif self.fragment_applies(concrete, selection):
                yield from self.applicable_fields(concrete, selection.selections)
