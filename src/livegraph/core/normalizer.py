"""
Argument normalizer.

Merges the caller's bound argument values with the schema's declared defaults
and coerces input objects into their value-object models.

Rule per declared argument (and, recursively, per input-object field):
- key present in the caller's map -> caller value, even when it is None
- caller object for an argument with an object default -> caller keys over the default
- key absent, default declared   -> schema default
- neither                        -> absent
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar

import pydantic

from .defs import SCALARS, FieldDef, InputTypeDef, TypeRef
from .errors import ValidationError
from .query_types import DataPage, DataSort, PhotoFilter
from .registry import SchemaRegistry

T = TypeVar("T")


@dataclass(frozen=True)
class NormalizedArguments:
    """
    Normalized argument map for one field invocation.

    filter/page/sort pick out the value objects that drive list modifiers.
    """
    values: dict[str, Any] = field(default_factory=dict)

    def _first(self, cls: type[T]) -> Optional[T]:
        return next((v for v in self.values.values() if isinstance(v, cls)), None)

    @property
    def filter(self) -> Optional[PhotoFilter]:
        return self._first(PhotoFilter)

    @property
    def page(self) -> Optional[DataPage]:
        return self._first(DataPage)

    @property
    def sort(self) -> Optional[DataSort]:
        return self._first(DataSort)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self.values


class ArgumentNormalizer:
    """
    Normalizes raw argument maps against a field's declared arguments.

    Usage:
        normalizer = ArgumentNormalizer(registry)
        args = normalizer.normalize(registry.field("Query", "allPhotos"), {"paging": {"first": 5}})
        args.page  # DataPage(first=5, start=0)
    """

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    def normalize(self, field_def: FieldDef, raw_args: Optional[dict[str, Any]] = None) -> NormalizedArguments:
        """
        Normalize arguments for a field invocation.

        Raises:
            ValidationError: unknown argument or structurally invalid value
        """
        raw_args = raw_args or {}
        unknown = set(raw_args) - set(field_def.args)
        if unknown:
            raise ValidationError(f"Unknown argument(s) for '{field_def.name}': {sorted(unknown)}")

        values: dict[str, Any] = {}
        for name, arg_def in field_def.args.items():
            if name in raw_args:
                value = raw_args[name]
                # Partial input objects take missing keys from the field's own default
                if isinstance(value, dict) and isinstance(arg_def.default, dict):
                    value = {**arg_def.default, **value}
            elif arg_def.has_default:
                value = arg_def.default
            else:
                continue
            values[name] = self.coerce(arg_def.type_ref, value, f"{field_def.name}({name})")

        return NormalizedArguments(values=values)

    def normalize_input(self, input_name: str, raw: Any, where: Optional[str] = None) -> Any:
        """Normalize a standalone input-object value (e.g. subscription filters)."""
        return self.coerce(TypeRef(name=input_name, non_null=True), raw, where or input_name)

    def coerce(self, type_ref: TypeRef, value: Any, where: str) -> Any:
        if value is None:
            if type_ref.non_null:
                raise ValidationError(f"{where}: null given for non-null type {type_ref}")
            return None

        if type_ref.is_list:
            items = value if isinstance(value, (list, tuple)) else [value]
            return [self.coerce(type_ref.of_type, item, f"{where}[{i}]") for i, item in enumerate(items)]

        name = type_ref.name
        if name in self.registry.inputs:
            return self._coerce_input(self.registry.inputs[name], value, where)
        if name in self.registry.enums:
            raw = value.value if hasattr(value, "value") else value
            if raw not in self.registry.enums[name].values:
                raise ValidationError(f"{where}: '{raw}' is not a valid {name}")
            return value
        if name in SCALARS:
            return self._coerce_scalar(name, value, where)
        raise ValidationError(f"{where}: unknown input type '{name}'")

    def _coerce_input(self, input_def: InputTypeDef, value: Any, where: str) -> Any:
        # Already normalized value objects pass through unchanged
        if input_def.model is not None and isinstance(value, input_def.model):
            return value
        if not isinstance(value, dict):
            raise ValidationError(f"{where}: expected an object for {input_def.name}")

        unknown = set(value) - set(input_def.fields)
        if unknown:
            raise ValidationError(f"{where}: unknown field(s) {sorted(unknown)} for {input_def.name}")

        merged: dict[str, Any] = {}
        for name, field_def in input_def.fields.items():
            if name in value:
                merged[name] = self.coerce(field_def.type_ref, value[name], f"{where}.{name}")
            elif field_def.has_default:
                merged[name] = self.coerce(field_def.type_ref, field_def.default, f"{where}.{name}")
            elif field_def.type_ref.non_null:
                raise ValidationError(f"{where}: missing required field '{name}' for {input_def.name}")

        if input_def.model is None:
            return merged
        try:
            return input_def.model.model_validate(merged)
        except pydantic.ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"{where}: invalid {input_def.name} ({details})")

    def _coerce_scalar(self, name: str, value: Any, where: str) -> Any:
        if name == "Int" and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValidationError(f"{where}: expected Int, got {value!r}")
        if name == "Float" and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValidationError(f"{where}: expected Float, got {value!r}")
        if name == "Boolean" and not isinstance(value, bool):
            raise ValidationError(f"{where}: expected Boolean, got {value!r}")
        if name in ("ID", "String") and not isinstance(value, (str, int)):
            raise ValidationError(f"{where}: expected {name}, got {value!r}")
        if name == "ID":
            return str(value)
        return value
