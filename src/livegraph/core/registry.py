"""
Schema registry - static metadata for types, fields, relations and defaults.

Types are registered, then build() validates the whole schema once and the
registry becomes read-only. Relation declarations must be symmetric: every
relation names its inverse on the target and the inverse points back.

Usage:
    registry = SchemaRegistry()
    registry.add_enum(EnumDef("PhotoCategory", [...]))
    registry.add_object(ObjectTypeDef("Photo", fields_of(...)))
    registry.add_object(ObjectTypeDef("User", fields_of(...), key="githubLogin"))
    registry.build()

    registry.field("Photo", "postedBy").relation.kind  # RelationKind.ONE_TO_ONE

A registry can also be loaded from a YAML document:
    registry = load_schema("schema.yaml")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .defs import (
    SCALARS,
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
    UnionDef,
)
from .errors import GraphConfigError

logger = logging.getLogger(__name__)

ROOT_TYPES = ("Query", "Mutation", "Subscription")

# Allowed (relation kind -> inverse kind) pairs
_INVERSE_KINDS = {
    RelationKind.ONE_TO_ONE: RelationKind.ONE_TO_MANY,
    RelationKind.ONE_TO_MANY: RelationKind.ONE_TO_ONE,
    RelationKind.MANY_TO_MANY: RelationKind.MANY_TO_MANY,
    RelationKind.THROUGH: RelationKind.THROUGH,
}

TypeDef = Union[ObjectTypeDef, InterfaceDef, UnionDef, EnumDef, InputTypeDef]


class SchemaRegistry:
    """
    Holds every type of the schema and answers shape questions for the engine.

    Read-only after build(); add_* calls after that raise GraphConfigError.
    """

    def __init__(self):
        self.objects: dict[str, ObjectTypeDef] = {}
        self.interfaces: dict[str, InterfaceDef] = {}
        self.unions: dict[str, UnionDef] = {}
        self.enums: dict[str, EnumDef] = {}
        self.inputs: dict[str, InputTypeDef] = {}
        self._possible_types: dict[str, dict[str, ObjectTypeDef]] = {}
        self._built = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _check_open(self, name: str):
        if self._built:
            raise GraphConfigError([f"registry is read-only, cannot add '{name}'"])
        if self.get_type(name) is not None:
            raise GraphConfigError([f"type '{name}' registered twice"])

    def add_object(self, type_def: ObjectTypeDef) -> "SchemaRegistry":
        self._check_open(type_def.name)
        self.objects[type_def.name] = type_def
        return self

    def add_interface(self, type_def: InterfaceDef) -> "SchemaRegistry":
        self._check_open(type_def.name)
        self.interfaces[type_def.name] = type_def
        return self

    def add_union(self, type_def: UnionDef) -> "SchemaRegistry":
        self._check_open(type_def.name)
        self.unions[type_def.name] = type_def
        return self

    def add_enum(self, type_def: EnumDef) -> "SchemaRegistry":
        self._check_open(type_def.name)
        self.enums[type_def.name] = type_def
        return self

    def add_input(self, type_def: InputTypeDef) -> "SchemaRegistry":
        self._check_open(type_def.name)
        self.inputs[type_def.name] = type_def
        return self

    # ------------------------------------------------------------------
    # Build / validation
    # ------------------------------------------------------------------

    def build(self) -> "SchemaRegistry":
        """
        Validate the schema and freeze the registry.

        Raises:
            GraphConfigError: listing every problem found
        """
        if self._built:
            return self

        errors: list[str] = []
        for type_def in self.objects.values():
            errors.extend(self._check_object(type_def))
        for type_def in self.interfaces.values():
            for field_def in type_def.fields.values():
                errors.extend(self._check_field_types(type_def.name, field_def))
        for type_def in self.unions.values():
            for member in type_def.types:
                if member not in self.objects:
                    errors.append(f"union {type_def.name}: member '{member}' is not an object type")
        for type_def in self.inputs.values():
            for input_field in type_def.fields.values():
                if not self._is_input_type(input_field.type_ref.named):
                    errors.append(
                        f"input {type_def.name}.{input_field.name}: unknown input type "
                        f"'{input_field.type_ref.named}'"
                    )

        if errors:
            raise GraphConfigError(errors)

        self._possible_types = self._build_possible_types()
        self._built = True
        logger.info(
            f"Schema built: {len(self.objects)} objects, {len(self.interfaces)} interfaces, "
            f"{len(self.unions)} unions"
        )
        return self

    def _check_object(self, type_def: ObjectTypeDef) -> list[str]:
        errors: list[str] = []
        for field_def in type_def.fields.values():
            errors.extend(self._check_field_types(type_def.name, field_def))
            if field_def.relation is not None:
                errors.extend(self._check_relation(type_def, field_def))

        for iface_name in type_def.interfaces:
            iface = self.interfaces.get(iface_name)
            if iface is None:
                errors.append(f"{type_def.name}: unknown interface '{iface_name}'")
                continue
            for iface_field in iface.fields.values():
                own = type_def.fields.get(iface_field.name)
                if own is None:
                    errors.append(
                        f"{type_def.name}: missing field '{iface_field.name}' "
                        f"required by interface {iface_name}"
                    )
                elif own.type_ref.named != iface_field.type_ref.named:
                    errors.append(
                        f"{type_def.name}.{iface_field.name}: type {own.type} does not "
                        f"match interface {iface_name} ({iface_field.type})"
                    )

        if type_def.key and type_def.name not in ROOT_TYPES and type_def.key not in type_def.fields:
            errors.append(f"{type_def.name}: key field '{type_def.key}' not declared")
        return errors

    def _check_field_types(self, owner: str, field_def: FieldDef) -> list[str]:
        errors: list[str] = []
        if self.get_type(field_def.type_ref.named) is None and field_def.type_ref.named not in SCALARS:
            errors.append(f"{owner}.{field_def.name}: unknown type '{field_def.type_ref.named}'")
        for arg in field_def.args.values():
            if not self._is_input_type(arg.type_ref.named):
                errors.append(
                    f"{owner}.{field_def.name}({arg.name}): unknown input type '{arg.type_ref.named}'"
                )
        if field_def.event_filter and field_def.event_filter not in self.inputs:
            errors.append(f"{owner}.{field_def.name}: unknown event filter '{field_def.event_filter}'")
        return errors

    def _check_relation(self, type_def: ObjectTypeDef, field_def: FieldDef) -> list[str]:
        """Relations must name a matching inverse on their target."""
        rel = field_def.relation
        where = f"{type_def.name}.{field_def.name}"

        target = self.objects.get(rel.target)
        if target is None:
            return [f"{where}: relation target '{rel.target}' is not an object type"]
        if field_def.type_ref.named != rel.target:
            return [f"{where}: field type {field_def.type} does not match relation target '{rel.target}'"]
        if rel.kind in (RelationKind.ONE_TO_ONE, RelationKind.ONE_TO_MANY, RelationKind.THROUGH):
            if not rel.foreign_key:
                return [f"{where}: {rel.kind.value} relation requires foreign_key"]
        if rel.kind == RelationKind.MANY_TO_MANY and not rel.association:
            return [f"{where}: many_to_many relation requires association"]
        if rel.kind == RelationKind.THROUGH and not (type_def.through or target.through):
            return [f"{where}: through relation must connect to a through type"]

        if not rel.inverse:
            return [f"{where}: relation has no inverse declared"]
        inverse_field = target.fields.get(rel.inverse)
        if inverse_field is None or inverse_field.relation is None:
            return [f"{where}: inverse '{rel.target}.{rel.inverse}' is not declared"]

        inverse = inverse_field.relation
        errors: list[str] = []
        if inverse.target != type_def.name or inverse.inverse != field_def.name:
            errors.append(f"{where}: inverse '{rel.target}.{rel.inverse}' does not point back")
        if inverse.kind != _INVERSE_KINDS[rel.kind]:
            errors.append(
                f"{where}: {rel.kind.value} cannot pair with {inverse.kind.value} "
                f"on '{rel.target}.{rel.inverse}'"
            )
        if rel.kind in (RelationKind.ONE_TO_ONE, RelationKind.ONE_TO_MANY, RelationKind.THROUGH):
            if inverse.foreign_key != rel.foreign_key:
                errors.append(f"{where}: inverse '{rel.target}.{rel.inverse}' uses a different foreign key")
        if rel.kind == RelationKind.MANY_TO_MANY:
            if inverse.association != rel.association or inverse.side == rel.side:
                errors.append(
                    f"{where}: inverse '{rel.target}.{rel.inverse}' must use association "
                    f"'{rel.association}' from the opposite side"
                )
        return errors

    def _is_input_type(self, name: str) -> bool:
        return name in SCALARS or name in self.enums or name in self.inputs

    def _build_possible_types(self) -> dict[str, dict[str, ObjectTypeDef]]:
        """Tag -> concrete type dispatch tables for every abstract type."""
        tables: dict[str, dict[str, ObjectTypeDef]] = {}
        for union in self.unions.values():
            tables[union.name] = {name: self.objects[name] for name in union.types}
        for iface_name in self.interfaces:
            tables[iface_name] = {
                obj.name: obj for obj in self.objects.values() if iface_name in obj.interfaces
            }
        return tables

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_type(self, name: str) -> Optional[TypeDef]:
        for table in (self.objects, self.interfaces, self.unions, self.enums, self.inputs):
            if name in table:
                return table[name]
        return None

    def is_abstract(self, name: str) -> bool:
        return name in self.unions or name in self.interfaces

    def is_leaf(self, name: str) -> bool:
        return name in SCALARS or name in self.enums

    def possible_types(self, abstract_name: str) -> dict[str, ObjectTypeDef]:
        return self._possible_types.get(abstract_name, {})

    def root(self, kind: str) -> Optional[ObjectTypeDef]:
        return self.objects.get({"query": "Query", "mutation": "Mutation", "subscription": "Subscription"}[kind])

    def field(self, type_name: str, field_name: str) -> Optional[FieldDef]:
        type_def = self.objects.get(type_name) or self.interfaces.get(type_name)
        if type_def is None:
            return None
        return type_def.fields.get(field_name)

    def key_of(self, type_name: str) -> str:
        return self.objects[type_name].key or "id"

    # ------------------------------------------------------------------
    # Dict / YAML loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], models: Optional[dict[str, type]] = None) -> "SchemaRegistry":
        """
        Build a registry from a plain document.

        Example:
        {
            "enums": {"PhotoCategory": ["SELFIE", "ACTION"]},
            "objects": {
                "Photo": {
                    "key": "id",
                    "fields": {
                        "id": "ID!",
                        "postedBy": {"type": "User!", "relation": {
                            "kind": "one_to_one", "target": "User",
                            "foreign_key": "postedBy", "inverse": "postedPhotos"}}
                    }
                }
            }
        }

        Args:
            data: schema document
            models: input type name -> value object class
        """
        models = models or {}
        registry = cls()

        for name, values in data.get("enums", {}).items():
            registry.add_enum(EnumDef(name=name, values=list(values)))

        for name, spec in data.get("inputs", {}).items():
            fields = {
                fname: _input_field_from_spec(fname, fspec)
                for fname, fspec in spec.get("fields", {}).items()
            }
            registry.add_input(InputTypeDef(name=name, fields=fields, model=models.get(name)))

        for name, spec in data.get("interfaces", {}).items():
            registry.add_interface(InterfaceDef(name=name, fields=_fields_from_spec(spec.get("fields", {}))))

        for name, members in data.get("unions", {}).items():
            registry.add_union(UnionDef(name=name, types=list(members)))

        for name, spec in data.get("objects", {}).items():
            registry.add_object(
                ObjectTypeDef(
                    name=name,
                    fields=_fields_from_spec(spec.get("fields", {})),
                    key=spec.get("key", "id" if name not in ROOT_TYPES else None),
                    interfaces=list(spec.get("interfaces", [])),
                    source=spec.get("source"),
                    through=spec.get("through", False),
                )
            )

        return registry.build()


def _input_field_from_spec(name: str, spec: Union[str, dict]) -> InputFieldDef:
    if isinstance(spec, str):
        return InputFieldDef(name=name, type=spec)
    return InputFieldDef(name=name, **spec)


def _fields_from_spec(specs: dict[str, Union[str, dict]]) -> dict[str, FieldDef]:
    fields: dict[str, FieldDef] = {}
    for name, spec in specs.items():
        if isinstance(spec, str):
            fields[name] = FieldDef(name=name, type=spec)
            continue
        spec = dict(spec)
        relation = spec.pop("relation", None)
        entry = spec.pop("entry", None)
        args = spec.pop("args", {})
        fields[name] = FieldDef(
            name=name,
            args={
                arg_name: ArgumentDef(name=arg_name, type=arg) if isinstance(arg, str)
                else ArgumentDef(name=arg_name, **arg)
                for arg_name, arg in args.items()
            },
            relation=_relation_from_spec(relation) if relation else None,
            entry=EntryDef(**entry) if entry else None,
            **spec,
        )
    return fields


def _relation_from_spec(spec: dict) -> RelationDef:
    spec = dict(spec)
    kind = RelationKind(spec.pop("kind"))
    return RelationDef(kind=kind, **spec)


def load_schema(path: Union[str, Path], models: Optional[dict[str, type]] = None) -> SchemaRegistry:
    """Load and build a registry from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return SchemaRegistry.from_dict(data, models=models)
