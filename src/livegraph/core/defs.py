"""
Core dataclass definitions for the schema registry.

These describe types, fields, arguments and relations. Field and argument
types are written in the usual notation ("[Photo!]!") and parsed into TypeRef.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


SCALARS = frozenset({"ID", "String", "Int", "Float", "Boolean", "DateTime"})


class _Unset:
    """Marker for "no default declared" (None is a legal default)."""

    _instance: Optional["_Unset"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class TypeRef:
    """
    Parsed return/argument type.

    "[Photo!]!" -> TypeRef(non_null=True, of_type=TypeRef("Photo", non_null=True))
    """
    name: Optional[str] = None
    non_null: bool = False
    of_type: Optional["TypeRef"] = None  # set for list types

    @classmethod
    def parse(cls, text: str) -> "TypeRef":
        text = text.strip()
        non_null = text.endswith("!")
        if non_null:
            text = text[:-1].rstrip()
        if text.startswith("[") and text.endswith("]"):
            return cls(non_null=non_null, of_type=cls.parse(text[1:-1]))
        if not text or not text.replace("_", "").isalnum():
            raise ValueError(f"Invalid type reference: {text!r}")
        return cls(name=text, non_null=non_null)

    @property
    def is_list(self) -> bool:
        return self.of_type is not None

    @property
    def named(self) -> str:
        """Innermost type name."""
        return self.of_type.named if self.of_type is not None else self.name

    def nullable(self) -> "TypeRef":
        return TypeRef(name=self.name, non_null=False, of_type=self.of_type)

    def __str__(self) -> str:
        inner = f"[{self.of_type}]" if self.of_type is not None else self.name
        return f"{inner}!" if self.non_null else inner


class RelationKind(str, Enum):
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"
    THROUGH = "through"


@dataclass
class RelationDef:
    """
    Object-valued field backed by a relation.

    one_to_one:   foreign_key is a field on the source holding the target key
                  (Photo.postedBy).
    one_to_many:  foreign_key is a field on the target holding the source key
                  (User.postedPhotos -> Photo.postedBy).
    many_to_many: association names the link index; side says which side of
                  each (left, right) pair the source sits on.
    through:      foreign_key is the member-key list on the through entity
                  (Friendship.friends).
    """
    kind: RelationKind
    target: str
    foreign_key: Optional[str] = None
    association: Optional[str] = None
    side: Literal["left", "right"] = "left"
    inverse: Optional[str] = None  # field name on target pointing back


@dataclass
class EntryDef:
    """Root query field wiring."""
    kind: Literal["all", "lookup", "count", "collection"]
    source: str  # data source name
    key_arg: Optional[str] = None  # argument holding the identity for "lookup"


@dataclass
class ArgumentDef:
    """Declared argument with an optional default."""
    name: str
    type: str
    default: Any = UNSET

    def __post_init__(self):
        self.type_ref = TypeRef.parse(self.type)

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET


@dataclass
class FieldDef:
    """Definition of a field on an object or interface type."""
    name: str
    type: str
    args: dict[str, ArgumentDef] = field(default_factory=dict)
    relation: Optional[RelationDef] = None
    entry: Optional[EntryDef] = None
    mutation: Optional[str] = None  # coordinator handler name
    event: Optional[str] = None  # subscription event type
    event_filter: Optional[str] = None  # input type the subscription args build
    sortable: bool = False
    description: Optional[str] = None

    def __post_init__(self):
        self.type_ref = TypeRef.parse(self.type)


@dataclass
class ObjectTypeDef:
    """Concrete object type."""
    name: str
    fields: dict[str, FieldDef]
    key: Optional[str] = "id"
    interfaces: list[str] = field(default_factory=list)
    source: Optional[str] = None  # data source name, defaults to type name
    through: bool = False  # represents a relationship edge itself

    @property
    def source_name(self) -> str:
        return self.source or self.name


@dataclass
class InterfaceDef:
    """Shared field contract implemented by object types."""
    name: str
    fields: dict[str, FieldDef]


@dataclass
class UnionDef:
    """Closed set of object types with no shared field contract."""
    name: str
    types: list[str]


@dataclass
class EnumDef:
    name: str
    values: list[str]


@dataclass
class InputFieldDef:
    name: str
    type: str
    default: Any = UNSET

    def __post_init__(self):
        self.type_ref = TypeRef.parse(self.type)

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET


@dataclass
class InputTypeDef:
    """Input object type; model is the value object it is coerced into."""
    name: str
    fields: dict[str, InputFieldDef]
    model: Optional[type] = None


def fields_of(*defs: FieldDef) -> dict[str, FieldDef]:
    return {d.name: d for d in defs}


def args_of(*defs: ArgumentDef) -> dict[str, ArgumentDef]:
    return {d.name: d for d in defs}
