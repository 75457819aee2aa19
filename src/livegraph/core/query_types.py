"""
Pydantic models for operations, argument value objects and results.

The selection tree is what a validated-operation supplier hands to the engine;
value objects (PhotoFilter, DataPage, DataSort, ...) are what the argument
normalizer produces; ExecutionResult is what the engine returns.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import to_utc


# --- Enumerations ---

class PhotoCategory(str, Enum):
    SELFIE = "SELFIE"
    PORTRAIT = "PORTRAIT"
    ACTION = "ACTION"
    LANDSCAPE = "LANDSCAPE"
    GRAPHIC = "GRAPHIC"


class SortDirection(str, Enum):
    ASCENDING = "ASCENDING"
    DESCENDING = "DESCENDING"


# --- Value objects (constructed fresh per field resolution) ---

class ValueObject(BaseModel):
    """Immutable argument value; schema field names are accepted as aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class DateRange(ValueObject):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)


class PhotoFilter(ValueObject):
    """
    Photo predicate set. Every present predicate must match (logical AND).

    Input: {"category": "ACTION", "searchText": "lake"}
    """
    category: Optional[PhotoCategory] = None
    created_between: Optional[DateRange] = Field(default=None, alias="createdBetween")
    tagged_users: Optional[list[str]] = Field(default=None, alias="taggedUsers")
    search_text: Optional[str] = Field(default=None, alias="searchText")


class DataPage(ValueObject):
    """Offset/limit window. None means "no offset" / "no limit"."""
    first: Optional[int] = Field(default=25, ge=0)
    start: Optional[int] = Field(default=0, ge=0)


class DataSort(ValueObject):
    sort: SortDirection = SortDirection.DESCENDING
    sort_by: str = Field(default="created", alias="sortBy")


class PostPhotoInput(ValueObject):
    name: str
    github_login: str = Field(alias="githubLogin")
    description: Optional[str] = None
    category: PhotoCategory = PhotoCategory.PORTRAIT


class CreateUserInput(ValueObject):
    github_login: str = Field(alias="githubLogin", min_length=1)
    name: Optional[str] = None
    avatar: Optional[str] = None


class FriendshipInput(ValueObject):
    friends: list[str] = Field(min_length=2)
    how_long: int = Field(default=0, ge=0, alias="howLong")
    where_we_met: Optional[str] = Field(default=None, alias="whereWeMet")


# --- Data source predicates ---

class NormalizedFilter(BaseModel):
    """
    Predicate understood by every data source.

    Ops: eq, in, contains (member list contains value), icontains, gte, lte, isnull
    """
    field: str
    op: str
    value: Any


class InternalQueryRequest(BaseModel):
    """
    Request body for remote data sources.

    POST /internal/query
    """
    entity: Optional[str] = None
    filters: list[NormalizedFilter] = Field(default_factory=list)
    fields: list[str] = Field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0


class InternalQueryResponse(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class InternalMutationRequest(BaseModel):
    """
    Request body for remote writes.

    POST /internal/create
    POST /internal/update
    POST /internal/delete
    """
    entity: str
    operation: Literal["create", "update", "delete"]
    data: dict[str, Any] = Field(default_factory=dict)
    filters: list[NormalizedFilter] = Field(default_factory=list)


class InternalMutationResponse(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0


# --- Selection tree (validated operation) ---

class FieldNode(BaseModel):
    """A selected field with bound argument values and its sub-selection."""
    name: str
    alias: Optional[str] = None
    arguments: dict[str, Any] = Field(default_factory=dict)
    selections: list[Selection] = Field(default_factory=list)

    @property
    def response_key(self) -> str:
        return self.alias or self.name


class FragmentNode(BaseModel):
    """Inline fragment or expanded named fragment: `... on Workout { reps }`."""
    type_condition: str
    selections: list[Selection] = Field(default_factory=list)


Selection = Union[FieldNode, FragmentNode]


class Operation(BaseModel):
    kind: Literal["query", "mutation", "subscription"] = "query"
    name: Optional[str] = None
    selections: list[Selection] = Field(default_factory=list)


FieldNode.model_rebuild()
FragmentNode.model_rebuild()
Operation.model_rebuild()


def sel(name: str, *selections: Selection, alias: Optional[str] = None, args: Optional[dict] = None) -> FieldNode:
    """Shorthand for building a FieldNode."""
    return FieldNode(name=name, alias=alias, arguments=args or {}, selections=list(selections))


def on(type_condition: str, *selections: Selection) -> FragmentNode:
    return FragmentNode(type_condition=type_condition, selections=list(selections))


def query(*selections: Selection) -> Operation:
    return Operation(kind="query", selections=list(selections))


def mutation(*selections: Selection) -> Operation:
    return Operation(kind="mutation", selections=list(selections))


def subscription(*selections: Selection) -> Operation:
    return Operation(kind="subscription", selections=list(selections))


# --- Results ---

class FieldError(BaseModel):
    """Error attached to the response path it occurred at."""
    message: str
    path: list[Union[str, int]] = Field(default_factory=list)
    kind: str


class ExecutionResult(BaseModel):
    """Possibly partial data plus path-tagged errors."""
    data: Optional[dict[str, Any]] = None
    errors: list[FieldError] = Field(default_factory=list)

    def errors_at(self, path: list[Union[str, int]]) -> list[FieldError]:
        return [e for e in self.errors if e.path == path]
