"""
PhotoShare schema - users, photos, friendships and an agenda of polymorphic items.

    type User { githubLogin: ID!  name: String  avatar: String
                postedPhotos: [Photo!]!  inPhotos: [Photo!]!  friends: [Friendship!]! }
    type Photo { id: ID!  name: String!  url: String!  description: String
                 created: DateTime!  category: PhotoCategory!
                 postedBy: User!  taggedUsers: [User!]! }
    type Friendship { id: ID!  howLong: Int!  whereWeMet: String  friends: [User!]! }
    interface ScheduleItem { name: String!  start: DateTime!  end: DateTime! }
    union AgendaItem = StudyGroup | Workout

Usage:
    engine = create_engine(memory_sources(users=[...], photos=[...], tags=[("p1", "alice")]))
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from .config import EngineSettings
from .core.defs import (
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
    args_of,
    fields_of,
)
from .core.query_types import (
    CreateUserInput,
    DataPage,
    DataSort,
    DateRange,
    FriendshipInput,
    PhotoCategory,
    PhotoFilter,
    PostPhotoInput,
    SortDirection,
)
from .core.registry import SchemaRegistry
from .runtime.executor import ExecutionEngine
from .sources.base import DataSources
from .sources.memory import InMemoryAssociationStore, InMemoryDataSource

TAGS = "tags"

PHOTO_PAGE = {"first": 25, "start": 0}
USER_PAGE = {"first": 50, "start": 0}
PHOTO_SORT = {"sort": "DESCENDING", "sortBy": "created"}
USER_SORT = {"sort": "ASCENDING", "sortBy": "githubLogin"}


def _photo_list_args() -> dict[str, ArgumentDef]:
    return args_of(
        ArgumentDef("filter", "PhotoFilter"),
        ArgumentDef("paging", "DataPage", default=PHOTO_PAGE),
        ArgumentDef("sorting", "DataSort", default=PHOTO_SORT),
    )


def _user_list_args() -> dict[str, ArgumentDef]:
    return args_of(
        ArgumentDef("paging", "DataPage", default=USER_PAGE),
        ArgumentDef("sorting", "DataSort", default=USER_SORT),
    )


def _inputs() -> list[InputTypeDef]:
    return [
        InputTypeDef("DateRange", {
            "start": InputFieldDef("start", "DateTime!"),
            "end": InputFieldDef("end", "DateTime!"),
        }, model=DateRange),
        InputTypeDef("PhotoFilter", {
            "category": InputFieldDef("category", "PhotoCategory"),
            "createdBetween": InputFieldDef("createdBetween", "DateRange"),
            "taggedUsers": InputFieldDef("taggedUsers", "[ID!]"),
            "searchText": InputFieldDef("searchText", "String"),
        }, model=PhotoFilter),
        InputTypeDef("DataPage", {
            "first": InputFieldDef("first", "Int", default=25),
            "start": InputFieldDef("start", "Int", default=0),
        }, model=DataPage),
        InputTypeDef("DataSort", {
            "sort": InputFieldDef("sort", "SortDirection", default="DESCENDING"),
            "sortBy": InputFieldDef("sortBy", "String", default="created"),
        }, model=DataSort),
        InputTypeDef("PostPhotoInput", {
            "name": InputFieldDef("name", "String!"),
            "githubLogin": InputFieldDef("githubLogin", "ID!"),
            "description": InputFieldDef("description", "String"),
            "category": InputFieldDef("category", "PhotoCategory", default="PORTRAIT"),
        }, model=PostPhotoInput),
        InputTypeDef("CreateUserInput", {
            "githubLogin": InputFieldDef("githubLogin", "ID!"),
            "name": InputFieldDef("name", "String"),
            "avatar": InputFieldDef("avatar", "String"),
        }, model=CreateUserInput),
        InputTypeDef("FriendshipInput", {
            "friends": InputFieldDef("friends", "[ID!]!"),
            "howLong": InputFieldDef("howLong", "Int", default=0),
            "whereWeMet": InputFieldDef("whereWeMet", "String"),
        }, model=FriendshipInput),
    ]


def _entity_types() -> list[ObjectTypeDef]:
    user = ObjectTypeDef("User", key="githubLogin", fields=fields_of(
        FieldDef("githubLogin", "ID!", sortable=True),
        FieldDef("name", "String", sortable=True),
        FieldDef("avatar", "String"),
        FieldDef(
            "postedPhotos", "[Photo!]!", args=_photo_list_args(),
            relation=RelationDef(RelationKind.ONE_TO_MANY, "Photo", foreign_key="postedBy", inverse="postedBy"),
        ),
        FieldDef(
            "inPhotos", "[Photo!]!", args=_photo_list_args(),
            relation=RelationDef(
                RelationKind.MANY_TO_MANY, "Photo", association=TAGS, side="right", inverse="taggedUsers"
            ),
        ),
        FieldDef(
            "friends", "[Friendship!]!",
            relation=RelationDef(RelationKind.THROUGH, "Friendship", foreign_key="friends", inverse="friends"),
        ),
    ))

    photo = ObjectTypeDef("Photo", fields=fields_of(
        FieldDef("id", "ID!", sortable=True),
        FieldDef("name", "String!", sortable=True),
        FieldDef("url", "String!"),
        FieldDef("description", "String", sortable=True),
        FieldDef("created", "DateTime!", sortable=True),
        FieldDef("category", "PhotoCategory!", sortable=True),
        FieldDef(
            "postedBy", "User!",
            relation=RelationDef(RelationKind.ONE_TO_ONE, "User", foreign_key="postedBy", inverse="postedPhotos"),
        ),
        FieldDef(
            "taggedUsers", "[User!]!", args=_user_list_args(),
            relation=RelationDef(
                RelationKind.MANY_TO_MANY, "User", association=TAGS, side="left", inverse="inPhotos"
            ),
        ),
    ))

    friendship = ObjectTypeDef("Friendship", through=True, fields=fields_of(
        FieldDef("id", "ID!", sortable=True),
        FieldDef("howLong", "Int!", sortable=True),
        FieldDef("whereWeMet", "String"),
        FieldDef(
            "friends", "[User!]!",
            relation=RelationDef(RelationKind.THROUGH, "User", foreign_key="friends", inverse="friends"),
        ),
    ))

    schedule_fields = (
        FieldDef("id", "ID!"),
        FieldDef("name", "String!"),
        FieldDef("start", "DateTime!"),
        FieldDef("end", "DateTime!"),
    )
    study_group = ObjectTypeDef("StudyGroup", source="Agenda", interfaces=["ScheduleItem"], fields=fields_of(
        *schedule_fields,
        FieldDef("subject", "String"),
        FieldDef("participants", "Int!"),
    ))
    workout = ObjectTypeDef("Workout", source="Agenda", interfaces=["ScheduleItem"], fields=fields_of(
        *schedule_fields,
        FieldDef("reps", "Int!"),
    ))
    return [user, photo, friendship, study_group, workout]


def _root_types() -> list[ObjectTypeDef]:
    query = ObjectTypeDef("Query", key=None, fields=fields_of(
        FieldDef("totalPhotos", "Int!", entry=EntryDef("count", "Photo")),
        FieldDef("allPhotos", "[Photo!]!", args=_photo_list_args(), entry=EntryDef("all", "Photo")),
        FieldDef("Photo", "Photo", args=args_of(ArgumentDef("id", "ID!")),
                 entry=EntryDef("lookup", "Photo", key_arg="id")),
        FieldDef("totalUsers", "Int!", entry=EntryDef("count", "User")),
        FieldDef("allUsers", "[User!]!", args=_user_list_args(), entry=EntryDef("all", "User")),
        FieldDef("User", "User", args=args_of(ArgumentDef("githubLogin", "ID!")),
                 entry=EntryDef("lookup", "User", key_arg="githubLogin")),
        FieldDef("Friendship", "Friendship", args=args_of(ArgumentDef("id", "ID!")),
                 entry=EntryDef("lookup", "Friendship", key_arg="id")),
        FieldDef("agenda", "[AgendaItem!]!", entry=EntryDef("collection", "Agenda")),
        FieldDef("schedule", "[ScheduleItem!]!", entry=EntryDef("collection", "Agenda")),
    ))

    mutation = ObjectTypeDef("Mutation", key=None, fields=fields_of(
        FieldDef("postPhoto", "Photo!", args=args_of(ArgumentDef("input", "PostPhotoInput!")),
                 mutation="postPhoto"),
        FieldDef("tagPhoto", "Photo!", args=args_of(ArgumentDef("photoID", "ID!"), ArgumentDef("githubLogin", "ID!")),
                 mutation="tagPhoto"),
        FieldDef("createUser", "User!", args=args_of(ArgumentDef("input", "CreateUserInput!")),
                 mutation="createUser"),
        FieldDef("makeFriends", "Friendship!", args=args_of(ArgumentDef("input", "FriendshipInput!")),
                 mutation="makeFriends"),
        FieldDef("deleteUser", "User", args=args_of(ArgumentDef("githubLogin", "ID!")),
                 mutation="deleteUser"),
    ))

    subscription = ObjectTypeDef("Subscription", key=None, fields=fields_of(
        FieldDef("newPhoto", "Photo!", args=args_of(ArgumentDef("category", "PhotoCategory")),
                 event="newPhoto", event_filter="PhotoFilter"),
        FieldDef("photoTagged", "Photo!", args=args_of(ArgumentDef("taggedUsers", "[ID!]")),
                 event="photoTagged", event_filter="PhotoFilter"),
        FieldDef("newUser", "User!", event="newUser"),
        FieldDef("newFriendship", "Friendship!", event="newFriendship"),
        FieldDef("userDeleted", "User!", event="userDeleted"),
    ))
    return [query, mutation, subscription]


def build_registry() -> SchemaRegistry:
    """Build the PhotoShare schema registry."""
    registry = SchemaRegistry()
    registry.add_enum(EnumDef("PhotoCategory", [c.value for c in PhotoCategory]))
    registry.add_enum(EnumDef("SortDirection", [d.value for d in SortDirection]))
    for input_def in _inputs():
        registry.add_input(input_def)
    registry.add_interface(InterfaceDef("ScheduleItem", fields_of(
        FieldDef("name", "String!"),
        FieldDef("start", "DateTime!"),
        FieldDef("end", "DateTime!"),
    )))
    registry.add_union(UnionDef("AgendaItem", ["StudyGroup", "Workout"]))
    for type_def in _entity_types() + _root_types():
        registry.add_object(type_def)
    return registry.build()


def memory_sources(
    users: Iterable[dict[str, Any]] = (),
    photos: Iterable[dict[str, Any]] = (),
    friendships: Iterable[dict[str, Any]] = (),
    tags: Iterable[tuple[str, str]] = (),
    agenda: Iterable[dict[str, Any]] = (),
) -> DataSources:
    """
    In-memory data sources for the PhotoShare schema.

    Args:
        tags: (photo id, githubLogin) pairs
        agenda: items tagged with "__typename" (StudyGroup or Workout)
    """
    return DataSources(
        entities={
            "User": InMemoryDataSource("User", key="githubLogin", items=users),
            "Photo": InMemoryDataSource("Photo", key="id", items=photos),
            "Friendship": InMemoryDataSource("Friendship", key="id", items=friendships),
            "Agenda": InMemoryDataSource("Agenda", key="id", items=agenda),
        },
        associations={TAGS: InMemoryAssociationStore(TAGS, pairs=tags)},
    )


def create_engine(
    sources: Optional[DataSources] = None,
    settings: Optional[EngineSettings] = None,
    **kwargs: Any,
) -> ExecutionEngine:
    """Create an engine over the PhotoShare schema (empty in-memory sources by default)."""
    return ExecutionEngine(build_registry(), sources or memory_sources(), settings=settings, **kwargs)
