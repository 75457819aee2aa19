"""
Mutation coordinator.

Applies one atomic write per mutation against the data sources, serialized per
target identity, and publishes the resulting event to the subscription broker
once the write has committed.

Handlers (schema field name -> coroutine):
- postPhoto   create a Photo                          -> newPhoto
- tagPhoto    link a User to a Photo                  -> photoTagged
- createUser  create a User                           -> newUser
- makeFriends create a Friendship between 2+ Users    -> newFriendship
- deleteUser  delete a User, flag dangling references -> userDeleted
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Hashable, Optional

from ..config import EngineSettings, get_settings
from ..core.errors import ConflictError, ExecutionError, NotFound, ValidationError
from ..core.normalizer import NormalizedArguments
from ..core.query_types import CreateUserInput, FriendshipInput, NormalizedFilter, PostPhotoInput
from ..core.registry import SchemaRegistry
from ..messaging.broker import SubscriptionBroker
from ..messaging.events import EventType, GraphEvent
from ..sources.base import DataSource, DataSources, Entity
from .locks import KeyedLocks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class MutationCoordinator:
    """
    Executes mutation handlers.

    Usage:
        coordinator = MutationCoordinator(registry, sources, broker)
        photo = await coordinator.run("postPhoto", normalized_args)
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        sources: DataSources,
        broker: Optional[SubscriptionBroker] = None,
        settings: Optional[EngineSettings] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ):
        """
        Initialize coordinator.

        Args:
            registry: built schema registry
            sources: data sources and association stores
            broker: receives events after commit (optional)
            settings: engine settings (lock timeout, photo URL base)
            clock: timestamp source for created fields
            id_factory: identity generator for new entities
        """
        self.registry = registry
        self.sources = sources
        self.broker = broker
        self.settings = settings or get_settings()
        self.clock = clock
        self.id_factory = id_factory
        self.locks = KeyedLocks()
        self._handlers: dict[str, Callable[[NormalizedArguments], Awaitable[Any]]] = {
            "postPhoto": self.post_photo,
            "tagPhoto": self.tag_photo,
            "createUser": self.create_user,
            "makeFriends": self.make_friends,
            "deleteUser": self.delete_user,
        }

    async def run(self, name: str, args: NormalizedArguments) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise ExecutionError(f"Unknown mutation '{name}'")
        return await handler(args)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _source(self, type_name: str) -> DataSource:
        return self.sources.source(self.registry.objects[type_name].source_name)

    def _hold(self, *keys: Hashable):
        return self.locks.hold(*keys, timeout=self.settings.mutation_lock_timeout)

    def _tagging(self):
        rel = self.registry.field("Photo", "taggedUsers").relation
        return self.sources.association(rel.association), rel.side

    async def _require(self, type_name: str, key: Any) -> Entity:
        entity = await self._source(type_name).get(key)
        if entity is None:
            raise NotFound(type_name, key)
        return entity

    async def _publish(self, event_type: EventType, payload: Entity, tags: Optional[set] = None):
        if self.broker is None:
            return
        event = GraphEvent(type=event_type, payload=payload, tags=sorted(tags or ()))
        await self.broker.publish(event)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def post_photo(self, args: NormalizedArguments) -> Entity:
        data: PostPhotoInput = args.get("input")
        photo_id = self.id_factory()
        photo = {
            "id": photo_id,
            "name": data.name,
            "description": data.description,
            "category": data.category.value,
            "postedBy": data.github_login,
            "created": self.clock(),
            "url": f"{self.settings.photo_url_base}/{photo_id}.jpg",
        }
        async with self._hold(("User", data.github_login), ("Photo", photo_id)):
            await self._require("User", data.github_login)
            stored = await self._source("Photo").create(photo)

        logger.info(f"Photo {photo_id} posted by {data.github_login}")
        await self._publish(EventType.NEW_PHOTO, stored)
        return stored

    async def tag_photo(self, args: NormalizedArguments) -> Entity:
        photo_id = args.get("photoID")
        login = args.get("githubLogin")

        store, side = self._tagging()
        async with self._hold(("Photo", photo_id), ("User", login)):
            photo = await self._require("Photo", photo_id)
            await self._require("User", login)
            linked = await store.link(photo_id, login) if side == "left" else await store.link(login, photo_id)
            tags = await store.related(photo_id, side)

        if linked:
            logger.info(f"User {login} tagged in photo {photo_id}")
            await self._publish(EventType.PHOTO_TAGGED, photo, tags)
        return photo

    async def create_user(self, args: NormalizedArguments) -> Entity:
        data: CreateUserInput = args.get("input")
        user = {"githubLogin": data.github_login, "name": data.name, "avatar": data.avatar}

        async with self._hold(("User", data.github_login)):
            users = self._source("User")
            if await users.get(data.github_login) is not None:
                raise ConflictError(f"User '{data.github_login}' already exists")
            stored = await users.create(user)

        logger.info(f"User {data.github_login} created")
        await self._publish(EventType.NEW_USER, stored)
        return stored

    async def make_friends(self, args: NormalizedArguments) -> Entity:
        data: FriendshipInput = args.get("input")
        members = list(dict.fromkeys(data.friends))
        if len(members) < 2:
            raise ValidationError("A friendship connects at least two distinct users")

        friendship_id = self.id_factory()
        friendship = {
            "id": friendship_id,
            "friends": members,
            "howLong": data.how_long,
            "whereWeMet": data.where_we_met,
        }
        keys = [("User", login) for login in members] + [("Friendship", friendship_id)]
        async with self._hold(*keys):
            for login in members:
                await self._require("User", login)
            stored = await self._source("Friendship").create(friendship)

        logger.info(f"Friendship {friendship_id} created between {members}")
        await self._publish(EventType.NEW_FRIENDSHIP, stored)
        return stored

    async def delete_user(self, args: NormalizedArguments) -> Entity:
        """
        Delete a User.

        Friendships and photos that reference the user are not deleted; each is
        reported to its data source via flag_dangling. Tag links are removed.
        """
        login = args.get("githubLogin")
        users = self._source("User")

        async with self._hold(("User", login)):
            user = await self._require("User", login)

            friendships = self._source("Friendship")
            for node in await friendships.where([NormalizedFilter(field="friends", op="contains", value=login)]):
                await friendships.flag_dangling(node["id"], "User", login)

            photos = self._source("Photo")
            for photo in await photos.where([NormalizedFilter(field="postedBy", op="eq", value=login)]):
                await photos.flag_dangling(photo["id"], "User", login)

            store, side = self._tagging()
            await store.drop(login, "right" if side == "left" else "left")
            await users.delete(login)

        logger.info(f"User {login} deleted")
        await self._publish(EventType.USER_DELETED, user)
        return user
