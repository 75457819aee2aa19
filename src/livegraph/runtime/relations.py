"""
Relationship resolver - fetches related entity sets.

Given a source entity (or none, for root query fields), the relation declared
on the field and the normalized arguments, returns the candidate set and then
applies filter/sort/page to list results.

Relation kinds:
- one_to_one:   lookup of source[foreign_key] on the target (Photo.postedBy)
- one_to_many:  targets whose foreign_key equals the source identity (User.postedPhotos)
- many_to_many: association index lookup, de-duplicated (Photo.taggedUsers)
- through:      through-entities containing the source (User.friends), or, from
                the through-entity, its member endpoints (Friendship.friends)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..core.defs import FieldDef, ObjectTypeDef, RelationKind
from ..core.errors import NotFound, ValidationError
from ..core.normalizer import NormalizedArguments
from ..core.query_types import NormalizedFilter
from ..core.registry import SchemaRegistry
from ..sources.base import DataSources, Entity
from . import modifiers

logger = logging.getLogger(__name__)

TAG_FIELD = "taggedUsers"


class RelationshipResolver:
    """
    Resolves relation and root-entry fields against the data sources.

    Usage:
        resolver = RelationshipResolver(registry, sources)
        photos = await resolver.resolve(user_type, user, user_type.fields["postedPhotos"], args)
    """

    def __init__(self, registry: SchemaRegistry, sources: DataSources):
        self.registry = registry
        self.sources = sources

    def _source_for(self, type_name: str):
        type_def = self.registry.objects.get(type_name)
        return self.sources.source(type_def.source_name if type_def else type_name)

    async def resolve(
        self,
        parent_type: ObjectTypeDef,
        source: Optional[Entity],
        field_def: FieldDef,
        args: NormalizedArguments,
    ) -> Any:
        """Resolve a relation or entry field, applying modifiers to list results."""
        if field_def.entry is not None:
            value = await self._resolve_entry(field_def, args)
        else:
            value = await self.candidates(parent_type, source, field_def)

        if field_def.type_ref.is_list and isinstance(value, list):
            return await self._apply_modifiers(field_def, value, args)
        return value

    async def candidates(self, parent_type: ObjectTypeDef, source: Entity, field_def: FieldDef) -> Any:
        """Unmodified candidate entity (or set) for a relation field."""
        rel = field_def.relation
        target_store = self._source_for(rel.target)
        source_key = source.get(parent_type.key)

        if rel.kind == RelationKind.ONE_TO_ONE:
            foreign = source.get(rel.foreign_key)
            if foreign is None:
                return None
            entity = await target_store.get(foreign)
            if entity is None:
                raise NotFound(rel.target, foreign)
            return entity

        if rel.kind == RelationKind.ONE_TO_MANY:
            return await target_store.where(
                [NormalizedFilter(field=rel.foreign_key, op="eq", value=source_key)]
            )

        if rel.kind == RelationKind.MANY_TO_MANY:
            store = self.sources.association(rel.association)
            keys = await store.related(source_key, rel.side)
            return await target_store.get_many(sorted(keys, key=str))

        if rel.kind == RelationKind.THROUGH:
            if parent_type.through:
                return await self._through_members(parent_type, source, rel.foreign_key, rel.target)
            return await target_store.where(
                [NormalizedFilter(field=rel.foreign_key, op="contains", value=source_key)]
            )

        raise ValueError(f"Unsupported relation kind: {rel.kind}")

    async def _through_members(
        self, through_type: ObjectTypeDef, node: Entity, members_field: str, target: str
    ) -> list[Entity]:
        """Secondary hop from a through-entity to the endpoints it connects."""
        keys = list(dict.fromkeys(node.get(members_field) or []))
        members = await self._source_for(target).get_many(keys)
        found = {m.get(self.registry.key_of(target)) for m in members}
        missing = [k for k in keys if k not in found]
        if missing:
            node_key = node.get(through_type.key)
            store = self._source_for(through_type.name)
            for key in missing:
                await store.flag_dangling(node_key, target, key)
            raise NotFound(target, missing[0])
        return members

    async def _resolve_entry(self, field_def: FieldDef, args: NormalizedArguments) -> Any:
        entry = field_def.entry
        store = self.sources.source(entry.source)

        if entry.kind == "all" or entry.kind == "collection":
            return await store.all()
        if entry.kind == "count":
            return await store.count()
        if entry.kind == "lookup":
            key = args.get(entry.key_arg)
            entity = await store.get(key)
            if entity is None:
                raise NotFound(field_def.type_ref.named, key)
            return entity
        raise ValueError(f"Unsupported entry kind: {entry.kind}")

    async def _apply_modifiers(
        self, field_def: FieldDef, entities: list[Entity], args: NormalizedArguments
    ) -> list[Entity]:
        target = field_def.type_ref.named
        target_def = self.registry.objects.get(target)
        key_field = target_def.key if target_def and target_def.key else "id"

        sort = args.sort
        if sort is not None and target_def is not None:
            sort_field = target_def.fields.get(sort.sort_by)
            if sort_field is None or not sort_field.sortable:
                raise ValidationError(f"'{sort.sort_by}' is not a sortable field of {target}")

        flt = args.filter
        tags = None
        if flt is not None and flt.tagged_users is not None:
            tags = await self._tag_index(target, entities, key_field)

        return modifiers.apply_modifiers(
            entities, flt=flt, sort=sort, page=args.page, key_field=key_field, tags=tags
        )

    async def _tag_index(self, target: str, entities: list[Entity], key_field: str) -> dict[Any, set]:
        """Entity key -> tagged identities, from the target's tagging association."""
        tag_field = self.registry.field(target, TAG_FIELD)
        if tag_field is None or tag_field.relation is None:
            raise ValidationError(f"{target} cannot be filtered by {TAG_FIELD}")
        rel = tag_field.relation
        store = self.sources.association(rel.association)
        return {
            e.get(key_field): await store.related(e.get(key_field), rel.side)
            for e in entities
        }
