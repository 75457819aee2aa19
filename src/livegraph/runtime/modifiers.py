"""
Filter / sort / page engine.

Applied to a candidate entity set in a fixed order: filter, then sort, then
page. The same predicate logic is used by the subscription broker to match
event payloads against subscription filters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from ..core.query_types import DataPage, DataSort, PhotoFilter, SortDirection
from ..core.utils import to_utc

Entity = dict[str, Any]
TagIndex = Mapping[Any, set]

SEARCH_FIELDS = ("name", "description")


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    return to_utc(value)


def _match_category(entity: Entity, flt: PhotoFilter, tagged: set) -> bool:
    return entity.get("category") == flt.category.value


def _match_created_between(entity: Entity, flt: PhotoFilter, tagged: set) -> bool:
    created = _as_datetime(entity.get("created"))
    if created is None:
        return False
    rng = flt.created_between
    # inverted range (start > end) matches nothing
    return rng.start <= created <= rng.end


def _match_tagged_users(entity: Entity, flt: PhotoFilter, tagged: set) -> bool:
    return bool(tagged.intersection(flt.tagged_users))


def _match_search_text(entity: Entity, flt: PhotoFilter, tagged: set) -> bool:
    needle = flt.search_text.lower()
    return any(needle in str(entity.get(f) or "").lower() for f in SEARCH_FIELDS)


# filter attribute -> predicate; a predicate runs only when its attribute is set
PREDICATES: dict[str, Callable[[Entity, PhotoFilter, set], bool]] = {
    "category": _match_category,
    "created_between": _match_created_between,
    "tagged_users": _match_tagged_users,
    "search_text": _match_search_text,
}


def matches(entity: Entity, flt: Optional[PhotoFilter], tagged: Optional[Iterable] = None) -> bool:
    """
    Check an entity against every present predicate (logical AND).

    Args:
        entity: entity dict
        flt: filter, None matches everything
        tagged: identities tagged on the entity (for the taggedUsers predicate)
    """
    if flt is None:
        return True
    tagged_set = set(tagged or ())
    for attr, predicate in PREDICATES.items():
        if getattr(flt, attr) is None:
            continue
        if not predicate(entity, flt, tagged_set):
            return False
    return True


def filter_entities(
    entities: list[Entity],
    flt: Optional[PhotoFilter],
    key_field: str = "id",
    tags: Optional[TagIndex] = None,
) -> list[Entity]:
    """Keep entities matching the filter. tags maps entity key -> tagged identities."""
    if flt is None:
        return list(entities)
    tags = tags or {}
    return [e for e in entities if matches(e, flt, tags.get(e.get(key_field), ()))]


def _sort_value(value: Any) -> tuple:
    # None orders before every other value in ascending order
    if value is None:
        return (0, "")
    if hasattr(value, "value"):
        value = value.value
    return (1, value)


def sort_entities(entities: list[Entity], sort: Optional[DataSort], key_field: str = "id") -> list[Entity]:
    """
    Total order by sort.sort_by in the requested direction.

    Ties are broken by identity ascending in both directions: the list is first
    ordered by identity, then stably sorted by the sort field (Python's sort is
    stable with reverse=True as well).
    """
    ordered = sorted(entities, key=lambda e: _sort_value(e.get(key_field)))
    if sort is None:
        return ordered
    return sorted(
        ordered,
        key=lambda e: _sort_value(e.get(sort.sort_by)),
        reverse=sort.sort == SortDirection.DESCENDING,
    )


def page_entities(entities: list[Entity], page: Optional[DataPage]) -> list[Entity]:
    """Return entities[start:start + first], clamped; start past the end gives []."""
    if page is None:
        return list(entities)
    start = page.start or 0
    if page.first is None:
        return list(entities[start:])
    return list(entities[start:start + page.first])


def apply_modifiers(
    entities: list[Entity],
    flt: Optional[PhotoFilter] = None,
    sort: Optional[DataSort] = None,
    page: Optional[DataPage] = None,
    key_field: str = "id",
    tags: Optional[TagIndex] = None,
) -> list[Entity]:
    """Filter, then sort, then page."""
    filtered = filter_entities(entities, flt, key_field=key_field, tags=tags)
    return page_entities(sort_entities(filtered, sort, key_field=key_field), page)
