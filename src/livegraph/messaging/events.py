"""
Typed events emitted by the mutation coordinator.

Each committed mutation produces one GraphEvent; the broker routes it to the
subscriptions registered for its type.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    NEW_PHOTO = "newPhoto"
    PHOTO_TAGGED = "photoTagged"
    NEW_USER = "newUser"
    NEW_FRIENDSHIP = "newFriendship"
    USER_DELETED = "userDeleted"


class GraphEvent(BaseModel):
    """
    Event carrying the entity a mutation wrote.

    Example:
        GraphEvent(type=EventType.NEW_PHOTO, payload={"id": "p1", "category": "ACTION", ...})
    """
    type: EventType
    payload: dict[str, Any]
    # identities tagged on the payload entity, for taggedUsers filters
    tags: list[str] = Field(default_factory=list)
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
