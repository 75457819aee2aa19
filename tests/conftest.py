"""
Shared fixtures: a small PhotoShare data set over in-memory sources.

    alice -- posts p1 (LANDSCAPE), p3 (SELFIE); tagged in p2
    bob   -- posts p2 (ACTION); tagged in p1
    carol -- posts p4 (LANDSCAPE); tagged in p1
    f1    -- alice + bob, f2 -- alice + carol
"""

from datetime import datetime, timezone

import pytest

from livegraph import EngineSettings, create_engine, memory_sources


def ts(month: int, day: int = 1) -> datetime:
    return datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)


USERS = [
    {"githubLogin": "alice", "name": "Alice", "avatar": "https://img/alice.png"},
    {"githubLogin": "bob", "name": "Bob", "avatar": None},
    {"githubLogin": "carol", "name": "Carol", "avatar": None},
]

PHOTOS = [
    {
        "id": "p1", "name": "Lake sunrise", "description": "Mist over the water",
        "category": "LANDSCAPE", "postedBy": "alice", "created": ts(1), "url": "http://test/img/p1.jpg",
    },
    {
        "id": "p2", "name": "Skate trick", "description": None,
        "category": "ACTION", "postedBy": "bob", "created": ts(2), "url": "http://test/img/p2.jpg",
    },
    {
        "id": "p3", "name": "Me", "description": "Selfie at the lake",
        "category": "SELFIE", "postedBy": "alice", "created": ts(3), "url": "http://test/img/p3.jpg",
    },
    {
        "id": "p4", "name": "Mountain pass", "description": "Cold morning",
        "category": "LANDSCAPE", "postedBy": "carol", "created": ts(4), "url": "http://test/img/p4.jpg",
    },
]

TAGS = [("p1", "bob"), ("p1", "carol"), ("p2", "alice")]

FRIENDSHIPS = [
    {"id": "f1", "friends": ["alice", "bob"], "howLong": 3, "whereWeMet": "school"},
    {"id": "f2", "friends": ["alice", "carol"], "howLong": 1, "whereWeMet": None},
]

AGENDA = [
    {
        "__typename": "StudyGroup", "id": "a1", "name": "Algebra",
        "start": ts(5, 1), "end": ts(5, 2), "subject": "Math", "participants": 4,
    },
    {
        "__typename": "Workout", "id": "a2", "name": "Leg day",
        "start": ts(5, 3), "end": ts(5, 4), "reps": 12,
    },
]


@pytest.fixture
def settings():
    return EngineSettings(
        operation_timeout=5.0,
        mutation_lock_timeout=0.2,
        photo_url_base="http://test/img",
        subscriber_queue_size=10,
    )


@pytest.fixture
def sources():
    return memory_sources(users=USERS, photos=PHOTOS, friendships=FRIENDSHIPS, tags=TAGS, agenda=AGENDA)


@pytest.fixture
def engine(sources, settings):
    return create_engine(sources, settings=settings)
