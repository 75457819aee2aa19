"""Tests for query execution: nesting, paging, null propagation and deadlines."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from livegraph import create_engine, memory_sources, query, sel
from livegraph.sources.memory import InMemoryDataSource


class SlowSource(InMemoryDataSource):
    """Delays lookups to let the operation deadline pass mid-walk."""

    def __init__(self, *args, delay: float = 0.1, **kwargs):
        super().__init__(*args, **kwargs)
        self.delay = delay

    async def get(self, key):
        await asyncio.sleep(self.delay)
        return await super().get(key)


class BrokenSource(InMemoryDataSource):

    async def count(self):
        raise RuntimeError("connection reset")


class TestQueries:

    @pytest.mark.asyncio
    async def test_nested_selection(self, engine):
        result = await engine.execute(query(
            sel("allPhotos", sel("id"), sel("category"), sel("postedBy", sel("name"))),
        ))

        assert result.errors == []
        assert result.data["allPhotos"] == [
            {"id": "p4", "category": "LANDSCAPE", "postedBy": {"name": "Carol"}},
            {"id": "p3", "category": "SELFIE", "postedBy": {"name": "Alice"}},
            {"id": "p2", "category": "ACTION", "postedBy": {"name": "Bob"}},
            {"id": "p1", "category": "LANDSCAPE", "postedBy": {"name": "Alice"}},
        ]

    @pytest.mark.asyncio
    async def test_datetime_and_typename(self, engine):
        result = await engine.execute(query(sel("Photo", sel("__typename"), sel("created"), args={"id": "p1"})))

        assert result.data == {"Photo": {"__typename": "Photo", "created": "2024-01-01T12:00:00+00:00"}}

    @pytest.mark.asyncio
    async def test_aliases_with_different_arguments(self, engine):
        result = await engine.execute(query(
            sel("allPhotos", sel("id"), alias="action", args={"filter": {"category": "ACTION"}}),
            sel("allPhotos", sel("id"), alias="landscape", args={"filter": {"category": "LANDSCAPE"}}),
            sel("totalPhotos"),
        ))

        assert result.data == {
            "action": [{"id": "p2"}],
            "landscape": [{"id": "p4"}, {"id": "p1"}],
            "totalPhotos": 4,
        }

    @pytest.mark.asyncio
    async def test_paging_and_sorting_arguments(self, engine):
        result = await engine.execute(query(sel(
            "allPhotos", sel("name"),
            args={"paging": {"first": 2, "start": 1}, "sorting": {"sort": "ASCENDING", "sortBy": "name"}},
        )))

        assert [p["name"] for p in result.data["allPhotos"]] == ["Me", "Mountain pass"]

    @pytest.mark.asyncio
    async def test_nested_lists(self, engine):
        result = await engine.execute(query(sel(
            "User",
            sel("postedPhotos", sel("id")),
            sel("inPhotos", sel("id")),
            sel("friends", sel("howLong"), sel("friends", sel("githubLogin"))),
            args={"githubLogin": "alice"},
        )))

        user = result.data["User"]
        assert user["postedPhotos"] == [{"id": "p3"}, {"id": "p1"}]
        assert user["inPhotos"] == [{"id": "p2"}]
        assert user["friends"] == [
            {"howLong": 3, "friends": [{"githubLogin": "alice"}, {"githubLogin": "bob"}]},
            {"howLong": 1, "friends": [{"githubLogin": "alice"}, {"githubLogin": "carol"}]},
        ]

    @pytest.mark.asyncio
    async def test_empty_lists_are_not_null(self, settings):
        engine = create_engine(memory_sources(users=[{"githubLogin": "solo", "name": "Solo"}]), settings=settings)

        result = await engine.execute(query(
            sel("allPhotos", sel("id")),
            sel("User", sel("postedPhotos", sel("id")), sel("friends", sel("id")), args={"githubLogin": "solo"}),
        ))

        assert result.errors == []
        assert result.data == {"allPhotos": [], "User": {"postedPhotos": [], "friends": []}}

    @pytest.mark.asyncio
    async def test_default_page_versus_explicit_null(self, settings):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        photos = [
            {
                "id": f"p{i:02d}", "name": f"Photo {i}", "category": "GRAPHIC", "postedBy": "alice",
                "created": start + timedelta(days=i), "url": f"http://test/img/{i}.jpg",
            }
            for i in range(30)
        ]
        engine = create_engine(
            memory_sources(users=[{"githubLogin": "alice"}], photos=photos), settings=settings
        )

        defaulted = await engine.execute(query(sel("allPhotos", sel("id"))))
        unpaged = await engine.execute(query(sel("allPhotos", sel("id"), args={"paging": None})))

        assert len(defaulted.data["allPhotos"]) == 25
        assert len(unpaged.data["allPhotos"]) == 30

    @pytest.mark.asyncio
    async def test_partial_paging_keeps_field_default(self, settings):
        users = [{"githubLogin": f"user{i:02d}", "name": f"User {i}"} for i in range(80)]
        engine = create_engine(memory_sources(users=users), settings=settings)

        omitted = await engine.execute(query(sel("allUsers", sel("githubLogin"))))
        partial = await engine.execute(query(sel("allUsers", sel("githubLogin"), args={"paging": {"start": 10}})))

        assert len(omitted.data["allUsers"]) == 50
        assert len(partial.data["allUsers"]) == 50
        assert partial.data["allUsers"][0] == {"githubLogin": "user10"}

    @pytest.mark.asyncio
    async def test_null_start_means_no_offset(self, engine):
        result = await engine.execute(query(
            sel("allPhotos", sel("id"), args={"paging": {"first": 2, "start": None}}),
        ))

        assert result.errors == []
        assert result.data["allPhotos"] == [{"id": "p4"}, {"id": "p3"}]

    @pytest.mark.asyncio
    async def test_partial_sorting_keeps_field_sort_by(self, engine):
        result = await engine.execute(query(
            sel("allUsers", sel("githubLogin"), args={"sorting": {"sort": "DESCENDING"}}),
        ))

        assert result.errors == []
        assert result.data["allUsers"] == [{"githubLogin": "carol"}, {"githubLogin": "bob"}, {"githubLogin": "alice"}]

    @pytest.mark.asyncio
    async def test_created_between_without_utc_offset(self, engine):
        result = await engine.execute(query(sel(
            "allPhotos", sel("id"),
            args={"filter": {"createdBetween": {"start": "2024-01-15T00:00:00", "end": datetime(2024, 3, 15)}}},
        )))

        assert result.errors == []
        assert result.data["allPhotos"] == [{"id": "p3"}, {"id": "p2"}]


class TestErrors:

    @pytest.mark.asyncio
    async def test_root_lookup_miss_is_null_with_error(self, engine):
        result = await engine.execute(query(sel("Photo", sel("id"), args={"id": "nope"}), sel("totalUsers")))

        assert result.data == {"Photo": None, "totalUsers": 3}
        assert [(e.kind, e.path) for e in result.errors] == [("NotFound", ["Photo"])]

    @pytest.mark.asyncio
    async def test_non_null_failure_nulls_nearest_nullable_ancestor(self, engine, sources):
        await sources.source("Photo").create({
            "id": "px", "name": "Orphan", "category": "GRAPHIC", "postedBy": "ghost",
            "created": datetime(2024, 6, 1, tzinfo=timezone.utc), "url": "http://test/img/px.jpg",
        })

        result = await engine.execute(query(sel("Photo", sel("name"), sel("postedBy", sel("name")), args={"id": "px"})))

        assert result.data == {"Photo": None}
        assert len(result.errors) == 1
        assert result.errors[0].kind == "NotFound"
        assert result.errors[0].path == ["Photo", "postedBy"]

    @pytest.mark.asyncio
    async def test_non_null_failure_in_list_reaches_root(self, engine, sources):
        await sources.source("Photo").create({
            "id": "px", "name": "Orphan", "category": "GRAPHIC", "postedBy": "ghost",
            "created": datetime(2024, 6, 1, tzinfo=timezone.utc), "url": "http://test/img/px.jpg",
        })

        result = await engine.execute(query(sel("allPhotos", sel("postedBy", sel("name")))))

        assert result.data is None
        assert result.errors[0].path == ["allPhotos", 0, "postedBy"]

    @pytest.mark.asyncio
    async def test_sibling_failures_are_all_recorded(self, engine):
        result = await engine.execute(query(
            sel("Photo", sel("id"), args={"id": "x1"}),
            sel("User", sel("name"), args={"githubLogin": "x2"}),
        ))

        assert result.data == {"Photo": None, "User": None}
        assert sorted(tuple(e.path) for e in result.errors) == [("Photo",), ("User",)]

    @pytest.mark.asyncio
    async def test_invalid_argument_is_a_field_error(self, engine):
        result = await engine.execute(query(sel("allPhotos", sel("id"), args={"paging": {"first": -5}})))

        assert result.data is None
        assert result.errors[0].kind == "ValidationError"
        assert result.errors[0].path == ["allPhotos"]

    @pytest.mark.asyncio
    async def test_collaborator_exception_is_wrapped(self, sources, settings):
        sources.entities["Photo"] = BrokenSource("Photo", key="id")
        engine = create_engine(sources, settings=settings)

        result = await engine.execute(query(sel("totalPhotos"), sel("totalUsers")))

        assert result.data is None
        assert result.errors[0].kind == "ExecutionError"
        assert "connection reset" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_unknown_field_is_recorded(self, engine):
        result = await engine.execute(query(sel("Photo", sel("id"), sel("exif"), args={"id": "p1"})))

        assert result.data == {"Photo": {"id": "p1", "exif": None}}
        assert result.errors[0].path == ["Photo", "exif"]


class TestDeadline:

    @pytest.mark.asyncio
    async def test_expired_deadline_fails_unstarted_fields(self, engine):
        result = await engine.execute(query(sel("allPhotos", sel("id"))), timeout=0)

        assert result.data is None
        assert result.errors[0].kind == "TimeoutError"

    @pytest.mark.asyncio
    async def test_started_field_completes_children_time_out(self, sources, settings):
        photos = sources.source("Photo")
        sources.entities["Photo"] = SlowSource("Photo", key="id", items=await photos.all(), delay=0.1)
        engine = create_engine(sources, settings=settings)

        result = await engine.execute(
            query(sel("Photo", sel("description"), args={"id": "p1"})), timeout=0.05
        )

        assert result.data == {"Photo": {"description": None}}
        assert result.errors[0].kind == "TimeoutError"
        assert result.errors[0].path == ["Photo", "description"]

    @pytest.mark.asyncio
    async def test_no_deadline(self, engine):
        result = await engine.execute(query(sel("totalPhotos")), timeout=None)

        assert result.data == {"totalPhotos": 4}
