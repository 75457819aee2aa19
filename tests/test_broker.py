"""Tests for the subscription broker and engine subscriptions."""

import asyncio

import pytest

from livegraph import PhotoFilter, ValidationError, mutation, on, query, sel, subscription
from livegraph.messaging import EventType, GraphEvent, QueueSink, Subscription, SubscriptionBroker
from livegraph.messaging.sinks import EventSink


def _post(name, category, login="alice"):
    return mutation(sel(
        "postPhoto", sel("id"),
        args={"input": {"name": name, "githubLogin": login, "category": category}},
    ))


def _event(i, category="ACTION"):
    return GraphEvent(type=EventType.NEW_PHOTO, payload={"id": f"e{i}", "category": category})


class FailingSink(EventSink):

    def __init__(self):
        self.closed = False

    async def send(self, payload):
        raise ConnectionError("client went away")

    async def close(self):
        self.closed = True


class GatedSink(EventSink):
    """Holds each send until the gate opens."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.received = []

    async def send(self, payload):
        await self.gate.wait()
        self.received.append(payload["id"])


class TestEngineSubscriptions:

    @pytest.mark.asyncio
    async def test_category_filter(self, engine):
        sink = QueueSink()
        sub = await engine.subscribe(
            subscription(sel("newPhoto", sel("name"), sel("category"), args={"category": "ACTION"})), sink
        )

        await engine.execute(_post("Valley", "LANDSCAPE"))
        await engine.execute(_post("Kickflip", "ACTION"))
        await sub.drain()

        assert await sink.get(timeout=1) == {
            "data": {"newPhoto": {"name": "Kickflip", "category": "ACTION"}},
            "errors": [],
        }
        assert sink.pending() == 0
        await engine.close()

    @pytest.mark.asyncio
    async def test_unfiltered_subscription_keeps_order(self, engine):
        sink = QueueSink()
        sub = await engine.subscribe(subscription(sel("newPhoto", sel("name"))), sink)

        for name in ("one", "two", "three"):
            await engine.execute(_post(name, "GRAPHIC"))
        await sub.drain()

        received = [(await sink.get(timeout=1))["data"]["newPhoto"]["name"] for _ in range(3)]
        assert received == ["one", "two", "three"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_payload_selection_resolves_relations(self, engine):
        sink = QueueSink()
        sub = await engine.subscribe(subscription(sel("newUser", sel("githubLogin"), sel("postedPhotos", sel("id")))), sink)

        await engine.execute(mutation(sel("createUser", sel("githubLogin"), args={"input": {"githubLogin": "dave"}})))
        await sub.drain()

        assert (await sink.get(timeout=1))["data"] == {"newUser": {"githubLogin": "dave", "postedPhotos": []}}
        await engine.close()

    @pytest.mark.asyncio
    async def test_tagged_users_filter(self, engine):
        sink = QueueSink()
        sub = await engine.subscribe(
            subscription(sel("photoTagged", sel("id"), args={"taggedUsers": ["carol"]})), sink
        )

        await engine.execute(mutation(sel("tagPhoto", sel("id"), args={"photoID": "p2", "githubLogin": "bob"})))
        await engine.execute(mutation(sel("tagPhoto", sel("id"), args={"photoID": "p3", "githubLogin": "carol"})))
        await sub.drain()

        assert (await sink.get(timeout=1))["data"] == {"photoTagged": {"id": "p3"}}
        assert sink.pending() == 0
        await engine.close()

    @pytest.mark.asyncio
    async def test_rejects_non_subscription_operations(self, engine):
        with pytest.raises(ValueError):
            await engine.subscribe(query(sel("totalPhotos")), QueueSink())

    @pytest.mark.asyncio
    async def test_rejects_invalid_filter(self, engine):
        with pytest.raises(ValidationError):
            await engine.subscribe(subscription(sel("newPhoto", sel("id"), args={"category": "MACRO"})), QueueSink())

    @pytest.mark.asyncio
    async def test_rejects_fragment_only_selection(self, engine):
        with pytest.raises(ValidationError):
            await engine.subscribe(subscription(on("Subscription", sel("newUser", sel("githubLogin")))), QueueSink())

        assert engine.broker.subscription_count == 0


class TestBroker:

    @pytest.mark.asyncio
    async def test_publish_counts_matching_subscriptions(self):
        broker = SubscriptionBroker()
        await broker.register(EventType.NEW_PHOTO, QueueSink(), filter=PhotoFilter(category="ACTION"))
        await broker.register(EventType.NEW_PHOTO, QueueSink())
        await broker.register(EventType.NEW_USER, QueueSink())

        assert await broker.publish(_event(1, "ACTION")) == 2
        assert await broker.publish(_event(2, "SELFIE")) == 1
        await broker.close()

    @pytest.mark.asyncio
    async def test_overflow_drops_oldest(self):
        broker = SubscriptionBroker()
        sink = QueueSink()
        sub = Subscription(broker, EventType.NEW_PHOTO, sink, queue_size=2)

        for i in range(4):
            assert sub.offer(_event(i))

        assert sub.dropped == 2
        assert sub.pending == 2

        sub.start()
        await sub.drain()
        assert [(await sink.get(timeout=1))["id"] for _ in range(2)] == ["e2", "e3"]
        await sub.close()

    @pytest.mark.asyncio
    async def test_close_deregisters_immediately(self):
        broker = SubscriptionBroker()
        sink = QueueSink()
        sub = await broker.register(EventType.NEW_PHOTO, sink)

        await sub.close()

        assert broker.subscription_count == 0
        assert await broker.publish(_event(1)) == 0
        assert sub.offer(_event(2)) is False
        assert await sink.get(timeout=1) is None

    @pytest.mark.asyncio
    async def test_failing_sink_closes_subscription(self):
        broker = SubscriptionBroker()
        sink = FailingSink()
        sub = await broker.register(EventType.NEW_PHOTO, sink)

        await broker.publish(_event(1))
        await sub.drain()

        assert sub.closed
        assert sink.closed
        assert broker.subscriptions(EventType.NEW_PHOTO) == []

    @pytest.mark.asyncio
    async def test_drain_waits_for_slow_sink(self):
        broker = SubscriptionBroker()
        sink = GatedSink()
        sub = await broker.register(EventType.NEW_PHOTO, sink)
        await broker.publish(_event(1))

        drain = asyncio.ensure_future(sub.drain())
        await asyncio.sleep(0.05)
        assert not drain.done()

        sink.gate.set()
        await asyncio.wait_for(drain, timeout=1)
        assert sink.received == ["e1"]
        assert sub.delivered == 1
        await broker.close()

    @pytest.mark.asyncio
    async def test_drain_returns_when_closed(self):
        broker = SubscriptionBroker()
        sub = await broker.register(EventType.NEW_PHOTO, GatedSink())
        await broker.publish(_event(1))

        drain = asyncio.ensure_future(sub.drain())
        await asyncio.sleep(0)
        await sub.close()

        await asyncio.wait_for(drain, timeout=1)
        assert sub.delivered == 0
