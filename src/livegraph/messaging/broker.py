"""
Subscription broker - fans committed mutation events out to live subscribers.

Each subscription owns a bounded queue and one delivery task, so events reach
a subscriber in emission order. Publishing never waits for a subscriber: when
a queue is full the oldest undelivered event is dropped.

Usage:
    broker = SubscriptionBroker(queue_size=100)
    sub = await broker.register(EventType.NEW_PHOTO, sink, filter=PhotoFilter(category="ACTION"))
    await broker.publish(GraphEvent(type=EventType.NEW_PHOTO, payload=photo))
    await sub.close()
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from ..core.query_types import PhotoFilter
from ..runtime import modifiers
from ..runtime.locks import KeyedLocks
from .events import EventType, GraphEvent
from .sinks import EventSink

logger = logging.getLogger(__name__)

Deliver = Callable[[GraphEvent], Awaitable[Any]]


async def _payload_of(event: GraphEvent) -> dict[str, Any]:
    return event.payload


class Subscription:
    """One live registration: event type, optional filter, sink and queue."""

    def __init__(
        self,
        broker: "SubscriptionBroker",
        event_type: EventType,
        sink: EventSink,
        filter: Optional[PhotoFilter] = None,
        deliver: Optional[Deliver] = None,
        queue_size: int = 100,
    ):
        self.id = uuid.uuid4().hex
        self.broker = broker
        self.event_type = EventType(event_type)
        self.sink = sink
        self.filter = filter
        self._deliver = deliver or _payload_of
        self._queue: asyncio.Queue[GraphEvent] = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self.closed = False
        self.delivered = 0
        self.dropped = 0
        self._closed_event = asyncio.Event()

    def accepts(self, event: GraphEvent) -> bool:
        """Evaluate the subscription filter against the event payload."""
        return modifiers.matches(event.payload, self.filter, event.tags)

    def offer(self, event: GraphEvent) -> bool:
        """Enqueue without waiting; drops the oldest event on overflow."""
        if self.closed:
            return False
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
            logger.warning(f"Subscription {self.id} queue full, dropped oldest event ({self.dropped} total)")
        self._queue.put_nowait(event)
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._pump())

    async def _pump(self):
        """Deliver queued events one at a time, in order."""
        while True:
            event = await self._queue.get()
            try:
                payload = await self._deliver(event)
                await self.sink.send(payload)
                self.delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Delivery to subscription {self.id} failed: {e}", exc_info=True)
                await self.close()
                return
            finally:
                self._queue.task_done()
            logger.debug(f"Delivered {event.type.value} event {event.id} to {self.id}")

    async def drain(self):
        """Wait until every accepted event has been delivered or dropped."""
        if self.closed:
            return
        joined = asyncio.ensure_future(self._queue.join())
        closed = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait({joined, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            joined.cancel()
            closed.cancel()

    async def close(self):
        """Deregister immediately and stop delivery."""
        if self.closed:
            return
        self.closed = True
        await self.broker._deregister(self)

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self.sink.close()
        logger.info(f"Subscription {self.id} to {self.event_type.value} closed")
        self._closed_event.set()


class SubscriptionBroker:
    """
    Process-scoped registry of live subscriptions, keyed by event type.

    Registry changes take the per-event-type lock; publish reads a snapshot
    and only enqueues.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._registrations: dict[EventType, dict[str, Subscription]] = {}
        self._locks = KeyedLocks()

    async def register(
        self,
        event_type: EventType,
        sink: EventSink,
        filter: Optional[PhotoFilter] = None,
        deliver: Optional[Deliver] = None,
    ) -> Subscription:
        """Register a subscription and start its delivery task."""
        subscription = Subscription(
            self, event_type, sink, filter=filter, deliver=deliver, queue_size=self.queue_size
        )
        async with self._locks.hold(subscription.event_type):
            self._registrations.setdefault(subscription.event_type, {})[subscription.id] = subscription
        subscription.start()
        logger.info(f"Subscription {subscription.id} registered for {subscription.event_type.value}")
        return subscription

    async def _deregister(self, subscription: Subscription):
        async with self._locks.hold(subscription.event_type):
            registrations = self._registrations.get(subscription.event_type, {})
            registrations.pop(subscription.id, None)
            if not registrations:
                self._registrations.pop(subscription.event_type, None)

    async def publish(self, event: GraphEvent) -> int:
        """
        Route an event to every matching subscription.

        Returns:
            Number of subscriptions the event was queued for
        """
        async with self._locks.hold(event.type):
            targets = list(self._registrations.get(event.type, {}).values())

        count = 0
        for subscription in targets:
            if not subscription.accepts(event):
                continue
            if subscription.offer(event):
                count += 1
        logger.debug(f"Published {event.type.value} event {event.id}: {count} subscribers matched")
        return count

    def subscriptions(self, event_type: Optional[EventType] = None) -> list[Subscription]:
        if event_type is not None:
            return list(self._registrations.get(EventType(event_type), {}).values())
        return [s for regs in self._registrations.values() for s in regs.values()]

    @property
    def subscription_count(self) -> int:
        return sum(len(regs) for regs in self._registrations.values())

    async def close(self):
        """Close every subscription."""
        for subscription in self.subscriptions():
            await subscription.close()
