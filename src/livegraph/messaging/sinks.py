"""
Event sinks - where the broker pushes subscription payloads.

How transport connections are held open is outside the engine; a sink only
needs send() and close().
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from ..config import get_settings

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Transport-side receiver of subscription payloads."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Deliver one payload."""

    async def close(self) -> None:
        """Called once when the subscription closes."""
        return None


class QueueSink(EventSink):
    """
    In-process sink backed by an asyncio.Queue.

    Usage:
        sink = QueueSink()
        sub = await engine.subscribe(operation, sink)
        async for payload in sink:
            ...
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, payload: dict[str, Any]) -> None:
        await self._queue.put(payload)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._queue.put(self._CLOSED)

    async def get(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        """Next payload, or None once the sink is closed."""
        item = await asyncio.wait_for(self._queue.get(), timeout)
        return None if item is self._CLOSED else item

    def pending(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class WebSocketSink(EventSink):
    """Pushes payloads to an accepted FastAPI WebSocket as JSON."""

    def __init__(self, websocket: WebSocket, entity: Optional[str] = None):
        self.websocket = websocket
        self.entity = entity  # wraps payloads as {entity: payload} when set

    async def send(self, payload: dict[str, Any]) -> None:
        message = {self.entity: payload} if self.entity else payload
        await self.websocket.send_json(jsonable_encoder(message))

    async def close(self) -> None:
        try:
            await self.websocket.close()
        except RuntimeError as e:
            # already closed by the client
            logger.debug(f"WebSocket close skipped: {e}")


class RedisSink(EventSink):
    """
    Publishes payloads to a Redis Pub/Sub channel for gateways in other processes.

    Usage:
        sink = RedisSink.from_url("photos.new", "redis://redis:6379")
        sink = RedisSink.from_url("photos.new")  # LIVEGRAPH_REDIS_URL
    """

    def __init__(self, client: aioredis.Redis, channel: str):
        self.client = client
        self.channel = channel

    @classmethod
    def from_url(cls, channel: str, redis_url: Optional[str] = None) -> "RedisSink":
        redis_url = redis_url or get_settings().redis_url
        if not redis_url:
            raise ValueError("No Redis URL given and LIVEGRAPH_REDIS_URL is not set")
        client = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        return cls(client, channel)

    async def send(self, payload: dict[str, Any]) -> None:
        message = json.dumps(jsonable_encoder(payload), ensure_ascii=False)
        count = await self.client.publish(self.channel, message)
        logger.debug(f"Published to {self.channel}: {count} subscribers received")
