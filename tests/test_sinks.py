"""Tests for the transport sinks."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from livegraph.config import get_settings
from livegraph.messaging.sinks import QueueSink, RedisSink, WebSocketSink


class TestQueueSink:

    @pytest.mark.asyncio
    async def test_iterates_until_closed(self):
        sink = QueueSink()
        await sink.send({"n": 1})
        await sink.send({"n": 2})
        await sink.close()

        assert [item async for item in sink] == [{"n": 1}, {"n": 2}]

    @pytest.mark.asyncio
    async def test_get_times_out(self):
        with pytest.raises(asyncio.TimeoutError):
            await QueueSink().get(timeout=0.01)


class TestWebSocketSink:

    @pytest.mark.asyncio
    async def test_sends_json(self):
        websocket = AsyncMock()
        sink = WebSocketSink(websocket, entity="newPhoto")

        await sink.send({"created": datetime(2024, 1, 1, tzinfo=timezone.utc)})

        websocket.send_json.assert_awaited_once_with({"newPhoto": {"created": "2024-01-01T00:00:00+00:00"}})

    @pytest.mark.asyncio
    async def test_close_ignores_closed_socket(self):
        websocket = AsyncMock()
        websocket.close.side_effect = RuntimeError("already closed")

        await WebSocketSink(websocket).close()

        websocket.close.assert_awaited_once()


class TestRedisSink:

    @pytest.mark.asyncio
    async def test_publishes_to_channel(self):
        client = AsyncMock()
        client.publish.return_value = 1
        sink = RedisSink(client, "photos.new")

        await sink.send({"data": {"newPhoto": {"name": "Kickflip"}}, "errors": []})

        channel, message = client.publish.await_args.args
        assert channel == "photos.new"
        assert json.loads(message) == {"data": {"newPhoto": {"name": "Kickflip"}}, "errors": []}

    def test_from_url_defaults_to_configured_url(self, monkeypatch):
        monkeypatch.setenv("LIVEGRAPH_REDIS_URL", "redis://cache:6379/2")
        get_settings.cache_clear()
        try:
            with patch("livegraph.messaging.sinks.aioredis.from_url", MagicMock()) as from_url:
                sink = RedisSink.from_url("users.new")
        finally:
            get_settings.cache_clear()

        assert from_url.call_args.args == ("redis://cache:6379/2",)
        assert sink.channel == "users.new"

    def test_from_url_without_any_url(self, monkeypatch):
        monkeypatch.delenv("LIVEGRAPH_REDIS_URL", raising=False)
        get_settings.cache_clear()
        try:
            with pytest.raises(ValueError):
                RedisSink.from_url("users.new")
        finally:
            get_settings.cache_clear()
