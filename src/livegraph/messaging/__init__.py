"""
Messaging module - mutation events, subscription broker and sinks.
"""

from __future__ import annotations

from .broker import Subscription, SubscriptionBroker
from .events import EventType, GraphEvent
from .sinks import EventSink, QueueSink, RedisSink, WebSocketSink

__all__ = [
    "EventType",
    "GraphEvent",
    "Subscription",
    "SubscriptionBroker",
    "EventSink",
    "QueueSink",
    "RedisSink",
    "WebSocketSink",
]
