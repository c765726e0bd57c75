"""Broker services: message lifecycle, queues, topics and counters."""

from __future__ import annotations

from .message_store import MessageStore
from .metrics import MetricsAggregator
from .queue_registry import QueueRegistry
from .reaper import MessageReaper
from .topic_router import TopicRouter

__all__ = [
    "MessageReaper",
    "MessageStore",
    "MetricsAggregator",
    "QueueRegistry",
    "TopicRouter",
]
