"""In-memory adapters for tests and single-process use."""

from __future__ import annotations

from .change_feed import InMemoryChangeFeed, InMemoryChangeStream
from .messages import InMemoryMessageRepository
from .metrics import InMemoryMetricsRepository
from .notifications import InMemoryNotificationRepository, InMemoryResumePositionStore
from .queues import InMemoryQueueRepository
from .topics import InMemoryTopicRepository

__all__ = [
    "InMemoryChangeFeed",
    "InMemoryChangeStream",
    "InMemoryMessageRepository",
    "InMemoryMetricsRepository",
    "InMemoryNotificationRepository",
    "InMemoryQueueRepository",
    "InMemoryResumePositionStore",
    "InMemoryTopicRepository",
]
