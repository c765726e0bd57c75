"""MongoDB adapters (Motor)."""

from __future__ import annotations

from .change_feed import MongoChangeFeed, MongoChangeStream
from .connection import MongoConnectionManager
from .indexes import ensure_indexes
from .messages import MongoMessageRepository
from .metrics import MongoMetricsRepository
from .notifications import MongoNotificationRepository
from .position_store import MongoResumePositionStore
from .queues import MongoQueueRepository
from .topics import MongoTopicRepository

__all__ = [
    "MongoChangeFeed",
    "MongoChangeStream",
    "MongoConnectionManager",
    "MongoMessageRepository",
    "MongoMetricsRepository",
    "MongoNotificationRepository",
    "MongoQueueRepository",
    "MongoResumePositionStore",
    "MongoTopicRepository",
    "ensure_indexes",
]
