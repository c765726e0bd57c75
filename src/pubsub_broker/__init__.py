"""pubsub-broker: message queues and topics on MongoDB, with change notifications."""

from __future__ import annotations

from .bootstrap import (
    build_broker,
    build_notification_service,
    create_memory_broker,
    create_mongo_broker,
    create_notification_service,
)
from .broker import Broker
from .config import BrokerConfig
from .domain import Message, Payload, Queue, ReceiveResult, Topic
from .exceptions import (
    AccessDeniedError,
    AlreadySubscribedError,
    BrokerClosedError,
    BrokerError,
    MessageNotFoundError,
    NoSubscribersError,
    PartialPublishError,
    QueueNotFoundError,
    TopicNotFoundError,
    ValidationError,
)
from .notifier import NotificationService

__version__ = "0.1.0"

__all__ = [
    "AccessDeniedError",
    "AlreadySubscribedError",
    "Broker",
    "BrokerClosedError",
    "BrokerConfig",
    "BrokerError",
    "Message",
    "MessageNotFoundError",
    "NoSubscribersError",
    "NotificationService",
    "PartialPublishError",
    "Payload",
    "Queue",
    "QueueNotFoundError",
    "ReceiveResult",
    "Topic",
    "TopicNotFoundError",
    "ValidationError",
    "build_broker",
    "build_notification_service",
    "create_memory_broker",
    "create_mongo_broker",
    "create_notification_service",
]
