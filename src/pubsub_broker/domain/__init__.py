"""Domain records of the broker."""

from __future__ import annotations

from pubsub_broker.domain.metrics import QueueMetrics, ServerMetrics
from pubsub_broker.domain.models import (
    Message,
    Payload,
    Queue,
    QueueStats,
    ReceiveResult,
    Topic,
    VisibilityState,
)
from pubsub_broker.domain.notifications import (
    ChangeEvent,
    Notification,
    NotificationPayload,
    NotificationStatus,
    ResumeToken,
    notification_id,
)

__all__ = [
    "ChangeEvent",
    "Message",
    "Notification",
    "NotificationPayload",
    "NotificationStatus",
    "Payload",
    "Queue",
    "QueueMetrics",
    "QueueStats",
    "ReceiveResult",
    "ResumeToken",
    "ServerMetrics",
    "Topic",
    "VisibilityState",
    "notification_id",
]
