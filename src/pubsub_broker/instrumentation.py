"""Prometheus collectors shared by the broker and the notification service.

Emits:
  - ``pubsub_messages_total{operation}``: sent, received, removed (deleted by a
    consumer) and reaped (expired)
  - ``pubsub_requests_total{outcome}`` and ``pubsub_request_duration_seconds``
  - ``pubsub_active_connections``
  - ``pubsub_notifications_total{event, outcome}``
  - ``pubsub_change_feed_restarts_total{collection}``
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

MESSAGES = Counter(
    "pubsub_messages_total",
    "Message lifecycle transitions",
    ["operation"],
)
REQUESTS = Counter(
    "pubsub_requests_total",
    "Requests reported by the HTTP layer",
    ["outcome"],
)
REQUEST_DURATION = Histogram(
    "pubsub_request_duration_seconds",
    "Request duration reported by the HTTP layer",
)
ACTIVE_CONNECTIONS = Gauge(
    "pubsub_active_connections",
    "Open client connections",
)
NOTIFICATIONS = Counter(
    "pubsub_notifications_total",
    "Notifications by event and processing outcome",
    ["event", "outcome"],
)
FEED_RESTARTS = Counter(
    "pubsub_change_feed_restarts_total",
    "Change feed reattachments after an error",
    ["collection"],
)
