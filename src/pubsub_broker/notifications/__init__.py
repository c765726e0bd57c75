"""Change capture and notification processing."""

from __future__ import annotations

from .change_capture import WATCHED_COLLECTIONS, ChangeCapture
from .dispatcher import NotificationDispatcher
from .events import EVENT_MAP, classify
from .webhook import PushNotificationHandler, WebhookPushSender, verify_signature

__all__ = [
    "EVENT_MAP",
    "WATCHED_COLLECTIONS",
    "ChangeCapture",
    "NotificationDispatcher",
    "PushNotificationHandler",
    "WebhookPushSender",
    "classify",
    "verify_signature",
]
