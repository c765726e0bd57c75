"""Event names derived from (collection, operation) pairs."""

from __future__ import annotations

MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
MESSAGE_DELETED = "message.deleted"
QUEUE_CREATED = "queue.created"
QUEUE_UPDATED = "queue.updated"

EVENT_MAP: dict[tuple[str, str], str] = {
    ("messages", "insert"): MESSAGE_CREATED,
    ("messages", "update"): MESSAGE_UPDATED,
    ("messages", "replace"): MESSAGE_UPDATED,
    ("messages", "delete"): MESSAGE_DELETED,
    ("queues", "insert"): QUEUE_CREATED,
    ("queues", "update"): QUEUE_UPDATED,
    ("queues", "replace"): QUEUE_UPDATED,
}


def classify(collection: str, operation_type: str) -> str:
    """Map a change onto its event name; unmapped pairs become ``collection.operation``."""
    return EVENT_MAP.get((collection, operation_type), f"{collection}.{operation_type}")
