"""Shared helpers: identifiers and time."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from bson import ObjectId

Clock = Callable[[], datetime]


def new_id() -> str:
    """Return a new identifier that sorts in creation order within a process."""
    return str(ObjectId())


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision, matching what BSON dates can store."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    """Current UTC time, timezone-aware and millisecond precise."""
    return truncate_to_millis(datetime.now(timezone.utc))


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by the Mongo driver) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
