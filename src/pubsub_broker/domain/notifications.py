"""Change events, resume tokens and notification records."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from bson import json_util
from pydantic import Field

from ..utils import utcnow
from .models import DocumentModel, UtcDatetime

_NOTIFICATION_NAMESPACE = uuid.UUID("5d3c9a8e-2f41-4c8b-9e1a-6b7f0d2c4a11")


@dataclass(frozen=True, order=True)
class ResumeToken:
    """Opaque, ordered, serializable change feed position."""

    data: str

    def to_document(self) -> dict[str, str]:
        return {"_data": self.data}

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> ResumeToken:
        return cls(str(document["_data"]))

    def __str__(self) -> str:
        return self.data


@dataclass(frozen=True)
class ChangeEvent:
    """One mutation observed on a watched collection."""

    collection: str
    operation_type: str
    document_id: str
    resume_token: ResumeToken
    full_document: dict[str, Any] | None = None
    update_description: dict[str, Any] | None = None
    observed_at: datetime = field(default_factory=utcnow)


class NotificationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (NotificationStatus.COMPLETED, NotificationStatus.FAILED)


class NotificationPayload(DocumentModel):
    full_document: dict[str, Any] | None = None
    update_description: dict[str, Any] | None = None
    resume_token: str


def notification_id(collection: str, token: ResumeToken) -> str:
    """Stable id, so re-observing a change maps onto the same record."""
    return str(uuid.uuid5(_NOTIFICATION_NAMESPACE, f"{collection}:{token.data}"))


def _jsonable(value: Any) -> Any:
    # Store snapshots may carry BSON types (ObjectId, Binary, dates).
    return json.loads(json_util.dumps(value))


class Notification(DocumentModel):
    id: str
    event: str
    document_id: str
    collection_name: str
    operation_type: str
    payload: NotificationPayload
    status: NotificationStatus = NotificationStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    processed_at: UtcDatetime | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @classmethod
    def from_change(cls, change: ChangeEvent, event: str) -> Notification:
        return cls(
            id=notification_id(change.collection, change.resume_token),
            event=event,
            document_id=change.document_id,
            collection_name=change.collection,
            operation_type=change.operation_type,
            payload=NotificationPayload(
                full_document=change.full_document,
                update_description=change.update_description,
                resume_token=change.resume_token.data,
            ),
        )

    @property
    def resume_token(self) -> ResumeToken:
        return ResumeToken(self.payload.resume_token)

    def to_public(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"payload"})
        data["payload"] = {
            "fullDocument": _jsonable(self.payload.full_document),
            "updateDescription": _jsonable(self.payload.update_description),
            "resumeToken": self.payload.resume_token,
        }
        return data
