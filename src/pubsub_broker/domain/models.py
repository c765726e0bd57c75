"""Queue, Message, Topic and the tagged Payload value."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..utils import ensure_utc, new_id, utcnow

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

JSON_CONTENT_TYPE = "application/json"


class DocumentModel(BaseModel):
    """Immutable record; snake_case in the store, camelCase in public JSON."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Payload(BaseModel):
    """Message body tagged with its content type.

    Raw bytes are kept as ``application/octet-stream``; structured values are
    carried as JSON bytes, so the broker never has to interpret them.
    """

    model_config = ConfigDict(frozen=True)

    content_type: str = JSON_CONTENT_TYPE
    body: bytes

    @classmethod
    def from_value(cls, value: Any) -> Payload:
        if isinstance(value, Payload):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.from_bytes(bytes(value))
        return cls(
            content_type=JSON_CONTENT_TYPE,
            body=json.dumps(value, separators=(",", ":")).encode("utf-8"),
        )

    @classmethod
    def from_bytes(cls, body: bytes, content_type: str = "application/octet-stream") -> Payload:
        return cls(content_type=content_type, body=body)

    @property
    def is_json(self) -> bool:
        return self.content_type.split(";")[0].strip().endswith("json")

    @property
    def is_text(self) -> bool:
        return self.content_type.startswith("text/")

    def decode(self) -> Any:
        if self.is_json:
            return json.loads(self.body)
        if self.is_text:
            return self.body.decode("utf-8")
        return self.body

    def to_public(self) -> dict[str, Any]:
        if self.is_json or self.is_text:
            return {"contentType": self.content_type, "value": self.decode()}
        return {
            "contentType": self.content_type,
            "encoding": "base64",
            "value": base64.b64encode(self.body).decode("ascii"),
        }


class VisibilityState(str, Enum):
    AVAILABLE = "available"
    IN_FLIGHT = "in_flight"


class Queue(DocumentModel):
    id: str = Field(default_factory=new_id)
    name: str
    owner_id: str
    retention_period: int = Field(ge=1)
    message_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    push_endpoint: str | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)


class Message(DocumentModel):
    id: str = Field(default_factory=new_id)
    queue_id: str
    data: Payload
    created_at: UtcDatetime
    expires_at: UtcDatetime
    visibility_state: VisibilityState = VisibilityState.AVAILABLE
    visible_at: UtcDatetime | None = None
    received_count: int = Field(default=0, ge=0)

    @classmethod
    def create(cls, queue: Queue, data: Payload, now: datetime) -> Message:
        """New available message whose expiry is frozen from the queue's retention."""
        return cls(
            queue_id=queue.id,
            data=data,
            created_at=now,
            expires_at=now + timedelta(days=queue.retention_period),
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_available(self, now: datetime) -> bool:
        if self.visibility_state is VisibilityState.AVAILABLE:
            return True
        return self.visible_at is not None and self.visible_at <= now

    def as_seen_at(self, now: datetime) -> Message:
        """Snapshot with an elapsed visibility timeout presented as available."""
        if self.visibility_state is VisibilityState.IN_FLIGHT and self.is_available(now):
            return self.model_copy(
                update={"visibility_state": VisibilityState.AVAILABLE, "visible_at": None}
            )
        return self

    def to_public(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"data"})
        data["data"] = self.data.to_public()
        return data


class Topic(DocumentModel):
    id: str = Field(default_factory=new_id)
    name: str
    owner_id: str
    subscribed_queues: tuple[str, ...] = ()
    created_at: UtcDatetime = Field(default_factory=utcnow)


class ReceiveResult(DocumentModel):
    messages: list[Message]
    visibility_timeout: int

    def to_public(self) -> dict[str, Any]:
        return {
            "messages": [m.to_public() for m in self.messages],
            "visibilityTimeout": self.visibility_timeout,
        }


class QueueStats(DocumentModel):
    """Live message counts for one queue."""

    queue_id: str
    total: int = 0
    available: int = 0
    in_flight: int = 0
    oldest_message_age: float = 0.0
