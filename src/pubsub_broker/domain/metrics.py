"""Counter snapshots for queues and the server."""

from __future__ import annotations

from pydantic import Field, computed_field

from ..utils import utcnow
from .models import DocumentModel, UtcDatetime


class QueueMetrics(DocumentModel):
    queue_id: str
    message_count: int = 0
    messages_sent: int = 0
    messages_received: int = 0
    updated_at: UtcDatetime | None = None


class ServerMetrics(DocumentModel):
    start_time: UtcDatetime = Field(default_factory=utcnow)
    total_requests: int = 0
    active_connections: int = 0
    messages_processed: int = 0
    error_count: int = 0
    total_response_time_ms: float = Field(default=0.0, exclude=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def avg_response_time(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return round(self.total_response_time_ms / self.total_requests, 3)
