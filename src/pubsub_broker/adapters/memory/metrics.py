"""InMemoryMetricsRepository: counter dicts for unit tests."""

from __future__ import annotations

from collections import Counter, defaultdict

from ...domain.metrics import QueueMetrics, ServerMetrics
from ...ports.repositories import IMetricsRepository
from ...utils import utcnow


class InMemoryMetricsRepository(IMetricsRepository):
    def __init__(self) -> None:
        self._queues: dict[str, Counter[str]] = defaultdict(Counter)
        self._server: dict[str, float] = defaultdict(float)
        self._start_time = utcnow()

    async def increment_queue(self, queue_id: str, **deltas: int) -> None:
        self._queues[queue_id].update(deltas)

    def _snapshot(self, queue_id: str) -> QueueMetrics:
        counters = self._queues[queue_id]
        return QueueMetrics(
            queue_id=queue_id,
            message_count=counters["message_count"],
            messages_sent=counters["messages_sent"],
            messages_received=counters["messages_received"],
        )

    async def get_queue(self, queue_id: str) -> QueueMetrics | None:
        if queue_id not in self._queues:
            return None
        return self._snapshot(queue_id)

    async def list_queues(self, queue_ids: list[str]) -> list[QueueMetrics]:
        return [self._snapshot(qid) for qid in queue_ids if qid in self._queues]

    async def delete_queue(self, queue_id: str) -> None:
        self._queues.pop(queue_id, None)

    async def increment_server(self, **deltas: float) -> None:
        for key, value in deltas.items():
            self._server[key] += value

    async def get_server(self) -> ServerMetrics:
        return ServerMetrics(
            start_time=self._start_time,
            total_requests=int(self._server["total_requests"]),
            active_connections=int(self._server["active_connections"]),
            messages_processed=int(self._server["messages_processed"]),
            error_count=int(self._server["error_count"]),
            total_response_time_ms=self._server["total_response_time_ms"],
        )
