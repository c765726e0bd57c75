"""MetricsAggregator: per-queue and server-wide counters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..domain.metrics import QueueMetrics
from ..instrumentation import ACTIVE_CONNECTIONS, MESSAGES, REQUEST_DURATION, REQUESTS

if TYPE_CHECKING:
    from ..domain.metrics import ServerMetrics
    from ..ports.repositories import IMetricsRepository

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Counter bookkeeping over an ``IMetricsRepository``.

    Each ``record_*`` call is one atomic increment in the store. Counters are
    updated after the message operation they describe, so a crash in between
    can leave them short by that one event.
    """

    def __init__(self, repository: IMetricsRepository) -> None:
        self._repository = repository

    # ── Per queue ────────────────────────────────────────────────

    async def record_sent(self, queue_id: str) -> None:
        await self._repository.increment_queue(queue_id, message_count=1, messages_sent=1)
        MESSAGES.labels(operation="sent").inc()

    async def record_first_receive(self, queue_id: str) -> None:
        """Count a message the first time it is received, never again."""
        await self._repository.increment_queue(queue_id, messages_received=1)
        MESSAGES.labels(operation="received").inc()

    async def record_removed(
        self, queue_id: str, count: int = 1, *, operation: str = "removed"
    ) -> None:
        """Take messages off the live count; ``operation="reaped"`` for expiry."""
        if count <= 0:
            return
        await self._repository.increment_queue(queue_id, message_count=-count)
        MESSAGES.labels(operation=operation).inc(count)

    async def queue_snapshot(self, queue_id: str) -> QueueMetrics:
        snapshot = await self._repository.get_queue(queue_id)
        return snapshot or QueueMetrics(queue_id=queue_id)

    async def queue_snapshots(self, queue_ids: list[str]) -> list[QueueMetrics]:
        """Snapshots for ``queue_ids`` in order; queues without activity read as zero."""
        found = {m.queue_id: m for m in await self._repository.list_queues(queue_ids)}
        return [found.get(qid) or QueueMetrics(queue_id=qid) for qid in queue_ids]

    async def forget_queue(self, queue_id: str) -> None:
        await self._repository.delete_queue(queue_id)
        logger.debug("Dropped metrics of queue %s", queue_id)

    # ── Server wide ──────────────────────────────────────────────

    async def record_request(self, duration_ms: float, *, error: bool = False) -> None:
        deltas: dict[str, float] = {"total_requests": 1, "total_response_time_ms": duration_ms}
        if error:
            deltas["error_count"] = 1
        await self._repository.increment_server(**deltas)
        REQUESTS.labels(outcome="error" if error else "success").inc()
        REQUEST_DURATION.observe(duration_ms / 1000.0)

    async def connection_opened(self) -> None:
        await self._repository.increment_server(active_connections=1)
        ACTIVE_CONNECTIONS.inc()

    async def connection_closed(self) -> None:
        await self._repository.increment_server(active_connections=-1)
        ACTIVE_CONNECTIONS.dec()

    async def record_processed(self, count: int = 1) -> None:
        await self._repository.increment_server(messages_processed=count)

    async def server_snapshot(self) -> ServerMetrics:
        return await self._repository.get_server()
