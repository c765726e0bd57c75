"""InMemoryQueueRepository: dict-backed fake for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...domain.models import Queue
from ...exceptions import QueueNameConflictError
from ...ports.repositories import IQueueRepository

if TYPE_CHECKING:
    from .change_feed import InMemoryChangeFeed


class InMemoryQueueRepository(IQueueRepository):
    """In-memory implementation of ``IQueueRepository``.

    When a change feed is given, inserts and deletes are published to it
    under the ``queues`` collection.
    """

    COLLECTION = "queues"

    def __init__(self, change_feed: InMemoryChangeFeed | None = None) -> None:
        self._queues: dict[str, Queue] = {}
        self._change_feed = change_feed

    async def add(self, queue: Queue) -> Queue:
        for existing in self._queues.values():
            if existing.owner_id == queue.owner_id and existing.name == queue.name:
                raise QueueNameConflictError(queue.owner_id, queue.name)
        self._queues[queue.id] = queue
        if self._change_feed is not None:
            self._change_feed.emit(self.COLLECTION, "insert", queue.id, queue.model_dump())
        return queue

    async def get(self, queue_id: str) -> Queue | None:
        return self._queues.get(queue_id)

    async def list_by_owner(self, owner_id: str, name: str | None = None) -> list[Queue]:
        return [
            q
            for q in self._queues.values()
            if q.owner_id == owner_id and (name is None or q.name == name)
        ]

    async def list_by_ids(self, queue_ids: list[str]) -> list[Queue]:
        return [self._queues[qid] for qid in queue_ids if qid in self._queues]

    async def delete(self, queue_id: str) -> bool:
        removed = self._queues.pop(queue_id, None)
        if removed is None:
            return False
        if self._change_feed is not None:
            self._change_feed.emit(self.COLLECTION, "delete", queue_id)
        return True

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._queues.clear()

    def __len__(self) -> int:
        return len(self._queues)
