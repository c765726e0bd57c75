"""Storage protocols for queues, messages, topics and counters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..domain.metrics import QueueMetrics, ServerMetrics
    from ..domain.models import Message, Queue, Topic, VisibilityState


@runtime_checkable
class IQueueRepository(Protocol):
    async def add(self, queue: Queue) -> Queue:
        """Persist a new queue.

        Raises:
            QueueNameConflictError: the owner already has a queue with this name.
        """
        ...

    async def get(self, queue_id: str) -> Queue | None: ...

    async def list_by_owner(self, owner_id: str, name: str | None = None) -> list[Queue]: ...

    async def list_by_ids(self, queue_ids: list[str]) -> list[Queue]:
        """Return the queues that still exist, in the order of ``queue_ids``."""
        ...

    async def delete(self, queue_id: str) -> bool:
        """Remove a queue; False when it did not exist."""
        ...


@runtime_checkable
class IMessageRepository(Protocol):
    """
    Message storage with the visibility state machine.

    ``claim_next`` is the one compare-and-swap operation of the broker: it must
    select and transition a message in a single atomic store operation so that
    exactly one caller receives it.
    """

    async def add(self, message: Message) -> Message: ...

    async def claim_next(
        self,
        queue_id: str,
        now: datetime,
        visible_at: datetime,
    ) -> Message | None:
        """Atomically move the oldest eligible message to in-flight.

        Eligible means not expired at ``now`` and either available or in-flight
        with ``visible_at <= now``. The claimed message gets ``visible_at`` and
        ``received_count + 1``. Returns the post-update snapshot.
        """
        ...

    async def get(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        """Return the message unless it is absent or expired at ``now``."""
        ...

    async def delete(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        """Atomically remove a non-expired message; returns what was removed."""
        ...

    async def find_expired(self, now: datetime, limit: int) -> list[str]: ...

    async def delete_expired(self, message_id: str, now: datetime) -> Message | None:
        """Atomically remove the message if it is still expired at ``now``."""
        ...

    async def delete_by_queue(self, queue_id: str) -> int: ...

    async def count(
        self,
        queue_id: str,
        now: datetime,
        state: VisibilityState | None = None,
    ) -> int:
        """Count non-expired messages, optionally by effective visibility state."""
        ...

    async def oldest_created_at(self, queue_id: str, now: datetime) -> datetime | None: ...


@runtime_checkable
class ITopicRepository(Protocol):
    async def add(self, topic: Topic) -> Topic: ...

    async def get(self, topic_id: str) -> Topic | None: ...

    async def list_by_owner(self, owner_id: str) -> list[Topic]: ...

    async def delete(self, topic_id: str) -> bool: ...

    async def add_subscription(self, topic_id: str, queue_id: str) -> Topic | None:
        """Append ``queue_id`` only if absent, in one conditional update.

        Returns the updated topic, or None when the topic does not exist or the
        queue was already subscribed.
        """
        ...

    async def remove_subscription(self, topic_id: str, queue_id: str) -> Topic | None: ...

    async def remove_queue(self, queue_id: str) -> int:
        """Remove ``queue_id`` from every topic; returns topics modified."""
        ...


@runtime_checkable
class IMetricsRepository(Protocol):
    """Counters updated with atomic increments, never read-modify-write."""

    async def increment_queue(self, queue_id: str, **deltas: int) -> None: ...

    async def get_queue(self, queue_id: str) -> QueueMetrics | None: ...

    async def list_queues(self, queue_ids: list[str]) -> list[QueueMetrics]: ...

    async def delete_queue(self, queue_id: str) -> None: ...

    async def increment_server(self, **deltas: float) -> None: ...

    async def get_server(self) -> ServerMetrics: ...
