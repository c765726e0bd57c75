"""MessageStore: send, receive, delete and expiry of messages."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..domain.models import Message, Payload, QueueStats, ReceiveResult, VisibilityState
from ..exceptions import MessageNotFoundError, ValidationError
from ..utils import utcnow
from .access import require_caller

if TYPE_CHECKING:
    from ..domain.models import Queue
    from ..ports.repositories import IMessageRepository
    from ..utils import Clock
    from .metrics import MetricsAggregator
    from .queue_registry import QueueRegistry

logger = logging.getLogger(__name__)


def _positive_int(value: object, field: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError({field: [f"must be an integer >= {minimum}"]})
    return value


def to_payload(data: Any) -> Payload:
    """Tag message data: raw bytes as-is, anything else as JSON."""
    if data is None:
        raise ValidationError({"data": ["message data is required"]})
    try:
        return Payload.from_value(data)
    except (TypeError, ValueError) as e:
        raise ValidationError({"data": [f"must be bytes or JSON serializable: {e}"]}) from e


class MessageStore:
    """
    Message lifecycle over an ``IMessageRepository``.

    A message is available until received, then in flight until its
    visibility timeout elapses (it becomes receivable again) or it is deleted.
    Independently of that state, it is gone once ``expires_at`` is reached.

    All time reads go through ``clock`` so visibility and expiry can be driven
    deterministically.
    """

    def __init__(
        self,
        repository: IMessageRepository,
        queues: QueueRegistry,
        metrics: MetricsAggregator,
        *,
        default_visibility_timeout: int = 30,
        default_max_messages: int = 10,
        clock: Clock = utcnow,
    ) -> None:
        self._repository = repository
        self._queues = queues
        self._metrics = metrics
        self._default_visibility_timeout = _positive_int(
            default_visibility_timeout, "visibility_timeout", 0
        )
        self._default_max_messages = _positive_int(default_max_messages, "max_messages", 1)
        self._clock = clock

    async def send(self, queue_id: str, data: Any, *, caller_id: str) -> Message:
        caller_id = require_caller(caller_id)
        payload = to_payload(data)
        queue = await self._queues.get_owned(queue_id, caller_id)
        return await self.deliver(queue, payload)

    async def deliver(self, queue: Queue, data: Any) -> Message:
        """Create a message in an already resolved queue."""
        message = Message.create(queue, to_payload(data), self._clock())
        await self._repository.add(message)
        await self._metrics.record_sent(queue.id)
        logger.debug("Message %s sent to queue %s", message.id, queue.id)
        return message

    async def receive(
        self,
        queue_id: str,
        *,
        caller_id: str,
        max_messages: int | None = None,
        visibility_timeout: int | None = None,
    ) -> ReceiveResult:
        caller_id = require_caller(caller_id)
        limit = _positive_int(
            self._default_max_messages if max_messages is None else max_messages,
            "max_messages",
            1,
        )
        timeout = _positive_int(
            self._default_visibility_timeout if visibility_timeout is None else visibility_timeout,
            "visibility_timeout",
            0,
        )
        await self._queues.get_owned(queue_id, caller_id)

        now = self._clock()
        visible_at = now + timedelta(seconds=timeout)
        messages: list[Message] = []
        while len(messages) < limit:
            claimed = await self._repository.claim_next(queue_id, now, visible_at)
            if claimed is None:
                break
            if claimed.received_count == 1:
                await self._metrics.record_first_receive(queue_id)
            messages.append(claimed)

        if messages:
            logger.debug("Received %d message(s) from queue %s", len(messages), queue_id)
        return ReceiveResult(messages=messages, visibility_timeout=timeout)

    async def delete(self, queue_id: str, message_id: str, *, caller_id: str) -> None:
        caller_id = require_caller(caller_id)
        await self._queues.get_owned(queue_id, caller_id)
        removed = await self._repository.delete(queue_id, message_id, self._clock())
        if removed is None:
            raise MessageNotFoundError(message_id)
        await self._metrics.record_removed(queue_id)
        logger.debug("Message %s deleted from queue %s", message_id, queue_id)

    async def get(self, queue_id: str, message_id: str, *, caller_id: str) -> Message:
        caller_id = require_caller(caller_id)
        await self._queues.get_owned(queue_id, caller_id)
        now = self._clock()
        message = await self._repository.get(queue_id, message_id, now)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message.as_seen_at(now)

    async def stats(self, queue_id: str, *, caller_id: str) -> QueueStats:
        caller_id = require_caller(caller_id)
        await self._queues.get_owned(queue_id, caller_id)
        now = self._clock()
        total = await self._repository.count(queue_id, now)
        available = await self._repository.count(queue_id, now, VisibilityState.AVAILABLE)
        in_flight = await self._repository.count(queue_id, now, VisibilityState.IN_FLIGHT)
        oldest = await self._repository.oldest_created_at(queue_id, now)
        return QueueStats(
            queue_id=queue_id,
            total=total,
            available=available,
            in_flight=in_flight,
            oldest_message_age=(now - oldest).total_seconds() if oldest else 0.0,
        )

    async def reap_expired(self, batch_size: int = 500) -> int:
        """Remove up to ``batch_size`` expired messages, whatever their state."""
        now = self._clock()
        removed = 0
        for message_id in await self._repository.find_expired(now, batch_size):
            message = await self._repository.delete_expired(message_id, now)
            if message is None:
                # deleted by a consumer in the meantime
                continue
            await self._metrics.record_removed(message.queue_id, operation="reaped")
            removed += 1
        if removed:
            logger.info("Reaped %d expired message(s)", removed)
        return removed

    async def purge_queue(self, queue_id: str) -> int:
        purged = await self._repository.delete_by_queue(queue_id)
        logger.info("Purged %d message(s) of queue %s", purged, queue_id)
        return purged
