"""Broker: the facade the HTTP layer talks to."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import BrokerClosedError
from .services.access import require_caller

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .domain.metrics import QueueMetrics, ServerMetrics
    from .domain.models import Message, Queue, QueueStats, ReceiveResult, Topic
    from .services import (
        MessageReaper,
        MessageStore,
        MetricsAggregator,
        QueueRegistry,
        TopicRouter,
    )

logger = logging.getLogger(__name__)


class Broker:
    """
    Queues, messages, topics and metrics behind one object.

    Every operation takes the caller's identity explicitly and fails with
    ``BrokerClosedError`` once ``close()`` has begun. The reaper, when given,
    runs between ``open()`` and ``close()``.
    """

    def __init__(
        self,
        *,
        queues: QueueRegistry,
        messages: MessageStore,
        topics: TopicRouter,
        metrics: MetricsAggregator,
        reaper: MessageReaper | None = None,
        on_open: Callable[[], Awaitable[object]] | None = None,
        on_close: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.queues = queues
        self.messages = messages
        self.topics = topics
        self.metrics = metrics
        self.reaper = reaper
        self._on_open = on_open
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> Broker:
        if self._closed:
            raise BrokerClosedError("Broker has been closed")
        if self._on_open is not None:
            await self._on_open()
        if self.reaper is not None:
            await self.reaper.start()
        logger.info("Broker opened")
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.reaper is not None:
            await self.reaper.stop()
        if self._on_close is not None:
            await self._on_close()
        logger.info("Broker closed")

    async def __aenter__(self) -> Broker:
        return await self.open()

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise BrokerClosedError("Broker is shutting down")

    # ── Queues ───────────────────────────────────────────────────

    async def create_queue(
        self,
        name: str,
        *,
        caller_id: str,
        retention_period: int | None = None,
        schema: dict[str, Any] | None = None,
        push_endpoint: str | None = None,
    ) -> Queue:
        self._ensure_open()
        return await self.queues.create(
            name,
            owner_id=caller_id,
            retention_period=retention_period,
            schema=schema,
            push_endpoint=push_endpoint,
        )

    async def get_queue(self, queue_id: str, *, caller_id: str) -> Queue:
        self._ensure_open()
        return await self.queues.get_owned(queue_id, require_caller(caller_id))

    async def list_queues(self, *, caller_id: str, name: str | None = None) -> list[Queue]:
        self._ensure_open()
        return await self.queues.list_for_owner(caller_id, name)

    async def delete_queue(self, queue_id: str, *, caller_id: str) -> None:
        """Delete a queue together with its subscriptions, messages and metrics."""
        self._ensure_open()
        await self.queues.delete(queue_id, caller_id=caller_id)
        await self.topics.detach_queue(queue_id)
        await self.messages.purge_queue(queue_id)
        await self.metrics.forget_queue(queue_id)

    # ── Messages ─────────────────────────────────────────────────

    async def send(self, queue_id: str, data: Any, *, caller_id: str) -> Message:
        self._ensure_open()
        return await self.messages.send(queue_id, data, caller_id=caller_id)

    async def receive(
        self,
        queue_id: str,
        *,
        caller_id: str,
        max_messages: int | None = None,
        visibility_timeout: int | None = None,
    ) -> ReceiveResult:
        self._ensure_open()
        return await self.messages.receive(
            queue_id,
            caller_id=caller_id,
            max_messages=max_messages,
            visibility_timeout=visibility_timeout,
        )

    async def delete_message(self, queue_id: str, message_id: str, *, caller_id: str) -> None:
        self._ensure_open()
        await self.messages.delete(queue_id, message_id, caller_id=caller_id)

    async def get_message(self, queue_id: str, message_id: str, *, caller_id: str) -> Message:
        self._ensure_open()
        return await self.messages.get(queue_id, message_id, caller_id=caller_id)

    async def queue_stats(self, queue_id: str, *, caller_id: str) -> QueueStats:
        self._ensure_open()
        return await self.messages.stats(queue_id, caller_id=caller_id)

    # ── Topics ───────────────────────────────────────────────────

    async def create_topic(self, name: str, *, caller_id: str) -> Topic:
        self._ensure_open()
        return await self.topics.create_topic(name, owner_id=caller_id)

    async def get_topic(self, topic_id: str, *, caller_id: str) -> Topic:
        self._ensure_open()
        return await self.topics.get_topic(topic_id, caller_id=caller_id)

    async def list_topics(self, *, caller_id: str) -> list[Topic]:
        self._ensure_open()
        return await self.topics.list_topics(owner_id=caller_id)

    async def delete_topic(self, topic_id: str, *, caller_id: str) -> None:
        self._ensure_open()
        await self.topics.delete_topic(topic_id, caller_id=caller_id)

    async def subscribe(self, topic_id: str, queue_id: str, *, caller_id: str) -> Topic:
        self._ensure_open()
        return await self.topics.subscribe(topic_id, queue_id, caller_id=caller_id)

    async def unsubscribe(self, topic_id: str, queue_id: str, *, caller_id: str) -> Topic:
        self._ensure_open()
        return await self.topics.unsubscribe(topic_id, queue_id, caller_id=caller_id)

    async def publish(self, topic_id: str, data: Any, *, caller_id: str) -> list[Message]:
        self._ensure_open()
        return await self.topics.publish(topic_id, data, caller_id=caller_id)

    # ── Metrics ──────────────────────────────────────────────────

    async def queue_metrics(self, queue_id: str, *, caller_id: str) -> QueueMetrics:
        self._ensure_open()
        await self.queues.get_owned(queue_id, require_caller(caller_id))
        return await self.metrics.queue_snapshot(queue_id)

    async def owner_metrics(self, *, caller_id: str) -> list[QueueMetrics]:
        self._ensure_open()
        queues = await self.queues.list_for_owner(caller_id)
        return await self.metrics.queue_snapshots([q.id for q in queues])

    async def server_metrics(self) -> ServerMetrics:
        self._ensure_open()
        return await self.metrics.server_snapshot()
