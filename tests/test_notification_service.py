"""End to end: broker mutations flow through the change feed into pushes."""

from __future__ import annotations

import pytest

from pubsub_broker.adapters.memory import (
    InMemoryChangeFeed,
    InMemoryMessageRepository,
    InMemoryMetricsRepository,
    InMemoryNotificationRepository,
    InMemoryQueueRepository,
    InMemoryResumePositionStore,
    InMemoryTopicRepository,
)
from pubsub_broker.bootstrap import build_broker, build_notification_service
from pubsub_broker.config import BrokerConfig
from pubsub_broker.domain.notifications import NotificationStatus
from pubsub_broker.exceptions import NotificationProcessingError

from .conftest import OWNER, wait_until

ENDPOINT = "https://hooks.example.test/orders"


class RecordingSender:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.pushes = []

    async def push(self, endpoint, notification, queue, message) -> None:
        if self.fail:
            raise NotificationProcessingError(f"push to {endpoint} answered HTTP 503")
        self.pushes.append((endpoint, notification.id, queue.id, message.id))


class System:
    def __init__(self, clock, sender: RecordingSender) -> None:
        self.feed = InMemoryChangeFeed()
        self.queues = InMemoryQueueRepository(self.feed)
        self.notifications = InMemoryNotificationRepository()
        config = BrokerConfig(feed_restart_delay=0.01, close_timeout=1.0)
        self.broker = build_broker(
            queue_repository=self.queues,
            message_repository=InMemoryMessageRepository(self.feed),
            topic_repository=InMemoryTopicRepository(),
            metrics_repository=InMemoryMetricsRepository(),
            config=config,
            clock=clock,
            with_reaper=False,
        )
        self.service = build_notification_service(
            change_feed=self.feed,
            notification_repository=self.notifications,
            position_store=InMemoryResumePositionStore(),
            queue_repository=self.queues,
            config=config,
            push_sender=sender,
            clock=clock,
        )

    async def start(self) -> None:
        await self.service.initialize()
        await wait_until(
            lambda: self.feed.open_streams("messages") == 1
            and self.feed.open_streams("queues") == 1
        )

    def events(self) -> list[str]:
        return [n.event for n in self.notifications.all()]


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
async def system(clock, sender):
    s = System(clock, sender)
    await s.start()
    yield s
    await s.service.close()


@pytest.mark.asyncio
async def test_sent_message_is_pushed_to_queue_endpoint(system, sender):
    queue = await system.broker.create_queue("orders", caller_id=OWNER, push_endpoint=ENDPOINT)
    message = await system.broker.send(queue.id, {"order": 42}, caller_id=OWNER)

    await wait_until(lambda: len(sender.pushes) == 1 and len(system.notifications) == 2)
    await system.service.dispatcher.drain()

    endpoint, notification_id, queue_id, message_id = sender.pushes[0]
    assert (endpoint, queue_id, message_id) == (ENDPOINT, queue.id, message.id)
    recorded = await system.notifications.get(notification_id)
    assert recorded.status is NotificationStatus.COMPLETED
    assert sorted(system.events()) == ["message.created", "queue.created"]


@pytest.mark.asyncio
async def test_lifecycle_changes_become_notifications(system, sender):
    queue = await system.broker.create_queue("orders", caller_id=OWNER)
    message = await system.broker.send(queue.id, {"order": 42}, caller_id=OWNER)
    await system.broker.receive(queue.id, caller_id=OWNER)
    await system.broker.delete_message(queue.id, message.id, caller_id=OWNER)

    await wait_until(lambda: len(system.notifications) == 4)
    await system.service.dispatcher.drain()

    message_events = [
        n.event for n in system.notifications.all() if n.collection_name == "messages"
    ]
    assert message_events == ["message.created", "message.updated", "message.deleted"]
    assert all(n.status is NotificationStatus.COMPLETED for n in system.notifications.all())
    assert sender.pushes == []


@pytest.mark.asyncio
async def test_failed_push_is_recorded(clock):
    system = System(clock, RecordingSender(fail=True))
    await system.start()
    try:
        queue = await system.broker.create_queue(
            "orders", caller_id=OWNER, push_endpoint=ENDPOINT
        )
        await system.broker.send(queue.id, {"order": 42}, caller_id=OWNER)
        await wait_until(lambda: len(system.notifications) == 2)
        await system.service.dispatcher.drain()

        (failed,) = await system.service.dispatcher.list_failed()
        assert failed.event == "message.created"
        assert failed.attempts == 1
        assert "HTTP 503" in failed.error
    finally:
        await system.service.close()


@pytest.mark.asyncio
async def test_close_stops_capture(system):
    await system.service.close()

    assert not system.service.capture.running
    assert system.feed.open_streams("messages") == 0
    assert system.feed.open_streams("queues") == 0
