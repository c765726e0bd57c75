"""Webhook push sender and the message.created push handler."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from pubsub_broker.adapters.memory import InMemoryQueueRepository
from pubsub_broker.domain.models import Message, Payload, Queue
from pubsub_broker.domain.notifications import ChangeEvent, Notification, ResumeToken
from pubsub_broker.exceptions import NotificationProcessingError
from pubsub_broker.notifications import (
    PushNotificationHandler,
    WebhookPushSender,
    verify_signature,
)
from pubsub_broker.notifications.webhook import calculate_signature

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
ENDPOINT = "https://hooks.example.test/orders"


def make_queue(push_endpoint: str | None = ENDPOINT) -> Queue:
    return Queue(
        name="orders",
        owner_id="user-1",
        retention_period=7,
        push_endpoint=push_endpoint,
    )


def make_message(queue: Queue) -> Message:
    return Message.create(queue, Payload.from_value({"order": 42}), NOW)


def make_notification(message: Message | None, document_id: str = "m1") -> Notification:
    change = ChangeEvent(
        collection="messages",
        operation_type="insert",
        document_id=message.id if message else document_id,
        resume_token=ResumeToken("00000000000000000001"),
        full_document=message.model_dump() if message else None,
    )
    return Notification.from_change(change, "message.created")


class RecordingSender:
    def __init__(self) -> None:
        self.pushes: list[tuple[str, Notification, Queue, Message]] = []

    async def push(self, endpoint, notification, queue, message) -> None:
        self.pushes.append((endpoint, notification, queue, message))


def test_signature_roundtrip():
    body = b'{"a":1}'
    signature = calculate_signature(body, "s3cret")

    assert signature.startswith("sha256=")
    assert verify_signature(body, signature, "s3cret")
    assert not verify_signature(body + b" ", signature, "s3cret")
    assert not verify_signature(body, signature, "other")


@pytest.mark.asyncio
async def test_push_posts_signed_body():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202)

    queue = make_queue()
    message = make_message(queue)
    notification = make_notification(message)
    sender = WebhookPushSender(secret="s3cret", transport=httpx.MockTransport(handler))

    await sender.push(ENDPOINT, notification, queue, message)

    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == ENDPOINT
    assert request.headers["X-Notification-ID"] == notification.id
    assert verify_signature(request.content, request.headers["X-Webhook-Signature"], "s3cret")
    body = json.loads(request.content)
    assert body["event"] == "message.created"
    assert body["queueId"] == queue.id
    assert body["message"]["id"] == message.id
    assert body["message"]["data"] == {"contentType": "application/json", "value": {"order": 42}}


@pytest.mark.asyncio
async def test_push_without_secret_is_unsigned():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    queue = make_queue()
    message = make_message(queue)
    sender = WebhookPushSender(transport=httpx.MockTransport(handler))

    await sender.push(ENDPOINT, make_notification(message), queue, message)

    assert "X-Webhook-Signature" not in requests[0].headers


@pytest.mark.asyncio
async def test_push_rejected_by_endpoint_raises():
    queue = make_queue()
    message = make_message(queue)
    sender = WebhookPushSender(transport=httpx.MockTransport(lambda r: httpx.Response(500)))

    with pytest.raises(NotificationProcessingError, match="HTTP 500"):
        await sender.push(ENDPOINT, make_notification(message), queue, message)


@pytest.mark.asyncio
async def test_push_network_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    queue = make_queue()
    message = make_message(queue)
    sender = WebhookPushSender(transport=httpx.MockTransport(handler))

    with pytest.raises(NotificationProcessingError, match="failed"):
        await sender.push(ENDPOINT, make_notification(message), queue, message)


@pytest.mark.asyncio
async def test_handler_pushes_to_queue_endpoint():
    queues = InMemoryQueueRepository()
    queue = await queues.add(make_queue())
    message = make_message(queue)
    sender = RecordingSender()

    await PushNotificationHandler(queues, sender)(make_notification(message))

    ((endpoint, _, pushed_queue, pushed_message),) = sender.pushes
    assert endpoint == ENDPOINT
    assert pushed_queue.id == queue.id
    assert pushed_message == message


@pytest.mark.asyncio
async def test_handler_skips_queue_without_endpoint_or_gone():
    queues = InMemoryQueueRepository()
    silent = await queues.add(make_queue(push_endpoint=None))
    vanished = make_queue()
    sender = RecordingSender()
    handler = PushNotificationHandler(queues, sender)

    await handler(make_notification(make_message(silent)))
    await handler(make_notification(make_message(vanished)))
    await handler(make_notification(None))

    assert sender.pushes == []


@pytest.mark.asyncio
async def test_handler_rejects_unreadable_document():
    queues = InMemoryQueueRepository()
    queue = await queues.add(make_queue())
    change = ChangeEvent(
        collection="messages",
        operation_type="insert",
        document_id="m1",
        resume_token=ResumeToken("00000000000000000001"),
        full_document={"queue_id": queue.id, "data": "not a payload"},
    )

    with pytest.raises(NotificationProcessingError):
        await PushNotificationHandler(queues, RecordingSender())(
            Notification.from_change(change, "message.created")
        )
