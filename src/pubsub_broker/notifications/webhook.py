"""Webhook push for queues with a ``push_endpoint``."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..domain.models import Message
from ..exceptions import NotificationProcessingError
from ..ports.notifications import IPushSender

if TYPE_CHECKING:
    from ..domain.models import Queue
    from ..domain.notifications import Notification
    from ..ports.repositories import IQueueRepository

logger = logging.getLogger(__name__)


def calculate_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """
    Verify webhook signature using constant-time comparison.

    Use this in webhook receivers to authenticate incoming pushes.
    """
    return hmac.compare_digest(calculate_signature(body, secret), signature)


class WebhookPushSender(IPushSender):
    """
    HTTP POST push with HMAC-SHA256 signature.

    The signature covers the exact request body. ``X-Notification-ID`` lets
    receivers drop repeated deliveries of the same notification.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        secret: str | None = None,
        user_agent: str = "pubsub-broker/0.1.0",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.secret = secret
        self.user_agent = user_agent
        self._transport = transport

    @staticmethod
    def build_payload(notification: Notification, queue: Queue, message: Message) -> dict[str, Any]:
        return {
            "event": notification.event,
            "notificationId": notification.id,
            "queueId": queue.id,
            "queueName": queue.name,
            "message": message.to_public(),
        }

    async def push(
        self,
        endpoint: str,
        notification: Notification,
        queue: Queue,
        message: Message,
    ) -> None:
        body = json.dumps(
            self.build_payload(notification, queue, message),
            separators=(",", ":"),
            sort_keys=True,
        ).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Notification-ID": notification.id,
        }
        if self.secret:
            headers["X-Webhook-Signature"] = calculate_signature(body, self.secret)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(endpoint, content=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationProcessingError(
                f"push to {endpoint} answered HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationProcessingError(f"push to {endpoint} failed: {e}") from e
        logger.info("Pushed message %s to %s", message.id, endpoint)


class PushNotificationHandler:
    """Handler for ``message.created``: pushes the message to its queue's endpoint."""

    def __init__(self, queues: IQueueRepository, sender: IPushSender) -> None:
        self._queues = queues
        self._sender = sender

    async def __call__(self, notification: Notification) -> None:
        document = notification.payload.full_document
        if not document:
            logger.debug("Notification %s has no document, nothing to push", notification.id)
            return
        queue_id = document.get("queue_id")
        queue = await self._queues.get(queue_id) if queue_id else None
        if queue is None:
            logger.info(
                "Queue %s of message %s no longer exists, push skipped",
                queue_id,
                notification.document_id,
            )
            return
        if not queue.push_endpoint:
            return

        fields = {k: v for k, v in document.items() if k != "_id"}
        fields["id"] = notification.document_id
        try:
            message = Message.model_validate(fields)
        except ValueError as e:
            raise NotificationProcessingError(
                f"cannot read message {notification.document_id}: {e}"
            ) from e
        await self._sender.push(queue.push_endpoint, notification, queue, message)
