"""TopicRouter: topics, subscriptions and publish fan-out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.models import Topic
from ..exceptions import (
    AccessDeniedError,
    AlreadySubscribedError,
    BrokerError,
    NoSubscribersError,
    PartialPublishError,
    TopicNotFoundError,
)
from .access import require_caller, require_name
from .message_store import to_payload

if TYPE_CHECKING:
    from ..domain.models import Message
    from ..ports.repositories import ITopicRepository
    from .message_store import MessageStore
    from .queue_registry import QueueRegistry

logger = logging.getLogger(__name__)


class TopicRouter:
    def __init__(
        self,
        repository: ITopicRepository,
        queues: QueueRegistry,
        messages: MessageStore,
    ) -> None:
        self._repository = repository
        self._queues = queues
        self._messages = messages

    async def create_topic(self, name: str, *, owner_id: str) -> Topic:
        topic = await self._repository.add(
            Topic(name=require_name(name), owner_id=require_caller(owner_id))
        )
        logger.info("Created topic %s (%r)", topic.id, topic.name)
        return topic

    async def _get(self, topic_id: str) -> Topic:
        topic = await self._repository.get(topic_id)
        if topic is None:
            raise TopicNotFoundError(topic_id)
        return topic

    async def get_topic(self, topic_id: str, *, caller_id: str) -> Topic:
        caller_id = require_caller(caller_id)
        topic = await self._get(topic_id)
        self.require_owner(topic, caller_id)
        return topic

    async def list_topics(self, *, owner_id: str) -> list[Topic]:
        return await self._repository.list_by_owner(require_caller(owner_id))

    async def delete_topic(self, topic_id: str, *, caller_id: str) -> None:
        await self.get_topic(topic_id, caller_id=caller_id)
        if not await self._repository.delete(topic_id):
            raise TopicNotFoundError(topic_id)
        logger.info("Deleted topic %s", topic_id)

    async def subscribe(self, topic_id: str, queue_id: str, *, caller_id: str) -> Topic:
        caller_id = require_caller(caller_id)
        topic = await self.get_topic(topic_id, caller_id=caller_id)
        await self._queues.get_owned(queue_id, caller_id)
        if queue_id in topic.subscribed_queues:
            raise AlreadySubscribedError(topic_id, queue_id)

        updated = await self._repository.add_subscription(topic_id, queue_id)
        if updated is None:
            # Lost the race: either another subscribe won or the topic is gone.
            await self._get(topic_id)
            raise AlreadySubscribedError(topic_id, queue_id)
        logger.info("Subscribed queue %s to topic %s", queue_id, topic_id)
        return updated

    async def unsubscribe(self, topic_id: str, queue_id: str, *, caller_id: str) -> Topic:
        await self.get_topic(topic_id, caller_id=caller_id)
        updated = await self._repository.remove_subscription(topic_id, queue_id)
        if updated is None:
            raise TopicNotFoundError(topic_id)
        return updated

    async def detach_queue(self, queue_id: str) -> int:
        """Remove a deleted queue from every topic it was subscribed to."""
        modified = await self._repository.remove_queue(queue_id)
        if modified:
            logger.info("Detached queue %s from %d topic(s)", queue_id, modified)
        return modified

    async def publish(self, topic_id: str, data: Any, *, caller_id: str) -> list[Message]:
        """Deliver ``data`` once to every subscribed queue.

        Best effort: a failing queue does not stop the others. When any
        delivery failed, ``PartialPublishError`` is raised after all queues were
        attempted and carries the messages that were created.
        """
        payload = to_payload(data)
        topic = await self.get_topic(topic_id, caller_id=caller_id)
        if not topic.subscribed_queues:
            raise NoSubscribersError(topic_id)

        queues = await self._queues.get_many(list(topic.subscribed_queues))
        live = {q.id for q in queues}
        for missing in (qid for qid in topic.subscribed_queues if qid not in live):
            logger.warning("Topic %s: skipping deleted queue %s", topic_id, missing)
        if not queues:
            raise NoSubscribersError(topic_id)

        messages: list[Message] = []
        failures: dict[str, Exception] = {}
        for queue in queues:
            try:
                messages.append(await self._messages.deliver(queue, payload))
            except BrokerError as e:
                logger.error(
                    "Topic %s: delivery to queue %s failed: %s", topic_id, queue.id, e
                )
                failures[queue.id] = e

        if failures:
            raise PartialPublishError(topic_id, messages, failures)
        logger.debug("Published to topic %s: %d message(s)", topic_id, len(messages))
        return messages

    @staticmethod
    def is_owner(topic: Topic, owner_id: str) -> bool:
        return topic.owner_id == owner_id

    def require_owner(self, topic: Topic, owner_id: str) -> None:
        if not self.is_owner(topic, owner_id):
            raise AccessDeniedError("Topic", topic.id, owner_id)
