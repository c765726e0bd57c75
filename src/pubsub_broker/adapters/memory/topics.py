"""InMemoryTopicRepository: dict-backed fake for unit tests."""

from __future__ import annotations

from ...domain.models import Topic
from ...ports.repositories import ITopicRepository


class InMemoryTopicRepository(ITopicRepository):
    def __init__(self) -> None:
        self._topics: dict[str, Topic] = {}

    async def add(self, topic: Topic) -> Topic:
        self._topics[topic.id] = topic
        return topic

    async def get(self, topic_id: str) -> Topic | None:
        return self._topics.get(topic_id)

    async def list_by_owner(self, owner_id: str) -> list[Topic]:
        return [t for t in self._topics.values() if t.owner_id == owner_id]

    async def delete(self, topic_id: str) -> bool:
        return self._topics.pop(topic_id, None) is not None

    async def add_subscription(self, topic_id: str, queue_id: str) -> Topic | None:
        topic = self._topics.get(topic_id)
        if topic is None or queue_id in topic.subscribed_queues:
            return None
        updated = topic.model_copy(
            update={"subscribed_queues": (*topic.subscribed_queues, queue_id)}
        )
        self._topics[topic_id] = updated
        return updated

    async def remove_subscription(self, topic_id: str, queue_id: str) -> Topic | None:
        topic = self._topics.get(topic_id)
        if topic is None:
            return None
        updated = topic.model_copy(
            update={
                "subscribed_queues": tuple(
                    q for q in topic.subscribed_queues if q != queue_id
                )
            }
        )
        self._topics[topic_id] = updated
        return updated

    async def remove_queue(self, queue_id: str) -> int:
        modified = 0
        for topic in list(self._topics.values()):
            if queue_id in topic.subscribed_queues:
                await self.remove_subscription(topic.id, queue_id)
                modified += 1
        return modified

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._topics.clear()
