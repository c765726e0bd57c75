"""MongoTopicRepository: subscriptions kept as an array on the topic."""

from __future__ import annotations

from pymongo import ReturnDocument

from ...domain.models import Topic
from ...ports.repositories import ITopicRepository
from .base import MongoCollection, store_errors
from .serialization import model_from_doc, model_to_doc


class MongoTopicRepository(MongoCollection, ITopicRepository):
    COLLECTION = "topics"

    async def add(self, topic: Topic) -> Topic:
        with store_errors():
            await self._collection().insert_one(model_to_doc(topic))
        return topic

    async def get(self, topic_id: str) -> Topic | None:
        with store_errors():
            doc = await self._collection().find_one({"_id": topic_id})
        return model_from_doc(Topic, doc) if doc else None

    async def list_by_owner(self, owner_id: str) -> list[Topic]:
        with store_errors():
            docs = (
                await self._collection()
                .find({"owner_id": owner_id})
                .sort("_id", 1)
                .to_list(length=None)
            )
        return [model_from_doc(Topic, d) for d in docs]

    async def delete(self, topic_id: str) -> bool:
        with store_errors():
            result = await self._collection().delete_one({"_id": topic_id})
        return bool(result.deleted_count)

    async def add_subscription(self, topic_id: str, queue_id: str) -> Topic | None:
        # The $ne guard makes check-and-append one conditional update.
        with store_errors():
            doc = await self._collection().find_one_and_update(
                {"_id": topic_id, "subscribed_queues": {"$ne": queue_id}},
                {"$push": {"subscribed_queues": queue_id}},
                return_document=ReturnDocument.AFTER,
            )
        return model_from_doc(Topic, doc) if doc else None

    async def remove_subscription(self, topic_id: str, queue_id: str) -> Topic | None:
        with store_errors():
            doc = await self._collection().find_one_and_update(
                {"_id": topic_id},
                {"$pull": {"subscribed_queues": queue_id}},
                return_document=ReturnDocument.AFTER,
            )
        return model_from_doc(Topic, doc) if doc else None

    async def remove_queue(self, queue_id: str) -> int:
        with store_errors():
            result = await self._collection().update_many(
                {"subscribed_queues": queue_id},
                {"$pull": {"subscribed_queues": queue_id}},
            )
        return int(result.modified_count)
