"""MongoQueueRepository: queues collection with a unique (owner, name) index."""

from __future__ import annotations

from pymongo.errors import DuplicateKeyError

from ...domain.models import Queue
from ...exceptions import QueueNameConflictError
from ...ports.repositories import IQueueRepository
from .base import MongoCollection, store_errors
from .serialization import model_from_doc, model_to_doc


class MongoQueueRepository(MongoCollection, IQueueRepository):
    COLLECTION = "queues"

    async def add(self, queue: Queue) -> Queue:
        with store_errors():
            try:
                await self._collection().insert_one(model_to_doc(queue))
            except DuplicateKeyError as e:
                raise QueueNameConflictError(queue.owner_id, queue.name) from e
        return queue

    async def get(self, queue_id: str) -> Queue | None:
        with store_errors():
            doc = await self._collection().find_one({"_id": queue_id})
        return model_from_doc(Queue, doc) if doc else None

    async def list_by_owner(self, owner_id: str, name: str | None = None) -> list[Queue]:
        query: dict[str, str] = {"owner_id": owner_id}
        if name is not None:
            query["name"] = name
        with store_errors():
            docs = await self._collection().find(query).sort("_id", 1).to_list(length=None)
        return [model_from_doc(Queue, d) for d in docs]

    async def list_by_ids(self, queue_ids: list[str]) -> list[Queue]:
        if not queue_ids:
            return []
        with store_errors():
            docs = await self._collection().find({"_id": {"$in": queue_ids}}).to_list(
                length=None
            )
        by_id = {d["_id"]: model_from_doc(Queue, d) for d in docs}
        return [by_id[qid] for qid in queue_ids if qid in by_id]

    async def delete(self, queue_id: str) -> bool:
        with store_errors():
            result = await self._collection().delete_one({"_id": queue_id})
        return bool(result.deleted_count)
