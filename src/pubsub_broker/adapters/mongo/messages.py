"""MongoMessageRepository: the visibility state machine as conditional updates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pymongo import ReturnDocument

from ...domain.models import Message, VisibilityState
from ...ports.repositories import IMessageRepository
from ...utils import ensure_utc
from .base import MongoCollection, store_errors
from .serialization import model_from_doc, model_to_doc, to_bson

if TYPE_CHECKING:
    from datetime import datetime


def _available(now: Any) -> list[dict[str, Any]]:
    return [
        {"visibility_state": VisibilityState.AVAILABLE.value},
        {
            "visibility_state": VisibilityState.IN_FLIGHT.value,
            "visible_at": {"$lte": now},
        },
    ]


class MongoMessageRepository(MongoCollection, IMessageRepository):
    """Messages of all queues in one collection.

    Every state transition is a single ``find_one_and_*`` call whose filter
    restates the precondition, so concurrent receivers and the reaper never
    act on the same message twice.
    """

    COLLECTION = "messages"

    async def add(self, message: Message) -> Message:
        with store_errors():
            await self._collection().insert_one(model_to_doc(message))
        return message

    async def claim_next(
        self,
        queue_id: str,
        now: datetime,
        visible_at: datetime,
    ) -> Message | None:
        at = to_bson(now)
        with store_errors():
            doc = await self._collection().find_one_and_update(
                {
                    "queue_id": queue_id,
                    "expires_at": {"$gt": at},
                    "$or": _available(at),
                },
                {
                    "$set": {
                        "visibility_state": VisibilityState.IN_FLIGHT.value,
                        "visible_at": to_bson(visible_at),
                    },
                    "$inc": {"received_count": 1},
                },
                sort=[("_id", 1)],
                return_document=ReturnDocument.AFTER,
            )
        return model_from_doc(Message, doc) if doc else None

    async def get(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        with store_errors():
            doc = await self._collection().find_one(
                {"_id": message_id, "queue_id": queue_id, "expires_at": {"$gt": to_bson(now)}}
            )
        return model_from_doc(Message, doc) if doc else None

    async def delete(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        with store_errors():
            doc = await self._collection().find_one_and_delete(
                {"_id": message_id, "queue_id": queue_id, "expires_at": {"$gt": to_bson(now)}}
            )
        return model_from_doc(Message, doc) if doc else None

    async def find_expired(self, now: datetime, limit: int) -> list[str]:
        with store_errors():
            docs = (
                await self._collection()
                .find({"expires_at": {"$lte": to_bson(now)}}, {"_id": 1})
                .sort("_id", 1)
                .limit(limit)
                .to_list(length=limit)
            )
        return [d["_id"] for d in docs]

    async def delete_expired(self, message_id: str, now: datetime) -> Message | None:
        with store_errors():
            doc = await self._collection().find_one_and_delete(
                {"_id": message_id, "expires_at": {"$lte": to_bson(now)}}
            )
        return model_from_doc(Message, doc) if doc else None

    async def delete_by_queue(self, queue_id: str) -> int:
        with store_errors():
            result = await self._collection().delete_many({"queue_id": queue_id})
        return int(result.deleted_count)

    async def count(
        self,
        queue_id: str,
        now: datetime,
        state: VisibilityState | None = None,
    ) -> int:
        at = to_bson(now)
        query: dict[str, Any] = {"queue_id": queue_id, "expires_at": {"$gt": at}}
        if state is VisibilityState.AVAILABLE:
            query["$or"] = _available(at)
        elif state is VisibilityState.IN_FLIGHT:
            query["visibility_state"] = VisibilityState.IN_FLIGHT.value
            query["visible_at"] = {"$gt": at}
        with store_errors():
            return int(await self._collection().count_documents(query))

    async def oldest_created_at(self, queue_id: str, now: datetime) -> datetime | None:
        with store_errors():
            doc = await self._collection().find_one(
                {"queue_id": queue_id, "expires_at": {"$gt": to_bson(now)}},
                {"created_at": 1},
                sort=[("_id", 1)],
            )
        return ensure_utc(doc["created_at"]) if doc else None
