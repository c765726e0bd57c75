"""MongoResumePositionStore: one cursor document per watched collection."""

from __future__ import annotations

from pymongo.errors import DuplicateKeyError

from ...domain.notifications import ResumeToken
from ...ports.notifications import IResumePositionStore
from ...utils import utcnow
from .base import MongoCollection, store_errors
from .serialization import to_bson


class MongoResumePositionStore(MongoCollection, IResumePositionStore):
    """
    MongoDB implementation of IResumePositionStore.

    Stores positions in a dedicated collection (default change_stream_positions),
    keyed by collection name:
        {
            "_id": collection,
            "token": str,
            "updated_at": datetime
        }

    The update only matches an older token; when a newer one is stored the
    upsert collides on ``_id`` and the write is dropped.
    """

    COLLECTION = "change_stream_positions"

    async def get_position(self, collection: str) -> ResumeToken | None:
        with store_errors():
            doc = await self._collection().find_one({"_id": collection})
        if doc is None or doc.get("token") is None:
            return None
        return ResumeToken(doc["token"])

    async def save_position(self, collection: str, token: ResumeToken) -> None:
        with store_errors():
            try:
                await self._collection().update_one(
                    {"_id": collection, "token": {"$lt": token.data}},
                    {"$set": {"token": token.data, "updated_at": to_bson(utcnow())}},
                    upsert=True,
                )
            except DuplicateKeyError:
                pass

    async def reset_position(self, collection: str) -> None:
        with store_errors():
            await self._collection().delete_one({"_id": collection})
