"""MongoNotificationRepository: the ``notifications`` audit trail."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ...domain.notifications import Notification, NotificationStatus, ResumeToken
from ...ports.notifications import INotificationRepository
from .base import MongoCollection, store_errors
from .serialization import model_from_doc, model_to_doc, to_bson

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


class MongoNotificationRepository(MongoCollection, INotificationRepository):
    """Notifications keyed by their deterministic id.

    Re-inserting an already observed change hits the ``_id`` unique index,
    which is how duplicates are detected without a separate lookup.
    """

    COLLECTION = "notifications"

    async def add(self, notification: Notification) -> tuple[Notification, bool]:
        with store_errors():
            try:
                await self._collection().insert_one(model_to_doc(notification))
            except DuplicateKeyError:
                logger.debug("Notification %s already recorded", notification.id)
                existing = await self.get(notification.id)
                return existing or notification, False
        return notification, True

    async def get(self, notification_id: str) -> Notification | None:
        with store_errors():
            doc = await self._collection().find_one({"_id": notification_id})
        return model_from_doc(Notification, doc) if doc else None

    async def claim(self, notification_id: str) -> Notification | None:
        with store_errors():
            doc = await self._collection().find_one_and_update(
                {"_id": notification_id, "status": NotificationStatus.PENDING.value},
                {
                    "$set": {"status": NotificationStatus.PROCESSING.value},
                    "$inc": {"attempts": 1},
                },
                return_document=ReturnDocument.AFTER,
            )
        return model_from_doc(Notification, doc) if doc else None

    async def mark_completed(self, notification_id: str, processed_at: datetime) -> None:
        with store_errors():
            await self._collection().update_one(
                {"_id": notification_id, "status": NotificationStatus.PROCESSING.value},
                {
                    "$set": {
                        "status": NotificationStatus.COMPLETED.value,
                        "processed_at": to_bson(processed_at),
                    }
                },
            )

    async def mark_failed(
        self,
        notification_id: str,
        error: str,
        processed_at: datetime,
    ) -> None:
        with store_errors():
            await self._collection().update_one(
                {"_id": notification_id, "status": NotificationStatus.PROCESSING.value},
                {
                    "$set": {
                        "status": NotificationStatus.FAILED.value,
                        "error": error,
                        "processed_at": to_bson(processed_at),
                    }
                },
            )

    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        with store_errors():
            docs = (
                await self._collection()
                .find({"status": status.value})
                .sort("created_at", 1)
                .limit(limit)
                .to_list(length=limit)
            )
        return [model_from_doc(Notification, d) for d in docs]

    async def latest_resume_token(self, collection: str) -> ResumeToken | None:
        with store_errors():
            doc = await self._collection().find_one(
                {"collection_name": collection},
                {"payload.resume_token": 1},
                sort=[("payload.resume_token", DESCENDING)],
            )
        if doc is None:
            return None
        return ResumeToken(doc["payload"]["resume_token"])
