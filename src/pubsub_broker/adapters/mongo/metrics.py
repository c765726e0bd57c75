"""MongoMetricsRepository: counters as upserted ``$inc`` documents."""

from __future__ import annotations

from typing import Any

from ...domain.metrics import QueueMetrics, ServerMetrics
from ...ports.repositories import IMetricsRepository
from ...utils import utcnow
from .base import MongoCollection, store_errors
from .serialization import model_from_doc, to_bson

SERVER_METRICS_ID = "server"


class MongoMetricsRepository(MongoCollection, IMetricsRepository):
    """Per-queue counters in ``queue_metrics``, server counters in ``server_metrics``.

    Only ``$inc`` is used on counters, so concurrent writers never lose updates.
    """

    COLLECTION = "queue_metrics"
    SERVER_COLLECTION = "server_metrics"

    def _server(self) -> Any:
        return self._db()[self.SERVER_COLLECTION]

    async def increment_queue(self, queue_id: str, **deltas: int) -> None:
        with store_errors():
            await self._collection().update_one(
                {"_id": queue_id},
                {"$inc": deltas, "$set": {"updated_at": to_bson(utcnow())}},
                upsert=True,
            )

    async def get_queue(self, queue_id: str) -> QueueMetrics | None:
        with store_errors():
            doc = await self._collection().find_one({"_id": queue_id})
        return model_from_doc(QueueMetrics, doc, id_field="queue_id") if doc else None

    async def list_queues(self, queue_ids: list[str]) -> list[QueueMetrics]:
        with store_errors():
            docs = await self._collection().find({"_id": {"$in": queue_ids}}).to_list(
                length=None
            )
        by_id = {d["_id"]: model_from_doc(QueueMetrics, d, id_field="queue_id") for d in docs}
        return [by_id[qid] for qid in queue_ids if qid in by_id]

    async def delete_queue(self, queue_id: str) -> None:
        with store_errors():
            await self._collection().delete_one({"_id": queue_id})

    async def increment_server(self, **deltas: float) -> None:
        with store_errors():
            await self._server().update_one(
                {"_id": SERVER_METRICS_ID},
                {"$inc": deltas, "$setOnInsert": {"start_time": to_bson(utcnow())}},
                upsert=True,
            )

    async def get_server(self) -> ServerMetrics:
        with store_errors():
            doc = await self._server().find_one({"_id": SERVER_METRICS_ID})
        if doc is None:
            return ServerMetrics()
        doc.pop("_id", None)
        return ServerMetrics.model_validate(doc)
