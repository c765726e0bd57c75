"""MongoChangeFeed: change streams on the broker's collections."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pymongo.errors import PyMongoError

from ...domain.notifications import ChangeEvent, ResumeToken
from ...exceptions import ChangeFeedError
from ...ports.change_feed import IChangeFeed, IChangeStream
from ...utils import ensure_utc

if TYPE_CHECKING:
    from .connection import MongoConnectionManager

logger = logging.getLogger(__name__)


def _restore_datetimes(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _restore_datetimes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_restore_datetimes(v) for v in value]
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def change_event_from_document(collection: str, change: dict[str, Any]) -> ChangeEvent:
    """Map a raw change stream document onto a ``ChangeEvent``."""
    operation = change["operationType"]
    if operation == "invalidate":
        raise ChangeFeedError(f"change stream on {collection!r} was invalidated")
    document_key = change.get("documentKey") or {}
    full_document = change.get("fullDocument")
    update_description = change.get("updateDescription")
    return ChangeEvent(
        collection=change.get("ns", {}).get("coll", collection),
        operation_type=operation,
        document_id=str(document_key.get("_id", "")),
        resume_token=ResumeToken.from_document(change["_id"]),
        full_document=_restore_datetimes(full_document) if full_document else None,
        update_description=(
            _restore_datetimes(update_description) if update_description else None
        ),
    )


class MongoChangeStream(IChangeStream):
    def __init__(self, stream: Any, collection: str) -> None:
        self._stream = stream
        self._collection = collection

    @property
    def resume_token(self) -> ResumeToken | None:
        # Motor creates the driver cursor lazily; no cursor, no token yet.
        if self._stream.delegate is None:
            return None
        token = self._stream.resume_token
        return ResumeToken.from_document(token) if token else None

    def __aiter__(self) -> MongoChangeStream:
        return self

    async def __anext__(self) -> ChangeEvent:
        try:
            change = await self._stream.next()
        except StopAsyncIteration:
            raise
        except PyMongoError as e:
            raise ChangeFeedError(
                f"change stream on {self._collection!r} failed: {e}"
            ) from e
        return change_event_from_document(self._collection, change)

    async def close(self) -> None:
        try:
            await self._stream.close()
        except PyMongoError as e:
            logger.warning("Error closing change stream on %s: %s", self._collection, e)


class MongoChangeFeed(IChangeFeed):
    """Opens ``updateLookup`` change streams so inserts and updates carry the document."""

    def __init__(
        self,
        connection: MongoConnectionManager,
        *,
        database: str | None = None,
        batch_size: int = 100,
        max_await_time_ms: int = 1000,
    ) -> None:
        self._connection = connection
        self._database = database
        self._batch_size = batch_size
        self._max_await_time_ms = max_await_time_ms

    def _collection(self, name: str) -> Any:
        database_name = self._database or getattr(self._connection, "_database", None)
        return self._connection.client.get_database(database_name)[name]

    async def watch(
        self,
        collection: str,
        resume_after: ResumeToken | None = None,
    ) -> MongoChangeStream:
        try:
            stream = self._collection(collection).watch(
                [],
                full_document="updateLookup",
                resume_after=resume_after.to_document() if resume_after else None,
                batch_size=self._batch_size,
                max_await_time_ms=self._max_await_time_ms,
            )
            # Open the cursor now so the stream's start token is known.
            await stream.__aenter__()
        except PyMongoError as e:
            raise ChangeFeedError(f"cannot watch {collection!r}: {e}") from e
        logger.info(
            "Watching %s (resume_after=%s)", collection, resume_after or "now"
        )
        return MongoChangeStream(stream, collection)
