"""InMemoryChangeFeed: per-collection change log with resumable streams."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from ...domain.notifications import ChangeEvent, ResumeToken
from ...exceptions import ChangeFeedError
from ...ports.change_feed import IChangeFeed, IChangeStream

logger = logging.getLogger(__name__)

_CLOSED = object()


class InMemoryChangeStream(IChangeStream):
    def __init__(
        self,
        feed: InMemoryChangeFeed,
        collection: str,
        start: ResumeToken,
    ) -> None:
        self._feed = feed
        self.collection = collection
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._token = start
        self.closed = False

    @property
    def resume_token(self) -> ResumeToken:
        return self._token

    def __aiter__(self) -> InMemoryChangeStream:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        self._token = item.resume_token
        return item  # type: ignore[no-any-return]

    def _put(self, item: Any) -> None:
        self._queue.put_nowait(item)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._detach(self)
        self._put(_CLOSED)


class InMemoryChangeFeed(IChangeFeed):
    """In-memory implementation of ``IChangeFeed``.

    Keeps every emitted change per collection so streams can resume after a
    token, the way a store's oplog allows. Tokens are zero-padded sequence
    numbers and therefore sort in commit order.
    """

    def __init__(self) -> None:
        self._log: dict[str, list[ChangeEvent]] = defaultdict(list)
        self._streams: dict[str, list[InMemoryChangeStream]] = defaultdict(list)
        self.watch_calls: list[tuple[str, ResumeToken | None]] = []

    async def watch(
        self,
        collection: str,
        resume_after: ResumeToken | None = None,
    ) -> InMemoryChangeStream:
        self.watch_calls.append((collection, resume_after))
        log = self._log[collection]
        stream = InMemoryChangeStream(
            self, collection, resume_after or ResumeToken(f"{len(log):020d}")
        )
        if resume_after is not None:
            for event in log:
                if event.resume_token > resume_after:
                    stream._put(event)
        self._streams[collection].append(stream)
        return stream

    def emit(
        self,
        collection: str,
        operation_type: str,
        document_id: str,
        full_document: dict[str, Any] | None = None,
        update_description: dict[str, Any] | None = None,
    ) -> ChangeEvent:
        """Record a change and deliver it to every open stream."""
        log = self._log[collection]
        event = ChangeEvent(
            collection=collection,
            operation_type=operation_type,
            document_id=document_id,
            resume_token=ResumeToken(f"{len(log) + 1:020d}"),
            full_document=full_document,
            update_description=update_description,
        )
        log.append(event)
        for stream in list(self._streams[collection]):
            stream._put(event)
        return event

    def fail(self, collection: str, error: Exception | None = None) -> None:
        """Make every open stream on ``collection`` raise on its next read."""
        exc = error or ChangeFeedError(f"change feed on {collection!r} disconnected")
        for stream in list(self._streams[collection]):
            stream._put(exc)

    def _detach(self, stream: InMemoryChangeStream) -> None:
        streams = self._streams[stream.collection]
        if stream in streams:
            streams.remove(stream)

    # ── Test helpers ─────────────────────────────────────────────

    def events(self, collection: str) -> list[ChangeEvent]:
        return list(self._log[collection])

    def open_streams(self, collection: str) -> int:
        return len(self._streams[collection])
