"""ChangeCapture: one resumable change feed task per watched collection."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from ..instrumentation import FEED_RESTARTS

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..domain.notifications import ChangeEvent, ResumeToken
    from ..ports.change_feed import IChangeFeed, IChangeStream
    from ..ports.notifications import INotificationRepository, IResumePositionStore
    from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

WATCHED_COLLECTIONS = ("messages", "queues")


class ChangeCapture:
    """
    Observes store mutations and hands them to the dispatcher, in feed order.

    Per change, the notification record is written first. Only after that is
    the cursor record advanced and processing scheduled, so a crash before the
    record exists means the change is delivered again after restart, and a
    crash after it means it is recognised as already recorded.

    A failing feed is closed and reattached after ``restart_delay`` seconds
    from its last recorded position; other collections are not affected.
    """

    def __init__(
        self,
        feed: IChangeFeed,
        dispatcher: NotificationDispatcher,
        notifications: INotificationRepository,
        positions: IResumePositionStore,
        *,
        collections: Iterable[str] = WATCHED_COLLECTIONS,
        restart_delay: float = 1.0,
        close_timeout: float = 10.0,
    ) -> None:
        self._feed = feed
        self._dispatcher = dispatcher
        self._notifications = notifications
        self._positions = positions
        self._collections = tuple(collections)
        self._restart_delay = restart_delay
        self._close_timeout = close_timeout
        self._last_tokens: dict[str, ResumeToken] = {}
        self._streams: dict[str, IChangeStream] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._closing = asyncio.Event()

    @property
    def collections(self) -> tuple[str, ...]:
        return self._collections

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def last_token(self, collection: str) -> ResumeToken | None:
        return self._last_tokens.get(collection)

    async def initialize(self) -> None:
        """Start one feed task per collection. Idempotent."""
        if self._tasks:
            return
        self._closing.clear()
        for collection in self._collections:
            self._tasks[collection] = asyncio.create_task(
                self._run(collection), name=f"change-capture:{collection}"
            )
        logger.info("Change capture started for %s", ", ".join(self._collections))

    async def resume_position(self, collection: str) -> ResumeToken | None:
        """Where the feed of ``collection`` continues from; None means now."""
        if collection in self._last_tokens:
            return self._last_tokens[collection]
        candidates = [
            token
            for token in (
                await self._notifications.latest_resume_token(collection),
                await self._positions.get_position(collection),
            )
            if token is not None
        ]
        return max(candidates) if candidates else None

    async def _run(self, collection: str) -> None:
        while not self._closing.is_set():
            stream: IChangeStream | None = None
            try:
                position = await self.resume_position(collection)
                stream = await self._feed.watch(collection, resume_after=position)
                self._streams[collection] = stream
                if self._closing.is_set():
                    break
                if position is None and stream.resume_token is not None:
                    # Anchor "now" so a failure on the first change replays it.
                    self._last_tokens[collection] = stream.resume_token
                async for change in stream:
                    await self._handle(collection, change)
                if not self._closing.is_set():
                    logger.warning("Change feed on %s ended unexpectedly", collection)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Change feed on %s failed: %s; reattaching in %.1fs",
                    collection,
                    e,
                    self._restart_delay,
                    exc_info=True,
                )
                FEED_RESTARTS.labels(collection=collection).inc()
            finally:
                self._streams.pop(collection, None)
                if stream is not None:
                    await self._close_stream(collection, stream)

            if self._closing.is_set():
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closing.wait(), timeout=self._restart_delay)
        logger.debug("Change feed task for %s stopped", collection)

    async def _handle(self, collection: str, change: ChangeEvent) -> None:
        notification = await self._dispatcher.capture(change)
        await self._positions.save_position(collection, change.resume_token)
        self._last_tokens[collection] = change.resume_token
        self._dispatcher.schedule(notification)

    async def _close_stream(self, collection: str, stream: IChangeStream) -> None:
        try:
            await stream.close()
        except Exception as e:
            logger.warning("Error closing change feed on %s: %s", collection, e)

    async def close(self) -> None:
        """Close every feed and wait for the tasks up to ``close_timeout``."""
        self._closing.set()
        for collection, stream in list(self._streams.items()):
            await self._close_stream(collection, stream)

        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._close_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(
                    "%d change feed task(s) did not stop within %.1fs",
                    len(pending),
                    self._close_timeout,
                )
        self._tasks.clear()
        logger.info("Change capture closed")
