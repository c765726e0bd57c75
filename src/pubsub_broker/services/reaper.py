"""MessageReaper: IBackgroundWorker that removes expired messages."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from ..ports.background_worker import IBackgroundWorker

if TYPE_CHECKING:
    from .message_store import MessageStore

logger = logging.getLogger(__name__)


class MessageReaper(IBackgroundWorker):
    """Sweeps expired messages every ``interval_seconds``.

    Expired messages are already invisible to every read; the sweep only
    reclaims storage and keeps ``message_count`` accurate.
    """

    def __init__(
        self,
        messages: MessageStore,
        *,
        interval_seconds: float = 60.0,
        batch_size: int = 500,
    ) -> None:
        self._messages = messages
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="message-reaper")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def run_once(self) -> int:
        """Drain expired messages batch by batch; returns the number removed."""
        total = 0
        while True:
            removed = await self._messages.reap_expired(self._batch_size)
            total += removed
            if removed < self._batch_size:
                return total

    async def _run(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.debug("Reaper cancelled, shutting down")
                break
            except Exception as e:
                logger.error("Message reaper error: %s", e, exc_info=True)
            await asyncio.sleep(self._interval)
