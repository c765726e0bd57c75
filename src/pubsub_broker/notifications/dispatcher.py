"""NotificationDispatcher: records change events and processes them once."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from ..domain.notifications import Notification, NotificationStatus
from ..instrumentation import NOTIFICATIONS
from ..utils import utcnow
from .events import classify

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..domain.notifications import ChangeEvent
    from ..ports.notifications import INotificationRepository
    from ..utils import Clock

    NotificationHandler = Callable[[Notification], Awaitable[None]]

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Turns change events into notification records and runs their handlers.

    Lifecycle of a record: ``pending`` when captured, ``processing`` once
    claimed by a single conditional update, then ``completed`` or ``failed``.
    A claimed record is never claimed again, so handlers run at most once per
    notification id; failures are recorded and not retried.

    Processing is ordered per ``(collection, document_id)``: a notification for
    a document starts only after the previous one for that document finished.
    Different documents are processed concurrently up to ``max_concurrency``.
    """

    def __init__(
        self,
        repository: INotificationRepository,
        *,
        max_concurrency: int = 16,
        clock: Clock = utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._handlers: dict[str, list[NotificationHandler]] = defaultdict(list)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tails: dict[tuple[str, str], asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._closing = False

    def register(self, event: str, handler: NotificationHandler) -> None:
        self._handlers[event].append(handler)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def capture(self, change: ChangeEvent) -> Notification:
        """Persist the notification for ``change``; a re-observed change returns its record."""
        event = classify(change.collection, change.operation_type)
        notification, created = await self._repository.add(
            Notification.from_change(change, event)
        )
        if created:
            logger.debug(
                "Captured %s for %s/%s", event, change.collection, change.document_id
            )
        else:
            logger.info(
                "Change %s on %s already recorded as notification %s (%s)",
                change.resume_token,
                change.collection,
                notification.id,
                notification.status.value,
            )
        return notification

    def schedule(self, notification: Notification) -> asyncio.Task[None] | None:
        """Process ``notification`` in the background; returns the task."""
        if self._closing:
            logger.warning("Dispatcher closing, notification %s left pending", notification.id)
            return None
        if notification.status is not NotificationStatus.PENDING:
            return None

        key = (notification.collection_name, notification.document_id)
        previous = self._tails.get(key)
        task = asyncio.create_task(self._run_after(previous, notification.id))
        self._tails[key] = task
        self._tasks.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._tasks.discard(t)
            if self._tails.get(key) is t:
                del self._tails[key]

        task.add_done_callback(_done)
        return task

    async def _run_after(
        self,
        previous: asyncio.Task[None] | None,
        notification_id: str,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            async with self._semaphore:
                await self.process(notification_id)
        except asyncio.CancelledError:
            logger.warning("Processing of notification %s abandoned", notification_id)
            raise
        except Exception as e:
            logger.error(
                "Could not finish notification %s: %s", notification_id, e, exc_info=True
            )

    async def process(self, notification_id: str) -> Notification | None:
        """Claim and process one notification; None when it was not pending."""
        notification = await self._repository.claim(notification_id)
        if notification is None:
            logger.debug("Notification %s not pending, skipping", notification_id)
            return None

        try:
            for handler in self._handlers.get(notification.event, []):
                await handler(notification)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Notification %s (%s) failed: %s",
                notification.id,
                notification.event,
                e,
                exc_info=True,
            )
            await self._repository.mark_failed(
                notification.id, f"{type(e).__name__}: {e}", self._clock()
            )
            NOTIFICATIONS.labels(event=notification.event, outcome="failed").inc()
        else:
            await self._repository.mark_completed(notification.id, self._clock())
            NOTIFICATIONS.labels(event=notification.event, outcome="completed").inc()
        return await self._repository.get(notification.id)

    async def recover_pending(self, limit: int = 1000) -> int:
        """Schedule notifications captured before a restart but never processed."""
        pending = await self._repository.list_by_status(NotificationStatus.PENDING, limit)
        for notification in pending:
            self.schedule(notification)

        stuck = await self._repository.list_by_status(NotificationStatus.PROCESSING, limit)
        if stuck:
            logger.warning(
                "%d notification(s) were interrupted while processing and stay "
                "in processing: %s",
                len(stuck),
                ", ".join(n.id for n in stuck),
            )
        if pending:
            logger.info("Recovered %d pending notification(s)", len(pending))
        return len(pending)

    async def list_failed(self, limit: int = 100) -> list[Notification]:
        return await self._repository.list_by_status(NotificationStatus.FAILED, limit)

    async def drain(self) -> None:
        """Wait until every scheduled notification has been processed."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def close(self, timeout: float = 10.0) -> int:
        """Stop scheduling and wait for in-flight processing up to ``timeout``.

        Returns the number of abandoned (cancelled) tasks.
        """
        self._closing = True
        tasks = set(self._tasks)
        if not tasks:
            return 0
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Abandoned %d notification(s) at shutdown", len(pending))
        return len(pending)
