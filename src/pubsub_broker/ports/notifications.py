"""Protocols for notification records, resume positions and push delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..domain.models import Message, Queue
    from ..domain.notifications import (
        Notification,
        NotificationStatus,
        ResumeToken,
    )


@runtime_checkable
class INotificationRepository(Protocol):
    """Append-only audit trail of observed changes."""

    async def add(self, notification: Notification) -> tuple[Notification, bool]:
        """Persist a notification.

        Returns the stored record and whether it was newly created; a
        re-observed change returns the existing record with ``False``.
        """
        ...

    async def get(self, notification_id: str) -> Notification | None: ...

    async def claim(self, notification_id: str) -> Notification | None:
        """Move pending -> processing and increment ``attempts`` atomically.

        Returns None when the notification is not pending any more.
        """
        ...

    async def mark_completed(self, notification_id: str, processed_at: datetime) -> None: ...

    async def mark_failed(
        self,
        notification_id: str,
        error: str,
        processed_at: datetime,
    ) -> None: ...

    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        """Oldest first."""
        ...

    async def latest_resume_token(self, collection: str) -> ResumeToken | None: ...


@runtime_checkable
class IResumePositionStore(Protocol):
    """Dedicated cursor record per watched collection."""

    async def get_position(self, collection: str) -> ResumeToken | None: ...

    async def save_position(self, collection: str, token: ResumeToken) -> None:
        """Advance the cursor; an older token never overwrites a newer one."""
        ...


@runtime_checkable
class IPushSender(Protocol):
    async def push(
        self,
        endpoint: str,
        notification: Notification,
        queue: Queue,
        message: Message,
    ) -> None:
        """Deliver one message to a queue's push endpoint.

        Raises:
            NotificationProcessingError: the endpoint rejected or did not answer.
        """
        ...
