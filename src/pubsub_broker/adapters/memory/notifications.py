"""In-memory notification trail and resume position store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...domain.notifications import Notification, NotificationStatus, ResumeToken
from ...ports.notifications import INotificationRepository, IResumePositionStore

if TYPE_CHECKING:
    from datetime import datetime


class InMemoryNotificationRepository(INotificationRepository):
    """In-memory implementation of ``INotificationRepository``.

    ``fail_next_add`` lets tests simulate a crash between observing a change
    and durably recording it.
    """

    def __init__(self) -> None:
        self._notifications: dict[str, Notification] = {}
        self.fail_next_add: Exception | None = None

    async def add(self, notification: Notification) -> tuple[Notification, bool]:
        if self.fail_next_add is not None:
            error, self.fail_next_add = self.fail_next_add, None
            raise error
        existing = self._notifications.get(notification.id)
        if existing is not None:
            return existing, False
        self._notifications[notification.id] = notification
        return notification, True

    async def get(self, notification_id: str) -> Notification | None:
        return self._notifications.get(notification_id)

    async def claim(self, notification_id: str) -> Notification | None:
        current = self._notifications.get(notification_id)
        if current is None or current.status is not NotificationStatus.PENDING:
            return None
        claimed = current.model_copy(
            update={
                "status": NotificationStatus.PROCESSING,
                "attempts": current.attempts + 1,
            }
        )
        self._notifications[notification_id] = claimed
        return claimed

    def _finish(self, notification_id: str, **update: object) -> None:
        current = self._notifications.get(notification_id)
        if current is None or current.status is not NotificationStatus.PROCESSING:
            return
        self._notifications[notification_id] = current.model_copy(update=update)

    async def mark_completed(self, notification_id: str, processed_at: datetime) -> None:
        self._finish(
            notification_id,
            status=NotificationStatus.COMPLETED,
            processed_at=processed_at,
        )

    async def mark_failed(
        self,
        notification_id: str,
        error: str,
        processed_at: datetime,
    ) -> None:
        self._finish(
            notification_id,
            status=NotificationStatus.FAILED,
            error=error,
            processed_at=processed_at,
        )

    async def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 100,
    ) -> list[Notification]:
        matching = [n for n in self._notifications.values() if n.status is status]
        matching.sort(key=lambda n: n.created_at)
        return matching[:limit]

    async def latest_resume_token(self, collection: str) -> ResumeToken | None:
        tokens = [
            n.resume_token
            for n in self._notifications.values()
            if n.collection_name == collection
        ]
        return max(tokens) if tokens else None

    # ── Test helpers ─────────────────────────────────────────────

    def all(self) -> list[Notification]:
        return list(self._notifications.values())

    def __len__(self) -> int:
        return len(self._notifications)


class InMemoryResumePositionStore(IResumePositionStore):
    def __init__(self) -> None:
        self._positions: dict[str, ResumeToken] = {}

    async def get_position(self, collection: str) -> ResumeToken | None:
        return self._positions.get(collection)

    async def save_position(self, collection: str, token: ResumeToken) -> None:
        current = self._positions.get(collection)
        if current is None or token > current:
            self._positions[collection] = token
