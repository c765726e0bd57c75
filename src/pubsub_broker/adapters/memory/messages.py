"""InMemoryMessageRepository: insertion-ordered fake for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...domain.models import Message, VisibilityState
from ...ports.repositories import IMessageRepository

if TYPE_CHECKING:
    from datetime import datetime

    from .change_feed import InMemoryChangeFeed


class InMemoryMessageRepository(IMessageRepository):
    """In-memory implementation of ``IMessageRepository``.

    Each method runs without awaiting in between its read and its write, so
    on a single event loop every transition is atomic.
    """

    COLLECTION = "messages"

    def __init__(self, change_feed: InMemoryChangeFeed | None = None) -> None:
        # dicts keep insertion order, which is the delivery order
        self._messages: dict[str, Message] = {}
        self._change_feed = change_feed

    def _emit(self, operation: str, message: Message, **kwargs: object) -> None:
        if self._change_feed is None:
            return
        full_document = message.model_dump() if operation != "delete" else None
        self._change_feed.emit(
            self.COLLECTION, operation, message.id, full_document, **kwargs  # type: ignore[arg-type]
        )

    async def add(self, message: Message) -> Message:
        self._messages[message.id] = message
        self._emit("insert", message)
        return message

    async def claim_next(
        self,
        queue_id: str,
        now: datetime,
        visible_at: datetime,
    ) -> Message | None:
        for message in self._messages.values():
            if message.queue_id != queue_id or message.is_expired(now):
                continue
            if not message.is_available(now):
                continue
            claimed = message.model_copy(
                update={
                    "visibility_state": VisibilityState.IN_FLIGHT,
                    "visible_at": visible_at,
                    "received_count": message.received_count + 1,
                }
            )
            self._messages[message.id] = claimed
            self._emit(
                "update",
                claimed,
                update_description={
                    "updatedFields": {
                        "visibility_state": claimed.visibility_state.value,
                        "visible_at": visible_at,
                        "received_count": claimed.received_count,
                    }
                },
            )
            return claimed
        return None

    async def get(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        message = self._messages.get(message_id)
        if message is None or message.queue_id != queue_id or message.is_expired(now):
            return None
        return message

    async def delete(self, queue_id: str, message_id: str, now: datetime) -> Message | None:
        message = await self.get(queue_id, message_id, now)
        if message is None:
            return None
        del self._messages[message_id]
        self._emit("delete", message)
        return message

    async def find_expired(self, now: datetime, limit: int) -> list[str]:
        return [m.id for m in self._messages.values() if m.is_expired(now)][:limit]

    async def delete_expired(self, message_id: str, now: datetime) -> Message | None:
        message = self._messages.get(message_id)
        if message is None or not message.is_expired(now):
            return None
        del self._messages[message_id]
        self._emit("delete", message)
        return message

    async def delete_by_queue(self, queue_id: str) -> int:
        doomed = [m for m in self._messages.values() if m.queue_id == queue_id]
        for message in doomed:
            del self._messages[message.id]
            self._emit("delete", message)
        return len(doomed)

    async def count(
        self,
        queue_id: str,
        now: datetime,
        state: VisibilityState | None = None,
    ) -> int:
        total = 0
        for message in self._messages.values():
            if message.queue_id != queue_id or message.is_expired(now):
                continue
            if state is VisibilityState.AVAILABLE and not message.is_available(now):
                continue
            if state is VisibilityState.IN_FLIGHT and message.is_available(now):
                continue
            total += 1
        return total

    async def oldest_created_at(self, queue_id: str, now: datetime) -> datetime | None:
        for message in self._messages.values():
            if message.queue_id == queue_id and not message.is_expired(now):
                return message.created_at
        return None

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
