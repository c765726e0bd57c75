"""QueueRegistry: queue definitions and ownership."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.models import Queue
from ..exceptions import AccessDeniedError, QueueNotFoundError, ValidationError
from .access import require_caller, require_name

if TYPE_CHECKING:
    from ..ports.repositories import IQueueRepository

logger = logging.getLogger(__name__)


def _validate_retention(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError({"retention_period": ["must be an integer number of days >= 1"]})
    return value


class QueueRegistry:
    """Creates, resolves and deletes queues.

    Deleting a queue here only removes its definition; the ``Broker`` facade
    cascades the removal to messages, subscriptions and metrics.
    """

    def __init__(
        self,
        repository: IQueueRepository,
        *,
        default_retention_period: int = 14,
    ) -> None:
        self._repository = repository
        self._default_retention_period = _validate_retention(default_retention_period)

    async def create(
        self,
        name: str,
        *,
        owner_id: str,
        retention_period: int | None = None,
        schema: dict[str, Any] | None = None,
        push_endpoint: str | None = None,
    ) -> Queue:
        owner_id = require_caller(owner_id)
        name = require_name(name)
        retention = _validate_retention(
            self._default_retention_period if retention_period is None else retention_period
        )
        if push_endpoint is not None and (
            not isinstance(push_endpoint, str) or not push_endpoint.strip()
        ):
            raise ValidationError({"push_endpoint": ["must be a non-empty string"]})
        if schema is not None and not isinstance(schema, dict):
            raise ValidationError({"schema": ["must be an object"]})

        queue = await self._repository.add(
            Queue(
                name=name,
                owner_id=owner_id,
                retention_period=retention,
                message_schema=schema,
                push_endpoint=push_endpoint.strip() if push_endpoint else None,
            )
        )
        logger.info("Created queue %s (%r) for owner %s", queue.id, name, owner_id)
        return queue

    async def get(self, queue_id: str) -> Queue:
        queue = await self._repository.get(queue_id)
        if queue is None:
            raise QueueNotFoundError(queue_id)
        return queue

    async def exists(self, queue_id: str) -> bool:
        return await self._repository.get(queue_id) is not None

    async def get_many(self, queue_ids: list[str]) -> list[Queue]:
        """Resolve ``queue_ids`` in order, leaving out queues that no longer exist."""
        return await self._repository.list_by_ids(list(queue_ids))

    async def list_for_owner(self, owner_id: str, name: str | None = None) -> list[Queue]:
        return await self._repository.list_by_owner(require_caller(owner_id), name)

    async def get_owned(self, queue_id: str, caller_id: str) -> Queue:
        queue = await self.get(queue_id)
        self.require_owner(queue, caller_id)
        return queue

    async def delete(self, queue_id: str, *, caller_id: str) -> Queue:
        caller_id = require_caller(caller_id)
        queue = await self.get_owned(queue_id, caller_id)
        if not await self._repository.delete(queue_id):
            raise QueueNotFoundError(queue_id)
        logger.info("Deleted queue %s", queue_id)
        return queue

    @staticmethod
    def is_owner(queue: Queue, owner_id: str) -> bool:
        return queue.owner_id == owner_id

    def require_owner(self, queue: Queue, owner_id: str) -> None:
        if not self.is_owner(queue, owner_id):
            raise AccessDeniedError("Queue", queue.id, owner_id)
