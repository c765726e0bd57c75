"""Domain and infrastructure exceptions for pubsub-broker."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .domain.models import Message


class BrokerError(Exception):
    """Root exception for the entire broker."""


# ── Not found ────────────────────────────────────────────────────────


class NotFoundError(BrokerError):
    """Raised when a queue, message or topic is not found."""


class EntityNotFoundError(NotFoundError):
    """Raised when a specific entity cannot be found by ID."""

    entity_type = "Entity"

    def __init__(self, entity_id: object) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} with id={entity_id!r} not found")


class QueueNotFoundError(EntityNotFoundError):
    entity_type = "Queue"


class MessageNotFoundError(EntityNotFoundError):
    entity_type = "Message"


class TopicNotFoundError(EntityNotFoundError):
    entity_type = "Topic"


# ── Validation ───────────────────────────────────────────────────────


class ValidationError(BrokerError):
    """Raised when a required field is missing or invalid.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class QueueNameConflictError(ValidationError):
    """Raised when an owner already has a queue with the same name."""

    def __init__(self, owner_id: str, name: str) -> None:
        self.owner_id = owner_id
        self.name = name
        super().__init__({"name": [f"queue {name!r} already exists for this owner"]})


# ── Rejected preconditions ───────────────────────────────────────────


class PreconditionError(BrokerError):
    """Base class for operations rejected because of the current state."""


class AlreadySubscribedError(PreconditionError):
    """Raised when a queue is already subscribed to a topic."""

    def __init__(self, topic_id: str, queue_id: str) -> None:
        self.topic_id = topic_id
        self.queue_id = queue_id
        super().__init__(f"Queue {queue_id!r} is already subscribed to topic {topic_id!r}")


class NoSubscribersError(PreconditionError):
    """Raised when publishing to a topic without subscribed queues."""

    def __init__(self, topic_id: str) -> None:
        self.topic_id = topic_id
        super().__init__(f"Topic {topic_id!r} has no subscribers")


class PartialPublishError(PreconditionError):
    """Raised after a best-effort publish in which some deliveries failed.

    Messages already delivered are not rolled back; they are carried in
    ``messages`` alongside the per-queue ``failures``.
    """

    def __init__(
        self,
        topic_id: str,
        messages: list[Message],
        failures: dict[str, Exception],
    ) -> None:
        self.topic_id = topic_id
        self.messages = messages
        self.failures = failures
        super().__init__(
            f"Publish to topic {topic_id!r} delivered {len(messages)} message(s), "
            f"failed for queue(s): {', '.join(sorted(failures))}"
        )


class AccessDeniedError(BrokerError):
    """Raised when the caller does not own the resource it operates on."""

    def __init__(self, resource_type: str, resource_id: str, caller_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.caller_id = caller_id
        super().__init__(
            f"Caller {caller_id!r} is not authorized to access "
            f"{resource_type} {resource_id!r}"
        )


class BrokerClosedError(BrokerError):
    """Raised when an operation is attempted after shutdown has begun."""


# ── Infrastructure ───────────────────────────────────────────────────


class InfrastructureError(BrokerError):
    """Base class for all infrastructure-related errors."""


class TransientStoreError(InfrastructureError):
    """Raised when the document store is temporarily unreachable."""


class ChangeFeedError(InfrastructureError):
    """Raised when a change feed disconnects or fails.

    Recovered internally by restarting the affected feed.
    """


class NotificationProcessingError(BrokerError):
    """Raised by notification handlers; recorded on the notification."""
