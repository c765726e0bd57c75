"""IChangeFeed: ordered, resumable stream of store mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.notifications import ChangeEvent, ResumeToken


@runtime_checkable
class IChangeStream(Protocol):
    """An open feed on one collection.

    Iteration blocks until the next change and ends once the stream is closed.
    Failures surface as ``ChangeFeedError`` from ``__anext__``.
    """

    @property
    def resume_token(self) -> ResumeToken | None:
        """Position of the stream: the last change read, or where it started."""
        ...

    def __aiter__(self) -> IChangeStream: ...

    async def __anext__(self) -> ChangeEvent: ...

    async def close(self) -> None: ...


@runtime_checkable
class IChangeFeed(Protocol):
    """Store-native change feed primitive.

    Any store with a resumable ordered feed (change streams, WAL tailing,
    a log-backed outbox) can implement this.
    """

    async def watch(
        self,
        collection: str,
        resume_after: ResumeToken | None = None,
    ) -> IChangeStream:
        """Open a feed; without ``resume_after`` it starts from now."""
        ...
