"""Shared collection access for the Mongo repositories."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pymongo.errors import AutoReconnect, ConnectionFailure, NetworkTimeout

from ...exceptions import TransientStoreError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .connection import MongoConnectionManager


@contextmanager
def store_errors() -> Iterator[None]:
    """Surface connectivity failures as ``TransientStoreError``."""
    try:
        yield
    except (AutoReconnect, ConnectionFailure, NetworkTimeout) as e:
        raise TransientStoreError(str(e)) from e


class MongoCollection:
    """Base for repositories bound to a single collection."""

    COLLECTION = ""

    def __init__(
        self,
        connection: MongoConnectionManager,
        *,
        database: str | None = None,
        collection: str | None = None,
    ) -> None:
        self._connection = connection
        self._database = database
        self._collection_name = collection or self.COLLECTION

    def _db(self) -> Any:
        database_name = self._database or getattr(self._connection, "_database", None)
        if not database_name:
            raise TransientStoreError("Database name must be set on repository or connection")
        return self._connection.client.get_database(database_name)

    def _collection(self) -> Any:
        return self._db()[self._collection_name]
