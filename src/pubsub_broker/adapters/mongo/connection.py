"""MongoConnectionManager: Motor client lifecycle and pooling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...exceptions import TransientStoreError

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase


class MongoConnectionManager:
    """Owns the Motor client shared by every Mongo adapter."""

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        database: str = "pubsub",
        *,
        server_selection_timeout_ms: int = 5000,
        connect_timeout_ms: int = 10000,
        **kwargs: Any,
    ) -> None:
        self._url = url
        self._database = database
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._connect_timeout_ms = connect_timeout_ms
        self._kwargs = kwargs
        self._client: AsyncIOMotorClient[Any] | None = None

    async def connect(self) -> AsyncIOMotorClient[Any]:
        """Create and cache the Motor client. Idempotent."""
        if self._client is not None:
            return self._client
        from motor.motor_asyncio import AsyncIOMotorClient

        try:
            self._client = AsyncIOMotorClient(
                self._url,
                serverSelectionTimeoutMS=self._server_selection_timeout_ms,
                connectTimeoutMS=self._connect_timeout_ms,
                tz_aware=False,
                **self._kwargs,
            )
            return self._client
        except Exception as e:
            raise TransientStoreError(str(e)) from e

    @property
    def client(self) -> AsyncIOMotorClient[Any]:
        """Return the Motor client; raises if not connected."""
        if self._client is None:
            raise TransientStoreError("Not connected; call connect() first")
        return self._client

    @property
    def database_name(self) -> str:
        return self._database

    @property
    def database(self) -> AsyncIOMotorDatabase[Any]:
        return self.client.get_database(self._database)

    def close(self) -> None:
        """Close the client (synchronous; Motor client.close() is sync)."""
        if self._client is not None:
            self._client.close()
            self._client = None
