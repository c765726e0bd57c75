"""Test configuration for pubsub-broker."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pubsub_broker.adapters.memory import (
    InMemoryMessageRepository,
    InMemoryMetricsRepository,
    InMemoryQueueRepository,
    InMemoryTopicRepository,
)
from pubsub_broker.adapters.mongo import (
    MongoConnectionManager,
    MongoMessageRepository,
    MongoMetricsRepository,
    MongoQueueRepository,
    MongoTopicRepository,
    ensure_indexes,
)
from pubsub_broker.bootstrap import build_broker
from pubsub_broker.config import BrokerConfig

pytest_plugins = ["pytest_asyncio"]

OWNER = "user-1"
OTHER = "user-2"


class FakeClock:
    """Controllable UTC clock, millisecond aligned like stored dates."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, *, days: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, days=days)
        return self.now


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` until it holds, failing after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> BrokerConfig:
    return BrokerConfig(default_retention_period=14, default_visibility_timeout=30)


@pytest.fixture
async def mongo_connection():
    """Create a MongoDB connection for testing."""
    # Use mongomock for unit tests to avoid real database dependency
    from mongomock_motor import AsyncMongoMockClient

    connection = MongoConnectionManager.__new__(MongoConnectionManager)
    connection._client = AsyncMongoMockClient(default_database_name="test_db")
    connection._database = "test_db"
    connection._url = "mongodb://mock:27017"
    await ensure_indexes(connection)
    yield connection


@pytest.fixture(params=["memory", "mongo"])
async def repositories(request, mongo_connection):
    """Broker repositories for each storage backend."""
    if request.param == "memory":
        return {
            "queue_repository": InMemoryQueueRepository(),
            "message_repository": InMemoryMessageRepository(),
            "topic_repository": InMemoryTopicRepository(),
            "metrics_repository": InMemoryMetricsRepository(),
        }
    return {
        "queue_repository": MongoQueueRepository(mongo_connection),
        "message_repository": MongoMessageRepository(mongo_connection),
        "topic_repository": MongoTopicRepository(mongo_connection),
        "metrics_repository": MongoMetricsRepository(mongo_connection),
    }


@pytest.fixture
def broker(repositories, config, clock):
    return build_broker(**repositories, config=config, clock=clock, with_reaper=False)


@pytest.fixture
async def queue(broker):
    return await broker.create_queue("orders", caller_id=OWNER, retention_period=7)
