"""MetricsAggregator counters, per queue and server wide."""

import pytest

from pubsub_broker.domain.metrics import ServerMetrics

from .conftest import OWNER


@pytest.mark.asyncio
async def test_queue_without_activity_reads_as_zero(broker, queue):
    metrics = await broker.queue_metrics(queue.id, caller_id=OWNER)

    assert metrics.queue_id == queue.id
    assert (metrics.message_count, metrics.messages_sent, metrics.messages_received) == (0, 0, 0)


@pytest.mark.asyncio
async def test_send_receive_delete_update_counters(broker, queue):
    first = await broker.send(queue.id, {"n": 1}, caller_id=OWNER)
    await broker.send(queue.id, {"n": 2}, caller_id=OWNER)
    await broker.receive(queue.id, caller_id=OWNER, max_messages=1)
    await broker.delete_message(queue.id, first.id, caller_id=OWNER)

    metrics = await broker.queue_metrics(queue.id, caller_id=OWNER)

    assert metrics.messages_sent == 2
    assert metrics.messages_received == 1
    assert metrics.message_count == 1


@pytest.mark.asyncio
async def test_owner_metrics_follow_queue_order(broker, queue):
    idle = await broker.create_queue("idle", caller_id=OWNER)
    await broker.send(queue.id, {"n": 1}, caller_id=OWNER)

    snapshots = await broker.owner_metrics(caller_id=OWNER)

    assert [m.queue_id for m in snapshots] == [queue.id, idle.id]
    assert [m.messages_sent for m in snapshots] == [1, 0]


@pytest.mark.asyncio
async def test_server_counters_and_average_response_time(broker):
    metrics = broker.metrics
    await metrics.connection_opened()
    await metrics.connection_opened()
    await metrics.connection_closed()
    await metrics.record_request(10.0)
    await metrics.record_request(25.0, error=True)
    await metrics.record_request(40.0)
    await metrics.record_processed(3)

    snapshot = await broker.server_metrics()

    assert snapshot.total_requests == 3
    assert snapshot.error_count == 1
    assert snapshot.active_connections == 1
    assert snapshot.messages_processed == 3
    assert snapshot.avg_response_time == 25.0
    assert snapshot.start_time is not None


@pytest.mark.asyncio
async def test_server_metrics_before_any_request(broker):
    snapshot = await broker.server_metrics()
    assert snapshot.total_requests == 0
    assert snapshot.avg_response_time == 0.0


def test_server_metrics_public_shape():
    public = ServerMetrics(total_requests=4, total_response_time_ms=10.0).to_public()

    assert public["avgResponseTime"] == 2.5
    assert public["totalRequests"] == 4
    assert "totalResponseTimeMs" not in public
