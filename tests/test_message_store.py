"""MessageStore behaviour against both storage backends."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pubsub_broker.domain.models import VisibilityState
from pubsub_broker.exceptions import (
    AccessDeniedError,
    MessageNotFoundError,
    QueueNotFoundError,
    ValidationError,
)

from .conftest import OTHER, OWNER


@pytest.mark.asyncio
async def test_send_freezes_expiry_from_retention(broker, queue, clock):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)

    assert message.created_at == clock()
    assert message.expires_at == message.created_at + timedelta(days=7)
    assert message.visibility_state is VisibilityState.AVAILABLE
    assert message.visible_at is None
    assert message.received_count == 0
    assert message.data.decode() == {"content": "hi"}


@pytest.mark.asyncio
async def test_send_rejects_missing_data_and_unknown_queue(broker, queue):
    with pytest.raises(ValidationError):
        await broker.send(queue.id, None, caller_id=OWNER)
    with pytest.raises(QueueNotFoundError):
        await broker.send("does-not-exist", {"a": 1}, caller_id=OWNER)


@pytest.mark.asyncio
async def test_send_keeps_raw_bytes(broker, queue):
    message = await broker.send(queue.id, b"\x00raw", caller_id=OWNER)

    stored = await broker.get_message(queue.id, message.id, caller_id=OWNER)
    assert stored.data.content_type == "application/octet-stream"
    assert stored.data.decode() == b"\x00raw"
    assert stored.to_public()["data"] == {
        "contentType": "application/octet-stream",
        "encoding": "base64",
        "value": "AHJhdw==",
    }


@pytest.mark.asyncio
async def test_send_rejects_data_that_is_not_json(broker, queue):
    with pytest.raises(ValidationError) as excinfo:
        await broker.send(queue.id, {"at": datetime.now(timezone.utc)}, caller_id=OWNER)

    assert list(excinfo.value.errors) == ["data"]
    stats = await broker.queue_stats(queue.id, caller_id=OWNER)
    assert stats.total == 0


@pytest.mark.asyncio
async def test_receive_respects_max_messages_in_insertion_order(broker, queue):
    sent = [await broker.send(queue.id, {"n": i}, caller_id=OWNER) for i in range(5)]

    first = await broker.receive(queue.id, caller_id=OWNER, max_messages=2)
    second = await broker.receive(queue.id, caller_id=OWNER, max_messages=10)

    assert [m.id for m in first.messages] == [sent[0].id, sent[1].id]
    assert [m.id for m in second.messages] == [m.id for m in sent[2:]]
    assert first.visibility_timeout == 30


@pytest.mark.asyncio
async def test_receive_on_empty_queue_returns_nothing(broker, queue):
    result = await broker.receive(queue.id, caller_id=OWNER)
    assert result.messages == []


@pytest.mark.asyncio
async def test_visibility_timeout_hides_then_releases(broker, queue, clock):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)

    first = await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=1)
    assert [m.id for m in first.messages] == [message.id]
    assert first.messages[0].visibility_state is VisibilityState.IN_FLIGHT
    assert first.messages[0].visible_at == clock() + timedelta(seconds=1)

    hidden = await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=1)
    assert hidden.messages == []

    clock.advance(1.5)
    third = await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=1)
    assert [m.id for m in third.messages] == [message.id]
    assert third.messages[0].received_count == 2


@pytest.mark.asyncio
async def test_messages_received_counted_once(broker, queue, clock):
    message = await broker.send(queue.id, "payload", caller_id=OWNER)
    for _ in range(3):
        result = await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=5)
        assert [m.id for m in result.messages] == [message.id]
        clock.advance(6)

    assert result.messages[0].received_count == 3
    metrics = await broker.queue_metrics(queue.id, caller_id=OWNER)
    assert metrics.messages_received == 1
    assert metrics.messages_sent == 1
    assert metrics.message_count == 1


@pytest.mark.asyncio
async def test_concurrent_receives_never_share_a_message(broker, queue):
    sent = {(await broker.send(queue.id, {"n": i}, caller_id=OWNER)).id for i in range(6)}

    results = await asyncio.gather(
        *(broker.receive(queue.id, caller_id=OWNER, max_messages=4) for _ in range(3))
    )

    received = [m.id for r in results for m in r.messages]
    assert len(received) == len(set(received))
    assert set(received) == sent


@pytest.mark.asyncio
async def test_delete_twice_fails_with_not_found(broker, queue):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)
    await broker.receive(queue.id, caller_id=OWNER)

    await broker.delete_message(queue.id, message.id, caller_id=OWNER)
    with pytest.raises(MessageNotFoundError):
        await broker.delete_message(queue.id, message.id, caller_id=OWNER)

    metrics = await broker.queue_metrics(queue.id, caller_id=OWNER)
    assert metrics.message_count == 0


@pytest.mark.asyncio
async def test_delete_available_message(broker, queue):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)
    await broker.delete_message(queue.id, message.id, caller_id=OWNER)
    with pytest.raises(MessageNotFoundError):
        await broker.get_message(queue.id, message.id, caller_id=OWNER)


@pytest.mark.asyncio
async def test_delete_under_wrong_queue_is_not_found(broker, queue):
    other_queue = await broker.create_queue("other", caller_id=OWNER)
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)
    with pytest.raises(MessageNotFoundError):
        await broker.delete_message(other_queue.id, message.id, caller_id=OWNER)


@pytest.mark.asyncio
async def test_expired_message_is_gone_whatever_its_state(broker, queue, clock):
    kept_in_flight = await broker.send(queue.id, {"n": 1}, caller_id=OWNER)
    await broker.send(queue.id, {"n": 2}, caller_id=OWNER)
    await broker.receive(queue.id, caller_id=OWNER, max_messages=1, visibility_timeout=3600)

    clock.advance(days=7)

    assert (await broker.receive(queue.id, caller_id=OWNER)).messages == []
    with pytest.raises(MessageNotFoundError):
        await broker.get_message(queue.id, kept_in_flight.id, caller_id=OWNER)
    with pytest.raises(MessageNotFoundError):
        await broker.delete_message(queue.id, kept_in_flight.id, caller_id=OWNER)
    stats = await broker.queue_stats(queue.id, caller_id=OWNER)
    assert stats.total == 0


@pytest.mark.asyncio
async def test_get_presents_elapsed_timeout_as_available(broker, queue, clock):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)
    await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=10)

    in_flight = await broker.get_message(queue.id, message.id, caller_id=OWNER)
    assert in_flight.visibility_state is VisibilityState.IN_FLIGHT
    assert in_flight.received_count == 1

    clock.advance(10)
    released = await broker.get_message(queue.id, message.id, caller_id=OWNER)
    assert released.visibility_state is VisibilityState.AVAILABLE
    assert released.visible_at is None
    assert released.received_count == 1


@pytest.mark.asyncio
async def test_stats_split_available_and_in_flight(broker, queue, clock):
    for i in range(3):
        await broker.send(queue.id, {"n": i}, caller_id=OWNER)
    clock.advance(20)
    await broker.receive(queue.id, caller_id=OWNER, max_messages=1, visibility_timeout=60)

    stats = await broker.queue_stats(queue.id, caller_id=OWNER)

    assert stats.total == 3
    assert stats.available == 2
    assert stats.in_flight == 1
    assert stats.oldest_message_age == 20.0


@pytest.mark.asyncio
async def test_receive_validates_arguments(broker, queue):
    with pytest.raises(ValidationError):
        await broker.receive(queue.id, caller_id=OWNER, max_messages=0)
    with pytest.raises(ValidationError):
        await broker.receive(queue.id, caller_id=OWNER, visibility_timeout=-1)
    with pytest.raises(ValidationError):
        await broker.receive(queue.id, caller_id="  ")


@pytest.mark.asyncio
async def test_message_operations_require_queue_ownership(broker, queue):
    message = await broker.send(queue.id, {"content": "hi"}, caller_id=OWNER)

    with pytest.raises(AccessDeniedError):
        await broker.send(queue.id, {"content": "x"}, caller_id=OTHER)
    with pytest.raises(AccessDeniedError):
        await broker.receive(queue.id, caller_id=OTHER)
    with pytest.raises(AccessDeniedError):
        await broker.delete_message(queue.id, message.id, caller_id=OTHER)
    with pytest.raises(AccessDeniedError):
        await broker.get_message(queue.id, message.id, caller_id=OTHER)
    with pytest.raises(AccessDeniedError):
        await broker.queue_stats(queue.id, caller_id=OTHER)


@pytest.mark.asyncio
async def test_reap_expired_decrements_message_count(broker, queue, clock):
    await broker.send(queue.id, {"n": 1}, caller_id=OWNER)
    clock.advance(days=1)
    survivor = await broker.send(queue.id, {"n": 2}, caller_id=OWNER)
    clock.advance(days=6)

    removed = await broker.messages.reap_expired()

    assert removed == 1
    metrics = await broker.queue_metrics(queue.id, caller_id=OWNER)
    assert metrics.message_count == 1
    assert (await broker.get_message(queue.id, survivor.id, caller_id=OWNER)).id == survivor.id


@pytest.mark.asyncio
async def test_reap_skips_messages_deleted_meanwhile(broker, queue, clock):
    message = await broker.send(queue.id, {"n": 1}, caller_id=OWNER)
    clock.advance(days=7)
    repository = broker.messages._repository
    expired = await repository.find_expired(clock(), 10)
    assert expired == [message.id]

    await repository.delete_expired(message.id, clock())
    assert await broker.messages.reap_expired() == 0
