"""Tests for MessageReaper."""

from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from pubsub_broker.bootstrap import create_memory_broker
from pubsub_broker.ports import IBackgroundWorker
from pubsub_broker.services import MessageReaper

from .conftest import OWNER


def reaped_total() -> float:
    value = REGISTRY.get_sample_value("pubsub_messages_total", {"operation": "reaped"})
    return value or 0.0


@pytest.mark.asyncio
async def test_run_once_drains_in_batches(broker, queue, clock):
    for i in range(5):
        await broker.send(queue.id, {"n": i}, caller_id=OWNER)
    clock.advance(days=7)
    reaper = MessageReaper(broker.messages, interval_seconds=60, batch_size=2)

    assert await reaper.run_once() == 5
    assert (await broker.queue_metrics(queue.id, caller_id=OWNER)).message_count == 0
    assert await reaper.run_once() == 0


@pytest.mark.asyncio
async def test_expired_messages_count_as_reaped(broker, queue, clock):
    before = reaped_total()
    consumed = await broker.send(queue.id, {"n": 0}, caller_id=OWNER)
    await broker.delete_message(queue.id, consumed.id, caller_id=OWNER)
    for i in range(3):
        await broker.send(queue.id, {"n": i}, caller_id=OWNER)
    clock.advance(days=7)

    await MessageReaper(broker.messages, interval_seconds=60).run_once()

    assert reaped_total() - before == 3


@pytest.mark.asyncio
async def test_reaper_start_stop(broker):
    """Test that the reaper can be started and stopped cleanly."""
    reaper = MessageReaper(broker.messages, interval_seconds=0.01)
    assert isinstance(reaper, IBackgroundWorker)

    await reaper.start()
    assert reaper.running
    await asyncio.sleep(0.03)
    await reaper.stop()
    assert not reaper.running


@pytest.mark.asyncio
async def test_reaper_survives_store_errors(broker, monkeypatch):
    calls = 0

    async def failing(batch_size: int = 500) -> int:
        nonlocal calls
        calls += 1
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(broker.messages, "reap_expired", failing)
    reaper = MessageReaper(broker.messages, interval_seconds=0.01)

    await reaper.start()
    await asyncio.sleep(0.05)
    await reaper.stop()

    assert calls >= 2


@pytest.mark.asyncio
async def test_broker_runs_reaper_between_open_and_close(config, clock):
    broker = create_memory_broker(config, clock=clock)

    async with broker:
        assert broker.reaper is not None
        assert broker.reaper.running
    assert not broker.reaper.running
