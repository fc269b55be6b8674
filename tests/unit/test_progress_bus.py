"""Tests for per-run progress streams and the run registry."""

import asyncio

import pytest

from reposcribe.core.exceptions import ProgressClosedError
from reposcribe.services.progress_bus import (
    DONE,
    ERROR,
    NODE_END,
    NODE_START,
    ProgressBus,
    RunRegistry,
)


async def _collect(bus: ProgressBus) -> list[dict]:
    return [event async for event in bus.subscribe()]


class TestProgressBus:
    """Replay, live delivery and terminal semantics."""

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_full_history(self):
        bus = ProgressBus("run-1")
        bus.publish(NODE_START, node="Ingest")
        bus.publish(NODE_END, node="Ingest")
        bus.publish(DONE, result={"ok": True})

        events = await _collect(bus)
        assert [e["type"] for e in events] == [NODE_START, NODE_END, DONE]
        assert all(e["run_id"] == "run-1" for e in events)
        assert events[-1]["result"] == {"ok": True}

    @pytest.mark.asyncio
    async def test_live_subscriber_sees_history_then_live(self):
        bus = ProgressBus("run-2")
        bus.publish(NODE_START, node="Ingest")

        task = asyncio.create_task(_collect(bus))
        await asyncio.sleep(0)
        bus.publish(NODE_END, node="Ingest")
        bus.publish(ERROR, message="boom")

        events = await asyncio.wait_for(task, timeout=1)
        assert [e["type"] for e in events] == [NODE_START, NODE_END, ERROR]

    def test_publish_after_terminal_raises(self):
        bus = ProgressBus("run-3")
        bus.publish(DONE, result={})
        with pytest.raises(ProgressClosedError):
            bus.publish(NODE_START, node="Scan")

    def test_replay_buffer_is_bounded(self):
        bus = ProgressBus("run-4", replay_depth=3)
        for i in range(10):
            bus.publish(NODE_START, node=f"n{i}")
        assert [e["node"] for e in bus._buffer] == ["n7", "n8", "n9"]

    @pytest.mark.asyncio
    async def test_close_releases_waiting_subscribers(self):
        bus = ProgressBus("run-5")
        bus.publish(NODE_START, node="Ingest")
        task = asyncio.create_task(_collect(bus))
        await asyncio.sleep(0)
        bus.close()
        events = await asyncio.wait_for(task, timeout=1)
        assert [e["type"] for e in events] == [NODE_START]
        assert bus.closed

    def test_event_timestamps_are_monotonic(self):
        bus = ProgressBus("run-6")
        a = bus.publish(NODE_START, node="a")
        b = bus.publish(NODE_END, node="a")
        assert b["t"] >= a["t"]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestRunRegistry:
    def test_closed_records_expire_after_ttl(self):
        clock = FakeClock()
        registry = RunRegistry(ttl_seconds=10, max_records=100, clock=clock)
        record = registry.create()
        registry.close(record)

        clock.now = 5
        assert registry.evict() == 0
        assert record.run_id in registry

        clock.now = 10
        assert registry.evict() == 1
        assert registry.get(record.run_id) is None

    def test_in_flight_records_are_never_evicted(self):
        clock = FakeClock()
        registry = RunRegistry(ttl_seconds=1, max_records=1, clock=clock)
        running = [registry.create() for _ in range(3)]

        clock.now = 1000
        assert registry.evict() == 0
        assert len(registry) == 3
        assert all(r.run_id in registry for r in running)

    def test_surplus_closed_records_evicted_oldest_first(self):
        clock = FakeClock()
        registry = RunRegistry(ttl_seconds=3600, max_records=2, clock=clock)
        first, second, third = (registry.create() for _ in range(3))
        registry.close(first)
        registry.close(second)

        assert registry.evict() == 1
        assert first.run_id not in registry
        assert second.run_id in registry
        assert third.run_id in registry

    def test_close_closes_the_bus(self):
        registry = RunRegistry()
        record = registry.create()
        registry.close(record)
        assert record.bus.closed
        assert record.closed_at is not None
