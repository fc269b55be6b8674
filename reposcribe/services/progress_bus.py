"""Per-run progress streams and the registry that owns them.

A ProgressBus is an ordered, replayable log of typed events for one run.
Subscribers first receive the buffered history, then live events, and stop
after the terminal event (``done`` or ``error``).
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from reposcribe.core.exceptions import ProgressClosedError

NODE_START = "node_start"
NODE_END = "node_end"
CACHED_HIT = "cached_hit"
DONE = "done"
ERROR = "error"
TERMINAL_EVENTS = frozenset({DONE, ERROR})

ProgressEvent = dict[str, Any]


class ProgressBus:
    """Bounded replay buffer plus live fan-out for a single run."""

    def __init__(self, run_id: str, replay_depth: int = 50):
        self.run_id = run_id
        self._buffer: deque[ProgressEvent] = deque(maxlen=max(1, replay_depth))
        self._subscribers: list[asyncio.Queue[ProgressEvent | None]] = []
        self._terminal = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event_type: str, **fields: Any) -> ProgressEvent:
        """Append an event and deliver it to live subscribers.

        Raises:
            ProgressClosedError: If a terminal event was already published
        """
        if self._terminal or self._closed:
            raise ProgressClosedError(
                f"run {self.run_id} is closed; cannot publish {event_type}"
            )
        event: ProgressEvent = {"type": event_type, "run_id": self.run_id, "t": time.time()}
        event.update(fields)
        self._buffer.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)
        if event_type in TERMINAL_EVENTS:
            self._terminal = True
        return event

    def close(self) -> None:
        """Close the stream; subscribers drain and stop. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)

    async def subscribe(self) -> AsyncIterator[ProgressEvent]:
        """Yield buffered history, then live events, ending after the terminal one."""
        history = list(self._buffer)
        if self._terminal or self._closed:
            for event in history:
                yield event
            return

        queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            for event in history:
                yield event
            while True:
                item = await queue.get()
                if item is None:
                    return
                yield item
                if item["type"] in TERMINAL_EVENTS:
                    return
        finally:
            self._subscribers.remove(queue)


@dataclass
class RunRecord:
    """One run: identifier, progress stream and timing."""

    run_id: str
    bus: ProgressBus
    started_at: float = field(default_factory=time.time)
    closed_at: float | None = None

    def close(self, now: float) -> None:
        self.bus.close()
        if self.closed_at is None:
            self.closed_at = now


class RunRegistry:
    """Process-wide run records with TTL and size-bounded eviction.

    Closed records expire ``ttl_seconds`` after closing. When more than
    ``max_records`` remain, the oldest closed records go first. Records of
    in-flight runs are never evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_records: int = 1024,
        replay_depth: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._max_records = max_records
        self._replay_depth = replay_depth
        self._clock = clock
        self._records: dict[str, RunRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._records

    def create(self) -> RunRecord:
        self.evict()
        run_id = str(uuid.uuid4())
        record = RunRecord(run_id=run_id, bus=ProgressBus(run_id, self._replay_depth))
        self._records[run_id] = record
        return record

    def get(self, run_id: str) -> RunRecord | None:
        return self._records.get(run_id)

    def close(self, record: RunRecord) -> None:
        record.close(self._clock())

    def evict(self) -> int:
        """Drop expired and surplus closed records; return how many were removed."""
        now = self._clock()
        expired = [
            rid
            for rid, rec in self._records.items()
            if rec.closed_at is not None and now - rec.closed_at >= self._ttl
        ]
        for rid in expired:
            del self._records[rid]

        removed = len(expired)
        if len(self._records) > self._max_records:
            # dict preserves insertion order, so this walks oldest first
            for rid in [r for r, rec in self._records.items() if rec.closed_at is not None]:
                if len(self._records) <= self._max_records:
                    break
                del self._records[rid]
                removed += 1
        if removed:
            logger.debug(f"Evicted {removed} run records")
        return removed
