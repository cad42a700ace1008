"""
Batch Watermark
===============

Process-wide "last successful run" marker for the health-score batch.

Claiming a run is a single compare-and-set on the marker, so concurrent
triggers inside one gating interval get exactly one winner. A failed or
cancelled run puts the previous value back with another compare-and-set,
which leaves the marker alone if someone else has moved it since.

Backends:
- InMemoryBatchWatermark: one process, guarded by a lock
- RedisBatchWatermark: shared across processes, CAS in a Lua script

Version: 0.1.0
"""

import threading
from datetime import datetime, timedelta
from typing import Protocol

from redis.asyncio import Redis

from services.audit_engine.errors import StaleBatchRun
from shared.logging import get_logger


logger = get_logger(__name__)


class BatchWatermark(Protocol):
    """Storage for the batch marker."""

    async def read(self) -> datetime | None:
        """Current marker, or None if the batch never ran."""
        ...

    async def compare_and_set(self, expected: datetime | None, new: datetime | None) -> bool:
        """Set the marker to `new` only if it still equals `expected`."""
        ...


async def claim_run(
    watermark: BatchWatermark,
    now: datetime,
    min_interval: timedelta,
) -> datetime | None:
    """
    Claim the right to run the batch at `now`.

    Returns:
        The previous marker, needed to roll the claim back

    Raises:
        StaleBatchRun: If the last run is younger than `min_interval`
    """
    while True:
        current = await watermark.read()
        if current is not None and now - current < min_interval:
            raise StaleBatchRun(current, current + min_interval)
        if await watermark.compare_and_set(current, now):
            return current
        # Marker moved between read and CAS; re-check against the new value


async def release_run(
    watermark: BatchWatermark,
    claimed: datetime,
    previous: datetime | None,
) -> bool:
    """Roll a claim back to the previous marker. False if the marker has moved on."""
    restored = await watermark.compare_and_set(claimed, previous)
    if not restored:
        logger.warning("batch_watermark_rollback_skipped", claimed=claimed.isoformat())
    return restored


# =============================================================================
# In-memory backend
# =============================================================================


class InMemoryBatchWatermark:
    """Watermark for a single process."""

    def __init__(self, initial: datetime | None = None) -> None:
        self._value = initial
        self._lock = threading.Lock()

    async def read(self) -> datetime | None:
        with self._lock:
            return self._value

    async def compare_and_set(self, expected: datetime | None, new: datetime | None) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True


# =============================================================================
# Redis backend
# =============================================================================


# KEYS[1] marker key; ARGV[1] expected ("" = absent); ARGV[2] new ("" = delete)
CAS_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current == false then current = '' end
if current ~= ARGV[1] then
    return 0
end
if ARGV[2] == '' then
    redis.call('DEL', KEYS[1])
else
    redis.call('SET', KEYS[1], ARGV[2])
end
return 1
"""


def _encode(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


class RedisBatchWatermark:
    """
    Watermark shared through Redis.

    Values are ISO-8601 strings; the client must decode responses.
    """

    def __init__(self, client: Redis, key: str) -> None:
        self.client = client
        self.key = key

    async def read(self) -> datetime | None:
        value = await self.client.get(self.key)
        if not value:
            return None
        if isinstance(value, bytes):
            value = value.decode()
        return datetime.fromisoformat(value)

    async def compare_and_set(self, expected: datetime | None, new: datetime | None) -> bool:
        result = await self.client.eval(
            CAS_SCRIPT,
            1,
            self.key,
            _encode(expected),
            _encode(new),
        )
        return int(result) == 1
