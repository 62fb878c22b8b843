"""In-process store for development and tests."""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import structlog

from lingua_progress.errors import StoreUnavailable
from lingua_progress.storage.base import KeyValueStore

logger = structlog.get_logger()


class InMemoryStore(KeyValueStore):
    """Single-process implementation of the store contract.

    Values, sorted sets and expiries live in dicts; per-key locks are
    ``asyncio.Lock`` objects, so serialization holds within one event loop only.

    Args:
        clock: Returns epoch seconds; used for TTL bookkeeping.
        lock_wait_seconds: Maximum time to wait for a per-key lock.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        lock_wait_seconds: float = 5.0,
    ):
        self._clock = clock
        self._lock_wait = lock_wait_seconds
        self._values: dict[str, str] = {}
        self._sorted_sets: dict[str, dict[str, float]] = {}
        self._expires_at: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    def _evict_if_expired(self, key: str) -> None:
        deadline = self._expires_at.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._values.pop(key, None)
            self._sorted_sets.pop(key, None)
            del self._expires_at[key]

    def _exists(self, key: str) -> bool:
        self._evict_if_expired(key)
        return key in self._values or key in self._sorted_sets

    def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None without an expiry."""
        if not self._exists(key) or key not in self._expires_at:
            return None
        return self._expires_at[key] - self._clock()

    async def get(self, key: str) -> str | None:
        self._evict_if_expired(key)
        return self._values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._evict_if_expired(key)
        self._values[key] = value
        if ttl_seconds is not None:
            self._expires_at[key] = self._clock() + ttl_seconds
        else:
            self._expires_at.pop(key, None)

    async def expire(self, key: str, ttl_seconds: int) -> None:
        if self._exists(key):
            self._expires_at[key] = self._clock() + ttl_seconds

    async def increment(self, key: str) -> int:
        self._evict_if_expired(key)
        try:
            value = int(self._values.get(key, "0")) + 1
        except ValueError as exc:
            raise StoreUnavailable(f"value at {key} is not an integer") from exc
        self._values[key] = str(value)
        return value

    def _ordered(self, key: str, descending: bool) -> list[tuple[str, float]]:
        members = self._sorted_sets.get(key, {})
        # Same ordering rule as Redis: by score, then by member
        return sorted(members.items(), key=lambda kv: (kv[1], kv[0]), reverse=descending)

    async def sorted_set_upsert(self, key: str, member: str, score: float) -> None:
        self._evict_if_expired(key)
        self._sorted_sets.setdefault(key, {})[member] = float(score)

    async def sorted_set_range(
        self,
        key: str,
        start: int,
        end: int,
        descending: bool = False,
        with_scores: bool = False,
    ) -> list:
        self._evict_if_expired(key)
        ordered = self._ordered(key, descending)
        stop = len(ordered) if end == -1 else end + 1
        window = ordered[start:stop]
        if with_scores:
            return window
        return [member for member, _ in window]

    async def sorted_set_remove_by_score(
        self, key: str, min_score: float, max_score: float
    ) -> int:
        self._evict_if_expired(key)
        members = self._sorted_sets.get(key)
        if not members:
            return 0
        doomed = [m for m, s in members.items() if min_score <= s <= max_score]
        for member in doomed:
            del members[member]
        return len(doomed)

    async def sorted_set_cardinality(self, key: str) -> int:
        self._evict_if_expired(key)
        return len(self._sorted_sets.get(key, {}))

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_holders[key] = self._lock_holders.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._lock_wait)
            except asyncio.TimeoutError as exc:
                logger.error("lock_acquire_timeout", key=key)
                raise StoreUnavailable(f"could not lock {key}") from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            # Forget the lock once nobody holds or waits for it
            self._lock_holders[key] -= 1
            if not self._lock_holders[key]:
                del self._lock_holders[key]
                del self._locks[key]
