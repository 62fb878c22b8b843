"""Key-value store contract shared by every persistence backend."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager


class KeyValueStore(ABC):
    """Durable key-value store with TTL, counters, sorted sets and per-key locks.

    Implementations raise ``StoreUnavailable`` for any backend failure.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a string, optionally (re)setting its expiry."""

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> None:
        """Set the expiry of an existing key."""

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically increment an integer counter and return the new value."""

    @abstractmethod
    async def sorted_set_upsert(self, key: str, member: str, score: float) -> None:
        """Insert ``member`` or replace its score."""

    @abstractmethod
    async def sorted_set_range(
        self,
        key: str,
        start: int,
        end: int,
        descending: bool = False,
        with_scores: bool = False,
    ) -> list:
        """Members by rank, ``end`` inclusive (negative indexes count from the end).

        Returns ``list[str]``, or ``list[tuple[str, float]]`` when ``with_scores``.
        """

    @abstractmethod
    async def sorted_set_remove_by_score(
        self, key: str, min_score: float, max_score: float
    ) -> int:
        """Remove members with min_score <= score <= max_score. Returns the count removed."""

    @abstractmethod
    async def sorted_set_cardinality(self, key: str) -> int:
        """Number of members in the sorted set (0 if absent)."""

    @abstractmethod
    def lock(self, key: str) -> AbstractAsyncContextManager[None]:
        """Exclusive lock on ``key`` for the duration of an ``async with`` block.

        Acquisition is bounded; failing to acquire raises ``StoreUnavailable``.
        """

    async def close(self) -> None:
        """Release backend resources."""
