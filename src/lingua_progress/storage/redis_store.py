"""Redis-backed store."""

from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError, RedisError

from lingua_progress.errors import StoreUnavailable
from lingua_progress.storage.base import KeyValueStore

logger = structlog.get_logger()

T = TypeVar("T")


class RedisStore(KeyValueStore):
    """Store contract on top of ``redis.asyncio``.

    Sorted sets map to ZSET commands; per-key locks use redis-py's ``Lock``
    (SET NX with a lease) so they serialize across processes.

    Args:
        client: A ``redis.asyncio.Redis`` created with ``decode_responses=True``.
        lock_timeout_seconds: Lease after which an abandoned lock is released.
        lock_wait_seconds: Maximum time to wait when acquiring a lock.
    """

    def __init__(
        self,
        client: redis.Redis,
        lock_timeout_seconds: float = 10.0,
        lock_wait_seconds: float = 5.0,
    ):
        self._client = client
        self._lock_timeout = lock_timeout_seconds
        self._lock_wait = lock_wait_seconds

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisStore":
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    async def _run(self, op: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except RedisError as exc:
            logger.error("store_operation_failed", op=op, error=str(exc))
            raise StoreUnavailable(f"{op} failed: {exc}") from exc

    async def get(self, key: str) -> str | None:
        return await self._run("get", self._client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._run("set", self._client.set(key, value, ex=ttl_seconds))

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._run("expire", self._client.expire(key, ttl_seconds))

    async def increment(self, key: str) -> int:
        return await self._run("incr", self._client.incr(key))

    async def sorted_set_upsert(self, key: str, member: str, score: float) -> None:
        await self._run("zadd", self._client.zadd(key, {member: score}))

    async def sorted_set_range(
        self,
        key: str,
        start: int,
        end: int,
        descending: bool = False,
        with_scores: bool = False,
    ) -> list:
        result = await self._run(
            "zrange",
            self._client.zrange(key, start, end, desc=descending, withscores=with_scores),
        )
        if with_scores:
            return [(member, float(score)) for member, score in result]
        return list(result)

    async def sorted_set_remove_by_score(
        self, key: str, min_score: float, max_score: float
    ) -> int:
        return await self._run(
            "zremrangebyscore", self._client.zremrangebyscore(key, min_score, max_score)
        )

    async def sorted_set_cardinality(self, key: str) -> int:
        return await self._run("zcard", self._client.zcard(key))

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            f"lock:{key}",
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_wait,
        )
        acquired = await self._run("lock", lock.acquire())
        if not acquired:
            logger.error("lock_acquire_timeout", key=key)
            raise StoreUnavailable(f"could not lock {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease expired while held; another owner may now hold it
                logger.warning("lock_release_failed", key=key)

    async def close(self) -> None:
        await self._client.aclose()
