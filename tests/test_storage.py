"""Tests for the in-memory and Redis store implementations."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from lingua_progress.errors import StoreUnavailable
from lingua_progress.storage.memory import InMemoryStore
from lingua_progress.storage.redis_store import RedisStore


class TestInMemoryStore:
    async def test_get_set(self, store):
        assert await store.get("k") is None
        await store.set("k", "v")
        assert await store.get("k") == "v"

    async def test_ttl_expiry(self, store, clock):
        await store.set("k", "v", ttl_seconds=10)
        clock.advance(seconds=9)
        assert await store.get("k") == "v"
        clock.advance(seconds=1)
        assert await store.get("k") is None

    async def test_set_without_ttl_clears_expiry(self, store, clock):
        await store.set("k", "v", ttl_seconds=10)
        await store.set("k", "v2")
        clock.advance(days=1)
        assert await store.get("k") == "v2"

    async def test_expire_on_missing_key_is_noop(self, store):
        await store.expire("ghost", 10)
        assert store.ttl("ghost") is None

    async def test_increment(self, store):
        assert await store.increment("c") == 1
        assert await store.increment("c") == 2
        assert await store.get("c") == "2"

    async def test_increment_non_integer(self, store):
        await store.set("c", "abc")
        with pytest.raises(StoreUnavailable):
            await store.increment("c")

    async def test_sorted_set_range_and_scores(self, store):
        for member, score in [("a", 3), ("b", 1), ("c", 2)]:
            await store.sorted_set_upsert("z", member, score)
        assert await store.sorted_set_range("z", 0, -1) == ["b", "c", "a"]
        assert await store.sorted_set_range("z", 0, 1, descending=True, with_scores=True) == [
            ("a", 3.0),
            ("c", 2.0),
        ]
        assert await store.sorted_set_range("z", 0, -2) == ["b", "c"]

    async def test_sorted_set_remove_by_score(self, store):
        for member, score in [("a", 1), ("b", 5), ("c", 9)]:
            await store.sorted_set_upsert("z", member, score)
        assert await store.sorted_set_remove_by_score("z", float("-inf"), 5) == 2
        assert await store.sorted_set_range("z", 0, -1) == ["c"]
        assert await store.sorted_set_cardinality("z") == 1

    async def test_sorted_set_expires(self, store, clock):
        await store.sorted_set_upsert("z", "a", 1)
        await store.expire("z", 5)
        clock.advance(seconds=6)
        assert await store.sorted_set_cardinality("z") == 0

    async def test_lock_serializes(self, store):
        order = []

        async def worker(name):
            async with store.lock("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    async def test_released_locks_are_forgotten(self, store):
        async def worker():
            async with store.lock("session:u1"):
                await asyncio.sleep(0.01)

        await asyncio.gather(worker(), worker(), worker())
        async with store.lock("ratelimit:u2"):
            assert list(store._locks) == ["ratelimit:u2"]
        assert store._locks == {}

    async def test_timed_out_waiter_is_forgotten(self):
        store = InMemoryStore(lock_wait_seconds=0.01)
        async with store.lock("k"):
            with pytest.raises(StoreUnavailable):
                async with store.lock("k"):
                    pass
            assert "k" in store._locks
        assert store._locks == {}


@pytest.fixture
def redis_client():
    client = MagicMock()
    for name in ("get", "set", "expire", "incr", "zadd", "zrange",
                 "zremrangebyscore", "zcard", "aclose"):
        setattr(client, name, AsyncMock())
    return client


@pytest.fixture
def redis_store(redis_client):
    return RedisStore(redis_client, lock_timeout_seconds=7, lock_wait_seconds=2)


class TestRedisStore:
    async def test_set_with_ttl(self, redis_store, redis_client):
        await redis_store.set("session:u1", "{}", ttl_seconds=60)
        redis_client.set.assert_awaited_once_with("session:u1", "{}", ex=60)

    async def test_upsert_uses_zadd_mapping(self, redis_store, redis_client):
        await redis_store.sorted_set_upsert("leaderboard:global", "u1", 42)
        redis_client.zadd.assert_awaited_once_with("leaderboard:global", {"u1": 42})

    async def test_range_with_scores(self, redis_store, redis_client):
        redis_client.zrange.return_value = [("u1", "42"), ("u2", 7.0)]
        rows = await redis_store.sorted_set_range("lb", 0, 1, descending=True, with_scores=True)
        assert rows == [("u1", 42.0), ("u2", 7.0)]
        redis_client.zrange.assert_awaited_once_with("lb", 0, 1, desc=True, withscores=True)

    async def test_redis_error_becomes_store_unavailable(self, redis_store, redis_client):
        redis_client.get.side_effect = RedisConnectionError("refused")
        with pytest.raises(StoreUnavailable):
            await redis_store.get("session:u1")

    async def test_lock_acquire_and_release(self, redis_store, redis_client):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock()
        redis_client.lock.return_value = lock

        async with redis_store.lock("session:u1"):
            lock.release.assert_not_awaited()

        redis_client.lock.assert_called_once_with(
            "lock:session:u1", timeout=7, blocking_timeout=2
        )
        lock.release.assert_awaited_once()

    async def test_lock_not_acquired(self, redis_store, redis_client):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=False)
        redis_client.lock.return_value = lock
        with pytest.raises(StoreUnavailable):
            async with redis_store.lock("session:u1"):
                pass

    async def test_expired_lease_on_release_is_logged(self, redis_store, redis_client):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock(side_effect=LockError("not owned"))
        redis_client.lock.return_value = lock
        async with redis_store.lock("session:u1"):
            pass

    async def test_close(self, redis_store, redis_client):
        await redis_store.close()
        redis_client.aclose.assert_awaited_once()
