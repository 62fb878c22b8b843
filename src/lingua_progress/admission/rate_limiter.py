"""Per-user sliding-window rate limiting."""

import math
import uuid
from collections.abc import Callable
from datetime import datetime

import structlog

from lingua_progress.errors import RateLimited
from lingua_progress.models.results import RateLimitResult
from lingua_progress.models.session import utc_now
from lingua_progress.storage.base import KeyValueStore

logger = structlog.get_logger()


def rate_limit_key(user_id: str) -> str:
    return f"ratelimit:{user_id}"


class RateLimiter:
    """Sliding-window log limiter over a sorted set of attempt timestamps.

    Each user's window lives at ``ratelimit:<user_id>`` with epoch-millisecond
    scores. Prune, count and insert happen under the store's per-key lock so
    concurrent attempts from the same user cannot both slip past the limit.

    Args:
        store: Backing key-value store.
        max_attempts: Default attempts admitted per window.
        window_seconds: Default window length.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_attempts: int = 20,
        window_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock

    async def check_limit(
        self,
        user_id: str,
        max_attempts: int | None = None,
        window_seconds: int | None = None,
    ) -> RateLimitResult:
        """Admit or reject one attempt, recording it when admitted."""
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        window_seconds = self.window_seconds if window_seconds is None else window_seconds
        key = rate_limit_key(user_id)
        window_ms = window_seconds * 1000

        async with self.store.lock(key):
            now_ms = round(self._clock().timestamp() * 1000)
            await self.store.sorted_set_remove_by_score(key, float("-inf"), now_ms - window_ms)
            count = await self.store.sorted_set_cardinality(key)

            if count >= max_attempts:
                oldest = await self.store.sorted_set_range(key, 0, 0, with_scores=True)
                oldest_ms = oldest[0][1] if oldest else now_ms
                wait_seconds = max(1, math.ceil((oldest_ms + window_ms - now_ms) / 1000))
                logger.info("rate_limited", user_id=user_id, wait_seconds=wait_seconds)
                return RateLimitResult(
                    allowed=False,
                    wait_seconds=wait_seconds,
                    message=f"Too many requests. Please wait {wait_seconds} seconds.",
                )

            # Unique member so two attempts in the same millisecond both count
            await self.store.sorted_set_upsert(key, f"{now_ms}-{uuid.uuid4().hex[:8]}", now_ms)
            await self.store.expire(key, window_seconds * 2)

        return RateLimitResult(allowed=True, remaining=max_attempts - count - 1)

    async def enforce(self, user_id: str) -> int:
        """Like ``check_limit`` but raises on rejection.

        Returns:
            Attempts remaining in the current window.

        Raises:
            RateLimited: The window is full.
        """
        result = await self.check_limit(user_id)
        if not result.allowed:
            raise RateLimited(result.wait_seconds, result.message)
        return result.remaining
