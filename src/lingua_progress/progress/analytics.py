"""Daily event counters."""

from collections.abc import Callable
from datetime import datetime, timedelta

from lingua_progress.models.results import DailyCount
from lingua_progress.models.session import utc_now
from lingua_progress.progress.streak import utc_day
from lingua_progress.storage.base import KeyValueStore


class EventCounter:
    """Counts named events per UTC day under ``analytics:<event>:<date>``."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 90 * 86400,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @staticmethod
    def key(event: str, day: str) -> str:
        return f"analytics:{event}:{day}"

    async def track(self, event: str) -> int:
        key = self.key(event, utc_day(self._clock()))
        count = await self.store.increment(key)
        await self.store.expire(key, self.ttl_seconds)
        return count

    async def daily_counts(self, event: str, days: int = 7) -> list[DailyCount]:
        """Counts for the last ``days`` days, newest first."""
        now = self._clock()
        results = []
        for offset in range(days):
            day = utc_day(now - timedelta(days=offset))
            raw = await self.store.get(self.key(event, day))
            results.append(DailyCount(date=day, count=int(raw or 0)))
        return results
