"""Global points ranking."""

from collections.abc import Awaitable, Callable

import structlog

from lingua_progress.models.results import LeaderboardEntry
from lingua_progress.storage.base import KeyValueStore

logger = structlog.get_logger()

LEADERBOARD_KEY = "leaderboard:global"


def mask_user_id(user_id: str) -> str:
    """Short anonymized label: the last four characters of the id."""
    return f"…{user_id[-4:]}"


class Leaderboard:
    """Sorted-set projection of each user's point total.

    Scores are written by ``ProgressLedger`` only; this class never
    accumulates on its own.
    """

    def __init__(self, store: KeyValueStore, key: str = LEADERBOARD_KEY):
        self.store = store
        self.key = key

    async def upsert(self, user_id: str, score: int) -> None:
        await self.store.sorted_set_upsert(self.key, user_id, score)

    async def top(self, n: int = 10) -> list[LeaderboardEntry]:
        """Highest scores first."""
        if n <= 0:
            return []
        rows = await self.store.sorted_set_range(
            self.key, 0, n - 1, descending=True, with_scores=True
        )
        return [LeaderboardEntry(user_id=member, score=int(score)) for member, score in rows]

    async def size(self) -> int:
        return await self.store.sorted_set_cardinality(self.key)


async def display_name(
    entry: LeaderboardEntry,
    lookup: Callable[[str], Awaitable[str | None]],
) -> str:
    """Resolve a display name through ``lookup``, masking the id on any failure."""
    try:
        name = await lookup(entry.user_id)
    except Exception:
        logger.warning("display_name_lookup_failed", user_id=entry.user_id)
        return mask_user_id(entry.user_id)
    return name or mask_user_id(entry.user_id)
