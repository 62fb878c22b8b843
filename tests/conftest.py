"""Shared fixtures: a controllable clock and an in-memory store."""

from datetime import datetime, timedelta, timezone

import pytest

from lingua_progress.progress.leaderboard import Leaderboard
from lingua_progress.progress.ledger import ProgressLedger
from lingua_progress.storage.memory import InMemoryStore


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set_day(self, iso_date: str, hour: int = 12) -> None:
        self.now = datetime.fromisoformat(iso_date).replace(hour=hour, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock.epoch, lock_wait_seconds=1.0)


@pytest.fixture
def leaderboard(store):
    return Leaderboard(store)


@pytest.fixture
def ledger(store, leaderboard, clock):
    return ProgressLedger(store, leaderboard, clock=clock)
