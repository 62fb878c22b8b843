"""Daily practice streak arithmetic."""

from datetime import datetime, timedelta, timezone


def utc_day(moment: datetime) -> str:
    """Calendar date of ``moment`` in UTC as YYYY-MM-DD."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date().isoformat()


def next_streak(streak: int, last_active: datetime | None, now: datetime) -> tuple[int, bool]:
    """Compute the streak after activity at ``now``.

    Returns (streak, changed). Activity on the same UTC day leaves the streak
    untouched; activity exactly one day later extends it; anything else
    (first activity, a gap, or a last-active date in the future) restarts at 1.
    """
    today = utc_day(now)
    if last_active is not None and utc_day(last_active) == today:
        return streak, False

    yesterday = utc_day(now - timedelta(days=1))
    if last_active is not None and utc_day(last_active) == yesterday:
        return streak + 1, True
    return 1, True
