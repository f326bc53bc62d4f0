"""Statistics over a session collection.

Pure functions: they take a sequence of :class:`Session` (most recent
first, as the store keeps them) and never mutate it.  All are single
linear scans, which stays fast for tens of thousands of sessions.

Streak rules
------------
``bump_streak``   add-time rule: same day → unchanged, next day → +1,
                  gap or first ever → 1.
``decay_streak``  load-time rule: if the last counted day is neither today
                  nor yesterday the streak drops to 0.  Never moves the
                  last counted day, so running it twice changes nothing.
``compute_streak`` full recomputation from the sessions themselves, used
                  whenever history changes underneath the counters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from .models import Session


@dataclass(frozen=True)
class Totals:
    count: int
    duration: float


# ── totals ───────────────────────────────────────────────────────────────


def compute_totals(sessions: Iterable[Session]) -> Totals:
    count = 0
    duration = 0.0
    for s in sessions:
        if s.counts:
            count += 1
            duration += s.duration
    return Totals(count, duration)


def average_duration(sessions: Iterable[Session]) -> float:
    totals = compute_totals(sessions)
    if totals.count == 0:
        return 0.0
    return totals.duration / totals.count


# ── date windows ─────────────────────────────────────────────────────────


def sessions_in_range(
    sessions: Iterable[Session], start: datetime, end: datetime
) -> list[Session]:
    """Sessions that started within ``[start, end]`` (inclusive)."""
    return [s for s in sessions if start <= s.started_at <= end]


def sessions_on_day(sessions: Iterable[Session], day: date) -> list[Session]:
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time.max)
    return sessions_in_range(sessions, start, end)


def this_week(sessions: Iterable[Session], now: datetime) -> list[Session]:
    """Countable sessions from the last seven days (rolling window)."""
    week_ago = now - timedelta(days=7)
    return [s for s in sessions if s.counts and week_ago <= s.started_at <= now]


def this_month(sessions: Iterable[Session], now: datetime) -> list[Session]:
    """Countable sessions in the calendar month containing *now*."""
    return [
        s for s in sessions
        if s.counts
        and s.started_at.year == now.year
        and s.started_at.month == now.month
    ]


def count_on_day(sessions: Iterable[Session], day: date) -> int:
    return sum(1 for s in sessions if s.counts and s.day == day)


# ── streaks ──────────────────────────────────────────────────────────────


def bump_streak(
    streak: int, last_counted_day: date | None, day: date
) -> tuple[int, date | None]:
    """Apply one countable completion on *day*.

    Completions older than ``last_counted_day`` (late-arriving synced
    sessions) leave the streak alone.
    """
    if last_counted_day is None:
        return 1, day
    if day == last_counted_day or day < last_counted_day:
        return streak, last_counted_day
    if day - last_counted_day == timedelta(days=1):
        return max(streak + 1, 1), day
    return 1, day


def decay_streak(streak: int, last_counted_day: date | None, today: date) -> int:
    if last_counted_day is None:
        return streak
    if last_counted_day in (today, today - timedelta(days=1)):
        return streak
    return 0


def compute_streak(
    sessions: Sequence[Session], today: date
) -> tuple[int, date | None]:
    """Recompute ``(streak, last_counted_day)`` from scratch."""
    days = sorted({s.day for s in sessions if s.counts}, reverse=True)
    if not days:
        return 0, None
    last = days[0]
    if last not in (today, today - timedelta(days=1)):
        return 0, last
    streak = 1
    for previous, current in zip(days, days[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak, last
