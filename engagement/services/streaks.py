"""
Streak tracker.

One contribution per distinct UTC calendar day with at least one award.
The current run may end today or yesterday: a day without a completion
does not break the streak until a whole day has gone by with none.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from engagement.services.clock import as_utc


@dataclass(frozen=True)
class StreakInfo:
    current_streak: int
    longest_streak: int
    last_completion_date: Optional[date]
    # True when the live run started after an earlier run was broken.
    restarted: bool


def completion_days(timestamps: Iterable[datetime]) -> list[date]:
    """Sorted distinct UTC days."""
    return sorted({as_utc(ts).date() for ts in timestamps})


def _runs(days: list[date]) -> list[tuple[date, date]]:
    """Collapse sorted distinct days into (first, last) consecutive runs."""
    runs: list[tuple[date, date]] = []
    for d in days:
        if runs and d - runs[-1][1] == timedelta(days=1):
            runs[-1] = (runs[-1][0], d)
        else:
            runs.append((d, d))
    return runs


def _length(run: tuple[date, date]) -> int:
    return (run[1] - run[0]).days + 1


def compute_streak(timestamps: Iterable[datetime], today: date) -> StreakInfo:
    days = [d for d in completion_days(timestamps) if d <= today]
    if not days:
        return StreakInfo(0, 0, None, False)

    runs = _runs(days)
    longest = max(_length(r) for r in runs)
    last = runs[-1]

    if (today - last[1]).days <= 1:
        current = _length(last)
        restarted = len(runs) > 1
    else:
        current = 0
        restarted = False

    return StreakInfo(
        current_streak=current,
        longest_streak=longest,
        last_completion_date=last[1],
        restarted=restarted,
    )
