"""
UTC calendar helpers shared by every engine.

All persisted timestamps are UTC. SQLite hands DateTime(timezone=True)
columns back naive, so anything read from the store goes through
`as_utc` before it is compared.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso_week(moment: datetime) -> str:
    """ISO-8601 week label, e.g. ``2025-W07``."""
    year, week, _ = as_utc(moment).isocalendar()
    return f"{year}-W{week:02d}"


def month_key(moment: datetime) -> str:
    return as_utc(moment).strftime("%Y-%m")


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def month_start(moment: datetime) -> datetime:
    m = as_utc(moment)
    return datetime(m.year, m.month, 1, tzinfo=timezone.utc)


def next_month_start(moment: datetime) -> datetime:
    m = as_utc(moment)
    if m.month == 12:
        return datetime(m.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(m.year, m.month + 1, 1, tzinfo=timezone.utc)


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 UTC of the ISO week containing `moment`."""
    d = as_utc(moment).date()
    return day_start(d - timedelta(days=d.weekday()))


def in_month(value: Optional[datetime], moment: datetime) -> bool:
    if value is None:
        return False
    return month_start(moment) <= as_utc(value) < next_month_start(moment)
