"""
Cadence gate — decides whether a location may generate a new weekly batch.

No scheduler: the gate is evaluated lazily every time `refresh` is called.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from engagement.core.config import settings
from engagement.models.cycle import CycleRecord
from engagement.services.clock import as_utc


def refresh_interval() -> timedelta:
    return timedelta(days=settings.REFRESH_INTERVAL_DAYS)


def next_refresh_after(refreshed_at: datetime) -> datetime:
    return as_utc(refreshed_at) + refresh_interval()


def can_refresh(cycle: Optional[CycleRecord], now: datetime) -> bool:
    """True when no cycle exists yet or its `next_refresh` has passed."""
    if cycle is None:
        return True
    return as_utc(now) >= as_utc(cycle.next_refresh)
