"""
LocationGameState — the derived aggregate behind `stats`.

Recomputed from the points ledger; never stored. `GameStateCache` keeps the
last derivation per location keyed by (location version, UTC day): any write
bumps the version, and streaks / weekly / monthly sums depend on the day, so
a stale entry can never be served. Writers also call `invalidate` after
commit to drop the entry eagerly.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from engagement.models.points_ledger import PointsLedgerEntry
from engagement.services.clock import as_utc, month_start, next_month_start, week_start
from engagement.services.leveling import level_progress
from engagement.services.streaks import compute_streak


class LedgerRow(Protocol):
    points: int
    awarded_at: datetime


@dataclass(frozen=True)
class LocationGameState:
    total_points: int
    level: int
    progress_to_next_level: float
    points_in_current_level: int
    points_for_next_level: int
    current_streak: int
    longest_streak: int
    last_completion_date: Optional[date]
    weekly_points: int
    monthly_points: int
    tasks_completed: int
    completed_today: int
    streak_restarted: bool


def derive_game_state(entries: Iterable[LedgerRow], now: datetime) -> LocationGameState:
    rows = list(entries)
    now = as_utc(now)
    today = now.date()
    wk_start = week_start(now)
    mo_start, mo_end = month_start(now), next_month_start(now)

    total = sum(r.points for r in rows)
    weekly = sum(r.points for r in rows if as_utc(r.awarded_at) >= wk_start)
    monthly = sum(
        r.points for r in rows if mo_start <= as_utc(r.awarded_at) < mo_end
    )
    today_count = sum(1 for r in rows if as_utc(r.awarded_at).date() == today)

    lp = level_progress(total)
    streak = compute_streak((r.awarded_at for r in rows), today)

    return LocationGameState(
        total_points=total,
        level=lp.level,
        progress_to_next_level=lp.progress_to_next_level,
        points_in_current_level=lp.points_in_current_level,
        points_for_next_level=lp.points_for_next_level,
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_completion_date=streak.last_completion_date,
        weekly_points=weekly,
        monthly_points=monthly,
        tasks_completed=len(rows),
        completed_today=today_count,
        streak_restarted=streak.restarted,
    )


def load_ledger(db: Session, location_id: str) -> list[PointsLedgerEntry]:
    return list(
        db.scalars(
            select(PointsLedgerEntry)
            .where(PointsLedgerEntry.location_id == location_id)
            .order_by(PointsLedgerEntry.awarded_at, PointsLedgerEntry.id)
        )
    )


class GameStateCache:
    """Thread-safe keyed store: location_id → (version, day, state)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[int, date, LocationGameState]] = {}

    def get(self, location_id: str, version: int, day: date) -> Optional[LocationGameState]:
        with self._lock:
            hit = self._entries.get(location_id)
        if hit is None or hit[0] != version or hit[1] != day:
            return None
        return hit[2]

    def put(self, location_id: str, version: int, day: date, state: LocationGameState) -> None:
        with self._lock:
            self._entries[location_id] = (version, day, state)

    def invalidate(self, location_id: str) -> None:
        with self._lock:
            self._entries.pop(location_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


game_state_cache = GameStateCache()


def get_game_state(
    db: Session,
    location_id: str,
    version: int,
    now: datetime,
    cache: Optional[GameStateCache] = None,
) -> LocationGameState:
    """Cached read path. Writers use `derive_game_state` directly."""
    store = cache or game_state_cache
    day = as_utc(now).date()
    cached = store.get(location_id, version, day)
    if cached is not None:
        return cached
    state = derive_game_state(load_ledger(db, location_id), now)
    store.put(location_id, version, day, state)
    return state
