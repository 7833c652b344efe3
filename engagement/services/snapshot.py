"""
Snapshot projection: everything `GET /tasks` shows for one location.

Pure read — no writes. Used by `read_tasks` (with the game-state cache) and
by the mutating coordinator calls to build their response inside their own
transaction (without the cache, so an uncommitted state is never cached).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from engagement.core.config import settings
from engagement.models.cycle import CycleRecord
from engagement.models.location import LocationState
from engagement.models.task import Task, TaskStatus
from engagement.models.unlock import LocationAchievement, LocationMilestone
from engagement.services.clock import as_utc, in_month, iso_week
from engagement.services.game_state import (
    LocationGameState,
    derive_game_state,
    get_game_state,
    load_ledger,
)
from engagement.services.milestones import recent_achievements, recent_milestones
from engagement.services.profile import ProfileSnapshot
from engagement.services.scoring import Scores, compute_scores

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class CyclePerformance:
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    excluded: int = 0
    available_points: int = 0
    earned_points: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)


@dataclass
class MonthlyPerformance:
    tasks_completed: int = 0
    points_earned: int = 0
    categories_active: int = 0


@dataclass
class TaskSnapshot:
    location_id: str
    version: int
    state: LocationGameState
    scores: Scores
    active_tasks: list[Task]
    completed_tasks: list[Task]
    excluded_tasks: list[Task]
    cycle: CyclePerformance
    monthly: MonthlyPerformance
    milestones: list[LocationMilestone]
    achievements: list[LocationAchievement]
    week: Optional[str]
    refreshed_at: Optional[datetime]
    next_refresh: Optional[datetime]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def latest_cycle(db: Session, location_id: str) -> Optional[CycleRecord]:
    return db.scalars(
        select(CycleRecord)
        .where(CycleRecord.location_id == location_id)
        .order_by(CycleRecord.refreshed_at.desc(), CycleRecord.id.desc())
        .limit(1)
    ).first()


def location_tasks(db: Session, location_id: str) -> list[Task]:
    return list(db.scalars(select(Task).where(Task.location_id == location_id)))


def closed_definitions_this_month(
    tasks: list[Task], now: datetime
) -> tuple[frozenset[str], frozenset[str]]:
    """(completed, excluded) definition ids within the current UTC month."""
    completed = frozenset(
        t.definition_id for t in tasks
        if t.status == TaskStatus.completed and in_month(t.completed_at, now)
    )
    excluded = frozenset(
        t.definition_id for t in tasks
        if t.status == TaskStatus.excluded and in_month(t.excluded_at, now)
    )
    return completed, excluded


# ---------------------------------------------------------------------------
# Aggregation helpers
# ---------------------------------------------------------------------------

def _active_order(t: Task):
    return (
        _PRIORITY_ORDER.get(t.priority, 3),
        _IMPACT_ORDER.get(t.impact, 3),
        as_utc(t.created_at),
        t.id,
    )


def _cycle_performance(tasks: list[Task]) -> CyclePerformance:
    perf = CyclePerformance(total=len(tasks))
    for t in tasks:
        if t.status == TaskStatus.pending:
            perf.pending += 1
        elif t.status == TaskStatus.in_progress:
            perf.in_progress += 1
        elif t.status == TaskStatus.completed:
            perf.completed += 1
            perf.earned_points += t.points
        elif t.status == TaskStatus.excluded:
            perf.excluded += 1
        if t.status != TaskStatus.excluded:
            perf.available_points += t.points
        perf.by_category[t.category] = perf.by_category.get(t.category, 0) + 1
        perf.by_priority[t.priority] = perf.by_priority.get(t.priority, 0) + 1
    return perf


def _monthly_performance(completed: list[Task]) -> MonthlyPerformance:
    return MonthlyPerformance(
        tasks_completed=len(completed),
        points_earned=sum(t.points for t in completed),
        categories_active=len({t.category for t in completed}),
    )


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def build_snapshot(
    db: Session,
    location: LocationState,
    now: datetime,
    version: Optional[int] = None,
    use_cache: bool = True,
) -> TaskSnapshot:
    location_id = location.location_id
    snap_version = location.version if version is None else version

    if use_cache:
        state = get_game_state(db, location_id, snap_version, now)
    else:
        state = derive_game_state(load_ledger(db, location_id), now)

    tasks = location_tasks(db, location_id)
    cycle = latest_cycle(db, location_id)
    week = cycle.week if cycle else None

    cycle_tasks = [t for t in tasks if week is not None and t.cycle_week == week]
    active = sorted(
        (t for t in cycle_tasks if t.status.is_open),
        key=_active_order,
    )
    completed = sorted(
        (t for t in tasks if t.status == TaskStatus.completed and in_month(t.completed_at, now)),
        key=lambda t: (as_utc(t.completed_at), t.id),
        reverse=True,
    )
    excluded = sorted(
        (t for t in tasks if t.status == TaskStatus.excluded and in_month(t.excluded_at, now)),
        key=lambda t: (as_utc(t.excluded_at), t.id),
        reverse=True,
    )

    scores = compute_scores(ProfileSnapshot.from_json(location.profile_snapshot), tasks, now)
    limit = settings.RECENT_UNLOCKS_LIMIT

    return TaskSnapshot(
        location_id=location_id,
        version=snap_version,
        state=state,
        scores=scores,
        active_tasks=active,
        completed_tasks=completed,
        excluded_tasks=excluded,
        cycle=_cycle_performance(cycle_tasks),
        monthly=_monthly_performance(completed),
        milestones=recent_milestones(db, location_id, limit),
        achievements=recent_achievements(db, location_id, limit),
        week=week or iso_week(now),
        refreshed_at=as_utc(cycle.refreshed_at) if cycle else None,
        next_refresh=as_utc(cycle.next_refresh) if cycle else None,
    )
