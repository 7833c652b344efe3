"""
Task Lifecycle Coordinator — the only code path that writes.

Operations
----------
  refresh_tasks   generate this cycle's batch when the cadence gate allows
  start_task      pending → in_progress
  complete_task   pending|in_progress → completed; append ledger entry,
                  recompute game state, unlock milestones / achievements,
                  call the listing updater
  exclude_task    pending|in_progress → excluded (suppressed for the month)
  read_tasks      consistent snapshot, no writes

Concurrency
-----------
Each mutation runs under the location's in-process lock and, inside one
transaction, claims the location with a compare-and-swap on
`location_states.version`. Task status moves are also compare-and-swap
(`WHERE status IN (...)`), and the ledger's unique (location_id, task_id)
is the last guard against a double award. A lost race rolls back and is
retried up to MAX_CONFLICT_RETRIES, then surfaces as ConflictError.
db.commit() is called exactly once per successful mutation.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from engagement.core.config import settings
from engagement.core.errors import (
    AlreadyCompletedError,
    AlreadyExcludedError,
    CadenceError,
    CollaboratorError,
    ConflictError,
    EngagementException,
    InvalidTransitionError,
    NotFoundError,
)
from engagement.models.cycle import CycleRecord
from engagement.models.location import LocationState
from engagement.models.points_ledger import PointsLedgerEntry
from engagement.models.task import Task, TaskStatus, make_task_id
from engagement.models.unlock import LocationAchievement, LocationMilestone
from engagement.services.cadence import can_refresh, next_refresh_after
from engagement.services.catalog import CatalogRequest, StaticTaskCatalog, TaskCatalog
from engagement.services.clock import as_utc, iso_week, utcnow
from engagement.services.game_state import derive_game_state, game_state_cache, load_ledger
from engagement.services.listing_sync import ListingUpdater, NullListingUpdater
from engagement.services.locks import location_locks
from engagement.services.milestones import AchievementContext, unlock_new
from engagement.services.profile import ProfileSnapshot
from engagement.services.snapshot import (
    TaskSnapshot,
    build_snapshot,
    closed_definitions_this_month,
    latest_cycle,
    location_tasks,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED_ERRORS = {
    TaskStatus.completed: AlreadyCompletedError,
    TaskStatus.excluded: AlreadyExcludedError,
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RefreshResult:
    snapshot: TaskSnapshot
    message: str
    tasks_created: int


@dataclass
class CompletionResult:
    task: Task
    points_awarded: int
    leveled_up: bool
    new_level: int
    new_streak: int
    new_total_points: int
    new_milestones: list[LocationMilestone] = field(default_factory=list)
    new_achievements: list[LocationAchievement] = field(default_factory=list)
    gmb_updated: bool = False
    gmb_update_note: Optional[str] = None


# ---------------------------------------------------------------------------
# Transaction plumbing
# ---------------------------------------------------------------------------

def _run_mutation(db: Session, location_id: str, op: str, work: Callable[[], T]) -> T:
    attempts = max(1, settings.MAX_CONFLICT_RETRIES)
    with location_locks.hold(location_id):
        for attempt in range(1, attempts + 1):
            # Drop identity-map state left over from a lost attempt.
            db.expire_all()
            try:
                result = work()
                db.commit()
            except ConflictError:
                db.rollback()
                logger.info(
                    "%s conflict location=%s attempt=%d/%d", op, location_id, attempt, attempts
                )
                continue
            except Exception:
                db.rollback()
                raise
            game_state_cache.invalidate(location_id)
            return result

    logger.warning("%s gave up location=%s after %d attempts", op, location_id, attempts)
    raise ConflictError(location_id, attempts)


def _ensure_location(db: Session, location_id: str, now: datetime) -> LocationState:
    location = db.get(LocationState, location_id)
    if location is not None:
        return location
    location = LocationState(
        location_id=location_id,
        version=1,
        created_at=now,
        updated_at=now,
    )
    db.add(location)
    try:
        db.flush()
    except IntegrityError as exc:
        # Another writer created the row first; retry against it.
        raise ConflictError(location_id) from exc
    return location


def _get_location(db: Session, location_id: str) -> LocationState:
    location = db.get(LocationState, location_id)
    if location is None:
        raise NotFoundError("location", location_id)
    return location


def _claim(db: Session, location: LocationState, now: datetime) -> int:
    """Compare-and-swap the location version; returns the new version."""
    expected = location.version
    res = db.execute(
        update(LocationState)
        .where(
            LocationState.location_id == location.location_id,
            LocationState.version == expected,
        )
        .values(version=expected + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConflictError(location.location_id)
    set_committed_value(location, "version", expected + 1)
    set_committed_value(location, "updated_at", now)
    return expected + 1


def _get_task(db: Session, task_id: str, location_id: Optional[str] = None) -> Task:
    task = db.get(Task, task_id)
    if task is None or (location_id is not None and task.location_id != location_id):
        raise NotFoundError("task", task_id)
    return task


def _guard_transition(task: Task, target: TaskStatus) -> None:
    current = task.status
    if current.can_transition_to(target):
        return
    closed = _CLOSED_ERRORS.get(current)
    if closed is not None:
        raise closed(task.id)
    raise InvalidTransitionError(task.id, current.value, target.value)


def _transition(db: Session, task: Task, target: TaskStatus, **values: Any) -> None:
    """
    Compare-and-swap the task status. When the row moved under us, re-read
    it: a now-terminal task is reported as such, anything else is a conflict.
    """
    allowed_from = [s for s in TaskStatus if s.can_transition_to(target)]
    res = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.status.in_(allowed_from))
        .values(status=target, version=Task.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    db.refresh(task)
    if res.rowcount != 1:
        closed = _CLOSED_ERRORS.get(task.status)
        if closed is not None:
            raise closed(task.id)
        raise ConflictError(task.location_id)


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------

def refresh_tasks(
    db: Session,
    location_id: str,
    place_id: Optional[str] = None,
    gmb_account_id: Optional[str] = None,
    access_token: Optional[str] = None,
    profile: Optional[ProfileSnapshot] = None,
    catalog: Optional[TaskCatalog] = None,
    now: Optional[datetime] = None,
) -> RefreshResult:
    """
    Generate a new batch when no cycle exists or `next_refresh` has passed.

    Denied refreshes write nothing and raise CadenceError carrying the
    current snapshot. Definitions excluded this calendar month never come
    back, whatever the catalog returns.
    """
    now = as_utc(now) if now else utcnow()
    catalog = catalog or StaticTaskCatalog()

    def work() -> RefreshResult:
        location = _ensure_location(db, location_id, now)
        cycle = latest_cycle(db, location_id)
        if not can_refresh(cycle, now):
            snap = build_snapshot(db, location, now, use_cache=False)
            logger.info(
                "refresh denied location=%s next_refresh=%s",
                location_id, as_utc(cycle.next_refresh).isoformat(),
            )
            raise CadenceError(as_utc(cycle.next_refresh), snapshot=snap)

        _claim(db, location, now)
        if profile is not None:
            location.profile_snapshot = profile.to_json()
        if place_id:
            location.place_id = place_id

        tasks = location_tasks(db, location_id)
        completed, excluded = closed_definitions_this_month(tasks, now)
        request = CatalogRequest(
            location_id=location_id,
            profile=ProfileSnapshot.from_json(location.profile_snapshot),
            completed_this_month=completed,
            excluded_this_month=excluded,
            place_id=place_id or location.place_id,
            gmb_account_id=gmb_account_id,
            access_token=access_token,
        )
        candidates = catalog.resolve(request)

        week = iso_week(now)
        existing_ids = {t.id for t in tasks}
        seen: set[str] = set()
        created = 0
        for c in candidates:
            if c.definition_id in excluded or c.definition_id in seen:
                continue
            if c.points <= 0:
                logger.warning(
                    "refresh skipped candidate location=%s definition=%s points=%s",
                    location_id, c.definition_id, c.points,
                )
                continue
            seen.add(c.definition_id)
            task_id = make_task_id(location_id, week, c.definition_id)
            if task_id in existing_ids:
                continue
            db.add(Task(
                id=task_id,
                location_id=location_id,
                definition_id=c.definition_id,
                cycle_week=week,
                title=c.title,
                description=c.description or None,
                category=c.category,
                type=c.type,
                impact=c.impact,
                priority=c.priority,
                estimated_time=c.estimated_time,
                points=c.points,
                status=TaskStatus.pending,
                created_at=now,
                version=1,
            ))
            created += 1

        record = db.scalars(
            select(CycleRecord).where(
                CycleRecord.location_id == location_id,
                CycleRecord.week == week,
            )
        ).first()
        if record is None:
            record = CycleRecord(location_id=location_id, week=week)
            db.add(record)
        record.refreshed_at = now
        record.next_refresh = next_refresh_after(now)
        record.tasks_generated = (record.tasks_generated or 0) + created

        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(location_id) from exc

        snap = build_snapshot(db, location, now, use_cache=False)
        message = (
            f"Generated {created} new tasks for week {week}."
            if created else
            f"No new tasks available for week {week}."
        )
        return RefreshResult(snapshot=snap, message=message, tasks_created=created)

    result = _run_mutation(db, location_id, "refresh", work)
    logger.info(
        "refresh location=%s week=%s created=%d",
        location_id, result.snapshot.week, result.tasks_created,
    )
    return result


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------

def start_task(
    db: Session,
    location_id: str,
    task_id: str,
    now: Optional[datetime] = None,
) -> TaskSnapshot:
    now = as_utc(now) if now else utcnow()

    def work() -> TaskSnapshot:
        location = _get_location(db, location_id)
        task = _get_task(db, task_id, location_id)
        _guard_transition(task, TaskStatus.in_progress)
        _claim(db, location, now)
        _transition(db, task, TaskStatus.in_progress)
        return build_snapshot(db, location, now, use_cache=False)

    snap = _run_mutation(db, location_id, "start", work)
    logger.info("start location=%s task=%s", location_id, task_id)
    return snap


# ---------------------------------------------------------------------------
# complete
# ---------------------------------------------------------------------------

def _achievement_context(db: Session, location_id: str, task: Task, state) -> AchievementContext:
    tasks = location_tasks(db, location_id)
    done = [t for t in tasks if t.status == TaskStatus.completed]
    cycle_tasks = [
        t for t in tasks
        if t.cycle_week == task.cycle_week and t.status != TaskStatus.excluded
    ]
    return AchievementContext(
        state=state,
        completed_by_type=Counter(t.type for t in done),
        completed_by_category=Counter(t.category for t in done),
        cycle_complete=bool(cycle_tasks) and all(
            t.status == TaskStatus.completed for t in cycle_tasks
        ),
    )


def complete_task(
    db: Session,
    location_id: str,
    task_id: str,
    action_payload: Optional[dict[str, Any]] = None,
    updater: Optional[ListingUpdater] = None,
    now: Optional[datetime] = None,
) -> CompletionResult:
    """
    Complete a task and award its points exactly once.

    Every write (status, ledger entry, unlocks) commits together or not at
    all; a failing listing updater rolls the whole completion back.
    """
    now = as_utc(now) if now else utcnow()
    updater = updater or NullListingUpdater()

    def work() -> CompletionResult:
        location = _get_location(db, location_id)
        task = _get_task(db, task_id, location_id)
        _guard_transition(task, TaskStatus.completed)

        previous = derive_game_state(load_ledger(db, location_id), now)
        _claim(db, location, now)
        _transition(db, task, TaskStatus.completed, completed_at=now)

        db.add(PointsLedgerEntry(
            location_id=location_id,
            task_id=task.id,
            points=task.points,
            awarded_at=now,
        ))
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyCompletedError(task.id) from exc

        state = derive_game_state(load_ledger(db, location_id), now)
        context = _achievement_context(db, location_id, task, state)
        try:
            unlocked = unlock_new(db, location_id, context, now)
        except IntegrityError as exc:
            raise ConflictError(location_id) from exc

        try:
            outcome = updater.push(task, action_payload)
        except EngagementException:
            raise
        except Exception as exc:
            logger.warning("listing update failed location=%s task=%s: %s", location_id, task.id, exc)
            raise CollaboratorError(
                "listing_updater", f"Listing update failed: {exc}", task_id=task.id
            ) from exc

        return CompletionResult(
            task=task,
            points_awarded=task.points,
            leveled_up=state.level > previous.level,
            new_level=state.level,
            new_streak=state.current_streak,
            new_total_points=state.total_points,
            new_milestones=unlocked.milestones,
            new_achievements=unlocked.achievements,
            gmb_updated=outcome.updated,
            gmb_update_note=outcome.note,
        )

    result = _run_mutation(db, location_id, "complete", work)
    logger.info(
        "complete location=%s task=%s points=%d total=%d level=%d unlocks=%d",
        location_id, task_id, result.points_awarded, result.new_total_points,
        result.new_level, len(result.new_milestones) + len(result.new_achievements),
    )
    return result


# ---------------------------------------------------------------------------
# exclude
# ---------------------------------------------------------------------------

def exclude_task(
    db: Session,
    task_id: str,
    reason: str = "dismissed",
    location_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TaskSnapshot:
    """
    Exclude a task; its definition is not regenerated for the rest of the
    calendar month. The location is taken from the task when not given.
    """
    now = as_utc(now) if now else utcnow()
    if location_id is None:
        location_id = _get_task(db, task_id).location_id

    def work() -> TaskSnapshot:
        location = _get_location(db, location_id)
        task = _get_task(db, task_id, location_id)
        _guard_transition(task, TaskStatus.excluded)
        _claim(db, location, now)
        _transition(db, task, TaskStatus.excluded, excluded_at=now, exclude_reason=reason)
        return build_snapshot(db, location, now, use_cache=False)

    snap = _run_mutation(db, location_id, "exclude", work)
    logger.info("exclude location=%s task=%s reason=%s", location_id, task_id, reason)
    return snap


# ---------------------------------------------------------------------------
# read
# ---------------------------------------------------------------------------

def _current_version(db: Session, location_id: str) -> Optional[int]:
    return db.scalar(
        select(LocationState.version).where(LocationState.location_id == location_id)
    )


def read_tasks(db: Session, location_id: str, now: Optional[datetime] = None) -> TaskSnapshot:
    """
    Snapshot as of one committed location version. The version is read
    before and after the projection; a mismatch means a writer committed
    in between and the projection is retried.
    """
    now = as_utc(now) if now else utcnow()
    attempts = max(1, settings.READ_RETRIES)
    for attempt in range(1, attempts + 1):
        db.expire_all()
        location = _get_location(db, location_id)
        before = location.version
        snap = build_snapshot(db, location, now, version=before)
        # Detach the projected rows so they keep the values read above, then
        # end the read transaction so the second version read sees new commits.
        db.expunge_all()
        db.rollback()
        if _current_version(db, location_id) == before:
            db.rollback()
            return snap
        logger.debug("read retry location=%s attempt=%d/%d", location_id, attempt, attempts)

    raise ConflictError(location_id, attempts)
