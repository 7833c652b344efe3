"""
Tasks router.

GET  /tasks?locationId=...        — current snapshot (stats, scores, tasks, unlocks)
POST /tasks/refresh               — generate this week's batch when due
POST /tasks/{taskId}/complete     — complete a task and award its points
POST /tasks/{taskId}/exclude      — dismiss a task for the rest of the month
POST /tasks/{taskId}/start        — mark a task in progress
"""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BeforeValidator
from sqlalchemy.orm import Session

from engagement.core.errors import CadenceError
from engagement.db.base import get_db
from engagement.schemas.common import ErrorResponse
from engagement.schemas.tasks import (
    CompleteRequest,
    CompletionResponse,
    ExcludeRequest,
    RefreshRequest,
    StartRequest,
    TaskSnapshotResponse,
    achievement_to_out,
    clean_location_id,
    milestone_to_out,
    snapshot_payload,
    snapshot_to_response,
)
from engagement.services.catalog import StaticTaskCatalog, TaskCatalog
from engagement.services.coordinator import (
    complete_task,
    exclude_task,
    read_tasks,
    refresh_tasks,
    start_task,
)
from engagement.services.listing_sync import ListingUpdater, NullListingUpdater

router = APIRouter(prefix="/tasks", tags=["tasks"])


# ---------------------------------------------------------------------------
# Collaborator dependencies (overridden in tests / deployments)
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def _default_catalog() -> StaticTaskCatalog:
    return StaticTaskCatalog()


def get_catalog() -> TaskCatalog:
    return _default_catalog()


def get_listing_updater() -> ListingUpdater:
    return NullListingUpdater()


TaskIdPath = Annotated[str, Path(min_length=1, max_length=320, description="Task id as returned by GET /tasks.")]
LocationIdQuery = Annotated[str, BeforeValidator(clean_location_id), Query(
    alias="locationId",
    min_length=1,
    max_length=128,
    description='Business location id. A leading "locations/" is stripped.',
    examples=["1234567890"],
)]

_ERRORS = {
    404: {"model": ErrorResponse, "description": "Unknown location or task."},
    409: {"model": ErrorResponse, "description": "Task already closed, invalid transition, or concurrent update (retryable)."},
}


# ---------------------------------------------------------------------------
# GET /tasks
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=TaskSnapshotResponse,
    response_model_by_alias=True,
    summary="Current tasks, stats and scores for a location",
    responses={404: _ERRORS[404], 409: _ERRORS[409]},
)
def get_tasks(
    location_id: LocationIdQuery,
    db: Session = Depends(get_db),
):
    """
    Return the location's snapshot as of one committed state:

    - `stats`: level, points, progress, streaks, weekly / monthly points
    - `scores`: profile, engagement and content scores (0–100 each)
    - `tasks.active`: open tasks of the current cycle, highest priority first
    - `completedTasks` / `excludedTasks`: this calendar month only
    - `milestones.recent`, `achievements`, `performance`

    Pure read, never writes.
    """
    snap = read_tasks(db=db, location_id=location_id)
    return snapshot_to_response(snap)


# ---------------------------------------------------------------------------
# POST /tasks/refresh
# ---------------------------------------------------------------------------

@router.post(
    "/refresh",
    response_model=TaskSnapshotResponse,
    response_model_by_alias=True,
    summary="Generate this cycle's task batch",
    responses={
        200: {"description": "New batch generated; full snapshot returned."},
        409: _ERRORS[409],
        429: {"model": ErrorResponse, "description": "Refresh not due yet; `details.snapshot` holds the current state."},
    },
)
def post_refresh(
    payload: RefreshRequest,
    db: Session = Depends(get_db),
    catalog: TaskCatalog = Depends(get_catalog),
):
    """
    Generate a new batch of tasks when no cycle exists yet or the previous
    cycle's `nextRefresh` has passed. Otherwise nothing is written and
    **429** `REFRESH_NOT_DUE` is returned with `nextRefresh` and the
    unchanged snapshot.

    Definitions excluded this calendar month are never regenerated.
    """
    try:
        result = refresh_tasks(
            db=db,
            location_id=payload.location_id,
            place_id=payload.place_id,
            gmb_account_id=payload.gmb_account_id,
            access_token=payload.access_token,
            profile=payload.profile.to_domain() if payload.profile else None,
            catalog=catalog,
        )
    except CadenceError as exc:
        if exc.snapshot is None:
            raise
        raise CadenceError(
            exc.next_refresh,
            snapshot=exc.snapshot,
            snapshot_payload=snapshot_payload(exc.snapshot),
        ) from exc
    return snapshot_to_response(result.snapshot, message=result.message)


# ---------------------------------------------------------------------------
# POST /tasks/{taskId}/complete
# ---------------------------------------------------------------------------

@router.post(
    "/{task_id}/complete",
    response_model=CompletionResponse,
    response_model_by_alias=True,
    summary="Complete a task and award its points",
    responses={
        404: _ERRORS[404],
        409: _ERRORS[409],
        502: {"model": ErrorResponse, "description": "Listing update failed; nothing was recorded."},
    },
)
def post_complete(
    payload: CompleteRequest,
    task_id: TaskIdPath,
    db: Session = Depends(get_db),
    updater: ListingUpdater = Depends(get_listing_updater),
):
    """
    Complete a pending or in-progress task. Points are awarded exactly once:
    a second call returns **409** `TASK_ALREADY_COMPLETED` and changes
    nothing. Newly unlocked milestones and achievements are listed in the
    response (only those unlocked by this call).
    """
    result = complete_task(
        db=db,
        location_id=payload.location_id,
        task_id=task_id,
        action_payload=payload.action_payload,
        updater=updater,
    )
    return CompletionResponse(
        task_id=result.task.id,
        points_awarded=result.points_awarded,
        leveled_up=result.leveled_up,
        new_level=result.new_level,
        new_streak=result.new_streak,
        new_total_points=result.new_total_points,
        new_milestones=[milestone_to_out(m) for m in result.new_milestones],
        new_achievements=[achievement_to_out(a) for a in result.new_achievements],
        gmb_updated=result.gmb_updated,
        gmb_update_note=result.gmb_update_note,
    )


# ---------------------------------------------------------------------------
# POST /tasks/{taskId}/exclude
# ---------------------------------------------------------------------------

@router.post(
    "/{task_id}/exclude",
    response_model=TaskSnapshotResponse,
    response_model_by_alias=True,
    summary="Dismiss a task for the rest of the month",
    responses={404: _ERRORS[404], 409: _ERRORS[409]},
)
def post_exclude(
    payload: ExcludeRequest,
    task_id: TaskIdPath,
    db: Session = Depends(get_db),
):
    """Exclude an open task. Its definition is not generated again this calendar month."""
    snap = exclude_task(
        db=db,
        task_id=task_id,
        reason=payload.reason,
        location_id=payload.location_id,
    )
    return snapshot_to_response(snap)


# ---------------------------------------------------------------------------
# POST /tasks/{taskId}/start
# ---------------------------------------------------------------------------

@router.post(
    "/{task_id}/start",
    response_model=TaskSnapshotResponse,
    response_model_by_alias=True,
    summary="Mark a task in progress",
    responses={404: _ERRORS[404], 409: _ERRORS[409]},
)
def post_start(
    payload: StartRequest,
    task_id: TaskIdPath,
    db: Session = Depends(get_db),
):
    """Move a pending task to in progress. Awards nothing."""
    snap = start_task(db=db, location_id=payload.location_id, task_id=task_id)
    return snapshot_to_response(snap)
