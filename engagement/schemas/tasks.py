"""
Task engine request / response schemas (JSON is camelCase).

GET  /tasks                     → TaskSnapshotResponse
POST /tasks/refresh             → RefreshRequest    → TaskSnapshotResponse (+ message)
POST /tasks/{taskId}/complete   → CompleteRequest   → CompletionResponse
POST /tasks/{taskId}/exclude    → ExcludeRequest    → TaskSnapshotResponse
POST /tasks/{taskId}/start      → StartRequest      → TaskSnapshotResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from engagement.models.task import Task
from engagement.models.unlock import LocationAchievement, LocationMilestone
from engagement.services.clock import as_utc
from engagement.services.profile import ProfileSnapshot


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def _ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def clean_location_id(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("locations/"):
            v = v[len("locations/"):]
    return v


LocationIdField = Annotated[str, BeforeValidator(clean_location_id), Field(
    min_length=1,
    max_length=128,
    description='Business location id. A leading "locations/" is stripped.',
    examples=["1234567890"],
)]


class ProfileSnapshotIn(CamelModel):
    """Profile completeness as the dashboard currently sees the listing."""
    has_phone: bool = False
    has_website: bool = False
    has_hours: bool = False
    has_description: bool = False
    has_categories: bool = False
    photo_count: int = Field(default=0, ge=0)
    review_count: int = Field(default=0, ge=0)
    rating: float = Field(default=0.0, ge=0.0, le=5.0)

    def to_domain(self) -> ProfileSnapshot:
        return ProfileSnapshot.from_mapping(self.model_dump())


class RefreshRequest(CamelModel):
    location_id: LocationIdField
    place_id: Optional[str] = Field(default=None, description="Passed through to the task catalog.")
    gmb_account_id: Optional[str] = Field(default=None, description="Passed through to the task catalog.")
    access_token: Optional[str] = Field(default=None, description="Passed through to the task catalog.")
    profile: Optional[ProfileSnapshotIn] = Field(
        default=None,
        description="Latest profile snapshot; the stored one is kept when omitted.",
    )


class CompleteRequest(CamelModel):
    location_id: LocationIdField
    action_payload: Optional[dict[str, Any]] = Field(
        default=None,
        description="Opaque data handed to the listing updater (e.g. new hours).",
    )


class ExcludeRequest(CamelModel):
    reason: Annotated[str, Field(
        min_length=1,
        max_length=128,
        description='"dismissed" | "not_interested" | "completed_elsewhere" | free text',
    )] = "dismissed"
    location_id: Optional[Annotated[str, BeforeValidator(clean_location_id), Field(max_length=128)]] = None


class StartRequest(CamelModel):
    location_id: LocationIdField


# ---------------------------------------------------------------------------
# Response parts
# ---------------------------------------------------------------------------

class TaskOut(CamelModel):
    id: str
    definition_id: str
    location_id: str
    cycle_week: str
    title: str
    description: Optional[str] = None
    category: str
    type: str
    impact: str
    priority: str
    estimated_time: Optional[str] = None
    points: int
    status: str
    completed_at: Optional[str] = None
    excluded_at: Optional[str] = None
    exclude_reason: Optional[str] = None
    created_at: str


class StatsOut(CamelModel):
    level: int
    total_points: int
    progress_to_next_level: float
    points_in_current_level: int
    points_for_next_level: int
    current_streak: int
    longest_streak: int
    weekly_points: int
    monthly_points: int
    tasks_completed: int
    last_completion_date: Optional[str] = None


class ScoresOut(CamelModel):
    profile: int = Field(ge=0, le=100)
    engagement: int = Field(ge=0, le=100)
    content: int = Field(ge=0, le=100)
    total: int


class ActiveTasksOut(CamelModel):
    active: list[TaskOut]


class CyclePerformanceOut(CamelModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    excluded: int
    available_points: int
    earned_points: int
    by_category: dict[str, int]
    by_priority: dict[str, int]


class MonthlyPerformanceOut(CamelModel):
    tasks_completed: int
    points_earned: int
    categories_active: int


class PerformanceOut(CamelModel):
    cycle: CyclePerformanceOut
    monthly: MonthlyPerformanceOut


class MilestoneOut(CamelModel):
    id: int
    definition_id: str
    kind: str
    title: str
    description: Optional[str] = None
    reward: Optional[str] = None
    icon: Optional[str] = None
    value: int
    achieved_at: str


class AchievementOut(CamelModel):
    id: int
    definition_id: str
    title: str
    description: Optional[str] = None
    value: int
    achieved_at: str


class RecentMilestonesOut(CamelModel):
    recent: list[MilestoneOut]


class TaskSnapshotResponse(CamelModel):
    location_id: str
    stats: StatsOut
    scores: ScoresOut
    tasks: ActiveTasksOut
    completed_tasks: list[TaskOut]
    excluded_tasks: list[TaskOut]
    performance: PerformanceOut
    milestones: RecentMilestonesOut
    achievements: list[AchievementOut]
    week: Optional[str] = None
    refreshed_at: Optional[str] = None
    next_refresh: Optional[str] = None
    message: Optional[str] = None


class CompletionResponse(CamelModel):
    task_id: str
    points_awarded: int
    leveled_up: bool
    new_level: int
    new_streak: int
    new_total_points: int
    new_milestones: list[MilestoneOut]
    new_achievements: list[AchievementOut]
    gmb_updated: bool
    gmb_update_note: Optional[str] = None


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def task_to_out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        definition_id=t.definition_id,
        location_id=t.location_id,
        cycle_week=t.cycle_week,
        title=t.title,
        description=t.description,
        category=t.category,
        type=t.type,
        impact=t.impact,
        priority=t.priority,
        estimated_time=t.estimated_time,
        points=t.points,
        status=_ev(t.status),
        completed_at=_iso(t.completed_at),
        excluded_at=_iso(t.excluded_at),
        exclude_reason=t.exclude_reason,
        created_at=_iso(t.created_at) or "",
    )


def milestone_to_out(m: LocationMilestone) -> MilestoneOut:
    return MilestoneOut(
        id=m.id,
        definition_id=m.definition_id,
        kind=m.kind,
        title=m.title,
        description=m.description,
        reward=m.reward,
        icon=m.icon,
        value=m.value,
        achieved_at=_iso(m.achieved_at) or "",
    )


def achievement_to_out(a: LocationAchievement) -> AchievementOut:
    return AchievementOut(
        id=a.id,
        definition_id=a.definition_id,
        title=a.title,
        description=a.description,
        value=a.value,
        achieved_at=_iso(a.achieved_at) or "",
    )


def snapshot_to_response(snap, message: Optional[str] = None) -> TaskSnapshotResponse:
    """`snap` is an engagement.services.snapshot.TaskSnapshot."""
    s = snap.state
    return TaskSnapshotResponse(
        location_id=snap.location_id,
        stats=StatsOut(
            level=s.level,
            total_points=s.total_points,
            progress_to_next_level=s.progress_to_next_level,
            points_in_current_level=s.points_in_current_level,
            points_for_next_level=s.points_for_next_level,
            current_streak=s.current_streak,
            longest_streak=s.longest_streak,
            weekly_points=s.weekly_points,
            monthly_points=s.monthly_points,
            tasks_completed=s.tasks_completed,
            last_completion_date=str(s.last_completion_date) if s.last_completion_date else None,
        ),
        scores=ScoresOut(
            profile=snap.scores.profile,
            engagement=snap.scores.engagement,
            content=snap.scores.content,
            total=snap.scores.total,
        ),
        tasks=ActiveTasksOut(active=[task_to_out(t) for t in snap.active_tasks]),
        completed_tasks=[task_to_out(t) for t in snap.completed_tasks],
        excluded_tasks=[task_to_out(t) for t in snap.excluded_tasks],
        performance=PerformanceOut(
            cycle=CyclePerformanceOut(
                total=snap.cycle.total,
                pending=snap.cycle.pending,
                in_progress=snap.cycle.in_progress,
                completed=snap.cycle.completed,
                excluded=snap.cycle.excluded,
                available_points=snap.cycle.available_points,
                earned_points=snap.cycle.earned_points,
                by_category=snap.cycle.by_category,
                by_priority=snap.cycle.by_priority,
            ),
            monthly=MonthlyPerformanceOut(
                tasks_completed=snap.monthly.tasks_completed,
                points_earned=snap.monthly.points_earned,
                categories_active=snap.monthly.categories_active,
            ),
        ),
        milestones=RecentMilestonesOut(recent=[milestone_to_out(m) for m in snap.milestones]),
        achievements=[achievement_to_out(a) for a in snap.achievements],
        week=snap.week,
        refreshed_at=_iso(snap.refreshed_at),
        next_refresh=_iso(snap.next_refresh),
        message=message,
    )


def snapshot_payload(snap, message: Optional[str] = None) -> dict[str, Any]:
    """JSON-ready camelCase dict, used inside structured error details."""
    return snapshot_to_response(snap, message).model_dump(mode="json", by_alias=True)
