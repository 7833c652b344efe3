"""
Milestone & Achievement Engine — one-time unlocks driven by the game state.

Evaluated on every successful `complete`, against the freshly recomputed
LocationGameState.

Milestones (threshold crossings)
--------------------------------
  points  : total points   ≥ 10 / 50 / 100 / 500 / 1000
  streak  : current streak ≥ 3 / 7 / 14 / 30 days
  tasks   : completions    ≥ 5 / 25 / 50 / 100
  level   : level          ≥ 2 / 5 / 10

Achievements (patterns)
-----------------------
  first_task         first completion ever
  speed_demon        5 completions on one UTC day
  review_master      10 completed "reviews" tasks
  photo_pro          10 completed "photos" tasks
  engagement_expert  10 completed tasks in the "engagement" category
  perfect_week       every non-excluded task of the current cycle completed
  comeback           a new streak started after an earlier one was broken

Idempotency
-----------
Each definition is {not-yet-unlocked, unlocked} per location. Evaluation
skips definitions already unlocked; persistence relies on the
(location_id, definition_id) unique constraint as the final guard. Unlocks
award no bonus points.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from engagement.models.unlock import LocationAchievement, LocationMilestone
from engagement.services.game_state import LocationGameState


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

class MilestoneKind:
    POINTS = "points"
    STREAK = "streak"
    TASKS  = "tasks"
    LEVEL  = "level"


@dataclass(frozen=True)
class MilestoneDefinition:
    id: str
    title: str
    description: str
    kind: str
    threshold: int
    reward: str
    icon: str


MILESTONES: tuple[MilestoneDefinition, ...] = (
    MilestoneDefinition("points_10", "First Steps", "Earn your first 10 points", MilestoneKind.POINTS, 10, "Bronze Badge", "🥉"),
    MilestoneDefinition("points_50", "Getting Started", "Earn 50 points", MilestoneKind.POINTS, 50, "Silver Badge", "🥈"),
    MilestoneDefinition("points_100", "Point Collector", "Earn 100 points", MilestoneKind.POINTS, 100, "Gold Badge", "🥇"),
    MilestoneDefinition("points_500", "Point Master", "Earn 500 points", MilestoneKind.POINTS, 500, "Diamond Badge", "💎"),
    MilestoneDefinition("points_1000", "Point Legend", "Earn 1000 points", MilestoneKind.POINTS, 1000, "Legendary Badge", "🏆"),
    MilestoneDefinition("streak_3", "3 Day Streak", "Complete tasks for 3 days in a row", MilestoneKind.STREAK, 3, "Consistency Badge", "🔥"),
    MilestoneDefinition("streak_7", "Week Warrior", "Complete tasks for 7 days in a row", MilestoneKind.STREAK, 7, "Weekly Champion", "⭐"),
    MilestoneDefinition("streak_14", "Two Week Master", "Complete tasks for 14 days in a row", MilestoneKind.STREAK, 14, "Dedication Badge", "💪"),
    MilestoneDefinition("streak_30", "Month Champion", "Complete tasks for 30 days in a row", MilestoneKind.STREAK, 30, "Elite Badge", "👑"),
    MilestoneDefinition("tasks_5", "Task Beginner", "Complete 5 tasks", MilestoneKind.TASKS, 5, "Starter Badge", "✅"),
    MilestoneDefinition("tasks_25", "Task Regular", "Complete 25 tasks", MilestoneKind.TASKS, 25, "Committed Badge", "📋"),
    MilestoneDefinition("tasks_50", "Task Expert", "Complete 50 tasks", MilestoneKind.TASKS, 50, "Expert Badge", "🎯"),
    MilestoneDefinition("tasks_100", "Task Master", "Complete 100 tasks", MilestoneKind.TASKS, 100, "Master Badge", "🏅"),
    MilestoneDefinition("level_2", "Level Up", "Reach level 2", MilestoneKind.LEVEL, 2, "Leveling Badge", "📈"),
    MilestoneDefinition("level_5", "Rising Star", "Reach level 5", MilestoneKind.LEVEL, 5, "Rising Star Badge", "🌟"),
    MilestoneDefinition("level_10", "Top Performer", "Reach level 10", MilestoneKind.LEVEL, 10, "Top Performer Badge", "🚀"),
)


def milestone_value(kind: str, state: LocationGameState) -> int:
    if kind == MilestoneKind.POINTS:
        return state.total_points
    if kind == MilestoneKind.STREAK:
        return state.current_streak
    if kind == MilestoneKind.TASKS:
        return state.tasks_completed
    if kind == MilestoneKind.LEVEL:
        return state.level
    raise ValueError(f"unknown milestone kind: {kind}")


@dataclass
class AchievementContext:
    """Everything an achievement predicate may look at."""
    state: LocationGameState
    completed_by_type: Counter = field(default_factory=Counter)
    completed_by_category: Counter = field(default_factory=Counter)
    cycle_complete: bool = False


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    predicate: Callable[[AchievementContext], bool]
    value: Callable[[AchievementContext], int]


_SPEED_DEMON_PER_DAY = 5
_CATEGORY_MASTERY = 10

ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        "first_task", "First Task Complete", "You completed your first task!",
        lambda c: c.state.tasks_completed >= 1,
        lambda c: c.state.tasks_completed,
    ),
    AchievementDefinition(
        "speed_demon", "Speed Demon", f"Completed {_SPEED_DEMON_PER_DAY} tasks in one day",
        lambda c: c.state.completed_today >= _SPEED_DEMON_PER_DAY,
        lambda c: c.state.completed_today,
    ),
    AchievementDefinition(
        "review_master", "Review Master", f"Completed {_CATEGORY_MASTERY} review-related tasks",
        lambda c: c.completed_by_type["reviews"] >= _CATEGORY_MASTERY,
        lambda c: c.completed_by_type["reviews"],
    ),
    AchievementDefinition(
        "photo_pro", "Photo Pro", f"Completed {_CATEGORY_MASTERY} photo-related tasks",
        lambda c: c.completed_by_type["photos"] >= _CATEGORY_MASTERY,
        lambda c: c.completed_by_type["photos"],
    ),
    AchievementDefinition(
        "engagement_expert", "Engagement Expert", f"Completed {_CATEGORY_MASTERY} engagement tasks",
        lambda c: c.completed_by_category["engagement"] >= _CATEGORY_MASTERY,
        lambda c: c.completed_by_category["engagement"],
    ),
    AchievementDefinition(
        "perfect_week", "Perfect Week", "Completed every task of the week",
        lambda c: c.cycle_complete,
        lambda c: c.state.weekly_points,
    ),
    AchievementDefinition(
        "comeback", "Comeback", "Started a new streak after losing one",
        lambda c: c.state.streak_restarted and c.state.current_streak >= 1,
        lambda c: c.state.current_streak,
    ),
)


# ---------------------------------------------------------------------------
# Pure evaluation
# ---------------------------------------------------------------------------

def evaluate_milestones(
    state: LocationGameState,
    unlocked: set[str],
) -> list[MilestoneDefinition]:
    """Definitions satisfied now and not yet unlocked, lowest threshold first."""
    hits = [
        m for m in MILESTONES
        if m.id not in unlocked and milestone_value(m.kind, state) >= m.threshold
    ]
    return sorted(hits, key=lambda m: (m.threshold, m.id))


def evaluate_achievements(
    context: AchievementContext,
    unlocked: set[str],
) -> list[AchievementDefinition]:
    return [a for a in ACHIEVEMENTS if a.id not in unlocked and a.predicate(context)]


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class UnlockResult:
    """Records created by one evaluation run (never the historical list)."""
    milestones: list[LocationMilestone] = field(default_factory=list)
    achievements: list[LocationAchievement] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Persistence (flush only, the coordinator owns the transaction)
# ---------------------------------------------------------------------------

def _unlocked_ids(db: Session, model, location_id: str) -> set[str]:
    return set(
        db.scalars(select(model.definition_id).where(model.location_id == location_id))
    )


def unlock_new(
    db: Session,
    location_id: str,
    context: AchievementContext,
    now: datetime,
) -> UnlockResult:
    """
    Evaluate every definition and add one row per newly satisfied one.
    Calls db.flush() so a unique-constraint race surfaces here as an
    IntegrityError; never commits.
    """
    result = UnlockResult()

    for m in evaluate_milestones(context.state, _unlocked_ids(db, LocationMilestone, location_id)):
        row = LocationMilestone(
            location_id=location_id,
            definition_id=m.id,
            kind=m.kind,
            title=m.title,
            description=m.description,
            reward=m.reward,
            icon=m.icon,
            value=milestone_value(m.kind, context.state),
            achieved_at=now,
        )
        db.add(row)
        result.milestones.append(row)

    for a in evaluate_achievements(context, _unlocked_ids(db, LocationAchievement, location_id)):
        row = LocationAchievement(
            location_id=location_id,
            definition_id=a.id,
            title=a.title,
            description=a.description,
            value=a.value(context),
            achieved_at=now,
        )
        db.add(row)
        result.achievements.append(row)

    if result.milestones or result.achievements:
        db.flush()
    return result


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def recent_milestones(
    db: Session, location_id: str, limit: int
) -> list[LocationMilestone]:
    return list(
        db.scalars(
            select(LocationMilestone)
            .where(LocationMilestone.location_id == location_id)
            .order_by(LocationMilestone.achieved_at.desc(), LocationMilestone.id.desc())
            .limit(limit)
        )
    )


def recent_achievements(
    db: Session, location_id: str, limit: Optional[int] = None
) -> list[LocationAchievement]:
    q = (
        select(LocationAchievement)
        .where(LocationAchievement.location_id == location_id)
        .order_by(LocationAchievement.achieved_at.desc(), LocationAchievement.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    return list(db.scalars(q))
