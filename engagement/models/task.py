from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Text, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from engagement.db.base import Base


class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    excluded = "excluded"

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES

    def can_transition_to(self, target: "TaskStatus") -> bool:
        return target in _TRANSITIONS[self]


OPEN_STATUSES = frozenset({TaskStatus.pending, TaskStatus.in_progress})

# completed / excluded are terminal; nothing leads back to pending.
_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.pending: frozenset(
        {TaskStatus.in_progress, TaskStatus.completed, TaskStatus.excluded}
    ),
    TaskStatus.in_progress: frozenset({TaskStatus.completed, TaskStatus.excluded}),
    TaskStatus.completed: frozenset(),
    TaskStatus.excluded: frozenset(),
}


def make_task_id(location_id: str, cycle_week: str, definition_id: str) -> str:
    return f"{location_id}:{cycle_week}:{definition_id}"


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_location_week", "location_id", "cycle_week"),
        Index("ix_tasks_location_status", "location_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(320), primary_key=True)
    location_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("location_states.location_id"), nullable=False
    )
    definition_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    cycle_week: Mapped[str] = mapped_column(String(16), nullable=False)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    impact: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    estimated_time: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status_enum"),
        nullable=False,
        default=TaskStatus.pending,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    excluded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    exclude_reason: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Bumped on every status change; used as the compare-and-swap token.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
