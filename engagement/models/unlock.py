"""
Milestone and achievement unlocks.

Create-once records. One row per (location_id, definition_id) — the unique
constraint enforces idempotency at the DB level; re-evaluating an unlocked
definition is a no-op in engagement/services/milestones.py and, failing that, an
IntegrityError here.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from engagement.db.base import Base


class LocationMilestone(Base):
    __tablename__ = "location_milestones"
    __table_args__ = (
        UniqueConstraint("location_id", "definition_id", name="uq_milestone_location_definition"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    definition_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reward: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LocationAchievement(Base):
    __tablename__ = "location_achievements"
    __table_args__ = (
        UniqueConstraint("location_id", "definition_id", name="uq_achievement_location_definition"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    definition_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
