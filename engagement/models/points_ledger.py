"""
PointsLedgerEntry — one row per awarded task.

Append-only. Never updated, never deleted: total points, level, streak and
weekly/monthly sums are all derived from these rows. The unique constraint
on (location_id, task_id) is the last line of defence against a double
award.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from engagement.db.base import Base


class PointsLedgerEntry(Base):
    __tablename__ = "points_ledger"
    __table_args__ = (
        UniqueConstraint("location_id", "task_id", name="uq_points_ledger_location_task"),
        Index("ix_points_ledger_location_awarded", "location_id", "awarded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[str] = mapped_column(String(128), nullable=False)
    task_id: Mapped[str] = mapped_column(String(320), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
