from datetime import datetime
from sqlalchemy import Integer, String, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from engagement.db.base import Base


class CycleRecord(Base):
    __tablename__ = "cycle_records"
    __table_args__ = (
        UniqueConstraint("location_id", "week", name="uq_cycle_location_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    week: Mapped[str] = mapped_column(String(16), nullable=False)
    refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_refresh: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tasks_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
