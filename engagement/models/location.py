"""
LocationState — one row per business location.

`version` is the per-location optimistic concurrency token: every mutating
coordinator call (refresh / start / complete / exclude) bumps it with a
compare-and-swap UPDATE in the same transaction as its other writes, so two
writers for the same location can never both commit. Readers compare the
version before and after a projection to detect a concurrent commit.

profile_snapshot: JSON-encoded ProfileSnapshot stored as Text.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from engagement.db.base import Base


class LocationState(Base):
    __tablename__ = "location_states"

    location_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    place_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    profile_snapshot: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True,
        comment="JSON-encoded profile completeness snapshot",
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
