"""
Profile completeness snapshot for a location.

Supplied by the dashboard on refresh (it already holds the listing data) and
stored as JSON on LocationState. Consumed by the task catalog (gap analysis)
and by the profile score.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Optional

PROFILE_SIGNALS = ("phone", "website", "hours", "description", "photos", "categories")


@dataclass(frozen=True)
class ProfileSnapshot:
    has_phone: bool = False
    has_website: bool = False
    has_hours: bool = False
    has_description: bool = False
    has_categories: bool = False
    photo_count: int = 0
    review_count: int = 0
    rating: float = 0.0

    def satisfied_signals(self) -> set[str]:
        flags = {
            "phone": self.has_phone,
            "website": self.has_website,
            "hours": self.has_hours,
            "description": self.has_description,
            "photos": self.photo_count > 0,
            "categories": self.has_categories,
        }
        return {name for name, ok in flags.items() if ok}

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_mapping(cls, data: Optional[dict[str, Any]]) -> "ProfileSnapshot":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "ProfileSnapshot":
        if not raw:
            return cls()
        try:
            return cls.from_mapping(json.loads(raw))
        except (ValueError, TypeError):
            return cls()
