"""
Scoring engine — three bounded sub-scores per location.

  profile     weighted share of satisfied profile signals
              (phone, website, hours, description, photos, categories).
              A signal counts when the stored profile snapshot has it OR a
              task of that type has been completed.

  engagement  completed engagement tasks (reviews / messaging / questions)
              relative to every engagement task ever generated.

  content     weighted content completions (posts / photos / videos) in the
              trailing window, relative to a target count.

Every score is an int in [0, 100]. Pure functions over already-loaded rows;
no I/O, no clock reads.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol

from engagement.core.config import settings
from engagement.models.task import TaskStatus
from engagement.services.clock import as_utc
from engagement.services.profile import PROFILE_SIGNALS, ProfileSnapshot


class ScoredTask(Protocol):
    type: str
    status: TaskStatus
    completed_at: Optional[datetime]


def _default_profile_weights() -> dict[str, int]:
    return {
        "phone": 15,
        "website": 15,
        "hours": 25,
        "description": 15,
        "photos": 20,
        "categories": 10,
    }


def _default_content_weights() -> dict[str, Decimal]:
    return {"posts": Decimal("1"), "photos": Decimal("1"), "videos": Decimal("1.5")}


@dataclass(frozen=True)
class ScoringConfig:
    profile_weights: dict[str, int] = field(default_factory=_default_profile_weights)
    engagement_types: frozenset[str] = frozenset({"reviews", "messaging", "questions"})
    content_weights: dict[str, Decimal] = field(default_factory=_default_content_weights)
    content_target: int = 8
    content_window_days: int = 30

    @classmethod
    def from_settings(cls) -> "ScoringConfig":
        return cls(
            content_target=settings.SCORE_CONTENT_TARGET,
            content_window_days=settings.SCORE_CONTENT_WINDOW_DAYS,
        )


@dataclass(frozen=True)
class Scores:
    profile: int
    engagement: int
    content: int

    @property
    def total(self) -> int:
        return self.profile + self.engagement + self.content


def _percent(numerator: Decimal, denominator: Decimal) -> int:
    if denominator <= 0:
        return 0
    value = (numerator * 100 / denominator).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(min(Decimal(100), max(Decimal(0), value)))


def _completed(tasks: Iterable[ScoredTask]) -> list[ScoredTask]:
    return [t for t in tasks if t.status == TaskStatus.completed]


def profile_score(
    profile: ProfileSnapshot,
    tasks: Iterable[ScoredTask],
    config: ScoringConfig,
) -> int:
    satisfied = profile.satisfied_signals()
    satisfied |= {t.type for t in _completed(tasks) if t.type in PROFILE_SIGNALS}
    total = sum(config.profile_weights.get(s, 0) for s in PROFILE_SIGNALS)
    earned = sum(config.profile_weights.get(s, 0) for s in satisfied)
    return _percent(Decimal(earned), Decimal(total))


def engagement_score(tasks: Iterable[ScoredTask], config: ScoringConfig) -> int:
    relevant = [t for t in tasks if t.type in config.engagement_types]
    done = sum(1 for t in relevant if t.status == TaskStatus.completed)
    return _percent(Decimal(done), Decimal(len(relevant)))


def content_score(
    tasks: Iterable[ScoredTask],
    now: datetime,
    config: ScoringConfig,
) -> int:
    window_start = as_utc(now) - timedelta(days=config.content_window_days)
    earned = Decimal(0)
    for t in _completed(tasks):
        weight = config.content_weights.get(t.type)
        if weight is None or t.completed_at is None:
            continue
        if as_utc(t.completed_at) >= window_start:
            earned += weight
    return _percent(earned, Decimal(config.content_target))


def compute_scores(
    profile: ProfileSnapshot,
    tasks: Iterable[ScoredTask],
    now: datetime,
    config: Optional[ScoringConfig] = None,
) -> Scores:
    cfg = config or ScoringConfig.from_settings()
    rows = list(tasks)
    return Scores(
        profile=profile_score(profile, rows, cfg),
        engagement=engagement_score(rows, cfg),
        content=content_score(rows, now, cfg),
    )
