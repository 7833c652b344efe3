"""
Task Catalog Resolver.

Contract
--------
The engine hands a `CatalogRequest` (profile snapshot + definition ids
completed / excluded this calendar month + the caller's pass-through listing
credentials) to a `TaskCatalog` and receives an ordered list of
`TaskCandidate`. Which tasks exist for which gaps is the catalog's business;
the coordinator only persists what comes back.

Default ruleset
---------------
`StaticTaskCatalog` reads JSON definitions and:
  1. analyses the profile into focus types (and critical ones),
  2. drops non-repeatable definitions already done, or already satisfied
     by the profile,
  3. scores the rest by priority, impact, points and focus,
  4. picks a balanced batch (max N per category and per type),
  5. orders it critical → high → medium → low, then impact, then points.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from engagement.core.config import settings
from engagement.core.errors import CatalogUnavailableError
from engagement.services.profile import PROFILE_SIGNALS, ProfileSnapshot

logger = logging.getLogger(__name__)

_BUNDLED_CATALOG = Path(__file__).resolve().parent.parent / "data" / "task_catalog.json"

_PRIORITY_SCORES = {"high": 30, "medium": 20, "low": 10}
_IMPACT_SCORES = {"high": 25, "medium": 15, "low": 5}
_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}

_FOCUS_BOOST = 50
_CRITICAL_BOOST = 100


# ---------------------------------------------------------------------------
# Contract types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskCandidate:
    definition_id: str
    title: str
    category: str
    type: str
    points: int
    description: str = ""
    impact: str = "medium"
    priority: str = "medium"
    estimated_time: Optional[str] = None
    repeatable: bool = False


@dataclass(frozen=True)
class CatalogRequest:
    location_id: str
    profile: ProfileSnapshot
    completed_this_month: frozenset[str] = frozenset()
    excluded_this_month: frozenset[str] = frozenset()
    # Passed through untouched for catalogs that query the listing provider.
    place_id: Optional[str] = None
    gmb_account_id: Optional[str] = None
    access_token: Optional[str] = field(default=None, repr=False)


class TaskCatalog(Protocol):
    def resolve(self, request: CatalogRequest) -> list[TaskCandidate]:
        ...


# ---------------------------------------------------------------------------
# Profile analysis
# ---------------------------------------------------------------------------

@dataclass
class ProfileAnalysis:
    focus: set[str] = field(default_factory=set)
    critical: set[str] = field(default_factory=set)


def analyze_profile(profile: ProfileSnapshot) -> ProfileAnalysis:
    analysis = ProfileAnalysis()
    if not profile.has_hours:
        analysis.critical.add("hours")
    for signal in ("phone", "website", "description", "categories"):
        if signal not in profile.satisfied_signals():
            analysis.focus.add(signal)

    if profile.photo_count == 0:
        analysis.critical.add("photos")
    elif profile.photo_count < 10:
        analysis.focus.add("photos")

    if profile.review_count < 5 or (0 < profile.rating < 3.5):
        analysis.critical.add("reviews")
    elif profile.review_count < 20 or profile.rating < 4.0:
        analysis.focus.add("reviews")

    if profile.review_count < 20:
        analysis.focus.add("posts")

    analysis.focus |= analysis.critical
    return analysis


# ---------------------------------------------------------------------------
# Default ruleset
# ---------------------------------------------------------------------------

def _candidate_from_dict(raw: dict) -> TaskCandidate:
    points = int(raw.get("points", 10))
    if points <= 0:
        raise ValueError(f"definition {raw.get('id')!r} must award positive points")
    return TaskCandidate(
        definition_id=str(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description") or ""),
        category=str(raw.get("category") or "basic_info"),
        type=str(raw.get("type") or "profile"),
        impact=str(raw.get("impact") or "medium"),
        priority=str(raw.get("priority") or "medium"),
        estimated_time=raw.get("estimatedTime") or raw.get("estimated_time"),
        points=points,
        repeatable=bool(raw.get("repeatable", False)),
    )


def load_definitions(path: Optional[str | Path] = None) -> list[TaskCandidate]:
    source = Path(path or settings.TASK_CATALOG_PATH or _BUNDLED_CATALOG)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
        definitions = [_candidate_from_dict(item) for item in data]
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise CatalogUnavailableError(f"{source}: {exc}") from exc

    ids = [d.definition_id for d in definitions]
    if len(ids) != len(set(ids)):
        raise CatalogUnavailableError(f"{source}: duplicate definition ids")
    logger.info("Task catalog loaded path=%s definitions=%d", source, len(definitions))
    return definitions


class StaticTaskCatalog:
    def __init__(
        self,
        definitions: Optional[list[TaskCandidate]] = None,
        batch_size: Optional[int] = None,
        max_per_group: Optional[int] = None,
    ) -> None:
        self._definitions = definitions if definitions is not None else load_definitions()
        self.batch_size = batch_size or settings.TASKS_PER_CYCLE
        self.max_per_group = max_per_group or settings.MAX_TASKS_PER_CATEGORY

    def resolve(self, request: CatalogRequest) -> list[TaskCandidate]:
        analysis = analyze_profile(request.profile)
        satisfied = request.profile.satisfied_signals()

        available = []
        for d in self._definitions:
            if d.definition_id in request.excluded_this_month:
                continue
            if not d.repeatable and d.definition_id in request.completed_this_month:
                continue
            if not d.repeatable and d.type in PROFILE_SIGNALS and d.type in satisfied:
                continue
            available.append(d)

        ranked = sorted(
            available,
            key=lambda d: (-self._score(d, analysis), d.definition_id),
        )
        return prioritize(self._balance(ranked), analysis)

    @staticmethod
    def _score(d: TaskCandidate, analysis: ProfileAnalysis) -> int:
        score = _PRIORITY_SCORES.get(d.priority, 0) + _IMPACT_SCORES.get(d.impact, 0) + d.points
        if d.type in analysis.focus or d.category in analysis.focus:
            score += _FOCUS_BOOST
        if d.type in analysis.critical:
            score += _CRITICAL_BOOST
        return score

    def _balance(self, ranked: list[TaskCandidate]) -> list[TaskCandidate]:
        picked: list[TaskCandidate] = []
        by_category: dict[str, int] = {}
        by_type: dict[str, int] = {}
        for d in ranked:
            if len(picked) >= self.batch_size:
                break
            if by_category.get(d.category, 0) >= self.max_per_group:
                continue
            if by_type.get(d.type, 0) >= self.max_per_group:
                continue
            picked.append(d)
            by_category[d.category] = by_category.get(d.category, 0) + 1
            by_type[d.type] = by_type.get(d.type, 0) + 1
        return picked


def prioritize(
    tasks: list[TaskCandidate],
    analysis: Optional[ProfileAnalysis] = None,
) -> list[TaskCandidate]:
    critical = analysis.critical if analysis else set()

    def key(d: TaskCandidate):
        group = 0 if (d.type in critical and d.priority == "high") else 1 + _PRIORITY_ORDER.get(d.priority, 3)
        return (group, _IMPACT_ORDER.get(d.impact, 3), -d.points, d.definition_id)

    return sorted(tasks, key=key)
