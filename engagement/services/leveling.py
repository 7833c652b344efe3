"""
Leveling engine — level is derived from total points, never stored.

Curve
-----
Cumulative threshold for level L:

    T(1)   = 0
    T(L+1) = T(L) + step * L        (step = LEVEL_STEP_POINTS, default 100)

so with the default step T(2)=100, T(3)=300, T(4)=600: each level costs
`step` more than the previous one. Closed form: T(L) = step * L * (L-1) / 2.

Everything here is integer arithmetic plus one final rounding, so the same
total always yields byte-identical output.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from engagement.core.config import settings


@dataclass(frozen=True)
class LevelProgress:
    level: int
    progress_to_next_level: float       # 0.00 – 100.00
    points_in_current_level: int
    points_for_next_level: int          # size of the current level band
    level_floor: int                    # T(level)
    next_level_at: int                  # T(level + 1)


def _step(step: Optional[int]) -> int:
    s = settings.LEVEL_STEP_POINTS if step is None else step
    if s <= 0:
        raise ValueError("level step must be positive")
    return s


def threshold_for_level(level: int, step: Optional[int] = None) -> int:
    """Cumulative points required to reach `level` (T(level))."""
    if level < 1:
        raise ValueError("levels start at 1")
    return _step(step) * level * (level - 1) // 2


def level_for_points(total_points: int, step: Optional[int] = None) -> int:
    s = _step(step)
    points = max(0, total_points)
    level = 1
    while threshold_for_level(level + 1, s) <= points:
        level += 1
    return level


def level_progress(total_points: int, step: Optional[int] = None) -> LevelProgress:
    s = _step(step)
    points = max(0, total_points)
    level = level_for_points(points, s)
    floor = threshold_for_level(level, s)
    ceiling = threshold_for_level(level + 1, s)
    band = ceiling - floor
    into = points - floor

    raw = Decimal(into) * Decimal(100) / Decimal(band)
    raw = min(Decimal(100), max(Decimal(0), raw))
    progress = float(raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    return LevelProgress(
        level=level,
        progress_to_next_level=progress,
        points_in_current_level=into,
        points_for_next_level=band,
        level_floor=floor,
        next_level_at=ceiling,
    )
