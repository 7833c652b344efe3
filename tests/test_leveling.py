"""
Tests for the leveling curve.

T(L) = step * L * (L-1) / 2 with the default step of 100:
  T(1)=0, T(2)=100, T(3)=300, T(4)=600
"""
import pytest

from engagement.services.leveling import (
    level_for_points,
    level_progress,
    threshold_for_level,
)


class TestThresholds:
    @pytest.mark.parametrize("level,expected", [(1, 0), (2, 100), (3, 300), (4, 600), (10, 4500)])
    def test_default_curve(self, level, expected):
        assert threshold_for_level(level) == expected

    def test_custom_step(self):
        assert threshold_for_level(2, step=50) == 50
        assert threshold_for_level(3, step=50) == 150

    def test_level_zero_rejected(self):
        with pytest.raises(ValueError):
            threshold_for_level(0)

    def test_non_positive_step_rejected(self):
        with pytest.raises(ValueError):
            level_progress(10, step=0)


class TestLevelForPoints:
    @pytest.mark.parametrize("points,level", [
        (0, 1), (99, 1), (100, 2), (299, 2), (300, 3), (599, 3), (600, 4),
    ])
    def test_band_edges(self, points, level):
        assert level_for_points(points) == level

    def test_negative_total_is_level_one(self):
        assert level_for_points(-20) == 1

    def test_monotonic(self):
        levels = [level_for_points(p) for p in range(0, 3000, 7)]
        assert levels == sorted(levels)


class TestLevelProgress:
    def test_150_points(self):
        lp = level_progress(150)
        assert lp.level == 2
        assert lp.progress_to_next_level == 25.0
        assert lp.points_in_current_level == 50
        assert lp.points_for_next_level == 200
        assert lp.level_floor == 100
        assert lp.next_level_at == 300

    def test_start_of_level_is_zero_progress(self):
        lp = level_progress(100)
        assert lp.level == 2
        assert lp.progress_to_next_level == 0.0

    def test_rounded_to_two_decimals(self):
        # 1 point into the 300-point band of level 3
        assert level_progress(301).progress_to_next_level == 0.33

    def test_progress_bounded(self):
        for p in range(0, 2000, 13):
            assert 0.0 <= level_progress(p).progress_to_next_level < 100.0

    def test_deterministic(self):
        assert level_progress(1234) == level_progress(1234)
