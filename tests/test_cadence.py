"""
Tests for the cadence gate and the UTC calendar helpers it relies on.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from engagement.services.cadence import can_refresh, next_refresh_after
from engagement.services.clock import iso_week, in_month, week_start

NOW = datetime(2091, 3, 5, 12, tzinfo=timezone.utc)


class TestCanRefresh:
    def test_no_cycle_yet(self):
        assert can_refresh(None, NOW) is True

    def test_before_next_refresh(self):
        cycle = SimpleNamespace(next_refresh=NOW + timedelta(seconds=1))
        assert can_refresh(cycle, NOW) is False

    def test_at_next_refresh(self):
        cycle = SimpleNamespace(next_refresh=NOW)
        assert can_refresh(cycle, NOW) is True

    def test_naive_next_refresh_treated_as_utc(self):
        cycle = SimpleNamespace(next_refresh=datetime(2091, 3, 5, 11, 0))
        assert can_refresh(cycle, NOW) is True

    def test_next_refresh_is_seven_days_later(self):
        assert next_refresh_after(NOW) == NOW + timedelta(days=7)


class TestClock:
    def test_iso_week_label(self):
        assert iso_week(datetime(2025, 2, 12, tzinfo=timezone.utc)) == "2025-W07"

    def test_iso_week_year_boundary(self):
        # 2024-12-30 is in ISO week 1 of 2025
        assert iso_week(datetime(2024, 12, 30, tzinfo=timezone.utc)) == "2025-W01"

    def test_week_starts_monday(self):
        ws = week_start(datetime(2025, 2, 12, 15, tzinfo=timezone.utc))
        assert ws == datetime(2025, 2, 10, tzinfo=timezone.utc)

    def test_in_month(self):
        assert in_month(datetime(2091, 3, 31, 23, 59, tzinfo=timezone.utc), NOW)
        assert not in_month(datetime(2091, 4, 1, tzinfo=timezone.utc), NOW)
        assert not in_month(None, NOW)
