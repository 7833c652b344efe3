"""
Tests for the default task catalog (bundled JSON ruleset).
"""
import json

import pytest

from engagement.core.errors import CatalogUnavailableError
from engagement.services.catalog import (
    CatalogRequest,
    ProfileAnalysis,
    StaticTaskCatalog,
    analyze_profile,
    load_definitions,
    prioritize,
)
from engagement.services.profile import ProfileSnapshot

from tests.fakes import candidate


@pytest.fixture(scope="module")
def definitions():
    return load_definitions()


def _request(profile=ProfileSnapshot(), completed=(), excluded=()):
    return CatalogRequest(
        location_id="catalog-test",
        profile=profile,
        completed_this_month=frozenset(completed),
        excluded_this_month=frozenset(excluded),
    )


class TestLoadDefinitions:
    def test_bundled_catalog(self, definitions):
        ids = [d.definition_id for d in definitions]
        assert len(ids) == 24
        assert len(set(ids)) == 24
        assert all(d.points > 0 for d in definitions)

    def test_unreadable_file(self, tmp_path):
        bad = tmp_path / "catalog.json"
        bad.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogUnavailableError):
            load_definitions(bad)

    def test_duplicate_ids(self, tmp_path):
        dup = tmp_path / "catalog.json"
        item = {"id": "x", "title": "X", "points": 5}
        dup.write_text(json.dumps([item, item]), encoding="utf-8")
        with pytest.raises(CatalogUnavailableError):
            load_definitions(dup)

    def test_non_positive_points(self, tmp_path):
        zero = tmp_path / "catalog.json"
        zero.write_text(json.dumps([{"id": "x", "title": "X", "points": 0}]), encoding="utf-8")
        with pytest.raises(CatalogUnavailableError):
            load_definitions(zero)


class TestStaticTaskCatalog:
    def test_batch_is_balanced(self, definitions):
        tasks = StaticTaskCatalog(definitions, batch_size=10, max_per_group=4).resolve(_request())
        assert 0 < len(tasks) <= 10
        per_category: dict[str, int] = {}
        for t in tasks:
            per_category[t.category] = per_category.get(t.category, 0) + 1
        assert max(per_category.values()) <= 4

    def test_excluded_never_returned(self, definitions):
        cat = StaticTaskCatalog(definitions)
        first = cat.resolve(_request())
        banned = {t.definition_id for t in first[:3]}
        again = cat.resolve(_request(excluded=banned))
        assert banned.isdisjoint({t.definition_id for t in again})

    def test_completed_non_repeatable_dropped(self, definitions):
        tasks = StaticTaskCatalog(definitions, batch_size=24, max_per_group=24).resolve(
            _request(completed={"task_001", "task_008"})
        )
        ids = {t.definition_id for t in tasks}
        assert "task_001" not in ids
        # repeatable definitions come back even when completed this month
        assert "task_008" in ids

    def test_satisfied_profile_signal_dropped(self, definitions):
        profile = ProfileSnapshot(has_hours=True, has_phone=True)
        tasks = StaticTaskCatalog(definitions, batch_size=24, max_per_group=24).resolve(
            _request(profile=profile)
        )
        ids = {t.definition_id for t in tasks}
        assert "task_001" not in ids
        assert "task_004" not in ids

    def test_missing_hours_comes_first(self, definitions):
        tasks = StaticTaskCatalog(definitions).resolve(_request())
        assert tasks[0].type in analyze_profile(ProfileSnapshot()).critical
        assert tasks[0].priority == "high"

    def test_deterministic(self, definitions):
        cat = StaticTaskCatalog(definitions)
        assert cat.resolve(_request()) == cat.resolve(_request())


class TestPrioritize:
    def test_critical_high_before_plain_high(self):
        plain = candidate("plain", points=50, type="posts", priority="high")
        crit = candidate("crit", points=5, type="hours", priority="high")
        low = candidate("low", points=99, type="insights", priority="low")
        ordered = prioritize([low, plain, crit], ProfileAnalysis(critical={"hours"}))
        assert [t.definition_id for t in ordered] == ["crit", "plain", "low"]

    def test_points_break_ties(self):
        a = candidate("a", points=10, priority="medium")
        b = candidate("b", points=20, priority="medium")
        assert [t.definition_id for t in prioritize([a, b])] == ["b", "a"]
