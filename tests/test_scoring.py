"""
Tests for the profile / engagement / content scores.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from engagement.models.task import TaskStatus
from engagement.services.profile import ProfileSnapshot
from engagement.services.scoring import (
    ScoringConfig,
    compute_scores,
    content_score,
    engagement_score,
    profile_score,
)

NOW = datetime(2091, 5, 15, 12, tzinfo=timezone.utc)
CFG = ScoringConfig()


def _task(type: str, status: TaskStatus = TaskStatus.completed, days_ago: int = 1):
    completed_at = NOW - timedelta(days=days_ago) if status == TaskStatus.completed else None
    return SimpleNamespace(type=type, status=status, completed_at=completed_at)


class TestProfileScore:
    def test_empty_profile(self):
        assert profile_score(ProfileSnapshot(), [], CFG) == 0

    def test_full_profile(self):
        full = ProfileSnapshot(
            has_phone=True, has_website=True, has_hours=True,
            has_description=True, has_categories=True, photo_count=3,
        )
        assert profile_score(full, [], CFG) == 100

    def test_completed_task_counts_as_signal(self):
        assert profile_score(ProfileSnapshot(), [_task("hours")], CFG) == 25

    def test_pending_task_does_not_count(self):
        assert profile_score(ProfileSnapshot(), [_task("hours", TaskStatus.pending)], CFG) == 0

    def test_signal_counted_once(self):
        profile = ProfileSnapshot(has_hours=True)
        assert profile_score(profile, [_task("hours")], CFG) == 25


class TestEngagementScore:
    def test_no_engagement_tasks(self):
        assert engagement_score([_task("posts")], CFG) == 0

    def test_half_completed(self):
        tasks = [_task("reviews"), _task("messaging", TaskStatus.pending)]
        assert engagement_score(tasks, CFG) == 50

    def test_excluded_tasks_still_in_denominator(self):
        tasks = [_task("questions"), _task("reviews", TaskStatus.excluded)]
        assert engagement_score(tasks, CFG) == 50


class TestContentScore:
    def test_target_reached(self):
        assert content_score([_task("posts") for _ in range(8)], NOW, CFG) == 100

    def test_capped_at_100(self):
        assert content_score([_task("photos") for _ in range(20)], NOW, CFG) == 100

    def test_videos_weigh_more(self):
        # 2 * 1.5 = 3 of 8 → 37.5 → 38
        assert content_score([_task("videos"), _task("videos")], NOW, CFG) == 38

    def test_outside_window_ignored(self):
        assert content_score([_task("posts", days_ago=45)], NOW, CFG) == 0


class TestComputeScores:
    def test_bounds(self):
        tasks = [_task(t) for t in ("hours", "reviews", "posts", "videos", "photos")]
        scores = compute_scores(ProfileSnapshot(has_phone=True), tasks, NOW, CFG)
        for value in (scores.profile, scores.engagement, scores.content):
            assert 0 <= value <= 100
        assert scores.total == scores.profile + scores.engagement + scores.content

    def test_empty_inputs(self):
        scores = compute_scores(ProfileSnapshot(), [], NOW, CFG)
        assert (scores.profile, scores.engagement, scores.content) == (0, 0, 0)
