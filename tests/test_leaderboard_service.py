"""
Leaderboard Service Tests - Judging Leaderboard Engine
tests/test_leaderboard_service.py

End-to-end tests: score intake, recalculation, snapshots, caching and
history queries.
"""
import pytest
from datetime import timedelta
from unittest.mock import MagicMock

import redis

from judging.core.exceptions import LeaderboardValidationError, ScoreValidationError
from judging.models.enumerations import TrendDirection
from judging.models.history import SubmissionRef
from judging.models.leaderboard import LeaderboardFilter
from judging.services.cache import aggregate_key, leaderboard_key
from judging.services.leaderboard_service import LeaderboardService


@pytest.fixture
def scored_service(service, quality_creativity_rubric, event_id, base_time):
    """
    sub-a1: judge-a 80/70, judge-b 90/-   → 80.0
    sub-a2: judge-a 60/60                 → 60.0
    sub-b1: judge-a 95/95                 → 95.0
    sub-c1: not scored
    """
    rubric = quality_creativity_rubric
    service.submit_score(rubric, "sub-a1", "judge-a", event_id, {"quality": 80, "creativity": 70}, base_time)
    service.submit_score(rubric, "sub-a1", "judge-b", event_id, {"quality": 90}, base_time)
    service.submit_score(rubric, "sub-a2", "judge-a", event_id, {"quality": 60, "creativity": 60}, base_time)
    service.submit_score(rubric, "sub-b1", "judge-a", event_id, {"quality": 95, "creativity": 95}, base_time)
    return service


class TestSubmitScore:
    """Score intake."""

    def test_new_record_has_total(self, service, quality_creativity_rubric, event_id, base_time):
        record = service.submit_score(
            quality_creativity_rubric, "sub-a1", "judge-a", event_id, {"quality": 80, "creativity": 70}, base_time
        )
        assert record.total_score == 76.6667
        assert service.store.get("sub-a1", "judge-a") == record

    def test_update_merges_values(self, service, quality_creativity_rubric, event_id, base_time):
        service.submit_score(quality_creativity_rubric, "sub-a1", "judge-b", event_id, {"quality": 90}, base_time)
        later = base_time + timedelta(minutes=10)
        updated = service.submit_score(
            quality_creativity_rubric, "sub-a1", "judge-b", event_id, {"creativity": 50}, later, comment="Solid"
        )
        assert set(updated.values) == {"quality", "creativity"}
        assert updated.comment == "Solid"
        assert updated.created_at == base_time
        assert updated.updated_at == later
        assert updated.total_score == 76.6667

    def test_invalid_payload_leaves_store_untouched(self, service, quality_creativity_rubric, event_id, base_time):
        with pytest.raises(ScoreValidationError):
            service.submit_score(quality_creativity_rubric, "sub-a1", "judge-a", event_id, {"quality": 500}, base_time)
        assert service.store.get("sub-a1", "judge-a") is None


class TestAggregateSubmission:
    """Per-submission aggregation through the service."""

    def test_scenario(self, scored_service, quality_creativity_rubric, submissions):
        result = scored_service.aggregate_submission(quality_creativity_rubric, submissions[0])
        assert result.total_score == 80.0
        assert result.completion_percentage == 75.0

    def test_unscored_submission(self, scored_service, quality_creativity_rubric, submissions):
        result = scored_service.aggregate_submission(quality_creativity_rubric, submissions[3])
        assert result.submission_id == "sub-c1"
        assert result.total_score == 0.0
        assert result.completion_percentage == 0.0


class TestRecalculateLeaderboard:
    """Leaderboard recalculation and snapshots."""

    def test_ranking(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time, team_names):
        board = scored_service.recalculate_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time, team_names=team_names
        )
        assert [(e.team_name, e.position) for e in board.entries] == [("Bravo", 1), ("Alpha", 2), ("Charlie", 3)]
        alpha = board.entry_for_team("team-a")
        assert alpha.average_score == 70.0
        assert alpha.total_score == 80.0
        assert alpha.submission_count == 2

    def test_team_without_submissions(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        names = {"team-a": "Alpha", "team-b": "Bravo", "team-c": "Charlie", "team-d": "Delta"}
        board = scored_service.recalculate_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time, team_names=names
        )
        delta = board.entry_for_team("team-d")
        assert delta.submission_count == 0
        assert delta.position == 4

    def test_snapshot_persisted(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        board = scored_service.recalculate_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)
        assert scored_service.snapshots.latest(event_id) == board
        assert scored_service.get_cached_leaderboard(event_id) == board

    def test_filtered_view_not_persisted(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        scored_service.recalculate_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time, filter=LeaderboardFilter(top_n=1)
        )
        assert scored_service.snapshots.latest(event_id) is None

    def test_recalculation_sees_new_scores(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        first = scored_service.recalculate_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)
        scored_service.submit_score(
            quality_creativity_rubric, "sub-c1", "judge-a", event_id, {"quality": 100, "creativity": 100}, base_time
        )
        second = scored_service.recalculate_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time + timedelta(hours=1)
        )
        assert first.entry_for_team("team-c").position == 3
        assert second.first_place.team_id == "team-c"
        assert len(scored_service.snapshots.for_event(event_id)) == 2

    def test_foreign_submission_rejected(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        stray = SubmissionRef(submission_id="sub-x", team_id="team-x", event_id="evt-other", submitted_at=base_time)
        with pytest.raises(LeaderboardValidationError):
            scored_service.recalculate_leaderboard(
                event_id, quality_creativity_rubric, submissions + [stray], base_time
            )


class TestIndividualLeaderboard:
    """Per-member ranking through the service."""

    def test_ranking(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        board = scored_service.recalculate_individual_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time, member_names={"member-ana": "Ana"}
        )
        assert [(e.member_id, e.position) for e in board.entries] == [("member-ana", 1), ("member-ben", 2)]
        ana = board.entry_for_member("member-ana")
        assert ana.member_name == "Ana"
        assert ana.average_score == 87.5
        assert ana.total_score == 175.0
        assert ana.submission_count == 2

    def test_unscored_members_left_out(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        board = scored_service.recalculate_individual_leaderboard(
            event_id, quality_creativity_rubric, submissions, base_time
        )
        assert board.entry_for_member("member-cy") is None
        assert board.metadata["members_with_scores"] == 2
        assert board.metadata["total_submissions"] == 4
        assert board.metadata["total_scores"] == 4

    def test_submissions_without_submitter_skipped(
        self, scored_service, quality_creativity_rubric, submissions, event_id, base_time
    ):
        anonymous = [s.model_copy(update={"submitted_by": None}) for s in submissions]
        board = scored_service.recalculate_individual_leaderboard(
            event_id, quality_creativity_rubric, anonymous, base_time
        )
        assert board.entries == []

    def test_not_persisted(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        scored_service.recalculate_individual_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)
        assert scored_service.snapshots.latest(event_id) is None

    def test_foreign_submission_rejected(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        stray = SubmissionRef(submission_id="sub-x", team_id="team-x", event_id="evt-other", submitted_at=base_time)
        with pytest.raises(LeaderboardValidationError):
            scored_service.recalculate_individual_leaderboard(
                event_id, quality_creativity_rubric, submissions + [stray], base_time
            )


class TestHistoryQueries:
    """History, trend and position queries."""

    def test_team_score_history(self, scored_service, quality_creativity_rubric, submissions, base_time):
        history = scored_service.team_score_history("team-a", quality_creativity_rubric, submissions, base_time)
        assert [e.submission_id for e in history.entries] == ["sub-a1", "sub-a2"]
        assert history.average_score == 70.0
        assert history.highest_score == 80.0

    def test_unscored_submissions_skipped(self, scored_service, quality_creativity_rubric, submissions, base_time):
        history = scored_service.team_score_history("team-c", quality_creativity_rubric, submissions, base_time)
        assert history.entries == []

    def test_rubric_per_event(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        history = scored_service.team_score_history(
            "team-a", {event_id: quality_creativity_rubric}, submissions, base_time
        )
        assert history.entry_count == 2

    def test_team_score_trend(self, scored_service, quality_creativity_rubric, submissions, base_time):
        trend = scored_service.team_score_trend(
            "team-a", quality_creativity_rubric, submissions, now=base_time + timedelta(hours=3)
        )
        assert trend.trend_direction == TrendDirection.DOWNWARD
        assert trend.data_point_count == 2

    def test_team_position_history(self, scored_service, quality_creativity_rubric, submissions, event_id, base_time):
        scored_service.recalculate_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)

        later = base_time + timedelta(days=7)
        next_event = [
            SubmissionRef(submission_id="n-a", team_id="team-a", event_id="evt-next", submitted_at=later),
            SubmissionRef(submission_id="n-b", team_id="team-b", event_id="evt-next", submitted_at=later),
        ]
        scored_service.submit_score(
            quality_creativity_rubric, "n-a", "judge-a", "evt-next", {"quality": 99, "creativity": 99}, later
        )
        scored_service.submit_score(
            quality_creativity_rubric, "n-b", "judge-a", "evt-next", {"quality": 50, "creativity": 50}, later
        )
        scored_service.recalculate_leaderboard("evt-next", quality_creativity_rubric, next_event, later)

        history = scored_service.team_position_history("team-a", later, event_names={"evt-next": "Finals"})
        assert [e.position for e in history.entries] == [2, 1]
        assert history.position_change == -1
        assert history.best_position == 1
        assert history.entries[-1].event_name == "Finals"

    def test_event_scoring_stats(self, scored_service, event_id):
        stats = scored_service.event_scoring_stats(event_id)
        assert stats.total_scores == 4
        assert stats.average_score == 80.4167
        assert stats.completed_submissions == 3
        assert stats.judge_participation == {"judge-a": 3, "judge-b": 1}


class TestServiceCaching:
    """Redis is best effort."""

    def test_leaderboard_cached_after_recalculation(
        self, score_store, snapshot_store, quality_creativity_rubric, submissions, event_id, base_time
    ):
        cache = MagicMock()
        service = LeaderboardService(store=score_store, snapshots=snapshot_store, cache=cache)
        board = service.recalculate_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)
        cache.set.assert_called_once()
        key, value, _ttl = cache.set.call_args[0]
        assert key == leaderboard_key(event_id)
        assert value == board

    def test_cache_hit_skips_store(self, score_store, snapshot_store, quality_creativity_rubric, submissions):
        cached = MagicMock(rubric_id=quality_creativity_rubric.id)
        cache = MagicMock()
        cache.get.return_value = cached
        service = LeaderboardService(store=score_store, snapshots=snapshot_store, cache=cache)
        assert service.aggregate_submission(quality_creativity_rubric, submissions[0]) is cached

    def test_submit_invalidates(self, score_store, snapshot_store, quality_creativity_rubric, event_id, base_time):
        cache = MagicMock()
        service = LeaderboardService(store=score_store, snapshots=snapshot_store, cache=cache)
        service.submit_score(quality_creativity_rubric, "sub-a1", "judge-a", event_id, {"quality": 80}, base_time)
        deleted = [c.args[0] for c in cache.delete.call_args_list]
        assert deleted == [aggregate_key(event_id, "sub-a1"), leaderboard_key(event_id)]

    def test_redis_errors_degrade_gracefully(
        self, score_store, snapshot_store, quality_creativity_rubric, submissions, event_id, base_time
    ):
        cache = MagicMock()
        cache.get.side_effect = redis.ConnectionError("down")
        cache.set.side_effect = redis.ConnectionError("down")
        cache.delete.side_effect = redis.ConnectionError("down")
        service = LeaderboardService(store=score_store, snapshots=snapshot_store, cache=cache)

        service.submit_score(quality_creativity_rubric, "sub-a1", "judge-a", event_id, {"quality": 80}, base_time)
        result = service.aggregate_submission(quality_creativity_rubric, submissions[0])
        assert result.total_score == 80.0
        board = service.recalculate_leaderboard(event_id, quality_creativity_rubric, submissions, base_time)
        assert service.get_cached_leaderboard(event_id) == board

    def test_invalidate_event(self, score_store, snapshot_store, event_id):
        cache = MagicMock()
        cache.delete_pattern.return_value = 2
        service = LeaderboardService(store=score_store, snapshots=snapshot_store, cache=cache)
        service.invalidate_event(event_id)
        cache.delete_pattern.assert_called_once_with(f"judging:aggregate:{event_id}:*")
        cache.delete.assert_called_once_with(leaderboard_key(event_id))
