# tests/conftest.py

"""
Pytest Fixtures - Shared rubrics, score records and submissions

FIXTURE ID REFERENCE:
- Event:       evt-hackathon-2026
- Rubric:      rub-0001 (quality: weight 2, creativity: weight 1)
- Judges:      judge-a, judge-b, judge-c
- Teams:       team-a, team-b, team-c
- Submissions: sub-a1, sub-a2, sub-b1, sub-c1
"""

import pytest
from datetime import datetime, timedelta, timezone

from judging.models.enumerations import ScoringType
from judging.models.history import SubmissionRef
from judging.models.rubric import ScoringCriterion, ScoringRubric
from judging.models.score import AggregatedScore, ScoreRecord
from judging.services.leaderboard_service import LeaderboardService
from judging.services.score_store import InMemoryScoreRecordStore, LeaderboardSnapshotStore

EVENT_ID = "evt-hackathon-2026"
BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# TIME FIXTURES
# =============================================================================

@pytest.fixture
def base_time():
    """Fixed clock; the engine never reads the current time itself."""
    return BASE_TIME


@pytest.fixture
def event_id():
    return EVENT_ID


# =============================================================================
# RUBRIC FIXTURES
# =============================================================================

@pytest.fixture
def quality_creativity_rubric():
    """quality (weight 2) and creativity (weight 1), both numeric 0-100 and required."""
    return ScoringRubric(
        id="rub-0001",
        name="Hackathon Rubric",
        description="Default hackathon judging rubric",
        criteria=(
            ScoringCriterion(key="quality", name="Quality", weight=2.0),
            ScoringCriterion(key="creativity", name="Creativity", weight=1.0),
        ),
        event_id=EVENT_ID,
        created_by="organizer-1",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


@pytest.fixture
def mixed_rubric():
    """One criterion of each type; 'demo' is optional."""
    return ScoringRubric(
        id="rub-0002",
        name="Mixed Rubric",
        criteria=(
            ScoringCriterion(key="impact", name="Impact", type=ScoringType.NUMERIC, max_score=10.0, weight=1.0),
            ScoringCriterion(
                key="polish",
                name="Polish",
                type=ScoringType.SCALE,
                max_score=5.0,
                weight=1.0,
                options={"min": 1, "max": 5},
            ),
            ScoringCriterion(
                key="demo",
                name="Live Demo",
                type=ScoringType.BOOLEAN,
                weight=1.0,
                required=False,
            ),
        ),
        is_template=True,
        created_by="organizer-1",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


# =============================================================================
# SCORE RECORD FIXTURES
# =============================================================================

@pytest.fixture
def make_record(quality_creativity_rubric):
    """Factory: make_record(judge_id, values, submission_id='sub-a1')."""

    def _make(judge_id, values, submission_id="sub-a1", rubric=None, event_id=EVENT_ID):
        return ScoreRecord.build(
            rubric or quality_creativity_rubric,
            submission_id=submission_id,
            judge_id=judge_id,
            event_id=event_id,
            raw_values=values,
            now=BASE_TIME,
        )

    return _make


@pytest.fixture
def scenario_records(make_record):
    """Two judges: quality 80/90, creativity 70/missing."""
    return [
        make_record("judge-a", {"quality": 80, "creativity": 70}),
        make_record("judge-b", {"quality": 90}),
    ]


# =============================================================================
# AGGREGATE FIXTURES
# =============================================================================

@pytest.fixture
def make_aggregate():
    """Factory: make_aggregate(submission_id, total, complete=True, criteria=None)."""

    def _make(submission_id, total, complete=True, criteria=None, event_id=EVENT_ID):
        return AggregatedScore(
            submission_id=submission_id,
            event_id=event_id,
            rubric_id="rub-0001",
            total_score=total,
            completion_percentage=100.0 if complete else 50.0,
            is_complete=complete,
            per_criterion_averages=criteria or {},
            contributing_judge_count=2,
            judge_count=2,
        )

    return _make


# =============================================================================
# SUBMISSION FIXTURES
# =============================================================================

@pytest.fixture
def submissions():
    """
    team-a has two submissions, team-b and team-c one each.
    member-ana submitted sub-a1 and sub-b1, member-ben sub-a2, member-cy sub-c1.
    """
    return [
        SubmissionRef(submission_id="sub-a1", team_id="team-a", event_id=EVENT_ID,
                      event_name="Hackathon 2026", submitted_by="member-ana", submitted_at=BASE_TIME),
        SubmissionRef(submission_id="sub-a2", team_id="team-a", event_id=EVENT_ID,
                      event_name="Hackathon 2026", submitted_by="member-ben", submitted_at=BASE_TIME + timedelta(hours=2)),
        SubmissionRef(submission_id="sub-b1", team_id="team-b", event_id=EVENT_ID,
                      event_name="Hackathon 2026", submitted_by="member-ana", submitted_at=BASE_TIME + timedelta(hours=1)),
        SubmissionRef(submission_id="sub-c1", team_id="team-c", event_id=EVENT_ID,
                      event_name="Hackathon 2026", submitted_by="member-cy", submitted_at=BASE_TIME + timedelta(hours=3)),
    ]


@pytest.fixture
def team_names():
    return {"team-a": "Alpha", "team-b": "Bravo", "team-c": "Charlie"}


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def score_store():
    return InMemoryScoreRecordStore()


@pytest.fixture
def snapshot_store():
    return LeaderboardSnapshotStore()


@pytest.fixture
def service(score_store, snapshot_store):
    """LeaderboardService with fresh stores and no Redis."""
    return LeaderboardService(store=score_store, snapshots=snapshot_store, use_cache=False)
