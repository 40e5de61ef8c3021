"""
Leaderboard Service - Judging Leaderboard Engine
judging/services/leaderboard_service.py

Orchestrates the pure calculators around the stores:

  1. submit_score:            validate a judge's payload and replace their record
  2. aggregate_submission:    records → AggregatedScore (cached per submission)
  3. recalculate_leaderboard: one point-in-time read → aggregates → ranked snapshot
     (recalculate_individual_leaderboard ranks submitting members instead)
  4. history / trend / position queries derived from records and snapshots

Submission and team directories are external; callers pass SubmissionRef
lists and team names in. Redis is optional: cache failures are logged and
the service falls back to recomputation.
"""

import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Union

import redis

from judging.core.exceptions import LeaderboardValidationError
from judging.models.history import (
    PositionHistory,
    ScoreHistory,
    ScoreHistoryEntry,
    ScoreTrend,
    SubmissionRef,
    TrendWindow,
)
from judging.models.leaderboard import IndividualLeaderboard, Leaderboard, LeaderboardFilter, LeaderboardSort
from judging.models.rubric import ScoringRubric
from judging.models.score import AggregatedScore, EventScoringStats, ScoreRecord
from judging.models.validation import FieldError, ValidationResult
from judging.scoring.aggregator import ScoreAggregator
from judging.scoring.ranker import LeaderboardRanker
from judging.scoring.trend_analyzer import (
    TrendAnalyzer,
    history_entry_from_aggregate,
    position_entries_from_snapshots,
)
from judging.services.cache import (
    TTL_AGGREGATE,
    TTL_LEADERBOARD,
    aggregate_key,
    event_aggregates_pattern,
    get_cache,
    leaderboard_key,
)
from judging.services.redis_cache import RedisCache
from judging.services.score_store import (
    LeaderboardSnapshotStore,
    ScoreRecordStore,
    get_score_store,
    get_snapshot_store,
)

logger = logging.getLogger(__name__)

RubricSource = Union[ScoringRubric, Mapping[str, ScoringRubric]]


class LeaderboardService:
    """Score intake, aggregation, ranking and history for events."""

    def __init__(
        self,
        store: Optional[ScoreRecordStore] = None,
        snapshots: Optional[LeaderboardSnapshotStore] = None,
        cache: Optional[RedisCache] = None,
        use_cache: bool = True,
        aggregator: Optional[ScoreAggregator] = None,
        ranker: Optional[LeaderboardRanker] = None,
        analyzer: Optional[TrendAnalyzer] = None,
    ):
        self.store = store if store is not None else get_score_store()
        self.snapshots = snapshots if snapshots is not None else get_snapshot_store()
        self.cache = cache if cache is not None or not use_cache else get_cache()
        self.aggregator = aggregator or ScoreAggregator()
        self.ranker = ranker or LeaderboardRanker()
        self.analyzer = analyzer or TrendAnalyzer()

    # ------------------------------------------------------------------
    # Cache helpers (best effort)
    # ------------------------------------------------------------------

    def _cache_get(self, key, model):
        if self.cache is None:
            return None
        try:
            return self.cache.get(key, model)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _cache_set(self, key, value, ttl: int) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, value, ttl)
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _cache_delete(self, *keys: str) -> None:
        if self.cache is None:
            return
        for key in keys:
            try:
                self.cache.delete(key)
            except redis.RedisError as e:
                logger.warning(f"Cache invalidation failed for {key}: {e}")

    def invalidate_event(self, event_id: str) -> None:
        """Drop cached aggregates and leaderboard of an event, e.g. after a rubric edit."""
        if self.cache is None:
            return
        try:
            removed = self.cache.delete_pattern(event_aggregates_pattern(event_id))
            self.cache.delete(leaderboard_key(event_id))
            logger.info(f"Invalidated {removed} cached aggregates for event {event_id}")
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for event {event_id}: {e}")

    @staticmethod
    def _rubric_for(rubrics: RubricSource, event_id: str) -> Optional[ScoringRubric]:
        if isinstance(rubrics, ScoringRubric):
            return rubrics
        return rubrics.get(event_id)

    @staticmethod
    def _check_event(event_id: str, submissions: Sequence[SubmissionRef]) -> None:
        errors: List[FieldError] = [
            FieldError(
                field="submissions",
                message=f"Submission {s.submission_id} belongs to event {s.event_id}, not {event_id}",
            )
            for s in submissions if s.event_id != event_id
        ]
        ValidationResult.invalid(errors).raise_if_invalid(LeaderboardValidationError)

    # ------------------------------------------------------------------
    # Score intake
    # ------------------------------------------------------------------

    def submit_score(
        self,
        rubric: ScoringRubric,
        submission_id: str,
        judge_id: str,
        event_id: str,
        raw_values: Mapping[str, object],
        now: datetime,
        comment: Optional[str] = None,
    ) -> ScoreRecord:
        """
        Create or update a judge's record for a submission.

        New values are merged over the judge's existing record; the result
        replaces it whole.

        Raises:
            ScoreValidationError: payload does not fit the rubric.
        """
        existing = self.store.get(submission_id, judge_id)
        if existing is None:
            record = ScoreRecord.build(
                rubric,
                submission_id=submission_id,
                judge_id=judge_id,
                event_id=event_id,
                raw_values=raw_values,
                now=now,
                comment=comment,
            )
        else:
            record = existing.with_values(rubric, raw_values, now)
            if comment is not None:
                record = record.with_comment(comment, now)

        record = self.aggregator.with_computed_total(rubric, record)
        self.store.upsert(record)
        self._cache_delete(aggregate_key(event_id, submission_id), leaderboard_key(event_id))

        logger.info(
            f"Score {'updated' if existing else 'recorded'}: submission={submission_id} "
            f"judge={judge_id} total={record.total_score}"
        )
        return record

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate_submission(self, rubric: ScoringRubric, submission: SubmissionRef) -> AggregatedScore:
        key = aggregate_key(submission.event_id, submission.submission_id)
        cached = self._cache_get(key, AggregatedScore)
        if cached is not None and cached.rubric_id == rubric.id:
            logger.debug(f"Aggregate cache hit: {key}")
            return cached

        records = self.store.for_submission(submission.submission_id)
        result = self.aggregator.aggregate(rubric, records, submission.submission_id)
        self._cache_set(key, result, TTL_AGGREGATE)
        return result

    def _aggregate_many(
        self,
        rubrics: RubricSource,
        submissions: Sequence[SubmissionRef],
    ) -> Dict[str, AggregatedScore]:
        """Aggregate every submission from a single point-in-time read of the store."""
        records = self.store.for_submissions(s.submission_id for s in submissions)
        results: Dict[str, AggregatedScore] = {}
        for ref in sorted(submissions, key=lambda s: s.submission_id):
            rubric = self._rubric_for(rubrics, ref.event_id)
            if rubric is None:
                logger.warning(f"No rubric for event {ref.event_id}; skipping submission {ref.submission_id}")
                continue
            results[ref.submission_id] = self.aggregator.aggregate(
                rubric, records.get(ref.submission_id, []), ref.submission_id
            )
        return results

    # ------------------------------------------------------------------
    # Leaderboards
    # ------------------------------------------------------------------

    def recalculate_leaderboard(
        self,
        event_id: str,
        rubric: ScoringRubric,
        submissions: Sequence[SubmissionRef],
        calculated_at: datetime,
        team_names: Optional[Mapping[str, str]] = None,
        filter: Optional[LeaderboardFilter] = None,
        sort: Optional[LeaderboardSort] = None,
        persist: bool = True,
    ) -> Leaderboard:
        """
        Recompute the event leaderboard from the current records.

        Teams named in team_names without submissions are ranked with zeros.
        Only the unfiltered default view is persisted and cached.

        Raises:
            LeaderboardValidationError: a submission belongs to another event.
        """
        self._check_event(event_id, submissions)
        aggregates = self._aggregate_many(rubric, submissions)

        scores_by_team: Dict[str, List[AggregatedScore]] = {t: [] for t in team_names or {}}
        for ref in submissions:
            scores_by_team.setdefault(ref.team_id, []).append(aggregates[ref.submission_id])

        leaderboard = self.ranker.rank(
            event_id,
            scores_by_team,
            team_names=team_names,
            filter=filter,
            sort=sort,
            calculated_at=calculated_at,
        )

        if filter is None and sort is None:
            if persist:
                self.snapshots.save(leaderboard)
            self._cache_set(leaderboard_key(event_id), leaderboard, TTL_LEADERBOARD)

        logger.info(
            f"Leaderboard recalculated for event {event_id}: "
            f"{leaderboard.team_count} teams from {len(submissions)} submissions"
        )
        return leaderboard

    def recalculate_individual_leaderboard(
        self,
        event_id: str,
        rubric: ScoringRubric,
        submissions: Sequence[SubmissionRef],
        calculated_at: datetime,
        member_names: Optional[Mapping[str, str]] = None,
    ) -> IndividualLeaderboard:
        """
        Rank the members who submitted, by the mean of their submission totals.

        Only scored submissions with a known submitter count. Individual
        boards are computed on demand and never persisted.

        Raises:
            LeaderboardValidationError: a submission belongs to another event.
        """
        self._check_event(event_id, submissions)
        aggregates = self._aggregate_many(rubric, submissions)

        scores_by_member: Dict[str, List[AggregatedScore]] = {}
        unattributed = 0
        for ref in submissions:
            score = aggregates[ref.submission_id]
            if score.judge_count == 0:
                continue
            if not ref.submitted_by:
                unattributed += 1
                continue
            scores_by_member.setdefault(ref.submitted_by, []).append(score)

        if unattributed:
            logger.warning(f"{unattributed} scored submissions in event {event_id} have no submitter")

        board = self.ranker.rank_members(
            event_id, scores_by_member, member_names, calculated_at=calculated_at
        ).with_metadata(
            total_submissions=len(submissions),
            total_scores=sum(a.judge_count for a in aggregates.values()),
        )

        logger.info(
            f"Individual leaderboard calculated for event {event_id}: "
            f"{board.member_count} members from {len(submissions)} submissions"
        )
        return board

    def get_cached_leaderboard(self, event_id: str) -> Optional[Leaderboard]:
        """Latest default leaderboard: cache first, then the snapshot store."""
        cached = self._cache_get(leaderboard_key(event_id), Leaderboard)
        if cached is not None:
            return cached
        return self.snapshots.latest(event_id)

    # ------------------------------------------------------------------
    # History and trends
    # ------------------------------------------------------------------

    def _team_history_entries(
        self,
        team_id: str,
        rubrics: RubricSource,
        submissions: Sequence[SubmissionRef],
    ) -> List[ScoreHistoryEntry]:
        team_subs = [s for s in submissions if s.team_id == team_id]
        aggregates = self._aggregate_many(rubrics, team_subs)
        return [
            history_entry_from_aggregate(ref, aggregates[ref.submission_id])
            for ref in team_subs
            if ref.submission_id in aggregates and aggregates[ref.submission_id].judge_count > 0
        ]

    def team_score_history(
        self,
        team_id: str,
        rubrics: RubricSource,
        submissions: Sequence[SubmissionRef],
        calculated_at: datetime,
    ) -> ScoreHistory:
        """Scored submissions of a team. rubrics is one rubric or a mapping event_id → rubric."""
        entries = self._team_history_entries(team_id, rubrics, submissions)
        return self.analyzer.score_history(team_id, entries, calculated_at)

    def team_score_trend(
        self,
        team_id: str,
        rubrics: RubricSource,
        submissions: Sequence[SubmissionRef],
        now: datetime,
        window: Optional[TrendWindow] = None,
    ) -> ScoreTrend:
        entries = self._team_history_entries(team_id, rubrics, submissions)
        return self.analyzer.score_trend(team_id, entries, window, now=now)

    def team_position_history(
        self,
        team_id: str,
        calculated_at: datetime,
        event_ids: Optional[Sequence[str]] = None,
        event_names: Optional[Mapping[str, str]] = None,
    ) -> PositionHistory:
        """Position of the team in the latest persisted snapshot of each event."""
        boards = self.snapshots.latest_per_event(event_ids)
        entries = position_entries_from_snapshots(team_id, boards, event_names)
        return self.analyzer.position_history(team_id, entries, calculated_at)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def event_scoring_stats(self, event_id: str, rubric: Optional[ScoringRubric] = None) -> EventScoringStats:
        return self.aggregator.event_scoring_stats(self.store.for_event(event_id), rubric, event_id)


# Singleton
_service: Optional[LeaderboardService] = None


def get_leaderboard_service() -> LeaderboardService:
    global _service
    if _service is None:
        _service = LeaderboardService()
    return _service
