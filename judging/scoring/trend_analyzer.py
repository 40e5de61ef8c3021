# judging/scoring/trend_analyzer.py
"""
History & Trend Analyzer
------------------------
Derives per-team ScoreHistory, ScoreTrend and PositionHistory from a series
of scored submissions or leaderboard snapshots. All functions are pure: the
input series are copied, sorted and never mutated.

Trend magnitude:
    slope       = least-squares slope of score against point index
    magnitude % = slope / mean(window scores) × 100        (percent per step)
    direction   = stable    if |magnitude| <= TREND_STABILITY_THRESHOLD_PCT
                  upward    if magnitude > threshold
                  downward  if magnitude < -threshold

Example: [70, 71, 72] → slope 1, mean 71 → 1.41 % per step → stable.
"""
import structlog
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from judging.config import settings
from judging.models.enumerations import TrendDirection
from judging.models.history import (
    PositionHistory,
    PositionHistoryEntry,
    ScoreHistory,
    ScoreHistoryEntry,
    ScoreTrend,
    ScoreTrendPoint,
    SubmissionRef,
    TrendWindow,
)
from judging.models.leaderboard import Leaderboard
from judging.models.score import AggregatedScore
from judging.scoring.utils import (
    ZERO,
    least_squares_slope,
    mean,
    percent_of,
    to_decimal,
    to_float,
)

logger = structlog.get_logger(__name__)

TrendInput = Union[ScoreTrendPoint, ScoreHistoryEntry]


def _as_point(item: TrendInput) -> ScoreTrendPoint:
    if isinstance(item, ScoreHistoryEntry):
        return ScoreTrendPoint(
            timestamp=item.submitted_at,
            score=item.score,
            event_name=item.event_name,
            submission_id=item.submission_id,
        )
    return item


def history_entry_from_aggregate(ref: SubmissionRef, score: AggregatedScore) -> ScoreHistoryEntry:
    """
    Pair a submission with its aggregate.

    score is the 0-100 aggregate; total_score is the sum of raw
    per-criterion averages.
    """
    raw_total = sum((to_decimal(v) for v in score.per_criterion_averages.values()), ZERO)
    return ScoreHistoryEntry(
        submission_id=ref.submission_id,
        event_id=ref.event_id,
        event_name=ref.event_name,
        score=score.total_score,
        total_score=to_float(raw_total),
        judge_count=score.contributing_judge_count,
        criteria_scores=dict(score.per_criterion_averages),
        submitted_at=ref.submitted_at,
    )


def position_entries_from_snapshots(
    team_id: str,
    leaderboards: Iterable[Leaderboard],
    event_names: Optional[Mapping[str, str]] = None,
) -> List[PositionHistoryEntry]:
    """One entry per snapshot in which team_id appears."""
    event_names = event_names or {}
    entries: List[PositionHistoryEntry] = []
    for board in leaderboards:
        entry = board.entry_for_team(team_id)
        if entry is None:
            continue
        entries.append(PositionHistoryEntry(
            event_id=board.event_id,
            event_name=event_names.get(board.event_id, ""),
            position=entry.position,
            score=entry.average_score,
            total_teams=board.team_count,
            timestamp=board.calculated_at,
        ))
    return entries


class TrendAnalyzer:
    """Derive history, trend and position series for a team."""

    def __init__(self, stability_threshold_pct: Optional[float] = None):
        if stability_threshold_pct is None:
            stability_threshold_pct = settings.TREND_STABILITY_THRESHOLD_PCT
        self.stability_threshold = to_decimal(stability_threshold_pct)

    # ------------------------------------------------------------------
    # Score history
    # ------------------------------------------------------------------

    def score_history(
        self,
        team_id: str,
        entries: Sequence[ScoreHistoryEntry],
        calculated_at: datetime,
    ) -> ScoreHistory:
        ordered = sorted(entries, key=lambda e: (e.submitted_at, e.submission_id))
        history = ScoreHistory(
            team_id=team_id,
            entries=ordered,
            calculated_at=calculated_at,
            metadata={"events": sorted({e.event_id for e in ordered})},
        )
        logger.debug("score_history_derived", team_id=team_id, entries=len(ordered))
        return history

    # ------------------------------------------------------------------
    # Score trend
    # ------------------------------------------------------------------

    def window_points(
        self,
        series: Sequence[TrendInput],
        window: TrendWindow,
        now: datetime,
    ) -> List[ScoreTrendPoint]:
        points = [_as_point(p) for p in series]
        start = now - window.period if window.period is not None else None
        points = [
            p for p in points
            if p.timestamp <= now and (start is None or p.timestamp >= start)
        ]
        points.sort(key=lambda p: (p.timestamp, p.submission_id))
        if window.max_points is not None:
            points = points[-window.max_points:]
        return points

    def direction_for(self, magnitude: Decimal) -> TrendDirection:
        if abs(magnitude) <= self.stability_threshold:
            return TrendDirection.STABLE
        return TrendDirection.UPWARD if magnitude > 0 else TrendDirection.DOWNWARD

    def score_trend(
        self,
        team_id: str,
        series: Sequence[TrendInput],
        window: Optional[TrendWindow] = None,
        *,
        now: datetime,
    ) -> ScoreTrend:
        """
        Args:
            series: Trend points or history entries, in any order.
            window: Time/size window (default: every point up to now).
            now: Window end and trend timestamp.
        """
        window = window or TrendWindow()
        points = self.window_points(series, window, now)
        scores = [to_decimal(p.score) for p in points]
        average = mean(scores)

        if len(scores) < 2:
            magnitude = ZERO
            total_change = ZERO
        else:
            magnitude = percent_of(least_squares_slope(scores), average)
            total_change = percent_of(scores[-1] - scores[0], scores[0])

        direction = self.direction_for(magnitude)

        trend = ScoreTrend(
            team_id=team_id,
            trend_direction=direction,
            trend_percentage=to_float(magnitude),
            total_change_percentage=to_float(total_change),
            average_score=to_float(average),
            data_points=points,
            calculated_at=now,
            metadata={
                "stability_threshold_pct": float(self.stability_threshold),
                "window_period_seconds": window.period.total_seconds() if window.period else None,
                "window_max_points": window.max_points,
            },
        )
        logger.info(
            "score_trend_derived",
            team_id=team_id,
            points=len(points),
            direction=direction.value,
            trend_percentage=trend.trend_percentage,
        )
        return trend

    # ------------------------------------------------------------------
    # Position history
    # ------------------------------------------------------------------

    def position_history(
        self,
        team_id: str,
        entries: Sequence[PositionHistoryEntry],
        calculated_at: datetime,
    ) -> PositionHistory:
        ordered = sorted(entries, key=lambda e: (e.timestamp, e.event_id))
        history = PositionHistory(team_id=team_id, entries=ordered, calculated_at=calculated_at)
        logger.debug(
            "position_history_derived",
            team_id=team_id,
            entries=len(ordered),
            current_position=history.current_position,
            position_change=history.position_change,
        )
        return history


_default_analyzer = TrendAnalyzer()


def derive_score_history(
    team_id: str,
    entries: Sequence[ScoreHistoryEntry],
    calculated_at: datetime,
) -> ScoreHistory:
    return _default_analyzer.score_history(team_id, entries, calculated_at)


def derive_score_trend(
    team_id: str,
    series: Sequence[TrendInput],
    window: Optional[TrendWindow] = None,
    *,
    now: datetime,
) -> ScoreTrend:
    return _default_analyzer.score_trend(team_id, series, window, now=now)


def derive_position_history(
    team_id: str,
    entries: Sequence[PositionHistoryEntry],
    calculated_at: datetime,
) -> PositionHistory:
    return _default_analyzer.position_history(team_id, entries, calculated_at)
