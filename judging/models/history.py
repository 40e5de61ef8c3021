"""
History Models - Judging Leaderboard Engine
judging/models/history.py

Per-team time series derived from aggregated scores and leaderboard
snapshots. These are never edited by hand: the trend analyzer builds them,
and append() only ever adds newer entries.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from judging.config import settings
from judging.core.exceptions import HistoryOrderError
from judging.models.enumerations import TrendDirection

HIGH_SCORE_THRESHOLD = 80.0
LOW_SCORE_THRESHOLD = 60.0


class SubmissionRef(BaseModel):
    """Directory record for a submission, supplied by the submission store."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    team_id: str
    event_id: str
    event_name: str = ""
    submitted_by: Optional[str] = Field(default=None, description="Member who made the submission")
    submitted_at: datetime


# ============================================================================
# Score history
# ============================================================================

class ScoreHistoryEntry(BaseModel):
    """One scored submission in a team's history."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    event_id: str
    event_name: str = ""
    score: float
    total_score: float
    judge_count: int = 0
    criteria_scores: Dict[str, float] = Field(default_factory=dict)
    submitted_at: datetime

    @property
    def is_high_score(self) -> bool:
        return self.score >= HIGH_SCORE_THRESHOLD

    @property
    def is_low_score(self) -> bool:
        return self.score < LOW_SCORE_THRESHOLD


class ScoreSummary(BaseModel):
    """Average / highest / lowest over some slice of a history."""

    model_config = ConfigDict(frozen=True)

    entry_count: int = 0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0


def _summarize(entries: List[ScoreHistoryEntry]) -> ScoreSummary:
    if not entries:
        return ScoreSummary()
    scores = [e.score for e in entries]
    return ScoreSummary(
        entry_count=len(scores),
        average_score=round(sum(scores) / len(scores), settings.SCORE_DECIMAL_PLACES),
        highest_score=max(scores),
        lowest_score=min(scores),
    )


class ScoreHistory(BaseModel):
    """Time-ordered score series for a team. Oldest entry first."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    entries: List[ScoreHistoryEntry] = Field(default_factory=list)
    calculated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_entries(self) -> bool:
        return bool(self.entries)

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def average_score(self) -> float:
        return _summarize(self.entries).average_score

    @property
    def highest_score(self) -> float:
        return _summarize(self.entries).highest_score

    @property
    def lowest_score(self) -> float:
        return _summarize(self.entries).lowest_score

    @property
    def latest_entry(self) -> Optional[ScoreHistoryEntry]:
        return self.entries[-1] if self.entries else None

    def entries_in_range(self, start: datetime, end: datetime) -> List[ScoreHistoryEntry]:
        """Entries submitted within [start, end], both ends inclusive."""
        return [e for e in self.entries if start <= e.submitted_at <= end]

    def summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ScoreSummary:
        """Summary over the whole series, or an inclusive date sub-range."""
        entries = self.entries
        if start is not None:
            entries = [e for e in entries if e.submitted_at >= start]
        if end is not None:
            entries = [e for e in entries if e.submitted_at <= end]
        return _summarize(entries)

    def recent_entries(self, n: int) -> List[ScoreHistoryEntry]:
        """The n most recent entries, newest first."""
        if n <= 0:
            return []
        return list(reversed(self.entries[-n:]))

    def append(self, entry: ScoreHistoryEntry) -> "ScoreHistory":
        """
        Return a new history with entry added at the end.

        Raises:
            HistoryOrderError: entry is older than the latest entry.
        """
        latest = self.latest_entry
        if latest is not None and entry.submitted_at < latest.submitted_at:
            raise HistoryOrderError(
                self.team_id,
                f"Entry for submission {entry.submission_id} predates the latest history entry",
            )
        return self.model_copy(update={"entries": self.entries + [entry]})


# ============================================================================
# Score trend
# ============================================================================

class TrendWindow(BaseModel):
    """Points within `period` of now, then at most the latest `max_points`."""

    model_config = ConfigDict(frozen=True)

    period: Optional[timedelta] = None
    max_points: Optional[int] = Field(default=None, ge=1)


class ScoreTrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    score: float
    event_name: str = ""
    submission_id: str


class ScoreTrend(BaseModel):
    """Direction and magnitude of a team's recent score movement."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    trend_direction: TrendDirection
    trend_percentage: float = Field(..., description="Least-squares slope per step as % of window mean")
    total_change_percentage: float = Field(default=0.0, description="Last vs first point, in %")
    average_score: float
    data_points: List[ScoreTrendPoint] = Field(default_factory=list)
    calculated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_improving(self) -> bool:
        return self.trend_direction == TrendDirection.UPWARD

    @property
    def is_declining(self) -> bool:
        return self.trend_direction == TrendDirection.DOWNWARD

    @property
    def is_stable(self) -> bool:
        return self.trend_direction == TrendDirection.STABLE

    @property
    def trend_description(self) -> str:
        if self.trend_direction == TrendDirection.UPWARD:
            return f"Improving by {abs(self.trend_percentage):.1f}%"
        if self.trend_direction == TrendDirection.DOWNWARD:
            return f"Declining by {abs(self.trend_percentage):.1f}%"
        return "Stable performance"

    @property
    def latest_score(self) -> Optional[float]:
        return self.data_points[-1].score if self.data_points else None

    @property
    def earliest_score(self) -> Optional[float]:
        return self.data_points[0].score if self.data_points else None

    @property
    def data_point_count(self) -> int:
        return len(self.data_points)


# ============================================================================
# Position history
# ============================================================================

class PositionHistoryEntry(BaseModel):
    """A team's position in one leaderboard snapshot."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_name: str = ""
    position: int = Field(..., ge=1)
    score: float
    total_teams: int = Field(..., ge=1)
    timestamp: datetime

    @property
    def is_winning_position(self) -> bool:
        return self.position <= settings.WINNING_POSITIONS

    @property
    def is_first_place(self) -> bool:
        return self.position == 1

    @property
    def position_percentile(self) -> float:
        """100 for first place, approaching 0 for last."""
        return (self.total_teams - self.position + 1) / self.total_teams * 100


class PositionHistory(BaseModel):
    """
    Time-ordered positions for a team.

    position_change = latest position - previous position. Positive means the
    position number grew, i.e. the team dropped in the ranking.
    """

    model_config = ConfigDict(frozen=True)

    team_id: str
    entries: List[PositionHistoryEntry] = Field(default_factory=list)
    calculated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_entries(self) -> bool:
        return bool(self.entries)

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def current_position(self) -> Optional[int]:
        return self.entries[-1].position if self.entries else None

    @property
    def best_position(self) -> Optional[int]:
        if not self.entries:
            return None
        return min(e.position for e in self.entries)

    @property
    def position_change(self) -> Optional[int]:
        if len(self.entries) < 2:
            return None
        return self.entries[-1].position - self.entries[-2].position

    def append(self, entry: PositionHistoryEntry) -> "PositionHistory":
        """
        Raises:
            HistoryOrderError: entry is older than the latest entry.
        """
        if self.entries and entry.timestamp < self.entries[-1].timestamp:
            raise HistoryOrderError(
                self.team_id,
                f"Position for event {entry.event_id} predates the latest history entry",
            )
        return self.model_copy(update={"entries": self.entries + [entry]})
