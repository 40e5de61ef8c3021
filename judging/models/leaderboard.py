"""
Leaderboard Models - Judging Leaderboard Engine
judging/models/leaderboard.py

A Leaderboard is an immutable ranked snapshot of teams for one event; an
IndividualLeaderboard ranks the members who submitted. The ranker is the
only producer; validate() exists so the ranker (and tests) can assert the
snapshot invariants.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from judging.config import settings
from judging.models.enumerations import LeaderboardSortField
from judging.models.validation import FieldError, ValidationResult


def _entry_errors(entries: Sequence[Any], group: str) -> List[FieldError]:
    """
    Invariants shared by team and member rankings.

    - ids unique and non-empty, names non-empty
    - positions unique and exactly 1..N
    - no negative scores or submission counts
    """
    errors: List[FieldError] = []
    label = group.capitalize()

    seen: Set[str] = set()
    for i, entry in enumerate(entries):
        path = f"entries[{i}]"
        entry_id = getattr(entry, f"{group}_id")
        if not entry_id.strip():
            errors.append(FieldError(field=f"{path}.{group}_id", message=f"{label} ID is required"))
        elif entry_id in seen:
            errors.append(FieldError(
                field=f"{path}.{group}_id",
                message=f"Duplicate {group} ID '{entry_id}'",
            ))
        seen.add(entry_id)

        if not getattr(entry, f"{group}_name").strip():
            errors.append(FieldError(field=f"{path}.{group}_name", message=f"{label} name is required"))
        if entry.total_score < 0 or entry.average_score < 0:
            errors.append(FieldError(field=f"{path}.score", message="Scores must not be negative"))
        if entry.submission_count < 0:
            errors.append(FieldError(
                field=f"{path}.submission_count",
                message="Submission count must not be negative",
            ))

    positions = [e.position for e in entries]
    if sorted(positions) != list(range(1, len(positions) + 1)):
        errors.append(FieldError(
            field="entries.position",
            message="Positions must be unique and contiguous from 1",
        ))
    return errors


def _header_errors(board_id: str, event_id: str) -> List[FieldError]:
    errors: List[FieldError] = []
    if not board_id.strip():
        errors.append(FieldError(field="id", message="Leaderboard ID is required"))
    if not event_id.strip():
        errors.append(FieldError(field="event_id", message="Event ID is required"))
    return errors


class LeaderboardEntry(BaseModel):
    """One team's row in a leaderboard."""

    model_config = ConfigDict(frozen=True)

    team_id: str
    team_name: str
    total_score: float
    average_score: float
    submission_count: int
    position: int
    criteria_scores: Dict[str, float] = Field(default_factory=dict)

    @property
    def is_winning_position(self) -> bool:
        return 1 <= self.position <= settings.WINNING_POSITIONS

    @property
    def is_first_place(self) -> bool:
        return self.position == 1

    def criteria_score(self, key: str) -> Optional[float]:
        return self.criteria_scores.get(key)


class Leaderboard(BaseModel):
    """Ranked snapshot of teams for an event."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_id: str
    entries: List[LeaderboardEntry] = Field(default_factory=list)
    calculated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def team_count(self) -> int:
        return len(self.entries)

    @property
    def has_entries(self) -> bool:
        return bool(self.entries)

    @property
    def winners(self) -> List[LeaderboardEntry]:
        return [e for e in self.entries if e.is_winning_position]

    @property
    def first_place(self) -> Optional[LeaderboardEntry]:
        return self.entry_at_position(1)

    def entry_for_team(self, team_id: str) -> Optional[LeaderboardEntry]:
        for entry in self.entries:
            if entry.team_id == team_id:
                return entry
        return None

    def entry_at_position(self, position: int) -> Optional[LeaderboardEntry]:
        for entry in self.entries:
            if entry.position == position:
                return entry
        return None

    def top_entries(self, n: int) -> List[LeaderboardEntry]:
        return sorted(self.entries, key=lambda e: e.position)[:max(n, 0)]

    def with_metadata(self, **extra: Any) -> "Leaderboard":
        merged = dict(self.metadata)
        merged.update(extra)
        return self.model_copy(update={"metadata": merged})

    def validate(self) -> ValidationResult:
        """Check snapshot invariants (see _entry_errors)."""
        errors = _header_errors(self.id, self.event_id) + _entry_errors(self.entries, "team")
        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()


class IndividualLeaderboardEntry(BaseModel):
    """One member's row: the scored submissions they made, across teams."""

    model_config = ConfigDict(frozen=True)

    member_id: str
    member_name: str
    total_score: float = Field(..., description="Sum of the member's submission totals")
    average_score: float
    submission_count: int
    position: int
    criteria_scores: Dict[str, float] = Field(default_factory=dict)

    @property
    def is_winning_position(self) -> bool:
        return 1 <= self.position <= settings.WINNING_POSITIONS


class IndividualLeaderboard(BaseModel):
    """Ranked snapshot of submitting members for an event."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_id: str
    entries: List[IndividualLeaderboardEntry] = Field(default_factory=list)
    calculated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def member_count(self) -> int:
        return len(self.entries)

    @property
    def first_place(self) -> Optional[IndividualLeaderboardEntry]:
        for entry in self.entries:
            if entry.position == 1:
                return entry
        return None

    def entry_for_member(self, member_id: str) -> Optional[IndividualLeaderboardEntry]:
        for entry in self.entries:
            if entry.member_id == member_id:
                return entry
        return None

    def with_metadata(self, **extra: Any) -> "IndividualLeaderboard":
        merged = dict(self.metadata)
        merged.update(extra)
        return self.model_copy(update={"metadata": merged})

    def validate(self) -> ValidationResult:
        errors = _header_errors(self.id, self.event_id) + _entry_errors(self.entries, "member")
        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()


class LeaderboardFilter(BaseModel):
    """
    Optional filters applied after per-team statistics are computed.

    An empty team_ids list means no team subset.
    """

    model_config = ConfigDict(frozen=True)

    min_score: Optional[float] = Field(default=None, description="Minimum average score")
    max_score: Optional[float] = Field(default=None, description="Maximum average score")
    min_submissions: Optional[int] = Field(default=None, ge=0)
    team_ids: Optional[List[str]] = None
    top_n: Optional[int] = Field(default=None, ge=1)
    exclude_incomplete: bool = False

    @model_validator(mode="after")
    def validate_score_bounds(self) -> "LeaderboardFilter":
        if (
            self.min_score is not None
            and self.max_score is not None
            and self.min_score > self.max_score
        ):
            raise ValueError("min_score must be <= max_score")
        return self

    @property
    def team_subset(self) -> Optional[Set[str]]:
        return set(self.team_ids) if self.team_ids else None

    @property
    def is_filtering(self) -> bool:
        return any([
            self.min_score is not None,
            self.max_score is not None,
            self.min_submissions is not None,
            self.team_subset is not None,
            self.top_n is not None,
            self.exclude_incomplete,
        ])


class LeaderboardSort(BaseModel):
    """Sort field and direction. Tie-breaks do not depend on the direction."""

    model_config = ConfigDict(frozen=True)

    field: LeaderboardSortField = Field(
        default_factory=lambda: LeaderboardSortField(settings.DEFAULT_SORT_FIELD)
    )
    ascending: bool = False
