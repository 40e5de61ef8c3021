"""
Score Records - Judging Leaderboard Engine
judging/models/score.py

ScoreRecord is one judge's (possibly partial) scoring of one submission.
AggregatedScore is the derived, recomputable result for a submission.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from judging.config import settings
from judging.core.exceptions import ScoreValidationError
from judging.models.rubric import ScoringRubric
from judging.models.validation import FieldError, ValidationResult
from judging.models.values import ScoreValue, coerce_score_value


def _coerce_values(
    rubric: ScoringRubric,
    raw_values: Mapping[str, Any],
    errors: List[FieldError],
) -> Dict[str, Any]:
    """Turn a raw payload into tagged values, collecting every field error."""
    values: Dict[str, Any] = {}
    for key, raw in raw_values.items():
        path = f"values.{key}"
        criterion = rubric.get_criterion(key)
        if criterion is None:
            errors.append(FieldError(field=path, message=f"Unknown criterion '{key}'"))
            continue
        try:
            value = coerce_score_value(criterion.type, raw)
        except TypeError as e:
            errors.append(FieldError(field=path, message=f"Invalid value for '{key}': {e}"))
            continue
        if not criterion.is_valid_score(value):
            errors.append(FieldError(
                field=path,
                message=f"Value {value.value!r} is out of range for criterion '{key}'",
            ))
            continue
        values[key] = value
    return values


def _comment_errors(comment: Optional[str]) -> List[FieldError]:
    if comment is not None and len(comment) > settings.MAX_COMMENT_LENGTH:
        return [FieldError(
            field="comment",
            message=f"Comments must not exceed {settings.MAX_COMMENT_LENGTH} characters",
        )]
    return []


class ScoreRecord(BaseModel):
    """
    One score record per (submission, judge) pair.

    values is sparse: a criterion the judge has not scored yet is simply
    absent. total_score is written by the aggregator and is never read back
    as input.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    submission_id: str
    judge_id: str
    event_id: str
    values: Dict[str, ScoreValue] = Field(default_factory=dict)
    comment: Optional[str] = None
    total_score: Optional[float] = Field(default=None, description="Cached 0-100 total")
    created_at: datetime
    updated_at: datetime

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        rubric: ScoringRubric,
        submission_id: str,
        judge_id: str,
        event_id: str,
        raw_values: Mapping[str, Any],
        now: datetime,
        comment: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> "ScoreRecord":
        """
        Build a record from a raw payload.

        Raises:
            ScoreValidationError: with every field error found.
        """
        errors: List[FieldError] = []
        if not submission_id.strip():
            errors.append(FieldError(field="submission_id", message="Submission ID is required"))
        if not judge_id.strip():
            errors.append(FieldError(field="judge_id", message="Judge ID is required"))
        if not event_id.strip():
            errors.append(FieldError(field="event_id", message="Event ID is required"))

        values = _coerce_values(rubric, raw_values, errors)
        errors.extend(_comment_errors(comment))

        ValidationResult.invalid(errors).raise_if_invalid(ScoreValidationError)

        return cls(
            id=record_id or str(uuid4()),
            submission_id=submission_id,
            judge_id=judge_id,
            event_id=event_id,
            values=values,
            comment=comment,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_values(
        self,
        rubric: ScoringRubric,
        raw_values: Mapping[str, Any],
        now: datetime,
    ) -> "ScoreRecord":
        """Merge raw_values over the existing values. Clears the cached total."""
        errors: List[FieldError] = []
        updates = _coerce_values(rubric, raw_values, errors)
        ValidationResult.invalid(errors).raise_if_invalid(ScoreValidationError)

        merged = dict(self.values)
        merged.update(updates)
        return self.model_copy(update={"values": merged, "total_score": None, "updated_at": now})

    def without_value(self, key: str, now: datetime) -> "ScoreRecord":
        merged = {k: v for k, v in self.values.items() if k != key}
        return self.model_copy(update={"values": merged, "total_score": None, "updated_at": now})

    def with_comment(self, comment: Optional[str], now: datetime) -> "ScoreRecord":
        ValidationResult.invalid(_comment_errors(comment)).raise_if_invalid(ScoreValidationError)
        return self.model_copy(update={"comment": comment, "updated_at": now})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def value_for(self, key: str) -> Optional[Any]:
        return self.values.get(key)

    @property
    def scored_keys(self) -> List[str]:
        return list(self.values)

    def is_complete(self, rubric: ScoringRubric) -> bool:
        """Every required criterion has a value."""
        return all(c.key in self.values for c in rubric.required_criteria)

    def completion_percentage(self, rubric: ScoringRubric) -> float:
        required = rubric.required_criteria or list(rubric.criteria)
        if not required:
            return 0.0
        answered = sum(1 for c in required if c.key in self.values)
        return answered / len(required) * 100

    def validate(self, rubric: ScoringRubric) -> ValidationResult:
        """Check an already-built record against rubric (which may have changed since)."""
        errors: List[FieldError] = []

        for key, value in self.values.items():
            path = f"values.{key}"
            criterion = rubric.get_criterion(key)
            if criterion is None:
                errors.append(FieldError(field=path, message=f"Unknown criterion '{key}'"))
            elif value.kind != criterion.type.value:
                errors.append(FieldError(
                    field=path,
                    message=f"Value kind '{value.kind}' does not match criterion type '{criterion.type.value}'",
                ))
            elif not criterion.is_valid_score(value):
                errors.append(FieldError(
                    field=path,
                    message=f"Value {value.value!r} is out of range for criterion '{key}'",
                ))

        errors.extend(_comment_errors(self.comment))

        if self.total_score is not None and not 0 <= self.total_score <= 100:
            errors.append(FieldError(field="total_score", message="Total score must be between 0 and 100"))
        if self.updated_at < self.created_at:
            errors.append(FieldError(
                field="updated_at",
                message="Updated timestamp must be after or equal to creation timestamp",
            ))

        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()


class ScoreRange(BaseModel):
    """Lowest and highest per-judge total for a submission."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float

    @property
    def spread(self) -> float:
        return self.max - self.min


class AggregatedScore(BaseModel):
    """Derived score for one submission. Never primary truth."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    event_id: Optional[str] = None
    rubric_id: str
    total_score: float = Field(..., ge=0, le=100)
    completion_percentage: float = Field(..., ge=0, le=100)
    is_complete: bool
    per_criterion_averages: Dict[str, float] = Field(
        default_factory=dict,
        description="Mean raw value per exercised criterion, on the criterion's own scale",
    )
    per_criterion_judge_counts: Dict[str, int] = Field(default_factory=dict)
    missing_required_criteria: List[str] = Field(default_factory=list)
    contributing_judge_count: int = Field(default=0, ge=0)
    judge_count: int = Field(default=0, ge=0)
    score_range: Optional[ScoreRange] = None


class EventScoringStats(BaseModel):
    """Scoring activity for an event."""

    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None
    total_scores: int = 0
    average_score: float = 0.0
    completed_submissions: int = 0
    judge_participation: Dict[str, int] = Field(default_factory=dict)

    @property
    def judge_count(self) -> int:
        return len(self.judge_participation)
