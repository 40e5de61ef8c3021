# judging/scoring/aggregator.py
"""
Score Aggregator
----------------
Combines the per-judge ScoreRecords of one submission into an AggregatedScore.

Formula (per criterion c with at least one response):
    raw_avg(c)   = mean of present raw values
    norm_avg(c)  = mean of values normalized to 0-100
                     numeric:  v / max_score × 100
                     scale:    (v - min) / (max - min) × 100
                     boolean:  true → 100, false → 0

    total        = Σ norm_avg(c) × weight(c) / Σ weight(c)   over exercised criteria only

    completion   = mean over required criteria (all criteria if none is required) of
                   judges answering c / judges with a record × 100

Records are processed in judge_id order and criteria in declared rubric order,
with every intermediate quantized, so reordering the input never changes the
output.
"""
import structlog
from collections import Counter
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from judging.core.exceptions import RubricValidationError, ScoreValidationError
from judging.models.rubric import ScoringRubric
from judging.models.score import (
    AggregatedScore,
    EventScoringStats,
    ScoreRange,
    ScoreRecord,
)
from judging.models.validation import FieldError, ValidationResult
from judging.models.values import coerce_score_value
from judging.scoring.utils import (
    HUNDRED,
    ZERO,
    clamp,
    mean,
    to_decimal,
    to_float,
    weighted_mean,
)

logger = structlog.get_logger(__name__)


class ScoreAggregator:
    """Aggregate judge score records for a single submission."""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_records(
        self,
        rubric: ScoringRubric,
        records: Sequence[ScoreRecord],
        submission_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Check records before aggregation.

        Keys unknown to the rubric are not errors here; they are skipped
        (with a warning) during aggregation.
        """
        errors: List[FieldError] = []

        submission_ids = {r.submission_id for r in records}
        if submission_id is not None:
            submission_ids.add(submission_id)
        if len(submission_ids) > 1:
            errors.append(FieldError(
                field="submission_id",
                message=f"Records belong to different submissions: {sorted(submission_ids)}",
            ))

        event_ids = {r.event_id for r in records}
        if len(event_ids) > 1:
            errors.append(FieldError(
                field="event_id",
                message=f"Records belong to different events: {sorted(event_ids)}",
            ))

        judge_counts = Counter(r.judge_id for r in records)
        for judge_id in sorted(j for j, n in judge_counts.items() if n > 1):
            errors.append(FieldError(
                field="judge_id",
                message=f"Judge {judge_id} has more than one record for this submission",
            ))

        for record in records:
            for key, value in record.values.items():
                criterion = rubric.get_criterion(key)
                if criterion is None:
                    continue
                path = f"records[{record.judge_id}].values.{key}"
                if value.kind != criterion.type.value:
                    errors.append(FieldError(
                        field=path,
                        message=f"Value kind '{value.kind}' does not match criterion type '{criterion.type.value}'",
                    ))
                elif not criterion.is_valid_score(value):
                    errors.append(FieldError(
                        field=path,
                        message=f"Value {value.value!r} is out of range for criterion '{key}'",
                    ))

        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()

    def validate_scores_against_rubric(
        self,
        values: Mapping[str, Any],
        rubric: ScoringRubric,
    ) -> ValidationResult:
        """
        Validate a raw {criterion_key: value} payload before it becomes a record.

        Unlike aggregation, unknown keys and missing required criteria are
        reported.
        """
        errors: List[FieldError] = []

        for criterion in rubric.required_criteria:
            if criterion.key not in values:
                errors.append(FieldError(
                    field=f"values.{criterion.key}",
                    message=f"Required criterion '{criterion.name}' is missing",
                ))

        for key, raw in values.items():
            criterion = rubric.get_criterion(key)
            if criterion is None:
                errors.append(FieldError(field=f"values.{key}", message=f"Unknown criterion '{key}'"))
                continue
            try:
                value = coerce_score_value(criterion.type, raw)
            except TypeError as e:
                errors.append(FieldError(field=f"values.{key}", message=f"Invalid value for '{key}': {e}"))
                continue
            if not criterion.is_valid_score(value):
                errors.append(FieldError(
                    field=f"values.{key}",
                    message=f"Invalid score for criterion '{criterion.name}'",
                ))

        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()

    # ------------------------------------------------------------------
    # Per-record totals
    # ------------------------------------------------------------------

    def _record_total(self, rubric: ScoringRubric, record: ScoreRecord) -> Optional[Decimal]:
        values: List[Decimal] = []
        weights: List[Decimal] = []
        for criterion in rubric.criteria:
            value = record.values.get(criterion.key)
            if value is None or value.kind != criterion.type.value:
                continue
            values.append(criterion.normalized(value))
            weights.append(to_decimal(criterion.weight))
        if not values:
            return None
        return clamp(weighted_mean(values, weights))

    def record_total(self, rubric: ScoringRubric, record: ScoreRecord) -> float:
        """One judge's 0-100 total over the criteria that judge scored (0 if none)."""
        total = self._record_total(rubric, record)
        return to_float(total) if total is not None else 0.0

    def with_computed_total(self, rubric: ScoringRubric, record: ScoreRecord) -> ScoreRecord:
        """Copy of record with total_score filled in."""
        return record.model_copy(update={"total_score": self.record_total(rubric, record)})

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        rubric: ScoringRubric,
        records: Sequence[ScoreRecord],
        submission_id: Optional[str] = None,
    ) -> AggregatedScore:
        """
        Args:
            rubric: Rubric every record was scored against.
            records: At most one record per judge, all for the same submission.
            submission_id: Required when records is empty.

        Returns:
            AggregatedScore. A submission with no responses yields total 0 and
            completion 0; that is a valid result.

        Raises:
            RubricValidationError: the rubric is malformed.
            ScoreValidationError: the records are inconsistent or out of range.
        """
        rubric.validate().raise_if_invalid(RubricValidationError)
        self.validate_records(rubric, records, submission_id).raise_if_invalid(ScoreValidationError)

        if submission_id is None:
            if not records:
                raise ScoreValidationError(ValidationResult.single_error(
                    "submission_id", "Submission ID is required when there are no records",
                ))
            submission_id = records[0].submission_id

        ordered = sorted(records, key=lambda r: r.judge_id)
        judge_count = len(ordered)

        known_keys = set(rubric.criterion_keys)
        for record in ordered:
            unknown = sorted(k for k in record.values if k not in known_keys)
            if unknown:
                logger.warning(
                    "unknown_criteria_ignored",
                    submission_id=submission_id,
                    judge_id=record.judge_id,
                    criteria=unknown,
                )

        per_criterion_averages: Dict[str, float] = {}
        per_criterion_judge_counts: Dict[str, int] = {}
        norm_avgs: List[Decimal] = []
        weights: List[Decimal] = []

        for criterion in rubric.criteria:
            raw_values: List[Decimal] = []
            norm_values: List[Decimal] = []
            for record in ordered:
                value = record.values.get(criterion.key)
                if value is None:
                    continue
                raw_values.append(criterion.raw_number(value))
                norm_values.append(criterion.normalized(value))

            if not raw_values:
                continue

            per_criterion_averages[criterion.key] = to_float(mean(raw_values))
            per_criterion_judge_counts[criterion.key] = len(raw_values)
            norm_avgs.append(mean(norm_values))
            weights.append(to_decimal(criterion.weight))

        total = clamp(weighted_mean(norm_avgs, weights)) if norm_avgs else ZERO

        basis = rubric.required_criteria or list(rubric.criteria)
        if judge_count and basis:
            coverage = [
                Decimal(per_criterion_judge_counts.get(c.key, 0)) / Decimal(judge_count) * HUNDRED
                for c in basis
            ]
            completion = clamp(mean(coverage))
        else:
            completion = ZERO

        missing_required = [
            c.key for c in rubric.required_criteria
            if per_criterion_judge_counts.get(c.key, 0) == 0
        ]
        is_complete = judge_count > 0 and not missing_required

        judge_totals = [
            t for t in (self._record_total(rubric, r) for r in ordered) if t is not None
        ]
        score_range = (
            ScoreRange(min=to_float(min(judge_totals)), max=to_float(max(judge_totals)))
            if judge_totals else None
        )

        result = AggregatedScore(
            submission_id=submission_id,
            event_id=ordered[0].event_id if ordered else None,
            rubric_id=rubric.id,
            total_score=to_float(total),
            completion_percentage=to_float(completion),
            is_complete=is_complete,
            per_criterion_averages=per_criterion_averages,
            per_criterion_judge_counts=per_criterion_judge_counts,
            missing_required_criteria=missing_required,
            contributing_judge_count=len(judge_totals),
            judge_count=judge_count,
            score_range=score_range,
        )

        logger.info(
            "submission_aggregated",
            submission_id=submission_id,
            rubric_id=rubric.id,
            judge_count=judge_count,
            contributing_judges=result.contributing_judge_count,
            exercised_criteria=list(per_criterion_averages),
            total_score=result.total_score,
            completion_percentage=result.completion_percentage,
            is_complete=is_complete,
        )

        return result

    # ------------------------------------------------------------------
    # Event statistics
    # ------------------------------------------------------------------

    def event_scoring_stats(
        self,
        records: Sequence[ScoreRecord],
        rubric: Optional[ScoringRubric] = None,
        event_id: Optional[str] = None,
    ) -> EventScoringStats:
        """
        Totals across every record of an event.

        A record's cached total_score is used when present; otherwise it is
        computed from rubric (records without either are left out of the
        average).
        """
        totals: List[Decimal] = []
        for record in records:
            if record.total_score is not None:
                totals.append(to_decimal(record.total_score))
            elif rubric is not None:
                total = self._record_total(rubric, record)
                if total is not None:
                    totals.append(total)

        participation = Counter(r.judge_id for r in records)

        stats = EventScoringStats(
            event_id=event_id,
            total_scores=len(records),
            average_score=to_float(mean(totals)),
            completed_submissions=len({r.submission_id for r in records}),
            judge_participation=dict(sorted(participation.items())),
        )
        logger.info(
            "event_stats_calculated",
            event_id=event_id,
            total_scores=stats.total_scores,
            average_score=stats.average_score,
            judges=stats.judge_count,
        )
        return stats


_default_aggregator = ScoreAggregator()


def aggregate(
    rubric: ScoringRubric,
    records: Sequence[ScoreRecord],
    submission_id: Optional[str] = None,
) -> AggregatedScore:
    """Pure entry point; see ScoreAggregator.aggregate."""
    return _default_aggregator.aggregate(rubric, records, submission_id)


def validate_scores_against_rubric(values: Mapping[str, Any], rubric: ScoringRubric) -> ValidationResult:
    return _default_aggregator.validate_scores_against_rubric(values, rubric)
