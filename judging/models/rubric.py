"""
Scoring Rubric - Judging Leaderboard Engine
judging/models/rubric.py

A rubric is an ordered set of named, typed, weighted criteria. Rubrics are
immutable: every edit returns a new rubric, so aggregates computed against an
earlier version keep pointing at the exact criteria that produced them.

Construction accepts any values; ScoringRubric.validate() reports problems
as a list of field errors and never raises.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from judging.config import settings
from judging.models.enumerations import RubricScope, ScoringType
from judging.models.validation import FieldError, ValidationResult
from judging.models.values import BooleanScore, NumericScore, ScaleScore, is_number


class ScoringCriterion(BaseModel):
    """Individual scoring criterion within a rubric."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Unique key within the rubric")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Guidance shown to judges")
    type: ScoringType = Field(default=ScoringType.NUMERIC)
    max_score: float = Field(default=100.0, description="Upper bound for numeric values")
    weight: float = Field(default=1.0, description="Relative weight in the total")
    required: bool = Field(default=True)
    options: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Type-specific options, e.g. {'min': 1, 'max': 5} for scale criteria",
    )

    @property
    def scale_min(self) -> float:
        if self.options and is_number(self.options.get("min")):
            return float(self.options["min"])
        return 0.0

    @property
    def scale_max(self) -> float:
        if self.options and is_number(self.options.get("max")):
            return float(self.options["max"])
        return float(self.max_score)

    def is_valid_score(self, value: Any) -> bool:
        """
        Check a raw or tagged value against this criterion.

        numeric: number in [0, max_score]
        scale:   number in [scale_min, scale_max]
        boolean: a bool
        """
        if isinstance(value, (NumericScore, ScaleScore, BooleanScore)):
            if value.kind != self.type.value:
                return False
            value = value.value

        if self.type == ScoringType.BOOLEAN:
            return isinstance(value, bool)

        if not is_number(value):
            return False
        v = float(value)
        if self.type == ScoringType.NUMERIC:
            return 0.0 <= v <= self.max_score
        return self.scale_min <= v <= self.scale_max

    def raw_number(self, value) -> Decimal:
        """Value on the criterion's own scale; booleans map to max_score or 0."""
        if isinstance(value, BooleanScore):
            return Decimal(str(self.max_score)) if value.value else Decimal("0")
        return Decimal(str(value.value))

    def normalized(self, value) -> Decimal:
        """Value mapped onto 0-100."""
        if isinstance(value, BooleanScore):
            return Decimal("100") if value.value else Decimal("0")
        raw = Decimal(str(value.value))
        if self.type == ScoringType.SCALE:
            lo = Decimal(str(self.scale_min))
            hi = Decimal(str(self.scale_max))
            return (raw - lo) / (hi - lo) * Decimal("100")
        return raw / Decimal(str(self.max_score)) * Decimal("100")

    def validate_fields(self, index: int) -> List[FieldError]:
        """Field errors for this criterion at position index (0-based)."""
        label = f"Criterion {index + 1}"
        path = f"criteria[{index}]"
        errors: List[FieldError] = []

        if not self.key.strip():
            errors.append(FieldError(field=f"{path}.key", message=f"{label} must have a key"))
        if not self.name.strip():
            errors.append(FieldError(field=f"{path}.name", message=f"{label} must have a name"))
        if not self.max_score > 0:
            errors.append(FieldError(field=f"{path}.max_score", message=f"{label} max score must be positive"))
        if not self.weight > 0:
            errors.append(FieldError(field=f"{path}.weight", message=f"{label} weight must be positive"))

        if self.type == ScoringType.SCALE:
            if self.scale_min >= self.scale_max:
                errors.append(FieldError(
                    field=f"{path}.options",
                    message=f"{label} scale min must be below scale max",
                ))
            elif self.max_score > 0 and self.scale_max > self.max_score:
                errors.append(FieldError(
                    field=f"{path}.options",
                    message=f"{label} scale max must not exceed max score",
                ))
        return errors


class ScoringRubric(BaseModel):
    """
    Scoring rubric template.

    Scope is informative only: event_id wins over group_id, which wins over
    is_template.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: str = ""
    criteria: Tuple[ScoringCriterion, ...] = Field(default_factory=tuple)
    event_id: Optional[str] = None
    group_id: Optional[str] = None
    is_template: bool = False
    created_by: str
    created_at: datetime
    updated_at: datetime

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def scope(self) -> RubricScope:
        if self.event_id:
            return RubricScope.EVENT
        if self.group_id:
            return RubricScope.GROUP
        if self.is_template:
            return RubricScope.TEMPLATE
        return RubricScope.UNSCOPED

    @property
    def criterion_keys(self) -> List[str]:
        return [c.key for c in self.criteria]

    @property
    def required_criteria(self) -> List[ScoringCriterion]:
        return [c for c in self.criteria if c.required]

    @property
    def has_criteria(self) -> bool:
        return bool(self.criteria)

    def get_criterion(self, key: str) -> Optional[ScoringCriterion]:
        for criterion in self.criteria:
            if criterion.key == key:
                return criterion
        return None

    def max_possible_score(self) -> float:
        """Unweighted ceiling: Σ max_score."""
        return float(sum((Decimal(str(c.max_score)) for c in self.criteria), Decimal("0")))

    def weighted_max_score(self) -> float:
        """Σ max_score × weight."""
        return float(sum(
            (Decimal(str(c.max_score)) * Decimal(str(c.weight)) for c in self.criteria),
            Decimal("0"),
        ))

    def total_weight(self) -> float:
        return float(sum((Decimal(str(c.weight)) for c in self.criteria), Decimal("0")))

    # ------------------------------------------------------------------
    # Copy-on-write edits
    # ------------------------------------------------------------------

    def with_criterion(self, criterion: ScoringCriterion, updated_at: datetime) -> "ScoringRubric":
        return self.model_copy(update={
            "criteria": self.criteria + (criterion,),
            "updated_at": updated_at,
        })

    def without_criterion(self, key: str, updated_at: datetime) -> "ScoringRubric":
        return self.model_copy(update={
            "criteria": tuple(c for c in self.criteria if c.key != key),
            "updated_at": updated_at,
        })

    def with_updated_criterion(
        self,
        key: str,
        criterion: ScoringCriterion,
        updated_at: datetime,
    ) -> "ScoringRubric":
        return self.model_copy(update={
            "criteria": tuple(criterion if c.key == key else c for c in self.criteria),
            "updated_at": updated_at,
        })

    def clone(
        self,
        created_by: str,
        created_at: datetime,
        new_id: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        event_id: Optional[str] = None,
        group_id: Optional[str] = None,
        is_template: Optional[bool] = None,
    ) -> "ScoringRubric":
        """Copy the criteria into a new rubric owned by created_by."""
        return ScoringRubric(
            id=new_id or str(uuid4()),
            name=name if name is not None else f"{self.name} (Copy)",
            description=description if description is not None else self.description,
            criteria=self.criteria,
            event_id=event_id,
            group_id=group_id,
            is_template=is_template if is_template is not None else self.is_template,
            created_by=created_by,
            created_at=created_at,
            updated_at=created_at,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        """
        Validate rubric data.

        Returns every problem found; an empty result means the rubric may be
        used for scoring.
        """
        errors: List[FieldError] = []

        if not self.id.strip():
            errors.append(FieldError(field="id", message="Rubric ID is required"))
        if not self.name.strip():
            errors.append(FieldError(field="name", message="Rubric name is required"))
        if not self.created_by.strip():
            errors.append(FieldError(field="created_by", message="Created by member ID is required"))

        if not self.criteria:
            errors.append(FieldError(
                field="criteria",
                message="Scoring rubric must have at least one criterion",
            ))

        for i, criterion in enumerate(self.criteria):
            errors.extend(criterion.validate_fields(i))

        keys = self.criterion_keys
        if len(keys) != len(set(keys)):
            errors.append(FieldError(field="criteria", message="Criterion keys must be unique"))

        if len(self.name) > settings.MAX_RUBRIC_NAME_LENGTH:
            errors.append(FieldError(
                field="name",
                message=f"Rubric name must not exceed {settings.MAX_RUBRIC_NAME_LENGTH} characters",
            ))
        if len(self.description) > settings.MAX_RUBRIC_DESCRIPTION_LENGTH:
            errors.append(FieldError(
                field="description",
                message=f"Rubric description must not exceed {settings.MAX_RUBRIC_DESCRIPTION_LENGTH} characters",
            ))

        if self.updated_at < self.created_at:
            errors.append(FieldError(
                field="updated_at",
                message="Updated timestamp must be after or equal to creation timestamp",
            ))

        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()


def is_valid_score(criterion: ScoringCriterion, value: Any) -> bool:
    """Module-level form of ScoringCriterion.is_valid_score."""
    return criterion.is_valid_score(value)
