"""
Score Values - Judging Leaderboard Engine
judging/models/values.py

Tagged union for a single judge's value on a single criterion:

    {"kind": "numeric", "value": 80.0}
    {"kind": "scale",   "value": 4.0}
    {"kind": "boolean", "value": true}

The kind must match the criterion's declared ScoringType; this is checked
when a ScoreRecord is built, not when it is aggregated.
"""

import math
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, TypeAdapter, field_validator

from judging.models.enumerations import ScoringType


class _NumberValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float = Field(..., allow_inf_nan=False)

    @field_validator("value", mode="before")
    @classmethod
    def reject_bool(cls, v: Any) -> Any:
        # bool is an int subclass; true/false is never a numeric score
        if isinstance(v, bool):
            raise ValueError("boolean is not a numeric score")
        return v


class NumericScore(_NumberValue):
    kind: Literal["numeric"] = "numeric"


class ScaleScore(_NumberValue):
    kind: Literal["scale"] = "scale"


class BooleanScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["boolean"] = "boolean"
    value: StrictBool


ScoreValue = Annotated[
    Union[NumericScore, ScaleScore, BooleanScore],
    Field(discriminator="kind"),
]

_score_value_adapter = TypeAdapter(ScoreValue)

_KIND_BY_TYPE = {
    ScoringType.NUMERIC: NumericScore,
    ScoringType.SCALE: ScaleScore,
    ScoringType.BOOLEAN: BooleanScore,
}


def is_number(value: Any) -> bool:
    """True for finite int/float/Decimal values that are not bools."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return True


def coerce_score_value(scoring_type: ScoringType, raw: Any):
    """
    Build the tagged value for a criterion of the given type.

    Accepts an existing ScoreValue, a tagged dict, or a plain Python value
    (number for numeric/scale, bool for boolean).

    Raises:
        TypeError: raw cannot represent a value of scoring_type.
    """
    if isinstance(raw, (NumericScore, ScaleScore, BooleanScore)):
        value = raw
    elif isinstance(raw, dict) and "kind" in raw:
        try:
            value = _score_value_adapter.validate_python(raw)
        except ValueError as e:
            raise TypeError(f"malformed score value {raw!r}: {e}") from e
    elif scoring_type == ScoringType.BOOLEAN:
        if not isinstance(raw, bool):
            raise TypeError(f"expected a boolean, got {type(raw).__name__}")
        value = BooleanScore(value=raw)
    else:
        if not is_number(raw):
            raise TypeError(f"expected a finite number, got {raw!r}")
        value = _KIND_BY_TYPE[scoring_type](value=float(raw))

    if value.kind != scoring_type.value:
        raise TypeError(f"value kind '{value.kind}' does not match criterion type '{scoring_type.value}'")
    return value
