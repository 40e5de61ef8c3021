"""
Decimal Utilities - Judging Leaderboard Engine
judging/scoring/utils.py

Precision-safe decimal math shared by the aggregator, ranker and trend
analyzer. Every intermediate result is quantized to SCORE_DECIMAL_PLACES
so that summation order never leaks into the output.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from judging.config import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _exponent(places: Optional[int]) -> Decimal:
    if places is None:
        places = settings.SCORE_DECIMAL_PLACES
    return Decimal(10) ** -places


def to_decimal(value, places: Optional[int] = None) -> Decimal:
    """Convert float/int/str to Decimal with explicit precision."""
    return Decimal(str(value)).quantize(_exponent(places), rounding=ROUND_HALF_UP)


def quantize(value: Decimal, places: Optional[int] = None) -> Decimal:
    return value.quantize(_exponent(places), rounding=ROUND_HALF_UP)


def to_float(value: Decimal, places: Optional[int] = None) -> float:
    return float(quantize(value, places))


def clamp(
    value: Decimal,
    min_val: Decimal = ZERO,
    max_val: Decimal = HUNDRED,
) -> Decimal:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def mean(values: Iterable[Decimal]) -> Decimal:
    """
    Arithmetic mean, quantized.

    Returns Decimal("0") for an empty input.
    """
    items = list(values)
    if not items:
        return ZERO
    return quantize(sum(items, ZERO) / Decimal(len(items)))


def weighted_mean(values: List[Decimal], weights: List[Decimal]) -> Decimal:
    """
    Calculate weighted mean.

    Formula: Σ(value_i × weight_i) / Σ(weight_i)
    Returns Decimal("0") if all weights are zero.
    """
    if len(values) != len(weights):
        raise ValueError("values and weights must have same length")

    total_weight = sum(weights, ZERO)
    if total_weight == 0:
        return ZERO

    numerator = sum((v * w for v, w in zip(values, weights)), ZERO)
    return quantize(numerator / total_weight)


def least_squares_slope(values: List[Decimal]) -> Decimal:
    """
    Slope of the least-squares line through (i, values[i]), i = 0..n-1.

    Formula: Σ((x_i - x̄) × y_i) / Σ((x_i - x̄)²)
    Since Σ(x_i - x̄) = 0 this equals the covariance form. The numerator is
    exact for quantized inputs, so reversing a series negates the slope exactly.
    Returns Decimal("0") for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return ZERO

    x_mean = Decimal(n - 1) / Decimal(2)

    numerator = ZERO
    denominator = ZERO
    for i, y in enumerate(values):
        dx = Decimal(i) - x_mean
        numerator += dx * y
        denominator += dx * dx

    return quantize(numerator / denominator)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole × 100 with zero-division protection."""
    if whole == 0:
        return ZERO
    return quantize(part / whole * HUNDRED)
