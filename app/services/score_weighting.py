# app/services/score_weighting.py
"""
Fixed-point score arithmetic.

All scores are Decimal on a 0-100 scale and every derived value is rounded
half-up to 4 decimal places so totals are reproducible.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from app.core.exceptions import ValidationError

FOUR_PLACES = Decimal("0.0001")
HUNDRED = Decimal(100)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise in
    return Decimal(str(value))


def round4(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def weighted_score(
    supervisor_score,
    committee_avg_score,
    weight_supervisor: int,
    weight_committee: int,
) -> Decimal:
    """
    Blend one document's supervisor score and committee average.

    weighted = round4(sup * ws / 100 + avg * wc / 100)

    The sum is computed exactly before the single rounding step.
    """
    sup = to_decimal(supervisor_score)
    avg = to_decimal(committee_avg_score)
    raw = (sup * weight_supervisor + avg * weight_committee) / HUNDRED
    return round4(raw)


def mean4(values: Iterable) -> Optional[Decimal]:
    """Arithmetic mean rounded to 4 places, or None for no values."""
    items = [to_decimal(v) for v in values]
    if not items:
        return None
    return round4(sum(items, Decimal(0)) / len(items))


def validate_score(value, field: str = "score") -> Decimal:
    """Scores live on a 0-100 scale."""
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    try:
        score = to_decimal(value)
    except ArithmeticError:
        raise ValidationError(f"{field} must be a number", field=field)
    if not score.is_finite() or score < 0 or score > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100", field=field)
    return score
