"""
Decimal Utilities
hrm_kpi/scoring/utils.py

Provides precision-safe decimal math for score aggregation.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Number, places: int = 2) -> Decimal:
    """Convert a number to Decimal with explicit precision (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def round2(value: Number) -> Decimal:
    """Round to 2 decimal places using standard half-up rounding."""
    return to_decimal(value, 2)


def clamp(
    value: Decimal,
    min_val: Decimal = Decimal("0"),
    max_val: Decimal = Decimal("100"),
) -> Decimal:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def mean2(values: Iterable[Number]) -> Decimal:
    """
    Arithmetic mean rounded half-up to 2 dp.

    Returns Decimal("0.00") for an empty input.
    """
    decimals = [v if isinstance(v, Decimal) else Decimal(str(v)) for v in values]
    if not decimals:
        return round2(Decimal("0"))
    return round2(sum(decimals, Decimal("0")) / Decimal(len(decimals)))
