"""
Numeric coercion shared by the calculators.

Form input arrives as floats, ints, strings with either decimal separator,
or nothing at all. Everything becomes a finite float; anything unusable
becomes 0.0 so the arithmetic downstream never raises.
"""

import math
from decimal import Decimal


def to_number(value) -> float:
    """Coerce a form value to a finite float. Missing / NaN / garbage → 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return 0.0
        try:
            result = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positives."""
    return int(math.floor(value + 0.5))
