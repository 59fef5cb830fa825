"""Numeric coercion rules shared by the normalizer."""

import math
from typing import Any


def to_float(value: Any) -> float:
    """Converts a wire value to float, NaN when it is absent or not a number."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def additive(value: Any) -> float:
    """Coerces a summable field (OI, volume, change in OI); missing becomes 0."""
    number = to_float(value)
    return number if math.isfinite(number) else 0.0


def display(value: Any) -> float:
    """Coerces a display-only field (price, IV, ratio); missing stays NaN."""
    number = to_float(value)
    return number if math.isfinite(number) else math.nan


def ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, 0 for a zero denominator, NaN for non-finite results."""
    if denominator == 0:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else math.nan


def percent_change(change: float, base: float) -> float:
    """Change expressed as a percentage of base, 0 when base is 0."""
    return ratio(change, base) * 100 if base != 0 else 0.0
