"""Rounding helpers for progress and score percentages.

Percentages shown to learners round halves up (62.5 -> 63), which differs
from Python's ``round`` (banker's rounding).
"""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def percentage(part: float, whole: float) -> int:
    """Whole-number percentage of `part` in `whole`, capped to 0..100.

    Returns 0 when `whole` is not positive.
    """
    if whole <= 0:
        return 0
    return max(0, min(100, round_half_up(100 * part / whole)))
