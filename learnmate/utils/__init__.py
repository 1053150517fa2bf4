"""Utility modules for LearnMate."""

from learnmate.utils.rounding import percentage, round_half_up
from learnmate.utils.timestamps import ensure_utc_aware


__all__ = ["ensure_utc_aware", "percentage", "round_half_up"]
