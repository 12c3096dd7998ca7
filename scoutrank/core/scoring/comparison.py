"""Field-level comparison of one observed value against a reference value.

Pure functions, zero I/O. Shared by every strategy that compares a scout's
submission with a single truth value (consensus, manual corrections).
"""

from __future__ import annotations

import math
from typing import Any

from scoutrank.contracts.common import ValidationOutcome

CLOSE_MATCH_THRESHOLD = 0.7

# Accuracy for a numeric miss of exactly 1 and 2 units
_NUMERIC_STEP_ACCURACY = {0: 1.0, 1: 0.8, 2: 0.6}


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def compare_field_values(expected: Any, actual: Any) -> float:
    """Accuracy in [0, 1] of ``actual`` relative to ``expected``.

    Booleans and strings must match exactly. Numbers lose accuracy with the
    absolute difference: off by one scores 0.8, off by two 0.6, and beyond
    that the score decays relative to the magnitude of the values.
    """
    if actual is None:
        return 1.0 if expected is None else 0.0
    if expected is None:
        return 0.0

    if isinstance(expected, bool) or isinstance(actual, bool):
        return 1.0 if expected == actual else 0.0

    if _is_number(expected) and _is_number(actual):
        if math.isnan(expected) or math.isnan(actual):
            return 0.0
        diff = abs(expected - actual)
        if diff in _NUMERIC_STEP_ACCURACY:
            return _NUMERIC_STEP_ACCURACY[int(diff)]
        if diff < 1:
            # Fractional consensus averages: interpolate between exact and off-by-one
            return 1.0 - 0.2 * diff
        if diff < 2:
            return 0.8 - 0.2 * (diff - 1)
        scale = max(abs(expected), abs(actual), 1)
        return max(0.0, 0.6 * (1 - diff / scale))

    return 1.0 if expected == actual else 0.0


def accuracy_to_outcome(
    accuracy: float, *, exact_threshold: float = 1.0, close_threshold: float = CLOSE_MATCH_THRESHOLD
) -> ValidationOutcome:
    if accuracy >= exact_threshold:
        return ValidationOutcome.EXACT_MATCH
    if accuracy >= close_threshold:
        return ValidationOutcome.CLOSE_MATCH
    return ValidationOutcome.MISMATCH


def field_confidence(field_count: int) -> float:
    """Confidence attached to results built from ``field_count`` compared fields."""
    return min(0.95, 0.5 + 0.45 * math.log(field_count + 1) / math.log(100))
