"""Multi-scout consolidation - pure domain functions with zero I/O.

Combines several scouts' observations of the same team in the same match
into one canonical record:

- booleans: majority vote (ties resolve to False)
- numbers: weighted average, rounded to an integer for performance payloads
- strings/categories: mode (first-seen value wins ties)
- notes: concatenated, never voted on
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Mapping, Sequence
from typing import Any

from scoutrank.contracts.match import PERFORMANCE_PERIODS, MatchObservation

NOTES_SEPARATOR = " | "
_PASSTHROUGH_FIELDS = ("schema_version",)

_BOOLEAN_FIELDS = (
    "robot_disconnected",
    "robot_disabled",
    "robot_tipped",
    "yellow_card",
    "red_card",
)
_COUNT_FIELDS = ("foul_count", "tech_foul_count")
# Unset when the average is not positive
_NUMERIC_FIELDS = (
    "defense_rating",
    "driver_skill_rating",
    "speed_rating",
    "starting_position",
)
_TEXT_FIELDS = ("strengths", "weaknesses", "notes")


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def calculate_scout_weights(observations: Sequence[Any]) -> list[float]:
    """Per-scout weights. Every scout currently counts equally."""
    return [1.0] * len(observations)


def majority_vote(values: Sequence[bool | None]) -> bool:
    """True only when strictly more scouts said True than False."""
    true_count = sum(1 for v in values if v is True)
    false_count = sum(1 for v in values if v is False)
    return true_count > false_count


def weighted_average(
    values: Sequence[float | int | None], weights: Sequence[float | None] | None = None
) -> float:
    """Weighted mean ignoring missing entries; 0 when nothing is left."""
    total = 0.0
    total_weight = 0.0
    for index, value in enumerate(values):
        if _is_missing(value):
            continue
        weight = 1.0
        if weights is not None and index < len(weights) and weights[index] is not None:
            weight = float(weights[index])  # type: ignore[arg-type]
        total += float(value) * weight  # type: ignore[arg-type]
        total_weight += weight
    if total_weight == 0:
        return 0.0
    return total / total_weight


def mode(values: Sequence[Any]) -> Any | None:
    """Most frequent value; the earliest-seen value wins a tie."""
    counts: dict[Any, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    best: Any | None = None
    best_count = 0
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return best


def round_half_up(value: float) -> int:
    """Nearest integer with halves going up (2.5 -> 3), unlike built-in ``round``."""
    return math.floor(value + 0.5)


def median(values: Sequence[float | int | None]) -> float | None:
    present = [float(v) for v in values if not _is_missing(v)]
    if not present:
        return None
    return float(statistics.median(present))


def consolidate_numbers(
    values: Sequence[float | int | None], weights: Sequence[float | None] | None = None
) -> int:
    return round_half_up(weighted_average(values, weights))


def consolidate_booleans(values: Sequence[bool | None]) -> bool:
    return majority_vote(values)


def consolidate_categories(values: Sequence[Any]) -> Any | None:
    return mode([v for v in values if v is not None])


def _join_notes(notes: Sequence[Any]) -> str | None:
    parts = [str(n).strip() for n in notes if isinstance(n, str) and n.strip()]
    return NOTES_SEPARATOR.join(parts) if parts else None


def _ordered_keys(observations: Sequence[Mapping[str, Any]]) -> list[str]:
    keys: dict[str, None] = {}
    for observation in observations:
        for key in observation:
            keys.setdefault(key, None)
    return list(keys)


def consolidate_performance_data(
    observations: Sequence[Mapping[str, Any]],
    weights: Sequence[float] | None = None,
) -> dict[str, Any]:
    """Merge several scouts' JSON payloads for one period into one payload.

    Each field is consolidated over only the observations that carry it, and
    dispatched on the type of its first non-null value.

    Args:
        observations: Period payloads, one per scout
        weights: Optional per-scout weights aligned with ``observations``

    Returns:
        Consolidated payload; the single observation itself when only one is given
    """
    if not observations:
        return {}
    if len(observations) == 1:
        return dict(observations[0])

    if weights is None:
        weights = calculate_scout_weights(observations)

    consolidated: dict[str, Any] = {}
    for key in _ordered_keys(observations):
        if key in _PASSTHROUGH_FIELDS:
            consolidated[key] = observations[0].get(key)
            continue

        carriers = [(obs[key], weights[i]) for i, obs in enumerate(observations) if key in obs]
        values = [value for value, _ in carriers]

        if key == "notes":
            joined = _join_notes(values)
            if joined is not None:
                consolidated[key] = joined
            continue

        sample = next((v for v in values if v is not None), None)
        if sample is None:
            consolidated[key] = None
        elif isinstance(sample, bool):
            consolidated[key] = consolidate_booleans(values)
        elif _is_number(sample):
            consolidated[key] = consolidate_numbers(values, [w for _, w in carriers])
        elif isinstance(sample, str):
            consolidated[key] = consolidate_categories(values)
        else:
            # Nested structures are not voted on
            consolidated[key] = sample

    return consolidated


def consolidate_match_observations(
    observations: Sequence[MatchObservation],
    weights: Sequence[float] | None = None,
) -> dict[str, Any]:
    """Merge whole scouting rows for one team in one match.

    Raises:
        ValueError: If no observations are given
    """
    if not observations:
        raise ValueError("Cannot consolidate empty observations")

    if weights is None:
        weights = calculate_scout_weights(observations)
    first = observations[0]

    consolidated: dict[str, Any] = {
        "match_key": first.match_key,
        "team_number": first.team_number,
        "alliance_color": first.alliance_color,
        "scout_count": len(observations),
        "scouter_ids": [o.scouter_id for o in observations],
    }

    for field in _BOOLEAN_FIELDS:
        consolidated[field] = majority_vote([getattr(o, field) for o in observations])

    for field in _COUNT_FIELDS:
        consolidated[field] = round_half_up(weighted_average([getattr(o, field) for o in observations], weights))

    for field in _NUMERIC_FIELDS:
        value = round_half_up(weighted_average([getattr(o, field) for o in observations], weights))
        consolidated[field] = value if value > 0 else None

    for period in PERFORMANCE_PERIODS:
        consolidated[period] = consolidate_performance_data(
            [o.period(period) for o in observations], weights
        )

    for field in _TEXT_FIELDS:
        consolidated[field] = _join_notes([getattr(o, field) for o in observations])

    return consolidated
