"""CCWM and alliance-selection helpers - pure domain functions with zero I/O.

CCWM (Calculated Contribution to Winning Margin) = OPR - DPR.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from scoutrank.contracts.statistics import (
    AllianceRecommendations,
    CCWMResult,
    CCWMStatistics,
    DPRResult,
    OPRResult,
)

FIRST_PICK_COUNT = 8
FIRST_PICK_MIN_MATCHES = 5
SECOND_PICK_RANGE = (8, 24)
DEFENSIVE_THRESHOLD = 1.5
BALANCED_OPR_PERCENTILE = 0.6
BALANCED_DPR_PERCENTILE = 0.4

MAX_REASONABLE_AVERAGE_CCWM = 10.0
MAX_REASONABLE_CCWM = 100.0
_CONSISTENCY_TOLERANCE = 0.01


def calculate_ccwm(opr: Sequence[OPRResult], dpr: Sequence[DPRResult]) -> list[CCWMResult]:
    """Combine OPR and DPR per team, best CCWM first.

    Teams with a DPR but no OPR are treated as contributing zero offense.
    """
    offense = {r.team_number: r for r in opr}
    results: list[CCWMResult] = []
    for defense in dpr:
        off = offense.get(defense.team_number)
        opr_value = off.opr if off is not None else 0.0
        results.append(
            CCWMResult(
                team_number=defense.team_number,
                opr=opr_value,
                dpr=defense.dpr,
                ccwm=round(opr_value - defense.dpr, 2),
                matches_played=max(defense.matches_played, off.matches_played if off else 0),
            )
        )
    results.sort(key=lambda r: r.ccwm, reverse=True)
    return results


def calculate_ccwm_statistics(results: Sequence[CCWMResult]) -> CCWMStatistics:
    if not results:
        return CCWMStatistics()
    ccwm = np.array([r.ccwm for r in results], dtype=float)
    return CCWMStatistics(
        average_opr=round(float(np.mean([r.opr for r in results])), 2),
        average_dpr=round(float(np.mean([r.dpr for r in results])), 2),
        average_ccwm=round(float(ccwm.mean()), 2),
        median_ccwm=round(float(np.median(ccwm)), 2),
        min_ccwm=round(float(ccwm.min()), 2),
        max_ccwm=round(float(ccwm.max()), 2),
        # Population standard deviation
        std_dev_ccwm=round(float(ccwm.std()), 2),
    )


def get_top_teams_by_ccwm(
    results: Sequence[CCWMResult], n: int = FIRST_PICK_COUNT, min_matches: int = FIRST_PICK_MIN_MATCHES
) -> list[CCWMResult]:
    eligible = [r for r in results if r.matches_played >= min_matches]
    return sorted(eligible, key=lambda r: r.ccwm, reverse=True)[:n]


def get_defensive_teams(
    results: Sequence[CCWMResult], threshold: float = DEFENSIVE_THRESHOLD
) -> list[CCWMResult]:
    """Teams allowing notably fewer points than the field: dpr < mean - threshold * std."""
    if not results:
        return []
    dpr = np.array([r.dpr for r in results], dtype=float)
    cutoff = float(dpr.mean() - threshold * dpr.std())
    return sorted((r for r in results if r.dpr < cutoff), key=lambda r: r.dpr)


def get_balanced_teams(
    results: Sequence[CCWMResult],
    opr_percentile: float = 0.7,
    dpr_percentile: float = 0.3,
) -> list[CCWMResult]:
    """Teams good at both ends of the field.

    The OPR floor is the value found ``opr_percentile`` of the way down the
    field sorted by OPR descending; the DPR ceiling is the value found
    ``dpr_percentile`` of the way along the field sorted by DPR ascending.
    """
    if not results:
        return []
    by_opr = sorted((r.opr for r in results), reverse=True)
    by_dpr = sorted(r.dpr for r in results)
    opr_index = math.floor(len(by_opr) * opr_percentile)
    dpr_index = math.floor(len(by_dpr) * dpr_percentile)
    min_opr = by_opr[opr_index] if opr_index < len(by_opr) else 0.0
    max_dpr = by_dpr[dpr_index] if dpr_index < len(by_dpr) else math.inf
    balanced = [r for r in results if r.opr >= min_opr and r.dpr <= max_dpr]
    return sorted(balanced, key=lambda r: r.ccwm, reverse=True)


def generate_alliance_recommendations(results: Sequence[CCWMResult]) -> AllianceRecommendations:
    ranked = sorted(results, key=lambda r: r.ccwm, reverse=True)
    experienced = [r for r in ranked if r.matches_played >= FIRST_PICK_MIN_MATCHES]
    start, end = SECOND_PICK_RANGE
    return AllianceRecommendations(
        first_pick=get_top_teams_by_ccwm(ranked, FIRST_PICK_COUNT, FIRST_PICK_MIN_MATCHES),
        second_pick=experienced[start:end],
        defensive_specialists=get_defensive_teams(ranked, DEFENSIVE_THRESHOLD),
        balanced_teams=get_balanced_teams(ranked, BALANCED_OPR_PERCENTILE, BALANCED_DPR_PERCENTILE),
    )


def validate_ccwm_results(results: Sequence[CCWMResult]) -> list[str]:
    warnings: list[str] = []
    if not results:
        return warnings
    average = sum(r.ccwm for r in results) / len(results)
    if abs(average) > MAX_REASONABLE_AVERAGE_CCWM:
        warnings.append(f"Average CCWM is {average:.2f}, expected close to 0")
    extreme = [r.team_number for r in results if abs(r.ccwm) > MAX_REASONABLE_CCWM]
    if extreme:
        warnings.append(f"Teams with extreme CCWM (>{MAX_REASONABLE_CCWM:g}): {', '.join(map(str, extreme))}")
    inconsistent = [
        r.team_number for r in results if abs((r.opr - r.dpr) - r.ccwm) > _CONSISTENCY_TOLERANCE
    ]
    if inconsistent:
        warnings.append(f"CCWM does not equal OPR - DPR for teams: {', '.join(map(str, inconsistent))}")
    return warnings
