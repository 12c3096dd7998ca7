"""OPR / DPR least-squares estimation - pure domain functions with zero I/O.

Each completed match contributes one equation per alliance::

    OPR[t1] + OPR[t2] + OPR[t3] ~= alliance score

DPR uses the same design matrix against the opposing alliance's score, so it
estimates the points each team allows. Teams are indexed in ascending team
number order so the system is deterministic.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence

import numpy as np

from scoutrank.contracts.common import AllianceColor
from scoutrank.contracts.match import Match
from scoutrank.contracts.statistics import DPRResult, OPRResult
from scoutrank.core.errors import InsufficientDataError

logger = logging.getLogger(__name__)

MIN_COMPLETED_MATCHES = 3
MAX_REASONABLE_OPR = 200.0
MIN_RELIABLE_MATCHES = 3

# Per-alliance score extractor: (match, alliance) -> score or None
ScoreExtractor = Callable[[Match, AllianceColor], float | None]

_ALLIANCES = (AllianceColor.RED, AllianceColor.BLUE)


def _opponent(alliance: AllianceColor) -> AllianceColor:
    return AllianceColor.BLUE if alliance is AllianceColor.RED else AllianceColor.RED


def total_score(match: Match, alliance: AllianceColor) -> float | None:
    score = match.alliance_score(alliance)
    return None if score is None else float(score)


def completed_matches(matches: Sequence[Match]) -> list[Match]:
    return [m for m in matches if m.is_completed]


def _build_system(
    matches: Sequence[Match], extractor: ScoreExtractor, *, defensive: bool
) -> tuple[list[int], np.ndarray, np.ndarray, Counter[int]]:
    """Design matrix A (alliance x team), target vector b and per-team match counts."""
    completed = completed_matches(matches)
    if len(completed) < MIN_COMPLETED_MATCHES:
        raise InsufficientDataError(
            f"Insufficient matches for OPR calculation: {len(completed)} completed, "
            f"at least {MIN_COMPLETED_MATCHES} required",
            required=MIN_COMPLETED_MATCHES,
            available=len(completed),
        )

    rows: list[tuple[list[int], float]] = []
    played: Counter[int] = Counter()
    for match in completed:
        for alliance in _ALLIANCES:
            teams = match.alliance_teams(alliance)
            score = extractor(match, _opponent(alliance) if defensive else alliance)
            if not teams or score is None:
                continue
            rows.append((teams, score))
            played.update(teams)

    teams_sorted = sorted(played)
    if len(rows) < len(teams_sorted):
        raise InsufficientDataError(
            f"Insufficient data for regression: {len(rows)} alliance equations "
            f"for {len(teams_sorted)} teams",
            required=len(teams_sorted),
            available=len(rows),
        )

    index = {team: i for i, team in enumerate(teams_sorted)}
    a = np.zeros((len(rows), len(teams_sorted)), dtype=float)
    b = np.zeros(len(rows), dtype=float)
    for row, (teams, score) in enumerate(rows):
        for team in teams:
            a[row, index[team]] = 1.0
        b[row] = score
    return teams_sorted, a, b, played


def solve_least_squares(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve the normal equations, falling back to the pseudo-inverse when singular."""
    ata = a.T @ a
    atb = a.T @ b
    try:
        return np.linalg.solve(ata, atb)
    except np.linalg.LinAlgError:
        logger.warning("Normal equations are singular, using pseudo-inverse")
        return np.linalg.pinv(a) @ b


def _ratings(
    matches: Sequence[Match], extractor: ScoreExtractor, *, defensive: bool
) -> list[tuple[int, float, int]]:
    teams, a, b, played = _build_system(matches, extractor, defensive=defensive)
    solution = solve_least_squares(a, b)
    return [(team, round(float(solution[i]), 2), played[team]) for i, team in enumerate(teams)]


def calculate_opr(matches: Sequence[Match]) -> list[OPRResult]:
    """Offensive Power Rating per team, highest first.

    Raises:
        InsufficientDataError: Fewer than 3 completed matches, or fewer
            alliance equations than teams
    """
    results = [
        OPRResult(team_number=team, opr=value, matches_played=count)
        for team, value, count in _ratings(matches, total_score, defensive=False)
    ]
    results.sort(key=lambda r: r.opr, reverse=True)
    return results


def calculate_dpr(matches: Sequence[Match]) -> list[DPRResult]:
    """Defensive Power Rating (points allowed) per team, lowest (best) first."""
    results = [
        DPRResult(team_number=team, dpr=value, matches_played=count)
        for team, value, count in _ratings(matches, total_score, defensive=True)
    ]
    results.sort(key=lambda r: r.dpr)
    return results


def calculate_component_opr(matches: Sequence[Match], extractor: ScoreExtractor) -> list[OPRResult]:
    """OPR over any per-alliance score component (e.g. auto points from the breakdown)."""
    results = [
        OPRResult(team_number=team, opr=value, matches_played=count)
        for team, value, count in _ratings(matches, extractor, defensive=False)
    ]
    results.sort(key=lambda r: r.opr, reverse=True)
    return results


def breakdown_extractor(field: str) -> ScoreExtractor:
    """Extractor reading ``score_breakdown[alliance][field]``."""

    def extract(match: Match, alliance: AllianceColor) -> float | None:
        breakdown = (match.score_breakdown or {}).get(alliance.value) or {}
        value = breakdown.get(field)
        if isinstance(value, bool) or not isinstance(value, int | float):
            return None
        return float(value)

    return extract


def validate_opr_results(results: Sequence[OPRResult]) -> list[str]:
    """Human-readable warnings about implausible or unreliable OPR values."""
    warnings: list[str] = []
    negative = [r.team_number for r in results if r.opr < 0]
    if negative:
        warnings.append(f"Teams with negative OPR: {', '.join(map(str, negative))}")
    extreme = [r.team_number for r in results if r.opr > MAX_REASONABLE_OPR]
    if extreme:
        warnings.append(
            f"Teams with unusually high OPR (>{MAX_REASONABLE_OPR:g}): {', '.join(map(str, extreme))}"
        )
    sparse = [r.team_number for r in results if r.matches_played < MIN_RELIABLE_MATCHES]
    if sparse:
        warnings.append(
            f"Teams with fewer than {MIN_RELIABLE_MATCHES} matches: {', '.join(map(str, sparse))}"
        )
    return warnings
