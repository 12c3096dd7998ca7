"""TBA Validation Strategy.

Validates scouting against The Blue Alliance's official score breakdown.
TBA only reports alliance-level figures, so the strategy sums the scouted
contributions of the three alliance partners, compares the sum with the
official total and spreads the discrepancy equally over the teams.

Validation is match-level while the orchestrator calls it once per team:
results for the whole match are computed once per execution and cached,
and each call returns only the context team's results.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from scoutrank.contracts.common import AllianceColor, ValidationOutcome, ValidationStrategyType
from scoutrank.contracts.match import PERFORMANCE_PERIODS, Match, MatchObservation
from scoutrank.contracts.validation import ValidationContext, ValidationResult
from scoutrank.core.ports import MatchRepositoryPort, ScoutingDataPort, ValidationStrategy
from scoutrank.core.scoring.consolidation import consolidate_performance_data

logger = logging.getLogger(__name__)

CONFIDENCE_LEVEL = 0.6
MIN_TEAMS_REQUIRED = 3
EXACT_THRESHOLD = 0.95
CLOSE_THRESHOLD = 0.75


@dataclass(frozen=True)
class TBAFieldMapping:
    """Maps one score_breakdown field onto scouting payload paths."""

    tba_field: str
    scouting_paths: tuple[str, ...]
    aggregation: Literal["sum", "boolean_count"] = "sum"

    @property
    def field_path(self) -> str:
        if len(self.scouting_paths) == 1:
            return self.scouting_paths[0]
        return f"tba.{self.tba_field}"


# 2025 Reefscape
FIELD_MAPPINGS_2025: tuple[TBAFieldMapping, ...] = (
    TBAFieldMapping(
        "autoCoralCount",
        tuple(f"auto_performance.coral_scored_L{level}" for level in range(1, 5)),
    ),
    TBAFieldMapping(
        "teleopCoralCount",
        tuple(f"teleop_performance.coral_scored_L{level}" for level in range(1, 5)),
    ),
    TBAFieldMapping("netAlgaeCount", ("teleop_performance.algae_scored_barge",)),
    TBAFieldMapping("wallAlgaeCount", ("teleop_performance.algae_scored_processor",)),
    TBAFieldMapping(
        "autoMobilityCount", ("auto_performance.left_starting_zone",), aggregation="boolean_count"
    ),
)

FIELD_MAPPINGS_BY_SEASON: dict[int, tuple[TBAFieldMapping, ...]] = {2025: FIELD_MAPPINGS_2025}


def count_auto_mobility(breakdown: dict[str, Any]) -> int:
    """TBA records auto mobility as autoLineRobot1..3 = "Yes"/"No"."""
    return sum(1 for i in (1, 2, 3) if breakdown.get(f"autoLineRobot{i}") == "Yes")


def tba_value(breakdown: dict[str, Any], mapping: TBAFieldMapping) -> float | None:
    if mapping.tba_field == "autoMobilityCount":
        return float(count_auto_mobility(breakdown))
    value = breakdown.get(mapping.tba_field)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def scouted_contribution(payloads: dict[str, dict[str, Any]], mapping: TBAFieldMapping) -> float:
    """Sum (or boolean count) of the mapped paths within one team's payloads."""
    total = 0.0
    for path in mapping.scouting_paths:
        period, _, field = path.partition(".")
        value = payloads.get(period, {}).get(field)
        if value is None:
            continue
        if mapping.aggregation == "boolean_count":
            total += 1 if value else 0
        else:
            try:
                total += float(value)
            except (TypeError, ValueError):
                continue
    return total


def calculate_accuracy(tba_total: float, team_error: float) -> float:
    if team_error == 0:
        return 1.0
    return max(0.0, 1 - team_error / max(tba_total, 1))


def determine_outcome(accuracy: float) -> ValidationOutcome:
    if accuracy >= EXACT_THRESHOLD:
        return ValidationOutcome.EXACT_MATCH
    if accuracy >= CLOSE_THRESHOLD:
        return ValidationOutcome.CLOSE_MATCH
    return ValidationOutcome.MISMATCH


def _payloads(observation: MatchObservation, mapping_periods: Sequence[str]) -> dict[str, dict[str, Any]]:
    return {period: observation.period(period) for period in mapping_periods}


class TBAValidationStrategy(ValidationStrategy):
    """Compares alliance totals against the official score breakdown."""

    strategy_type = ValidationStrategyType.TBA

    def __init__(
        self,
        match_repository: MatchRepositoryPort,
        scouting_data: ScoutingDataPort,
        field_mappings: dict[int, tuple[TBAFieldMapping, ...]] | None = None,
    ) -> None:
        self._matches = match_repository
        self._scouting_data = scouting_data
        self._field_mappings = field_mappings or FIELD_MAPPINGS_BY_SEASON
        # Match-level results of the current execution only
        self._cache_execution_id: str | None = None
        self._cache: dict[str, list[ValidationResult]] = {}

    async def can_validate(self, context: ValidationContext) -> bool:
        if not context.match_key:
            return False
        try:
            match = await self._matches.find_by_match_key(context.match_key)
        except Exception as e:
            logger.warning(f"TBA check failed for {context.match_key}: {e}")
            return False
        return bool(match and match.score_breakdown and match.post_result_time)

    async def validate(self, context: ValidationContext) -> list[ValidationResult]:
        if self._cache_execution_id != context.execution_id:
            self._cache_execution_id = context.execution_id
            self._cache = {}

        try:
            if context.match_key not in self._cache:
                self._cache[context.match_key] = await self._validate_match(context)
        except Exception as e:
            logger.error(f"TBA validation failed for {context.match_key}: {e}")
            return []

        return [r for r in self._cache[context.match_key] if r.team_number == context.team_number]

    async def _validate_match(self, context: ValidationContext) -> list[ValidationResult]:
        match = await self._matches.find_by_match_key(context.match_key)
        if match is None or not match.score_breakdown:
            raise LookupError(f"TBA match data not available for {context.match_key}")

        mappings = self._field_mappings.get(context.season_year)
        if not mappings:
            logger.info(f"No TBA field mappings for season {context.season_year}")
            return []

        observations = await self._scouting_data.find_by_match(context.match_key)
        results: list[ValidationResult] = []
        for alliance in (AllianceColor.RED, AllianceColor.BLUE):
            breakdown = (match.score_breakdown or {}).get(alliance.value) or {}
            results.extend(
                self._validate_alliance(match, alliance, breakdown, observations, mappings, context)
            )
        logger.debug(f"TBA produced {len(results)} results for {context.match_key}")
        return results

    def _validate_alliance(
        self,
        match: Match,
        alliance: AllianceColor,
        breakdown: dict[str, Any],
        observations: Sequence[MatchObservation],
        mappings: Sequence[TBAFieldMapping],
        context: ValidationContext,
    ) -> list[ValidationResult]:
        teams = match.alliance_teams(alliance)
        by_team: dict[int, list[MatchObservation]] = {team: [] for team in teams}
        for observation in observations:
            if observation.team_number in by_team:
                by_team[observation.team_number].append(observation)

        teams_with_data = [team for team in teams if by_team[team]]
        if len(teams_with_data) < MIN_TEAMS_REQUIRED:
            logger.debug(
                f"Skipping {alliance.value} alliance of {match.match_key}: "
                f"{len(teams_with_data)} teams with data"
            )
            return []

        # Several scouts of one team are consolidated for the partners' share
        consolidated = {
            team: {
                period: consolidate_performance_data([o.period(period) for o in by_team[team]])
                for period in PERFORMANCE_PERIODS
            }
            for team in teams_with_data
        }

        results: list[ValidationResult] = []
        for mapping in mappings:
            official = tba_value(breakdown, mapping)
            if official is None:
                continue
            shares = {team: scouted_contribution(consolidated[team], mapping) for team in teams_with_data}

            for team in teams_with_data:
                partners_total = sum(v for t, v in shares.items() if t != team)
                for observation in by_team[team]:
                    contribution = scouted_contribution(_payloads(observation, PERFORMANCE_PERIODS), mapping)
                    scouted_total = partners_total + contribution
                    alliance_error = abs(official - scouted_total)
                    team_error = alliance_error / len(teams_with_data)
                    accuracy = calculate_accuracy(official, team_error)
                    results.append(
                        ValidationResult(
                            validation_id=str(uuid.uuid4()),
                            scouter_id=observation.scouter_id,
                            match_scouting_id=observation.id,
                            match_key=match.match_key,
                            team_number=team,
                            event_key=context.event_key,
                            season_year=context.season_year,
                            field_path=mapping.field_path,
                            expected_value=official,
                            actual_value=contribution,
                            outcome=determine_outcome(accuracy),
                            accuracy_score=accuracy,
                            confidence_level=CONFIDENCE_LEVEL,
                            validation_type=self.strategy_type,
                            validation_method=type(self).__name__,
                            execution_id=context.execution_id,
                            notes=(
                                f"Alliance total from TBA: {official:g}, scouted total: {scouted_total:g}, "
                                f"team contribution: {contribution:g}, equal error distribution: "
                                f"{team_error:.2f} ({alliance_error:g} / {len(teams_with_data)} teams)"
                            ),
                        )
                    )
        return results
