"""Consensus Validation Strategy.

Builds a consensus observation from every scout who watched the same team in
the same match, then scores each scout's fields against it. Needs at least
``min_scouts_required`` observations; below that the consensus is not
trustworthy and ``can_validate`` returns False.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Sequence
from typing import Any

from scoutrank.contracts.common import ConsensusMethod, ValidationStrategyType
from scoutrank.contracts.match import PERFORMANCE_PERIODS, MatchObservation
from scoutrank.contracts.validation import ConsensusValue, ValidationContext, ValidationResult
from scoutrank.core.errors import ValidationError
from scoutrank.core.ports import ScoutingDataPort, ValidationStrategy
from scoutrank.core.scoring.comparison import (
    accuracy_to_outcome,
    compare_field_values,
    field_confidence,
)
from scoutrank.core.scoring.consolidation import (
    calculate_scout_weights,
    consolidate_performance_data,
)

logger = logging.getLogger(__name__)

SKIPPED_FIELDS = frozenset({"schema_version", "notes"})


def _ordered_union(*payloads: dict[str, Any]) -> list[str]:
    keys: dict[str, None] = {}
    for payload in payloads:
        for key in payload:
            keys.setdefault(key, None)
    return [k for k in keys if k not in SKIPPED_FIELDS]


class ConsensusValidationStrategy(ValidationStrategy):
    """Compares each scout with the consolidated view of all scouts."""

    strategy_type = ValidationStrategyType.CONSENSUS

    def __init__(self, scouting_data: ScoutingDataPort) -> None:
        self._scouting_data = scouting_data

    async def _load_observations(self, context: ValidationContext) -> list[MatchObservation]:
        observations = await self._scouting_data.find_by_match(context.match_key)
        return [o for o in observations if o.team_number == context.team_number]

    async def can_validate(self, context: ValidationContext) -> bool:
        if not context.match_key or not context.team_number:
            return False
        try:
            observations = await self._load_observations(context)
        except Exception as e:
            logger.warning(
                f"Consensus check failed for {context.match_key} team {context.team_number}: {e}"
            )
            return False
        return len(observations) >= context.min_scouts_required

    async def validate(self, context: ValidationContext) -> list[ValidationResult]:
        if not context.match_key or not context.team_number or not context.event_key:
            raise ValidationError(
                "Consensus validation requires match key, team number and event key",
                "INVALID_CONTEXT",
                {"match_key": context.match_key, "team_number": context.team_number},
            )

        observations = await self._load_observations(context)
        if len(observations) < context.min_scouts_required:
            raise ValidationError(
                f"Insufficient scouts for consensus: {len(observations)} < {context.min_scouts_required}",
                "INSUFFICIENT_SCOUTS",
                {
                    "match_key": context.match_key,
                    "team_number": context.team_number,
                    "scout_count": len(observations),
                    "min_scouts_required": context.min_scouts_required,
                },
            )

        weights = calculate_scout_weights(observations)
        results: list[ValidationResult] = []
        for period in PERFORMANCE_PERIODS:
            consensus = consolidate_performance_data([o.period(period) for o in observations], weights)
            for observation in observations:
                results.extend(self._validate_period(period, observation, consensus, context))

        logger.debug(
            f"Consensus produced {len(results)} results for {context.match_key} "
            f"team {context.team_number} from {len(observations)} scouts"
        )
        return results

    def _validate_period(
        self,
        period: str,
        observation: MatchObservation,
        consensus: dict[str, Any],
        context: ValidationContext,
    ) -> list[ValidationResult]:
        actual_data = observation.period(period)
        if not actual_data or not consensus:
            return []

        fields = _ordered_union(actual_data, consensus)
        confidence = field_confidence(len(fields))
        results: list[ValidationResult] = []
        for field in fields:
            expected = consensus.get(field)
            if expected is None:
                continue
            actual = actual_data.get(field)
            accuracy = compare_field_values(expected, actual)
            results.append(
                ValidationResult(
                    validation_id=str(uuid.uuid4()),
                    scouter_id=observation.scouter_id,
                    match_scouting_id=observation.id,
                    match_key=context.match_key,
                    team_number=context.team_number,
                    event_key=context.event_key,
                    season_year=context.season_year,
                    field_path=f"{period}.{field}",
                    expected_value=expected,
                    actual_value=actual,
                    outcome=accuracy_to_outcome(accuracy),
                    accuracy_score=accuracy,
                    confidence_level=confidence,
                    validation_type=self.strategy_type,
                    validation_method=type(self).__name__,
                    execution_id=context.execution_id,
                )
            )
        return results

    async def consensus_values(self, context: ValidationContext) -> list[ConsensusValue]:
        """Consensus value plus agreement metadata for every observed field."""
        observations = await self._load_observations(context)
        if not observations:
            return []
        weights = calculate_scout_weights(observations)
        values: list[ConsensusValue] = []
        for period in PERFORMANCE_PERIODS:
            consensus = consolidate_performance_data([o.period(period) for o in observations], weights)
            for field in _ordered_union(consensus):
                if consensus[field] is None:
                    continue
                values.append(
                    calculate_consensus_metadata(
                        f"{period}.{field}", consensus[field], observations, context
                    )
                )
        return values


def calculate_consensus_metadata(
    field_path: str,
    consensus_value: Any,
    observations: Sequence[MatchObservation],
    context: ValidationContext | None = None,
) -> ConsensusValue:
    """Agreement, spread and confidence of one consolidated field."""
    period, _, field = field_path.partition(".")
    values = [
        o.period(period)[field] for o in observations if o.period(period).get(field) is not None
    ]

    matching = sum(1 for v in values if v == consensus_value)
    agreement = round(matching / len(values) * 100, 1) if values else 0.0

    standard_deviation: float | None = None
    outlier_count: int | None = None
    if isinstance(consensus_value, bool):
        method = ConsensusMethod.MAJORITY_VOTE
    elif isinstance(consensus_value, int | float):
        method = ConsensusMethod.WEIGHTED_AVERAGE
        numeric = [float(v) for v in values if isinstance(v, int | float) and not isinstance(v, bool)]
        if len(numeric) > 1:
            mean = sum(numeric) / len(numeric)
            standard_deviation = math.sqrt(sum((v - mean) ** 2 for v in numeric) / len(numeric))
            outlier_count = 0
            if standard_deviation:
                outlier_count = sum(1 for v in numeric if abs(v - mean) > 2 * standard_deviation)
    else:
        method = ConsensusMethod.MODE

    return ConsensusValue(
        field_path=field_path,
        value=consensus_value,
        method=method,
        scout_count=len(values),
        agreement_percentage=agreement,
        confidence_level=min(0.95, 0.5 + 0.45 * math.log(len(values) + 1) / math.log(10)),
        standard_deviation=standard_deviation,
        outlier_count=outlier_count,
        event_key=context.event_key if context else None,
        match_key=context.match_key if context else None,
        team_number=context.team_number if context else None,
        execution_id=context.execution_id if context else None,
    )
