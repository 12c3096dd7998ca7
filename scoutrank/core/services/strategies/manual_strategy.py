"""Manual Validation Strategy.

Uses a human-entered correction (e.g. from match video review) as the truth
for one team in one match. Only the fields present in the correction are
judged.
"""

from __future__ import annotations

import logging
import uuid

from scoutrank.contracts.common import ValidationStrategyType
from scoutrank.contracts.match import PERFORMANCE_PERIODS
from scoutrank.contracts.validation import ValidationContext, ValidationResult
from scoutrank.core.ports import ManualCorrectionPort, ScoutingDataPort, ValidationStrategy
from scoutrank.core.scoring.comparison import accuracy_to_outcome, compare_field_values

logger = logging.getLogger(__name__)

CONFIDENCE_LEVEL = 0.9


class ManualValidationStrategy(ValidationStrategy):
    """Compares each scout with a reviewer's authoritative correction."""

    strategy_type = ValidationStrategyType.MANUAL

    def __init__(self, corrections: ManualCorrectionPort, scouting_data: ScoutingDataPort) -> None:
        self._corrections = corrections
        self._scouting_data = scouting_data

    async def can_validate(self, context: ValidationContext) -> bool:
        try:
            correction = await self._corrections.find_correction(context.match_key, context.team_number)
            if correction is None:
                return False
            observations = await self._scouting_data.find_by_match_and_team(
                context.match_key, context.team_number
            )
        except Exception as e:
            logger.warning(
                f"Manual correction check failed for {context.match_key} team {context.team_number}: {e}"
            )
            return False
        return len(observations) > 0

    async def validate(self, context: ValidationContext) -> list[ValidationResult]:
        correction = await self._corrections.find_correction(context.match_key, context.team_number)
        if correction is None:
            return []
        observations = await self._scouting_data.find_by_match_and_team(
            context.match_key, context.team_number
        )

        results: list[ValidationResult] = []
        for observation in observations:
            for period in PERFORMANCE_PERIODS:
                truth = getattr(correction, period) or {}
                actual_data = observation.period(period)
                for field, expected in truth.items():
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
                            confidence_level=CONFIDENCE_LEVEL,
                            validation_type=self.strategy_type,
                            validation_method=type(self).__name__,
                            execution_id=context.execution_id,
                            notes=f"Corrected by {correction.corrected_by}" if correction.corrected_by else None,
                        )
                    )
        return results
