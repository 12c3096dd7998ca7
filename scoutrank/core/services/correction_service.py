"""Manual correction service.

Reviewers (e.g. after watching match video) record the values a team actually
achieved. The Manual strategy then treats the stored correction as the truth
for that team in that match.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from scoutrank.contracts.match import PERFORMANCE_PERIODS
from scoutrank.contracts.validation import ManualCorrection
from scoutrank.core.errors import ValidationError
from scoutrank.core.observability import trace_service
from scoutrank.core.ports import ManualCorrectionPort, MatchRepositoryPort

logger = logging.getLogger(__name__)


def split_field_path(field_path: str) -> tuple[str, str]:
    """``teleop_performance.coral_scored_L4`` -> (period, field)."""
    period, _, field = field_path.partition(".")
    if period not in PERFORMANCE_PERIODS or not field:
        raise ValidationError(
            f"Invalid field path {field_path!r}, expected <period>.<field>",
            "INVALID_CONTEXT",
            {"field_path": field_path, "periods": list(PERFORMANCE_PERIODS)},
        )
    return period, field


class ManualCorrectionService:
    def __init__(self, corrections: ManualCorrectionPort, match_repository: MatchRepositoryPort) -> None:
        self._corrections = corrections
        self._matches = match_repository

    @trace_service
    async def record_correction(
        self,
        match_key: str,
        team_number: int,
        values: Mapping[str, Any],
        corrected_by: str | None = None,
        notes: str | None = None,
    ) -> ManualCorrection:
        """Store (or replace) the correction for one team in one match.

        ``values`` maps field paths to corrected values.

        Raises:
            ValidationError: MATCH_NOT_FOUND, INVALID_CONTEXT for an empty
                correction, a bad field path or a team not in the match, and
                SAVE_CORRECTION_FAILED when the repository fails
        """
        if not values:
            raise ValidationError(
                "A correction needs at least one field",
                "INVALID_CONTEXT",
                {"match_key": match_key, "team_number": team_number},
            )
        periods: dict[str, dict[str, Any]] = {period: {} for period in PERFORMANCE_PERIODS}
        for field_path, value in values.items():
            period, field = split_field_path(field_path)
            periods[period][field] = value

        match = await self._matches.find_by_match_key(match_key)
        if match is None:
            raise ValidationError(f"Match {match_key} not found", "MATCH_NOT_FOUND", {"match_key": match_key})
        if match.alliance_of(team_number) is None:
            raise ValidationError(
                f"Team {team_number} did not play in {match_key}",
                "INVALID_CONTEXT",
                {"match_key": match_key, "team_number": team_number},
            )

        correction = ManualCorrection(
            match_key=match_key,
            team_number=team_number,
            event_key=match.event_key,
            corrected_by=corrected_by,
            notes=notes,
            **periods,
        )
        try:
            saved = await self._corrections.save_correction(correction)
        except Exception as e:
            raise ValidationError(
                f"Failed to save correction for {match_key} team {team_number}",
                "SAVE_CORRECTION_FAILED",
                {"match_key": match_key, "team_number": team_number, "error": str(e)},
            ) from e

        logger.info(f"Recorded correction of {len(values)} fields for {match_key} team {team_number}")
        return saved

    async def get_correction(self, match_key: str, team_number: int) -> ManualCorrection | None:
        return await self._corrections.find_correction(match_key, team_number)
