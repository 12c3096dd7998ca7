"""OPR metrics service.

Computes OPR, DPR and CCWM for an event and caches the whole bundle, since
the regression is re-run over every completed match each time.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from scoutrank.contracts.statistics import AllianceRecommendations, OPRMetrics, TeamOPRSnapshot
from scoutrank.core.errors import InsufficientDataError
from scoutrank.core.observability import trace_performance, trace_service
from scoutrank.core.ports import MatchRepositoryPort, MetricsCachePort
from scoutrank.core.scoring.ccwm import (
    calculate_ccwm,
    calculate_ccwm_statistics,
    generate_alliance_recommendations,
    validate_ccwm_results,
)
from scoutrank.core.scoring.opr import (
    calculate_dpr,
    calculate_opr,
    completed_matches,
    validate_opr_results,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600


class OPRService:
    """Event-level team statistics backed by a cache."""

    def __init__(
        self,
        match_repository: MatchRepositoryPort,
        cache: MetricsCachePort,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        self._matches = match_repository
        self._cache = cache
        self._cache_ttl = cache_ttl

    async def get_opr_metrics(self, event_key: str) -> OPRMetrics | None:
        """Cached metrics only; None when nothing usable is cached."""
        return await self._cache.get_metrics(event_key)

    @trace_service
    async def calculate_opr_metrics(self, event_key: str) -> OPRMetrics:
        """Return cached metrics, computing and caching them on a miss.

        Args:
            event_key: Event to compute statistics for

        Returns:
            OPR, DPR and CCWM for every team plus field-wide statistics

        Raises:
            InsufficientDataError: If the event has no (or too few) completed matches
        """
        cached = await self.get_opr_metrics(event_key)
        if cached is not None:
            logger.debug(f"OPR metrics cache hit for {event_key}")
            return cached

        matches = await self._matches.find_by_event_key(event_key)
        completed = completed_matches(matches)
        if not completed:
            raise InsufficientDataError(
                f"No completed matches found for event {event_key}",
                required=1,
                available=0,
                event_key=event_key,
            )

        opr = calculate_opr(completed)
        dpr = calculate_dpr(completed)
        ccwm = calculate_ccwm(opr, dpr)
        warnings = validate_opr_results(opr) + validate_ccwm_results(ccwm)
        for warning in warnings:
            logger.warning(f"{event_key}: {warning}")

        metrics = OPRMetrics(
            event_key=event_key,
            opr=opr,
            dpr=dpr,
            ccwm=ccwm,
            statistics=calculate_ccwm_statistics(ccwm),
            calculated_at=datetime.now(UTC),
            total_matches=len(completed),
            warnings=warnings,
        )
        if not await self._cache.store_metrics(metrics, ttl=self._cache_ttl):
            logger.warning(f"OPR metrics for {event_key} were computed but not cached")
        logger.info(f"Calculated OPR metrics for {event_key}: {len(ccwm)} teams over {len(completed)} matches")
        return metrics

    async def recalculate_opr_metrics(self, event_key: str) -> OPRMetrics:
        """Drop the cached entry and compute fresh metrics."""
        await self._cache.invalidate(event_key)
        return await self.calculate_opr_metrics(event_key)

    async def get_alliance_recommendations(self, event_key: str) -> AllianceRecommendations:
        metrics = await self.calculate_opr_metrics(event_key)
        return generate_alliance_recommendations(metrics.ccwm)

    @trace_performance
    async def get_team_opr_history(self, team_number: int, event_keys: Sequence[str]) -> list[TeamOPRSnapshot]:
        """A team's figures across events, skipping events without enough data."""
        history: list[TeamOPRSnapshot] = []
        for event_key in event_keys:
            try:
                metrics = await self.calculate_opr_metrics(event_key)
            except InsufficientDataError as e:
                logger.info(f"Skipping {event_key} for team {team_number}: {e}")
                continue
            entry = next((r for r in metrics.ccwm if r.team_number == team_number), None)
            if entry is None:
                continue
            history.append(
                TeamOPRSnapshot(
                    event_key=event_key,
                    team_number=team_number,
                    opr=entry.opr,
                    dpr=entry.dpr,
                    ccwm=entry.ccwm,
                    matches_played=entry.matches_played,
                    calculated_at=metrics.calculated_at,
                )
            )
        return history
