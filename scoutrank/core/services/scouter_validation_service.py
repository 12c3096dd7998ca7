"""Scouter validation service (orchestrator).

Drives validation over a whole event or a single match:

    Pending -> Running -> Persisting -> Updating-ELO -> Completed

Running walks matches (in batches) and teams sequentially and runs every
applicable strategy. Persisting writes all results in one batch. Updating-ELO
applies one rating update per result, per scouter, in canonical order
(match, strategy, team, field) so replays produce the same trajectory.

Per-item failures (one team, one scouter) are collected and the run goes on;
only whole-run failures surface as ValidationError.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from structlog.contextvars import bind_contextvars, unbind_contextvars

from scoutrank.contracts.common import ValidationStrategyType
from scoutrank.contracts.match import Match
from scoutrank.contracts.validation import (
    DEFAULT_MIN_SCOUTS,
    ConsensusValue,
    ELOHistoryEntry,
    ELORatingUpdate,
    ELOUpdateSummary,
    EventValidationStatistics,
    HistoryQueryOptions,
    ScouterLeaderboard,
    ScouterRating,
    ScouterRatingHistory,
    ScouterValidationStatistics,
    ValidationContext,
    ValidationErrorEntry,
    ValidationExecutionSummary,
    ValidationQueryOptions,
    ValidationResult,
)
from scoutrank.core.errors import ValidationError
from scoutrank.core.observability import trace_service
from scoutrank.core.ports import (
    MatchRepositoryPort,
    ScouterEloRepositoryPort,
    ValidationConsensusRepositoryPort,
    ValidationResultRepositoryPort,
    ValidationStrategy,
)
from scoutrank.core.scoring.elo import EloCalculator, get_elo_rank
from scoutrank.core.services.validation_strategy_factory import ValidationStrategyRegistry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
SUCCESS_THRESHOLD = 0.7
HISTORY_GAIN_THRESHOLD = 0.8
HISTORY_NEUTRAL_THRESHOLD = 0.5
LOW_AGREEMENT_THRESHOLD = 70.0

_COMP_LEVEL_ORDER = {"qm": 0, "ef": 1, "qf": 2, "sf": 3, "f": 4}


def match_sort_key(match: Match) -> tuple[int, int, int, str]:
    """Schedule order: qualification before playoffs, then set and match number."""
    return (
        _COMP_LEVEL_ORDER.get(match.comp_level, len(_COMP_LEVEL_ORDER)),
        match.set_number or 0,
        match.match_number,
        match.match_key,
    )


def season_from_event_key(event_key: str) -> int:
    """Event keys start with the season year, e.g. 2025wimi."""
    try:
        return int(event_key[:4])
    except ValueError as e:
        raise ValidationError(
            f"Cannot derive season year from event key {event_key!r}",
            "INVALID_CONTEXT",
            {"event_key": event_key},
        ) from e


def history_outcome(accuracy: float) -> str:
    if accuracy >= HISTORY_GAIN_THRESHOLD:
        return "gain"
    if accuracy >= HISTORY_NEUTRAL_THRESHOLD:
        return "neutral"
    return "loss"


class ScouterValidationService:
    """Runs validation strategies and feeds their results into scouter ratings."""

    def __init__(
        self,
        strategies: ValidationStrategyRegistry,
        elo_calculator: EloCalculator,
        scouter_elo_repository: ScouterEloRepositoryPort,
        validation_result_repository: ValidationResultRepositoryPort,
        consensus_repository: ValidationConsensusRepositoryPort,
        match_repository: MatchRepositoryPort,
        *,
        min_scouts_required: int = DEFAULT_MIN_SCOUTS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._strategies = strategies
        self._calculator = elo_calculator
        self._elo = scouter_elo_repository
        self._results = validation_result_repository
        self._consensus = consensus_repository
        self._matches = match_repository
        self._min_scouts_required = min_scouts_required
        self._batch_size = batch_size

    # ------------------------------------------------------------------
    # Validation runs
    # ------------------------------------------------------------------

    @trace_service
    async def validate_event(
        self,
        event_key: str,
        strategy_types: Sequence[ValidationStrategyType | str] | None = None,
    ) -> ValidationExecutionSummary:
        """Validate every match of an event and update scouter ratings.

        Args:
            event_key: Event to validate, e.g. 2025wimi
            strategy_types: Strategies to run (all registered when None)

        Returns:
            Execution summary with per-scouter ELO rollups and collected errors

        Raises:
            ValidationError: EVENT_VALIDATION_FAILED for whole-run failures
        """
        execution_id = str(uuid.uuid4())
        bind_contextvars(execution_id=execution_id)
        try:
            strategies = self.get_strategies(strategy_types)
            logger.info(f"[{execution_id}] Pending: event {event_key}, strategies {self._names(strategies)}")
            matches = await self._matches.find_by_event_key(event_key)
            if not matches:
                logger.info(f"[{execution_id}] No matches found for event {event_key}")
                now = datetime.now(UTC)
                return self._build_summary(
                    execution_id, event_key, strategies, [], [], [], now, time.perf_counter()
                )
            return await self._execute(
                execution_id, event_key, sorted(matches, key=match_sort_key), strategies, "EVENT_VALIDATION_FAILED"
            )
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"[{execution_id}] Event validation failed for {event_key}: {e}")
            raise ValidationError(
                f"Failed to validate event {event_key}",
                "EVENT_VALIDATION_FAILED",
                {"event_key": event_key, "error": str(e)},
            ) from e
        finally:
            unbind_contextvars("execution_id")

    @trace_service
    async def validate_match(
        self,
        match_key: str,
        strategy_types: Sequence[ValidationStrategyType | str] | None = None,
    ) -> ValidationExecutionSummary:
        """Validate one match and update scouter ratings.

        Raises:
            ValidationError: MATCH_NOT_FOUND, or MATCH_VALIDATION_FAILED for
                whole-run failures
        """
        execution_id = str(uuid.uuid4())
        bind_contextvars(execution_id=execution_id)
        try:
            strategies = self.get_strategies(strategy_types)
            match = await self._matches.find_by_match_key(match_key)
            if match is None:
                raise ValidationError(
                    f"Match not found: {match_key}", "MATCH_NOT_FOUND", {"match_key": match_key}
                )
            return await self._execute(
                execution_id, match.event_key, [match], strategies, "MATCH_VALIDATION_FAILED"
            )
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"[{execution_id}] Match validation failed for {match_key}: {e}")
            raise ValidationError(
                f"Failed to validate match {match_key}",
                "MATCH_VALIDATION_FAILED",
                {"match_key": match_key, "error": str(e)},
            ) from e
        finally:
            unbind_contextvars("execution_id")

    async def _execute(
        self,
        execution_id: str,
        event_key: str,
        matches: list[Match],
        strategies: list[ValidationStrategy],
        failure_code: str,
    ) -> ValidationExecutionSummary:
        started_at = datetime.now(UTC)
        start = time.perf_counter()
        errors: list[ValidationErrorEntry] = []
        results: list[ValidationResult] = []
        consensus: list[ConsensusValue] = []

        logger.info(f"[{execution_id}] Running: {len(matches)} matches")
        units = 0
        for offset in range(0, len(matches), self._batch_size):
            batch = matches[offset : offset + self._batch_size]
            for match in batch:
                units += len(match.team_slots())
                results.extend(
                    await self.validate_single_match(match, strategies, execution_id, errors, consensus)
                )
            logger.debug(
                f"[{execution_id}] Batch {offset // self._batch_size + 1} done, {len(results)} results so far"
            )

        if units == 1 and errors:
            # The only unit of work failed: nothing to collect around it
            raise ValidationError(
                errors[0].error,
                failure_code,
                {"event_key": event_key, "match_key": errors[0].match_key, "team_number": errors[0].team_number},
            )

        results = self.order_results(results, matches)

        if results:
            logger.info(f"[{execution_id}] Persisting: {len(results)} validation results")
            await self._results.create_batch(results)
        if consensus:
            await self._consensus.upsert_consensus_batch(consensus)

        logger.info(f"[{execution_id}] Updating-ELO")
        elo_updates = await self.update_elo_ratings(results, execution_id, errors)

        summary = self._build_summary(
            execution_id, event_key, strategies, results, elo_updates, errors, started_at, start
        )
        logger.info(
            f"[{execution_id}] Completed: {summary.total_validations} validations, "
            f"{summary.scouters_affected} scouters, {len(errors)} errors in {summary.duration_ms:.0f}ms"
        )
        return summary

    async def validate_single_match(
        self,
        match: Match,
        strategies: Sequence[ValidationStrategy],
        execution_id: str,
        errors: list[ValidationErrorEntry],
        consensus: list[ConsensusValue] | None = None,
    ) -> list[ValidationResult]:
        """Validate every team of a match; a failing team is recorded in ``errors``."""
        results: list[ValidationResult] = []
        for _slot, team_number in match.team_slots():
            try:
                results.extend(
                    await self.validate_team_in_match(match, team_number, strategies, execution_id, consensus)
                )
            except Exception as e:
                logger.error(f"[{execution_id}] Validation failed for {match.match_key} team {team_number}: {e}")
                errors.append(
                    ValidationErrorEntry(match_key=match.match_key, team_number=team_number, error=str(e))
                )
        return results

    async def validate_team_in_match(
        self,
        match: Match,
        team_number: int,
        strategies: Sequence[ValidationStrategy],
        execution_id: str,
        consensus: list[ConsensusValue] | None = None,
    ) -> list[ValidationResult]:
        """Run every applicable strategy for one team; strategy errors propagate."""
        context = ValidationContext(
            event_key=match.event_key,
            match_key=match.match_key,
            team_number=team_number,
            season_year=season_from_event_key(match.event_key),
            execution_id=execution_id,
            min_scouts_required=self._min_scouts_required,
        )

        results: list[ValidationResult] = []
        team_consensus: list[ConsensusValue] = []
        for strategy in strategies:
            if not await strategy.can_validate(context):
                continue
            results.extend(await strategy.validate(context))
            team_consensus.extend(await strategy.consensus_values(context))
        # Only reached when every strategy succeeded for this team
        if consensus is not None:
            consensus.extend(team_consensus)
        return results

    @staticmethod
    def order_results(results: Sequence[ValidationResult], matches: Sequence[Match]) -> list[ValidationResult]:
        """Canonical ELO order: match schedule, strategy ordinal, team, field path."""
        match_position = {m.match_key: i for i, m in enumerate(sorted(matches, key=match_sort_key))}

        def key(result: ValidationResult) -> tuple[int, int, int, str]:
            return (
                match_position.get(result.match_key, len(match_position)),
                ValidationStrategyType(result.validation_type).ordinal,
                result.team_number,
                result.field_path,
            )

        return sorted(results, key=key)

    # ------------------------------------------------------------------
    # ELO application
    # ------------------------------------------------------------------

    async def update_elo_ratings(
        self,
        results: Sequence[ValidationResult],
        execution_id: str,
        errors: list[ValidationErrorEntry] | None = None,
    ) -> list[ELOUpdateSummary]:
        """Apply results per scouter; one scouter failing does not stop the others."""
        by_scouter: dict[str, list[ValidationResult]] = {}
        for result in results:
            by_scouter.setdefault(result.scouter_id, []).append(result)

        summaries: list[ELOUpdateSummary] = []
        for scouter_id, scouter_results in by_scouter.items():
            try:
                summaries.append(await self.update_scouter_elo(scouter_id, scouter_results, execution_id))
            except Exception as e:
                logger.error(f"[{execution_id}] ELO update failed for scouter {scouter_id}: {e}")
                if errors is not None:
                    errors.append(ValidationErrorEntry(scouter_id=scouter_id, error=str(e)))
        return summaries

    async def update_scouter_elo(
        self, scouter_id: str, results: Sequence[ValidationResult], execution_id: str
    ) -> ELOUpdateSummary:
        """Apply one rating update per result, threading the rating through.

        Every applied update gets a history entry, even when a later update
        in the sequence fails.
        """
        season_year = results[0].season_year
        rating = await self._elo.get_current_rating(scouter_id, season_year)
        old_rating = current = rating.current_elo

        history: list[ELOHistoryEntry] = []
        try:
            for result in results:
                accuracy = self._calculator.outcome_to_accuracy_score(result.outcome)
                calculation = self._calculator.calculate_new_rating(current, accuracy)
                success = accuracy >= SUCCESS_THRESHOLD

                await self._elo.update_rating(
                    ELORatingUpdate(
                        scouter_id=scouter_id,
                        season_year=season_year,
                        previous_rating=current,
                        new_rating=calculation.new_rating,
                        delta=calculation.delta,
                        validation_count=1,
                        success_count=1 if success else 0,
                        failure_count=0 if success else 1,
                        execution_id=execution_id,
                    )
                )
                history.append(
                    ELOHistoryEntry(
                        scouter_id=scouter_id,
                        season_year=season_year,
                        validation_id=result.validation_id,
                        validation_type=result.validation_type,
                        elo_before=current,
                        elo_after=calculation.new_rating,
                        elo_delta=calculation.delta,
                        outcome=history_outcome(accuracy),
                        accuracy_score=accuracy,
                        match_key=result.match_key,
                        team_number=result.team_number,
                        event_key=result.event_key,
                    )
                )
                current = calculation.new_rating
        finally:
            if history:
                await self._elo.create_history_entries(history)

        return ELOUpdateSummary(
            scouter_id=scouter_id,
            old_rating=old_rating,
            new_rating=current,
            delta=current - old_rating,
            validations_processed=len(results),
            average_accuracy=self._calculator.calculate_average_accuracy(
                [r.accuracy_score for r in results]
            ),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_scouter_rating(self, scouter_id: str, season_year: int) -> ScouterRating:
        try:
            return await self._elo.get_current_rating(scouter_id, season_year)
        except Exception as e:
            raise ValidationError(
                f"Failed to get rating for scouter {scouter_id}",
                "GET_RATING_FAILED",
                {"scouter_id": scouter_id, "season_year": season_year, "error": str(e)},
            ) from e

    async def get_scouter_rating_history(
        self, scouter_id: str, options: HistoryQueryOptions | None = None
    ) -> list[ScouterRatingHistory]:
        try:
            return await self._elo.get_rating_history(scouter_id, options or HistoryQueryOptions())
        except Exception as e:
            raise ValidationError(
                f"Failed to get rating history for scouter {scouter_id}",
                "GET_HISTORY_FAILED",
                {"scouter_id": scouter_id, "error": str(e)},
            ) from e

    async def get_event_leaderboard(
        self, event_key: str, season_year: int, limit: int = 50
    ) -> ScouterLeaderboard:
        try:
            entries = await self._elo.get_event_leaderboard(event_key, season_year, limit)
        except Exception as e:
            raise ValidationError(
                f"Failed to get leaderboard for event {event_key}",
                "GET_LEADERBOARD_FAILED",
                {"event_key": event_key, "season_year": season_year, "error": str(e)},
            ) from e
        return ScouterLeaderboard(
            event_key=event_key,
            season_year=season_year,
            entries=[e.model_copy(update={"elo_rank": get_elo_rank(e.current_elo)}) for e in entries],
            generated_at=datetime.now(UTC),
        )

    async def get_season_leaderboard(self, season_year: int, limit: int = 50) -> ScouterLeaderboard:
        try:
            entries = await self._elo.get_season_leaderboard(season_year, limit)
        except Exception as e:
            raise ValidationError(
                f"Failed to get leaderboard for season {season_year}",
                "GET_LEADERBOARD_FAILED",
                {"season_year": season_year, "error": str(e)},
            ) from e
        return ScouterLeaderboard(
            event_key="season",
            season_year=season_year,
            entries=[e.model_copy(update={"elo_rank": get_elo_rank(e.current_elo)}) for e in entries],
            generated_at=datetime.now(UTC),
        )

    async def get_scouter_validations(
        self, scouter_id: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        try:
            return await self._results.find_by_scouter(scouter_id, options or ValidationQueryOptions())
        except Exception as e:
            raise ValidationError(
                f"Failed to get validations for scouter {scouter_id}",
                "GET_VALIDATIONS_FAILED",
                {"scouter_id": scouter_id, "error": str(e)},
            ) from e

    async def get_match_validations(self, match_key: str) -> list[ValidationResult]:
        try:
            return await self._results.find_by_match(match_key)
        except Exception as e:
            raise ValidationError(
                f"Failed to get validations for match {match_key}",
                "GET_VALIDATIONS_FAILED",
                {"match_key": match_key, "error": str(e)},
            ) from e

    async def get_event_validations(
        self, event_key: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        try:
            return await self._results.find_by_event(event_key, options or ValidationQueryOptions())
        except Exception as e:
            raise ValidationError(
                f"Failed to get validations for event {event_key}",
                "GET_VALIDATIONS_FAILED",
                {"event_key": event_key, "error": str(e)},
            ) from e

    async def get_execution_validations(self, execution_id: str) -> list[ValidationResult]:
        try:
            return await self._results.find_by_execution(execution_id)
        except Exception as e:
            raise ValidationError(
                f"Failed to get validations for execution {execution_id}",
                "GET_VALIDATIONS_FAILED",
                {"execution_id": execution_id, "error": str(e)},
            ) from e

    async def get_scouter_ratings(self, scouter_ids: Sequence[str], season_year: int) -> list[ScouterRating]:
        try:
            return await self._elo.get_ratings_for_scouters(scouter_ids, season_year)
        except Exception as e:
            raise ValidationError(
                "Failed to get ratings for scouters",
                "GET_RATING_FAILED",
                {"scouter_ids": list(scouter_ids), "season_year": season_year, "error": str(e)},
            ) from e

    async def get_top_performers(
        self, season_year: int, limit: int = 10, min_validations: int = 10
    ) -> list[ScouterRating]:
        """Highest rated scouters with enough validations for the rating to mean something."""
        try:
            return await self._elo.get_top_performers(season_year, limit, min_validations)
        except Exception as e:
            raise ValidationError(
                f"Failed to get top performers for season {season_year}",
                "GET_LEADERBOARD_FAILED",
                {"season_year": season_year, "error": str(e)},
            ) from e

    async def get_scouter_rating_trend(self, scouter_id: str, season_year: int, recent: int = 10) -> float:
        try:
            return await self._elo.get_rating_trend(scouter_id, season_year, recent)
        except Exception as e:
            raise ValidationError(
                f"Failed to get rating trend for scouter {scouter_id}",
                "GET_HISTORY_FAILED",
                {"scouter_id": scouter_id, "season_year": season_year, "error": str(e)},
            ) from e

    async def get_scouter_statistics(
        self, scouter_id: str, season_year: int | None = None
    ) -> ScouterValidationStatistics:
        try:
            return await self._results.get_scouter_statistics(scouter_id, season_year)
        except Exception as e:
            raise ValidationError(
                f"Failed to get statistics for scouter {scouter_id}",
                "GET_STATISTICS_FAILED",
                {"scouter_id": scouter_id, "season_year": season_year, "error": str(e)},
            ) from e

    async def get_event_statistics(self, event_key: str) -> EventValidationStatistics:
        try:
            return await self._results.get_event_statistics(event_key)
        except Exception as e:
            raise ValidationError(
                f"Failed to get statistics for event {event_key}",
                "GET_STATISTICS_FAILED",
                {"event_key": event_key, "error": str(e)},
            ) from e

    async def get_match_consensus(self, match_key: str, team_number: int | None = None) -> list[ConsensusValue]:
        try:
            return await self._consensus.get_match_consensus(match_key, team_number)
        except Exception as e:
            raise ValidationError(
                f"Failed to get consensus for match {match_key}",
                "GET_CONSENSUS_FAILED",
                {"match_key": match_key, "team_number": team_number, "error": str(e)},
            ) from e

    async def get_event_consensus(self, event_key: str) -> list[ConsensusValue]:
        try:
            return await self._consensus.get_event_consensus(event_key)
        except Exception as e:
            raise ValidationError(
                f"Failed to get consensus for event {event_key}",
                "GET_CONSENSUS_FAILED",
                {"event_key": event_key, "error": str(e)},
            ) from e

    async def get_low_agreement_fields(
        self, event_key: str, threshold: float = LOW_AGREEMENT_THRESHOLD
    ) -> list[ConsensusValue]:
        """Fields scouts disagreed on, worst first; candidates for manual review."""
        try:
            return await self._consensus.get_low_agreement_fields(event_key, threshold)
        except Exception as e:
            raise ValidationError(
                f"Failed to get low agreement fields for event {event_key}",
                "GET_CONSENSUS_FAILED",
                {"event_key": event_key, "threshold": threshold, "error": str(e)},
            ) from e

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @trace_service
    async def rollback_execution(self, execution_id: str) -> dict[str, int]:
        """Delete the results and consensus values a run stored.

        Ratings and ELO history are left alone; they are an audit trail of
        updates that were applied.
        """
        try:
            results = await self._results.delete_by_execution(execution_id)
            consensus = await self._consensus.delete_by_execution(execution_id)
        except Exception as e:
            raise ValidationError(
                f"Failed to roll back execution {execution_id}",
                "ROLLBACK_FAILED",
                {"execution_id": execution_id, "error": str(e)},
            ) from e
        logger.info(f"[{execution_id}] Rolled back {results} results and {consensus} consensus values")
        return {"validation_results": results, "consensus_values": consensus}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def get_strategies(
        self, strategy_types: Sequence[ValidationStrategyType | str] | None = None
    ) -> list[ValidationStrategy]:
        return self._strategies.select(strategy_types)

    @staticmethod
    def _names(strategies: Sequence[ValidationStrategy]) -> str:
        return ", ".join(ValidationStrategyType(s.strategy_type).value for s in strategies) or "none"

    @staticmethod
    def _build_summary(
        execution_id: str,
        event_key: str,
        strategies: Sequence[ValidationStrategy],
        results: Sequence[ValidationResult],
        elo_updates: list[ELOUpdateSummary],
        errors: list[ValidationErrorEntry],
        started_at: datetime,
        start: float,
    ) -> ValidationExecutionSummary:
        breakdown = {ValidationStrategyType(s.strategy_type).value: 0 for s in strategies}
        for result in results:
            key = ValidationStrategyType(result.validation_type).value
            breakdown[key] = breakdown.get(key, 0) + 1

        return ValidationExecutionSummary(
            execution_id=execution_id,
            event_key=event_key,
            total_validations=len(results),
            scouters_affected=len({r.scouter_id for r in results}),
            strategy_breakdown=breakdown,
            elo_updates=elo_updates,
            errors=errors,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            duration_ms=(time.perf_counter() - start) * 1000,
        )
