"""asyncpg implementations of the repository ports.

Every repository borrows connections from a shared ``DatabaseAdapter``.
Query failures are logged and re-raised as ``RepositoryError``; nothing is
swallowed here, the orchestrator decides what a failure means.
"""

import logging
from collections.abc import Sequence
from typing import Any

from scoutrank.adapters.database import DatabaseAdapter
from scoutrank.contracts.match import Match, MatchObservation
from scoutrank.contracts.validation import (
    ConsensusValue,
    ELOHistoryEntry,
    ELORatingUpdate,
    EventValidationStatistics,
    HistoryQueryOptions,
    ManualCorrection,
    ScouterLeaderboardEntry,
    ScouterRating,
    ScouterRatingHistory,
    ScouterValidationStatistics,
    ValidationQueryOptions,
    ValidationResult,
)
from scoutrank.core.errors import RatingConflictError, RepositoryError
from scoutrank.core.observability import trace_adapter
from scoutrank.core.ports import (
    ManualCorrectionPort,
    MatchRepositoryPort,
    ScouterEloRepositoryPort,
    ScoutingDataPort,
    ValidationConsensusRepositoryPort,
    ValidationResultRepositoryPort,
)
from scoutrank.core.scoring.elo import DEFAULT_RATING, EloCalculator, get_elo_rank

logger = logging.getLogger(__name__)

BATCH_CHUNK_SIZE = 1000
TREND_WINDOW = 10


def _query_failed(operation: str, error: Exception) -> RepositoryError:
    logger.error(f"Database error in {operation}: {error}")
    return RepositoryError(f"{operation} failed", details={"operation": operation, "error": str(error)})


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg command status such as 'DELETE 12'."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class _Filters:
    """Accumulates WHERE clauses with positional asyncpg parameters."""

    def __init__(self, *params: Any) -> None:
        self.clauses: list[str] = []
        self.params: list[Any] = list(params)

    def add(self, clause: str, value: Any) -> None:
        if value is None:
            return
        self.params.append(value)
        self.clauses.append(clause.format(f"${len(self.params)}"))

    def next_param(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    def where(self, first: str) -> str:
        return " AND ".join([first, *self.clauses])


# ---------------------------------------------------------------------------
# Match schedule and scouting data
# ---------------------------------------------------------------------------

_MATCH_ORDER = """
    CASE comp_level WHEN 'qm' THEN 0 WHEN 'ef' THEN 1 WHEN 'qf' THEN 2
                    WHEN 'sf' THEN 3 WHEN 'f' THEN 4 ELSE 5 END,
    set_number NULLS FIRST, match_number
"""

_OBSERVATION_COLUMNS = """
    id::text AS id, scouter_id, scout_name, match_id, match_key, team_number,
    alliance_color, starting_position, robot_disconnected, robot_disabled,
    robot_tipped, foul_count, tech_foul_count, yellow_card, red_card,
    auto_performance, teleop_performance, endgame_performance,
    defense_rating, driver_skill_rating, speed_rating,
    strengths, weaknesses, notes, confidence_level
"""


class PostgresMatchRepository(MatchRepositoryPort):
    def __init__(self, database: DatabaseAdapter) -> None:
        self._db = database

    @trace_adapter
    async def find_by_event_key(self, event_key: str) -> list[Match]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT * FROM match_schedule WHERE event_key = $1 ORDER BY {_MATCH_ORDER}",
                    event_key,
                )
        except Exception as e:
            raise _query_failed("find_by_event_key", e) from e
        return [Match.model_validate(dict(row)) for row in rows]

    async def find_by_match_key(self, match_key: str) -> Match | None:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM match_schedule WHERE match_key = $1", match_key)
        except Exception as e:
            raise _query_failed("find_by_match_key", e) from e
        return Match.model_validate(dict(row)) if row else None


class PostgresScoutingDataRepository(ScoutingDataPort):
    def __init__(self, database: DatabaseAdapter) -> None:
        self._db = database

    async def find_by_match(self, match_key: str) -> list[MatchObservation]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_OBSERVATION_COLUMNS} FROM match_scouting "
                    "WHERE match_key = $1 ORDER BY team_number, created_at",
                    match_key,
                )
        except Exception as e:
            raise _query_failed("find_by_match", e) from e
        return [MatchObservation.model_validate(dict(row)) for row in rows]

    async def find_by_match_and_team(self, match_key: str, team_number: int) -> list[MatchObservation]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_OBSERVATION_COLUMNS} FROM match_scouting "
                    "WHERE match_key = $1 AND team_number = $2 ORDER BY created_at",
                    match_key,
                    team_number,
                )
        except Exception as e:
            raise _query_failed("find_by_match_and_team", e) from e
        return [MatchObservation.model_validate(dict(row)) for row in rows]


class PostgresManualCorrectionRepository(ManualCorrectionPort):
    _COLUMNS = """
        correction_id::text AS correction_id, match_key, team_number, event_key,
        corrected_by, auto_performance, teleop_performance, endgame_performance,
        notes, created_at
    """

    def __init__(self, database: DatabaseAdapter) -> None:
        self._db = database

    async def find_correction(self, match_key: str, team_number: int) -> ManualCorrection | None:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {self._COLUMNS} FROM manual_corrections WHERE match_key = $1 AND team_number = $2",
                    match_key,
                    team_number,
                )
        except Exception as e:
            raise _query_failed("find_correction", e) from e
        return ManualCorrection.model_validate(dict(row)) if row else None

    async def save_correction(self, correction: ManualCorrection) -> ManualCorrection:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO manual_corrections (
                        match_key, team_number, event_key, corrected_by,
                        auto_performance, teleop_performance, endgame_performance, notes
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (match_key, team_number)
                    DO UPDATE SET
                        corrected_by = EXCLUDED.corrected_by,
                        auto_performance = EXCLUDED.auto_performance,
                        teleop_performance = EXCLUDED.teleop_performance,
                        endgame_performance = EXCLUDED.endgame_performance,
                        notes = EXCLUDED.notes,
                        created_at = NOW()
                    RETURNING {self._COLUMNS}
                    """,
                    correction.match_key,
                    correction.team_number,
                    correction.event_key,
                    correction.corrected_by,
                    correction.auto_performance,
                    correction.teleop_performance,
                    correction.endgame_performance,
                    correction.notes,
                )
        except Exception as e:
            raise _query_failed("save_correction", e) from e
        logger.info(f"Saved manual correction for {correction.match_key} team {correction.team_number}")
        return ManualCorrection.model_validate(dict(row))


# ---------------------------------------------------------------------------
# Scouter ratings
# ---------------------------------------------------------------------------

_HISTORY_COLUMNS = """
    id::text AS id, scouter_id, season_year, validation_id, validation_type,
    elo_before, elo_after, elo_delta, outcome, accuracy_score,
    match_key, team_number, event_key, created_at
"""

_RECENT_TREND = f"""
    LEFT JOIN LATERAL (
        SELECT AVG(recent.elo_delta) AS recent_trend
        FROM (
            SELECT h.elo_delta FROM scouter_elo_history h
            WHERE h.scouter_id = r.scouter_id AND h.season_year = r.season_year
            ORDER BY h.created_at DESC
            LIMIT {TREND_WINDOW}
        ) recent
    ) trend ON TRUE
"""


def _leaderboard_entries(rows: Sequence[Any]) -> list[ScouterLeaderboardEntry]:
    entries: list[ScouterLeaderboardEntry] = []
    for rank, row in enumerate(rows, start=1):
        total = row["total_validations"] or 0
        successful = row["successful_validations"] or 0
        trend = row["recent_trend"]
        entries.append(
            ScouterLeaderboardEntry(
                rank=rank,
                scouter_id=row["scouter_id"],
                scouter_name=row["scouter_name"],
                current_elo=row["current_elo"],
                peak_elo=row["peak_elo"],
                total_validations=total,
                successful_validations=successful,
                success_rate=round(successful / total * 100, 2) if total else 0.0,
                confidence_level=row["confidence_level"],
                elo_rank=get_elo_rank(row["current_elo"]),
                recent_trend=float(trend) if trend is not None else None,
            )
        )
    return entries


class PostgresScouterEloRepository(ScouterEloRepositoryPort):
    """Ratings keyed by (scouter, season) with an append-only history."""

    def __init__(self, database: DatabaseAdapter, default_rating: float = DEFAULT_RATING) -> None:
        self._db = database
        self._default_rating = default_rating

    async def get_current_rating(self, scouter_id: str, season_year: int) -> ScouterRating:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM scouter_elo_ratings WHERE scouter_id = $1 AND season_year = $2",
                    scouter_id,
                    season_year,
                )
        except Exception as e:
            raise _query_failed("get_current_rating", e) from e
        if row is None:
            return await self.initialize_rating(scouter_id, season_year)
        return ScouterRating.model_validate(dict(row))

    async def initialize_rating(self, scouter_id: str, season_year: int) -> ScouterRating:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO scouter_elo_ratings (
                        scouter_id, season_year, current_elo, peak_elo, lowest_elo, confidence_level
                    ) VALUES ($1, $2, $3, $3, $3, $4)
                    ON CONFLICT (scouter_id, season_year) DO NOTHING
                    RETURNING *
                    """,
                    scouter_id,
                    season_year,
                    self._default_rating,
                    EloCalculator.calculate_confidence(0),
                )
                if row is None:
                    # Another writer created it first
                    row = await conn.fetchrow(
                        "SELECT * FROM scouter_elo_ratings WHERE scouter_id = $1 AND season_year = $2",
                        scouter_id,
                        season_year,
                    )
        except Exception as e:
            raise _query_failed("initialize_rating", e) from e
        logger.info(f"Initialized rating for scouter {scouter_id} ({season_year})")
        return ScouterRating.model_validate(dict(row))

    @trace_adapter
    async def update_rating(self, update: ELORatingUpdate) -> ScouterRating:
        try:
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE scouter_elo_ratings SET
                        current_elo = $3,
                        peak_elo = GREATEST(peak_elo, $3),
                        lowest_elo = LEAST(lowest_elo, $3),
                        total_validations = total_validations + $4,
                        successful_validations = successful_validations + $5,
                        failed_validations = failed_validations + $6,
                        -- same curve as EloCalculator.calculate_confidence
                        confidence_level = LEAST(0.95, 0.5 + 0.45 * LN(total_validations + $4 + 1) / LN(100)),
                        last_validation_at = NOW(),
                        updated_at = NOW()
                    WHERE scouter_id = $1 AND season_year = $2 AND current_elo = $7
                    RETURNING *
                    """,
                    update.scouter_id,
                    update.season_year,
                    update.new_rating,
                    update.validation_count,
                    update.success_count or 0,
                    update.failure_count or 0,
                    update.previous_rating,
                )
        except Exception as e:
            raise _query_failed("update_rating", e) from e
        if row is None:
            logger.warning(
                f"Rating conflict for scouter {update.scouter_id} ({update.season_year}), "
                f"expected {update.previous_rating}"
            )
            raise RatingConflictError(update.scouter_id, update.season_year, update.previous_rating)
        return ScouterRating.model_validate(dict(row))

    async def create_history_entry(self, entry: ELOHistoryEntry) -> None:
        await self.create_history_entries([entry])

    async def create_history_entries(self, entries: Sequence[ELOHistoryEntry]) -> None:
        if not entries:
            return
        try:
            async with self._db.acquire() as conn:
                await conn.executemany(
                    """
                    INSERT INTO scouter_elo_history (
                        scouter_id, season_year, validation_id, validation_type,
                        elo_before, elo_after, elo_delta, outcome, accuracy_score,
                        match_key, team_number, event_key
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                    """,
                    [
                        (
                            e.scouter_id,
                            e.season_year,
                            e.validation_id,
                            e.validation_type,
                            e.elo_before,
                            e.elo_after,
                            e.elo_delta,
                            e.outcome,
                            e.accuracy_score,
                            e.match_key,
                            e.team_number,
                            e.event_key,
                        )
                        for e in entries
                    ],
                )
        except Exception as e:
            raise _query_failed("create_history_entries", e) from e

    async def get_rating_history(
        self, scouter_id: str, options: HistoryQueryOptions | None = None
    ) -> list[ScouterRatingHistory]:
        options = options or HistoryQueryOptions()
        filters = _Filters(scouter_id)
        filters.add("event_key = {}", options.event_key)
        filters.add("validation_type = {}", options.validation_type)
        filters.add("created_at >= {}", options.start_date)
        filters.add("created_at <= {}", options.end_date)
        limit = filters.next_param(options.limit)
        offset = filters.next_param(options.offset)
        query = (
            f"SELECT {_HISTORY_COLUMNS} FROM scouter_elo_history "
            f"WHERE {filters.where('scouter_id = $1')} "
            f"ORDER BY {options.order_by} {options.order_direction.upper()} "
            f"LIMIT {limit} OFFSET {offset}"
        )
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(query, *filters.params)
        except Exception as e:
            raise _query_failed("get_rating_history", e) from e
        return [ScouterRatingHistory.model_validate(dict(row)) for row in rows]

    async def get_ratings_for_scouters(self, scouter_ids: Sequence[str], season_year: int) -> list[ScouterRating]:
        if not scouter_ids:
            return []
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM scouter_elo_ratings WHERE scouter_id = ANY($1::varchar[]) AND season_year = $2",
                    list(scouter_ids),
                    season_year,
                )
        except Exception as e:
            raise _query_failed("get_ratings_for_scouters", e) from e
        return [ScouterRating.model_validate(dict(row)) for row in rows]

    @trace_adapter
    async def get_event_leaderboard(
        self, event_key: str, season_year: int, limit: int = 50
    ) -> list[ScouterLeaderboardEntry]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT r.*, scouts.scouter_name, trend.recent_trend
                    FROM scouter_elo_ratings r
                    JOIN (
                        SELECT ms.scouter_id, MAX(ms.scout_name) AS scouter_name
                        FROM match_scouting ms
                        JOIN match_schedule m ON m.match_key = ms.match_key
                        WHERE m.event_key = $1
                        GROUP BY ms.scouter_id
                    ) scouts ON scouts.scouter_id = r.scouter_id
                    {_RECENT_TREND}
                    WHERE r.season_year = $2
                    ORDER BY r.current_elo DESC, r.scouter_id
                    LIMIT $3
                    """,
                    event_key,
                    season_year,
                    limit,
                )
        except Exception as e:
            raise _query_failed("get_event_leaderboard", e) from e
        return _leaderboard_entries(rows)

    @trace_adapter
    async def get_season_leaderboard(self, season_year: int, limit: int = 50) -> list[ScouterLeaderboardEntry]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT r.*, scouts.scouter_name, trend.recent_trend
                    FROM scouter_elo_ratings r
                    LEFT JOIN (
                        SELECT scouter_id, MAX(scout_name) AS scouter_name
                        FROM match_scouting GROUP BY scouter_id
                    ) scouts ON scouts.scouter_id = r.scouter_id
                    {_RECENT_TREND}
                    WHERE r.season_year = $1
                    ORDER BY r.current_elo * r.confidence_level DESC, r.scouter_id
                    LIMIT $2
                    """,
                    season_year,
                    limit,
                )
        except Exception as e:
            raise _query_failed("get_season_leaderboard", e) from e
        return _leaderboard_entries(rows)

    async def get_top_performers(
        self, season_year: int, limit: int = 10, min_validations: int = 10
    ) -> list[ScouterRating]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM scouter_elo_ratings
                    WHERE season_year = $1 AND total_validations >= $2
                    ORDER BY current_elo DESC
                    LIMIT $3
                    """,
                    season_year,
                    min_validations,
                    limit,
                )
        except Exception as e:
            raise _query_failed("get_top_performers", e) from e
        return [ScouterRating.model_validate(dict(row)) for row in rows]

    async def get_rating_trend(self, scouter_id: str, season_year: int, recent: int = TREND_WINDOW) -> float:
        try:
            async with self._db.acquire() as conn:
                trend = await conn.fetchval(
                    """
                    SELECT AVG(elo_delta) FROM (
                        SELECT elo_delta FROM scouter_elo_history
                        WHERE scouter_id = $1 AND season_year = $2
                        ORDER BY created_at DESC
                        LIMIT $3
                    ) recent
                    """,
                    scouter_id,
                    season_year,
                    recent,
                )
        except Exception as e:
            raise _query_failed("get_rating_trend", e) from e
        return float(trend) if trend is not None else 0.0


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------

_RESULT_INSERT = """
    INSERT INTO validation_results (
        validation_id, scouter_id, match_scouting_id, match_key, team_number,
        event_key, season_year, field_path, expected_value, actual_value,
        outcome, accuracy_score, confidence_level, validation_type,
        validation_method, execution_id, notes
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
    ON CONFLICT (validation_id) DO NOTHING
"""


def _result_params(result: ValidationResult) -> tuple[Any, ...]:
    return (
        result.validation_id,
        result.scouter_id,
        result.match_scouting_id,
        result.match_key,
        result.team_number,
        result.event_key,
        result.season_year,
        result.field_path,
        result.expected_value,
        result.actual_value,
        result.outcome,
        result.accuracy_score,
        result.confidence_level,
        result.validation_type,
        result.validation_method,
        result.execution_id,
        result.notes,
    )


class PostgresValidationResultRepository(ValidationResultRepositoryPort):
    """Append-only validation audit trail."""

    def __init__(self, database: DatabaseAdapter, chunk_size: int = BATCH_CHUNK_SIZE) -> None:
        self._db = database
        self._chunk_size = chunk_size

    async def create(self, result: ValidationResult) -> None:
        try:
            async with self._db.acquire() as conn:
                await conn.execute(_RESULT_INSERT, *_result_params(result))
        except Exception as e:
            raise _query_failed("create_validation_result", e) from e

    @trace_adapter
    async def create_batch(self, results: Sequence[ValidationResult]) -> None:
        if not results:
            return
        try:
            async with self._db.acquire() as conn, conn.transaction():
                for offset in range(0, len(results), self._chunk_size):
                    chunk = results[offset : offset + self._chunk_size]
                    await conn.executemany(_RESULT_INSERT, [_result_params(r) for r in chunk])
        except Exception as e:
            raise _query_failed("create_validation_results", e) from e
        logger.info(f"Stored {len(results)} validation results")

    async def _find(
        self, operation: str, first: str, value: Any, options: ValidationQueryOptions | None
    ) -> list[ValidationResult]:
        options = options or ValidationQueryOptions()
        filters = _Filters(value)
        filters.add("event_key = {}", options.event_key)
        filters.add("match_key = {}", options.match_key)
        filters.add("validation_type = {}", options.validation_type)
        filters.add("outcome = {}", options.outcome)
        filters.add("field_path = {}", options.field_path)
        filters.add("created_at >= {}", options.start_date)
        filters.add("created_at <= {}", options.end_date)
        limit = filters.next_param(options.limit)
        offset = filters.next_param(options.offset)
        query = (
            f"SELECT * FROM validation_results WHERE {filters.where(first)} "
            f"ORDER BY {options.order_by} {options.order_direction.upper()} "
            f"LIMIT {limit} OFFSET {offset}"
        )
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(query, *filters.params)
        except Exception as e:
            raise _query_failed(operation, e) from e
        return [ValidationResult.model_validate(dict(row)) for row in rows]

    async def find_by_execution(self, execution_id: str) -> list[ValidationResult]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM validation_results WHERE execution_id = $1 ORDER BY created_at",
                    execution_id,
                )
        except Exception as e:
            raise _query_failed("find_by_execution", e) from e
        return [ValidationResult.model_validate(dict(row)) for row in rows]

    async def find_by_scouter(
        self, scouter_id: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        return await self._find("find_by_scouter", "scouter_id = $1", scouter_id, options)

    async def find_by_match(self, match_key: str) -> list[ValidationResult]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM validation_results WHERE match_key = $1 "
                    "ORDER BY team_number, scouter_id, field_path",
                    match_key,
                )
        except Exception as e:
            raise _query_failed("find_by_match", e) from e
        return [ValidationResult.model_validate(dict(row)) for row in rows]

    async def find_by_event(
        self, event_key: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        return await self._find("find_by_event", "event_key = $1", event_key, options)

    async def get_scouter_statistics(
        self, scouter_id: str, season_year: int | None = None
    ) -> ScouterValidationStatistics:
        filters = _Filters(scouter_id)
        filters.add("season_year = {}", season_year)
        where = filters.where("scouter_id = $1")
        try:
            async with self._db.acquire() as conn:
                totals = await conn.fetchrow(
                    f"""
                    SELECT
                        COUNT(*) AS total,
                        COUNT(*) FILTER (WHERE outcome = 'exact_match') AS exact,
                        COUNT(*) FILTER (WHERE outcome = 'close_match') AS close,
                        COUNT(*) FILTER (WHERE outcome = 'mismatch') AS mismatch,
                        COALESCE(AVG(accuracy_score), 0) AS average_accuracy
                    FROM validation_results WHERE {where}
                    """,
                    *filters.params,
                )
                by_strategy = await conn.fetch(
                    f"SELECT validation_type, COUNT(*) AS count FROM validation_results "
                    f"WHERE {where} GROUP BY validation_type",
                    *filters.params,
                )
        except Exception as e:
            raise _query_failed("get_scouter_statistics", e) from e
        return ScouterValidationStatistics(
            scouter_id=scouter_id,
            total_validations=totals["total"],
            exact_matches=totals["exact"],
            close_matches=totals["close"],
            mismatches=totals["mismatch"],
            average_accuracy=float(totals["average_accuracy"]),
            by_strategy={row["validation_type"]: row["count"] for row in by_strategy},
        )

    async def get_event_statistics(self, event_key: str) -> EventValidationStatistics:
        try:
            async with self._db.acquire() as conn:
                totals = await conn.fetchrow(
                    """
                    SELECT COUNT(*) AS total, COUNT(DISTINCT scouter_id) AS scouters,
                           COALESCE(AVG(accuracy_score), 0) AS average_accuracy
                    FROM validation_results WHERE event_key = $1
                    """,
                    event_key,
                )
                outcomes = await conn.fetch(
                    "SELECT outcome, COUNT(*) AS count FROM validation_results "
                    "WHERE event_key = $1 GROUP BY outcome",
                    event_key,
                )
        except Exception as e:
            raise _query_failed("get_event_statistics", e) from e
        return EventValidationStatistics(
            event_key=event_key,
            total_validations=totals["total"],
            unique_scouters=totals["scouters"],
            average_accuracy=float(totals["average_accuracy"]),
            outcome_distribution={row["outcome"]: row["count"] for row in outcomes},
        )

    async def delete_by_execution(self, execution_id: str) -> int:
        try:
            async with self._db.acquire() as conn:
                status = await conn.execute("DELETE FROM validation_results WHERE execution_id = $1", execution_id)
        except Exception as e:
            raise _query_failed("delete_validation_results", e) from e
        deleted = _affected_rows(status)
        logger.info(f"Deleted {deleted} validation results for execution {execution_id}")
        return deleted


# ---------------------------------------------------------------------------
# Consensus values
# ---------------------------------------------------------------------------

_CONSENSUS_COLUMNS = """
    field_path, value, method, scout_count, agreement_percentage, confidence_level,
    standard_deviation, outlier_count, event_key, match_key, team_number, execution_id
"""

_CONSENSUS_UPSERT = """
    INSERT INTO validation_consensus (
        event_key, match_key, team_number, field_path, value, method, scout_count,
        agreement_percentage, confidence_level, standard_deviation, outlier_count, execution_id
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
    ON CONFLICT (match_key, team_number, field_path)
    DO UPDATE SET
        event_key = EXCLUDED.event_key,
        value = EXCLUDED.value,
        method = EXCLUDED.method,
        scout_count = EXCLUDED.scout_count,
        agreement_percentage = EXCLUDED.agreement_percentage,
        confidence_level = EXCLUDED.confidence_level,
        standard_deviation = EXCLUDED.standard_deviation,
        outlier_count = EXCLUDED.outlier_count,
        execution_id = EXCLUDED.execution_id,
        updated_at = NOW()
"""


def _consensus_params(value: ConsensusValue) -> tuple[Any, ...]:
    if value.match_key is None or value.team_number is None:
        raise ValueError(f"Consensus value for {value.field_path} has no match key or team number")
    return (
        value.event_key,
        value.match_key,
        value.team_number,
        value.field_path,
        value.value,
        value.method,
        value.scout_count,
        value.agreement_percentage,
        value.confidence_level,
        value.standard_deviation,
        value.outlier_count,
        value.execution_id,
    )


class PostgresValidationConsensusRepository(ValidationConsensusRepositoryPort):
    def __init__(self, database: DatabaseAdapter) -> None:
        self._db = database

    async def upsert_consensus(self, value: ConsensusValue) -> None:
        await self.upsert_consensus_batch([value])

    async def upsert_consensus_batch(self, values: Sequence[ConsensusValue]) -> None:
        if not values:
            return
        params = [_consensus_params(v) for v in values]
        try:
            async with self._db.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(_CONSENSUS_UPSERT, params)
        except Exception as e:
            raise _query_failed("upsert_consensus", e) from e

    async def get_match_consensus(self, match_key: str, team_number: int | None = None) -> list[ConsensusValue]:
        filters = _Filters(match_key)
        filters.add("team_number = {}", team_number)
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_CONSENSUS_COLUMNS} FROM validation_consensus "
                    f"WHERE {filters.where('match_key = $1')} ORDER BY team_number, field_path",
                    *filters.params,
                )
        except Exception as e:
            raise _query_failed("get_match_consensus", e) from e
        return [ConsensusValue.model_validate(dict(row)) for row in rows]

    async def get_event_consensus(self, event_key: str) -> list[ConsensusValue]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_CONSENSUS_COLUMNS} FROM validation_consensus "
                    "WHERE event_key = $1 ORDER BY match_key, team_number, field_path",
                    event_key,
                )
        except Exception as e:
            raise _query_failed("get_event_consensus", e) from e
        return [ConsensusValue.model_validate(dict(row)) for row in rows]

    async def delete_by_execution(self, execution_id: str) -> int:
        try:
            async with self._db.acquire() as conn:
                status = await conn.execute("DELETE FROM validation_consensus WHERE execution_id = $1", execution_id)
        except Exception as e:
            raise _query_failed("delete_consensus", e) from e
        return _affected_rows(status)

    async def get_low_agreement_fields(self, event_key: str, threshold: float = 70.0) -> list[ConsensusValue]:
        try:
            async with self._db.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_CONSENSUS_COLUMNS} FROM validation_consensus "
                    "WHERE event_key = $1 AND agreement_percentage < $2 "
                    "ORDER BY agreement_percentage, match_key, team_number, field_path",
                    event_key,
                    threshold,
                )
        except Exception as e:
            raise _query_failed("get_low_agreement_fields", e) from e
        return [ConsensusValue.model_validate(dict(row)) for row in rows]
