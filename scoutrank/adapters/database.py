"""Database adapter using asyncpg for PostgreSQL.

Owns the connection pool and the schema. The repositories in
``scoutrank.adapters.repositories`` borrow connections from this pool.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from scoutrank.config.settings import settings

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS match_schedule (
        match_id SERIAL PRIMARY KEY,
        event_key VARCHAR(32) NOT NULL,
        match_key VARCHAR(64) NOT NULL UNIQUE,
        comp_level VARCHAR(4) NOT NULL DEFAULT 'qm',
        set_number INTEGER,
        match_number INTEGER NOT NULL DEFAULT 0,
        red_1 INTEGER,
        red_2 INTEGER,
        red_3 INTEGER,
        blue_1 INTEGER,
        blue_2 INTEGER,
        blue_3 INTEGER,
        red_score INTEGER,
        blue_score INTEGER,
        winning_alliance VARCHAR(8),
        post_result_time TIMESTAMPTZ,
        score_breakdown JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_match_schedule_event
        ON match_schedule(event_key);
    """,
    """
    CREATE TABLE IF NOT EXISTS match_scouting (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        scouter_id VARCHAR(255) NOT NULL,
        scout_name VARCHAR(255),
        match_id INTEGER,
        match_key VARCHAR(64) NOT NULL,
        team_number INTEGER NOT NULL,
        alliance_color VARCHAR(8),
        starting_position INTEGER,
        robot_disconnected BOOLEAN NOT NULL DEFAULT FALSE,
        robot_disabled BOOLEAN NOT NULL DEFAULT FALSE,
        robot_tipped BOOLEAN NOT NULL DEFAULT FALSE,
        foul_count INTEGER NOT NULL DEFAULT 0,
        tech_foul_count INTEGER NOT NULL DEFAULT 0,
        yellow_card BOOLEAN NOT NULL DEFAULT FALSE,
        red_card BOOLEAN NOT NULL DEFAULT FALSE,
        auto_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        teleop_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        endgame_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        defense_rating INTEGER,
        driver_skill_rating INTEGER,
        speed_rating INTEGER,
        strengths TEXT,
        weaknesses TEXT,
        notes TEXT,
        confidence_level DOUBLE PRECISION,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_match_scouting_match_team
        ON match_scouting(match_key, team_number);

    CREATE INDEX IF NOT EXISTS idx_match_scouting_scouter
        ON match_scouting(scouter_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS manual_corrections (
        correction_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        match_key VARCHAR(64) NOT NULL,
        team_number INTEGER NOT NULL,
        event_key VARCHAR(32) NOT NULL,
        corrected_by VARCHAR(255),
        auto_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        teleop_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        endgame_performance JSONB NOT NULL DEFAULT '{}'::jsonb,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE(match_key, team_number)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS scouter_elo_ratings (
        scouter_id VARCHAR(255) NOT NULL,
        season_year INTEGER NOT NULL,
        current_elo DOUBLE PRECISION NOT NULL,
        peak_elo DOUBLE PRECISION NOT NULL,
        lowest_elo DOUBLE PRECISION NOT NULL,
        confidence_level DOUBLE PRECISION NOT NULL DEFAULT 0.5,
        total_validations INTEGER NOT NULL DEFAULT 0,
        successful_validations INTEGER NOT NULL DEFAULT 0,
        failed_validations INTEGER NOT NULL DEFAULT 0,
        last_validation_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (scouter_id, season_year)
    );

    CREATE INDEX IF NOT EXISTS idx_scouter_elo_season_rating
        ON scouter_elo_ratings(season_year, current_elo DESC);
    """,
    """
    CREATE TABLE IF NOT EXISTS scouter_elo_history (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        scouter_id VARCHAR(255) NOT NULL,
        season_year INTEGER NOT NULL,
        validation_id VARCHAR(64) NOT NULL,
        validation_type VARCHAR(16),
        elo_before DOUBLE PRECISION NOT NULL,
        elo_after DOUBLE PRECISION NOT NULL,
        elo_delta DOUBLE PRECISION NOT NULL,
        outcome VARCHAR(16) NOT NULL,
        accuracy_score DOUBLE PRECISION NOT NULL,
        match_key VARCHAR(64) NOT NULL,
        team_number INTEGER NOT NULL,
        event_key VARCHAR(32) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_scouter_elo_history_scouter
        ON scouter_elo_history(scouter_id, season_year, created_at DESC);

    CREATE INDEX IF NOT EXISTS idx_scouter_elo_history_event
        ON scouter_elo_history(event_key);
    """,
    """
    CREATE TABLE IF NOT EXISTS validation_results (
        validation_id VARCHAR(64) PRIMARY KEY,
        scouter_id VARCHAR(255) NOT NULL,
        match_scouting_id VARCHAR(64),
        match_key VARCHAR(64) NOT NULL,
        team_number INTEGER NOT NULL,
        event_key VARCHAR(32) NOT NULL,
        season_year INTEGER NOT NULL,
        field_path VARCHAR(255) NOT NULL,
        expected_value JSONB,
        actual_value JSONB,
        outcome VARCHAR(16) NOT NULL,
        accuracy_score DOUBLE PRECISION NOT NULL,
        confidence_level DOUBLE PRECISION,
        validation_type VARCHAR(16) NOT NULL,
        validation_method VARCHAR(64) NOT NULL,
        execution_id VARCHAR(64) NOT NULL,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_validation_results_execution
        ON validation_results(execution_id);

    CREATE INDEX IF NOT EXISTS idx_validation_results_scouter
        ON validation_results(scouter_id, created_at DESC);

    CREATE INDEX IF NOT EXISTS idx_validation_results_event
        ON validation_results(event_key);

    CREATE INDEX IF NOT EXISTS idx_validation_results_match
        ON validation_results(match_key);
    """,
    """
    CREATE TABLE IF NOT EXISTS validation_consensus (
        id BIGSERIAL PRIMARY KEY,
        event_key VARCHAR(32),
        match_key VARCHAR(64) NOT NULL,
        team_number INTEGER NOT NULL,
        field_path VARCHAR(255) NOT NULL,
        value JSONB,
        method VARCHAR(32) NOT NULL,
        scout_count INTEGER NOT NULL,
        agreement_percentage DOUBLE PRECISION NOT NULL,
        confidence_level DOUBLE PRECISION NOT NULL,
        standard_deviation DOUBLE PRECISION,
        outlier_count INTEGER,
        execution_id VARCHAR(64),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE(match_key, team_number, field_path)
    );

    CREATE INDEX IF NOT EXISTS idx_validation_consensus_event
        ON validation_consensus(event_key);
    """,
)


async def _init_connection(conn: Any) -> None:
    """Decode JSON/JSONB columns to Python objects on every pooled connection."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class DatabaseAdapter:
    """asyncpg connection pool plus schema bootstrap.

    Features:
    - Async connection pooling
    - JSONB columns decoded to dicts by a per-connection codec
    - Idempotent schema creation at startup
    """

    def __init__(self, dsn: str | None = None) -> None:
        self._dsn = dsn or settings.database_url
        self._pool: Any = None  # asyncpg.Pool (untyped library)
        logger.info("Database adapter initialized")

    @property
    def pool(self) -> Any:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized")
        return self._pool

    async def connect(self) -> None:
        """Create the connection pool.

        This should be called once at application startup.
        """
        if self._pool is not None:
            logger.warning("Database pool already exists")
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=settings.database_pool_min_size,
                max_size=settings.database_pool_size,
                max_inactive_connection_lifetime=300,
                command_timeout=settings.database_pool_timeout,
                init=_init_connection,
            )
            logger.info("Database connection pool created successfully")

            if settings.database_init_schema:
                await self._initialize_schema()

        except Exception as e:
            logger.error(f"Failed to create database pool: {e}")
            raise

    async def disconnect(self) -> None:
        """Close the connection pool.

        This should be called at application shutdown.
        """
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        async with self.pool.acquire() as conn:
            yield conn

    async def _initialize_schema(self) -> None:
        """Create required tables and indexes if they don't exist."""
        async with self.acquire() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Database schema initialized")

    async def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is accessible, False otherwise
        """
        if not self._pool:
            return False

        try:
            async with self._pool.acquire() as conn:
                result: int | None = await conn.fetchval("SELECT 1")
                return bool(result == 1)
        except Exception:
            return False
