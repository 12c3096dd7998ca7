"""Composition root.

The only place where adapters are bound to ports. Services never build
their own dependencies; the CLI and Celery tasks obtain them from here.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from scoutrank.adapters.database import DatabaseAdapter
from scoutrank.adapters.metrics_cache import RedisMetricsCache
from scoutrank.adapters.repositories import (
    PostgresManualCorrectionRepository,
    PostgresMatchRepository,
    PostgresScouterEloRepository,
    PostgresScoutingDataRepository,
    PostgresValidationConsensusRepository,
    PostgresValidationResultRepository,
)
from scoutrank.config.settings import Settings, get_settings
from scoutrank.core.scoring.elo import EloCalculator
from scoutrank.core.services.correction_service import ManualCorrectionService
from scoutrank.core.services.opr_service import OPRService
from scoutrank.core.services.scouter_validation_service import ScouterValidationService
from scoutrank.core.services.validation_strategy_factory import ValidationStrategyFactory

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Wired application objects sharing one database pool and one cache client."""

    database: DatabaseAdapter
    cache: RedisMetricsCache
    validation_service: ScouterValidationService
    opr_service: OPRService
    correction_service: ManualCorrectionService

    async def connect(self) -> None:
        await self.database.connect()
        await self.cache.connect()

    async def close(self) -> None:
        await self.cache.disconnect()
        await self.database.disconnect()


def create_elo_calculator(settings: Settings) -> EloCalculator:
    return EloCalculator(
        k_factor=settings.elo_k_factor,
        default_rating=settings.elo_default_rating,
        min_rating=settings.elo_min_rating,
        max_rating=settings.elo_max_rating,
    )


def create_scouter_validation_service(database: DatabaseAdapter, settings: Settings) -> ScouterValidationService:
    match_repository = PostgresMatchRepository(database)
    factory = ValidationStrategyFactory(
        match_repository=match_repository,
        scouting_data=PostgresScoutingDataRepository(database),
        corrections=PostgresManualCorrectionRepository(database),
    )
    return ScouterValidationService(
        strategies=factory.create_registry(),
        elo_calculator=create_elo_calculator(settings),
        scouter_elo_repository=PostgresScouterEloRepository(database, default_rating=settings.elo_default_rating),
        validation_result_repository=PostgresValidationResultRepository(database),
        consensus_repository=PostgresValidationConsensusRepository(database),
        match_repository=match_repository,
        min_scouts_required=settings.validation_min_scouts,
        batch_size=settings.validation_batch_size,
    )


def build_container(settings: Settings | None = None) -> Container:
    """Wire every adapter and service without opening any connection."""
    settings = settings or get_settings()
    database = DatabaseAdapter(settings.database_url)
    cache = RedisMetricsCache(settings.redis_url)
    return Container(
        database=database,
        cache=cache,
        validation_service=create_scouter_validation_service(database, settings),
        opr_service=OPRService(PostgresMatchRepository(database), cache, cache_ttl=settings.opr_cache_ttl),
        correction_service=ManualCorrectionService(
            PostgresManualCorrectionRepository(database), PostgresMatchRepository(database)
        ),
    )


@asynccontextmanager
async def application(settings: Settings | None = None) -> AsyncIterator[Container]:
    """Connected container, closed on exit."""
    container = build_container(settings)
    await container.connect()
    try:
        yield container
    finally:
        await container.close()
        logger.info("Application resources released")
