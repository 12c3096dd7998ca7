"""Adapter implementations for external services."""

from .database import DatabaseAdapter
from .metrics_cache import RedisMetricsCache
from .repositories import (
    PostgresManualCorrectionRepository,
    PostgresMatchRepository,
    PostgresScouterEloRepository,
    PostgresScoutingDataRepository,
    PostgresValidationConsensusRepository,
    PostgresValidationResultRepository,
)

__all__ = [
    "DatabaseAdapter",
    "RedisMetricsCache",
    "PostgresManualCorrectionRepository",
    "PostgresMatchRepository",
    "PostgresScouterEloRepository",
    "PostgresScoutingDataRepository",
    "PostgresValidationConsensusRepository",
    "PostgresValidationResultRepository",
]
