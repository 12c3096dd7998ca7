"""Port interfaces for hexagonal architecture.

These ports define the contracts between the core domain and external adapters.
All external dependencies must implement these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from scoutrank.contracts.statistics import OPRMetrics
from scoutrank.core.ports.repository_ports import (
    ManualCorrectionPort,
    MatchRepositoryPort,
    ScouterEloRepositoryPort,
    ScoutingDataPort,
    ValidationConsensusRepositoryPort,
    ValidationResultRepositoryPort,
)
from scoutrank.core.ports.strategy_port import ValidationStrategy

__all__ = [
    "ManualCorrectionPort",
    "MatchRepositoryPort",
    "MetricsCachePort",
    "ScouterEloRepositoryPort",
    "ScoutingDataPort",
    "ValidationConsensusRepositoryPort",
    "ValidationResultRepositoryPort",
    "ValidationStrategy",
]


class MetricsCachePort(ABC):
    """Port for the per-event OPR metrics cache.

    Implementations degrade instead of raising: a failed read is a miss and a
    failed write or delete returns False.
    """

    @abstractmethod
    async def get_metrics(self, event_key: str) -> OPRMetrics | None:
        """Cached metrics for an event, None on a miss."""
        pass

    @abstractmethod
    async def store_metrics(self, metrics: OPRMetrics, ttl: int | None = None) -> bool:
        """Cache metrics under their event key with optional TTL in seconds."""
        pass

    @abstractmethod
    async def invalidate(self, event_key: str) -> bool:
        """Drop the cached metrics for an event."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check cache connectivity."""
        pass
