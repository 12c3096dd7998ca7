"""Port interface for validation strategies (Strategy Pattern)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from scoutrank.contracts.common import ValidationStrategyType
from scoutrank.contracts.validation import ConsensusValue, ValidationContext, ValidationResult


class ValidationStrategy(ABC):
    """Judges scouts' observations of one team in one match against some truth.

    Each strategy decides on its own whether its ground truth is available.
    The orchestrator runs every applicable strategy and unions their results.
    """

    strategy_type: ValidationStrategyType

    @abstractmethod
    async def can_validate(self, context: ValidationContext) -> bool:
        """Whether the ground truth for ``context`` is available.

        Must return False rather than raise when the truth is missing or
        cannot be loaded.
        """
        pass

    @abstractmethod
    async def validate(self, context: ValidationContext) -> list[ValidationResult]:
        """Compare every scout's observation against the truth.

        Returns:
            Zero or more results, one per (scouter, compared field)
        """
        pass

    async def consensus_values(self, context: ValidationContext) -> list[ConsensusValue]:
        """Consolidated values worth persisting alongside the results.

        Only strategies that build a consensus override this.
        """
        return []
