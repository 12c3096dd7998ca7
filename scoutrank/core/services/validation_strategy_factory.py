"""Validation strategy registry and factory.

The registry is an enum-keyed dispatch table built once at startup. It
always hands strategies out in ValidationStrategyType declaration order, so
execution order (and therefore ELO history order) is reproducible no matter
how the table was populated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from scoutrank.contracts.common import ValidationStrategyType
from scoutrank.core.ports import (
    ManualCorrectionPort,
    MatchRepositoryPort,
    ScoutingDataPort,
    ValidationStrategy,
)

logger = logging.getLogger(__name__)


class ValidationStrategyRegistry:
    """Strategies keyed by ValidationStrategyType, iterated by enum ordinal."""

    def __init__(self, strategies: Iterable[ValidationStrategy] = ()) -> None:
        self._strategies: dict[ValidationStrategyType, ValidationStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: ValidationStrategy) -> None:
        strategy_type = ValidationStrategyType(strategy.strategy_type)
        if strategy_type in self._strategies:
            raise ValueError(f"Strategy already registered for {strategy_type.value}")
        self._strategies[strategy_type] = strategy

    def get(self, strategy_type: ValidationStrategyType | str) -> ValidationStrategy | None:
        return self._strategies.get(ValidationStrategyType(strategy_type))

    @property
    def types(self) -> list[ValidationStrategyType]:
        return sorted(self._strategies, key=lambda t: t.ordinal)

    def select(
        self, strategy_types: Sequence[ValidationStrategyType | str] | None = None
    ) -> list[ValidationStrategy]:
        """Requested strategies (all when None) in canonical order.

        Unknown or unregistered types are skipped with a warning.
        """
        if strategy_types is None:
            return [self._strategies[t] for t in self.types]

        wanted: set[ValidationStrategyType] = set()
        for raw in strategy_types:
            try:
                strategy_type = ValidationStrategyType(raw)
            except ValueError:
                logger.warning(f"Unknown validation strategy requested: {raw}")
                continue
            if strategy_type not in self._strategies:
                logger.warning(f"Validation strategy not registered: {strategy_type.value}")
                continue
            wanted.add(strategy_type)
        return [self._strategies[t] for t in sorted(wanted, key=lambda t: t.ordinal)]

    def __contains__(self, strategy_type: object) -> bool:
        try:
            return ValidationStrategyType(strategy_type) in self._strategies  # type: ignore[arg-type]
        except ValueError:
            return False

    def __iter__(self) -> Iterator[ValidationStrategy]:
        return iter(self.select())

    def __len__(self) -> int:
        return len(self._strategies)


class ValidationStrategyFactory:
    """Builds the default strategy registry from repository ports.

    Concrete strategies are imported lazily to keep the services package free
    of import cycles.
    """

    def __init__(
        self,
        match_repository: MatchRepositoryPort,
        scouting_data: ScoutingDataPort,
        corrections: ManualCorrectionPort | None = None,
    ) -> None:
        self._match_repository = match_repository
        self._scouting_data = scouting_data
        self._corrections = corrections

    def create(self, strategy_type: ValidationStrategyType | str) -> ValidationStrategy:
        strategy_type = ValidationStrategyType(strategy_type)

        if strategy_type is ValidationStrategyType.CONSENSUS:
            from scoutrank.core.services.strategies.consensus_strategy import (
                ConsensusValidationStrategy,
            )

            return ConsensusValidationStrategy(self._scouting_data)

        if strategy_type is ValidationStrategyType.TBA:
            from scoutrank.core.services.strategies.tba_strategy import TBAValidationStrategy

            return TBAValidationStrategy(self._match_repository, self._scouting_data)

        if self._corrections is None:
            raise ValueError("Manual validation requires a manual correction repository")
        from scoutrank.core.services.strategies.manual_strategy import ManualValidationStrategy

        return ManualValidationStrategy(self._corrections, self._scouting_data)

    def create_registry(
        self, strategy_types: Sequence[ValidationStrategyType | str] | None = None
    ) -> ValidationStrategyRegistry:
        """Registry holding the requested strategies.

        By default every strategy whose dependencies are wired is registered.
        """
        if strategy_types is None:
            strategy_types = [
                t
                for t in ValidationStrategyType
                if t is not ValidationStrategyType.MANUAL or self._corrections is not None
            ]
        return ValidationStrategyRegistry(self.create(t) for t in strategy_types)
