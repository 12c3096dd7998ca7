"""Service layer implementing business logic.

Services connect ports (interfaces) with adapters (implementations),
providing high-level business operations to the application layer.
"""

from scoutrank.core.services.correction_service import ManualCorrectionService
from scoutrank.core.services.opr_service import OPRService
from scoutrank.core.services.scouter_validation_service import ScouterValidationService
from scoutrank.core.services.validation_strategy_factory import (
    ValidationStrategyFactory,
    ValidationStrategyRegistry,
)

__all__ = [
    "ManualCorrectionService",
    "OPRService",
    "ScouterValidationService",
    "ValidationStrategyFactory",
    "ValidationStrategyRegistry",
]
