"""Contract models for data validation."""

from .common import (
    AllianceColor,
    ConsensusMethod,
    ELOOutcome,
    EloRank,
    ValidationOutcome,
    ValidationStrategyType,
)
from .match import Match, MatchObservation
from .statistics import (
    AllianceRecommendations,
    CCWMResult,
    CCWMStatistics,
    DPRResult,
    OPRMetrics,
    OPRResult,
    TeamOPRSnapshot,
)
from .validation import (
    ConsensusValue,
    ELOHistoryEntry,
    ELORatingUpdate,
    ELOUpdateSummary,
    ManualCorrection,
    ScouterLeaderboard,
    ScouterLeaderboardEntry,
    ScouterRating,
    ScouterRatingHistory,
    ValidationContext,
    ValidationErrorEntry,
    ValidationExecutionSummary,
    ValidationResult,
)

__all__ = [
    "AllianceColor",
    "ConsensusMethod",
    "ELOOutcome",
    "EloRank",
    "ValidationOutcome",
    "ValidationStrategyType",
    "Match",
    "MatchObservation",
    "AllianceRecommendations",
    "CCWMResult",
    "CCWMStatistics",
    "DPRResult",
    "OPRMetrics",
    "OPRResult",
    "TeamOPRSnapshot",
    "ConsensusValue",
    "ELOHistoryEntry",
    "ELORatingUpdate",
    "ELOUpdateSummary",
    "ManualCorrection",
    "ScouterLeaderboard",
    "ScouterLeaderboardEntry",
    "ScouterRating",
    "ScouterRatingHistory",
    "ValidationContext",
    "ValidationErrorEntry",
    "ValidationExecutionSummary",
    "ValidationResult",
]
