"""
Common data types and base models for scoutrank.
All models use Pydantic V2 with strict type checking.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ValidationStrategyType(str, Enum):
    """Validation strategies.

    Declaration order is the canonical execution order.
    """

    CONSENSUS = "consensus"
    TBA = "tba"
    MANUAL = "manual"

    @property
    def ordinal(self) -> int:
        return list(ValidationStrategyType).index(self)


class ValidationOutcome(str, Enum):
    """Categorical result of comparing one observation against the truth."""

    EXACT_MATCH = "exact_match"
    CLOSE_MATCH = "close_match"
    MISMATCH = "mismatch"


class ELOOutcome(str, Enum):
    """Direction bucket of a single rating update."""

    GAIN = "gain"
    NEUTRAL = "neutral"
    LOSS = "loss"


class ConsensusMethod(str, Enum):
    """How a consensus value was derived from several scouts."""

    MODE = "mode"
    WEIGHTED_AVERAGE = "weighted_average"
    MAJORITY_VOTE = "majority_vote"
    MEDIAN = "median"


class AllianceColor(str, Enum):
    """FRC alliance colors."""

    RED = "red"
    BLUE = "blue"


class EloRank(str, Enum):
    """Scouter rank tiers derived from the current rating."""

    DIAMOND = "diamond"
    PLATINUM = "platinum"
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    UNRANKED = "unranked"


class BaseContract(BaseModel):
    """Base model for all data contracts with common configuration."""

    model_config = ConfigDict(
        # Validate data on assignment
        validate_assignment=True,
        # Use enum values in JSON
        use_enum_values=True,
        # Forbid extra fields to ensure data integrity
        extra="forbid",
    )


class RecordContract(BaseContract):
    """Base for models hydrated from database rows.

    Rows may carry columns the core does not use, so extras are ignored.
    """

    model_config = ConfigDict(extra="ignore")
