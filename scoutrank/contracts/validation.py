"""
Validation, ELO rating and leaderboard data contracts.

ValidationResult and ELOHistoryEntry are append-only records: once a strategy
or the orchestrator creates them they are persisted and never mutated.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field

from .common import (
    BaseContract,
    ConsensusMethod,
    ELOOutcome,
    EloRank,
    RecordContract,
    ValidationOutcome,
    ValidationStrategyType,
)

DEFAULT_MIN_SCOUTS = 3


class ValidationContext(BaseContract):
    """Input to a validation strategy for one (match, team) pair."""

    model_config = ConfigDict(frozen=True)

    event_key: str = Field(..., min_length=1)
    match_key: str = Field(..., min_length=1)
    team_number: int = Field(..., gt=0)
    season_year: int = Field(..., ge=1992)
    execution_id: str = Field(..., description="Groups every result of one validation run")
    min_scouts_required: int = Field(DEFAULT_MIN_SCOUTS, ge=1)


class ValidationResult(RecordContract):
    """One scouter's accuracy on one field as judged by one strategy."""

    model_config = ConfigDict(frozen=True)

    validation_id: str = Field(...)
    scouter_id: str = Field(...)
    match_scouting_id: str | None = Field(None)
    match_key: str = Field(...)
    team_number: int = Field(..., gt=0)
    event_key: str = Field(...)
    season_year: int = Field(...)
    field_path: str = Field(..., description="Dotted path, e.g. teleop_performance.coral_scored_L4")
    expected_value: Any = Field(None)
    actual_value: Any = Field(None)
    outcome: ValidationOutcome = Field(...)
    accuracy_score: float = Field(..., ge=0.0, le=1.0)
    confidence_level: float | None = Field(None, ge=0.0, le=1.0)
    validation_type: ValidationStrategyType = Field(...)
    validation_method: str = Field(...)
    execution_id: str = Field(...)
    notes: str | None = Field(None)
    created_at: datetime | None = Field(None)


class ManualCorrection(RecordContract):
    """Authoritative human-entered values for one team in one match."""

    correction_id: str | None = Field(None)
    match_key: str = Field(...)
    team_number: int = Field(..., gt=0)
    event_key: str = Field(...)
    corrected_by: str | None = Field(None)
    auto_performance: dict[str, Any] = Field(default_factory=dict)
    teleop_performance: dict[str, Any] = Field(default_factory=dict)
    endgame_performance: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = Field(None)
    created_at: datetime | None = Field(None)


class ScouterRating(RecordContract):
    """Current ELO state for a (scouter, season) pair."""

    scouter_id: str = Field(...)
    season_year: int = Field(...)
    current_elo: float = Field(...)
    peak_elo: float = Field(...)
    lowest_elo: float = Field(...)
    confidence_level: float = Field(0.5, ge=0.0, le=1.0)
    total_validations: int = Field(0, ge=0)
    successful_validations: int = Field(0, ge=0)
    failed_validations: int = Field(0, ge=0)
    last_validation_at: datetime | None = Field(None)
    created_at: datetime | None = Field(None)
    updated_at: datetime | None = Field(None)


class ELORatingUpdate(BaseContract):
    """A single rating write, conditional on the rating it was computed from."""

    scouter_id: str
    season_year: int
    previous_rating: float = Field(..., description="Rating the update was computed from")
    new_rating: float
    delta: float
    validation_count: int = Field(1, ge=1)
    success_count: int | None = Field(None, ge=0)
    failure_count: int | None = Field(None, ge=0)
    execution_id: str


class ELOHistoryEntry(BaseContract):
    """Before/after record for one applied validation result."""

    scouter_id: str
    season_year: int
    validation_id: str
    validation_type: ValidationStrategyType | None = None
    elo_before: float
    elo_after: float
    elo_delta: float
    outcome: ELOOutcome
    accuracy_score: float = Field(..., ge=0.0, le=1.0)
    match_key: str
    team_number: int
    event_key: str


class ScouterRatingHistory(RecordContract):
    """Stored history row."""

    id: str | None = None
    scouter_id: str
    season_year: int
    validation_id: str
    validation_type: ValidationStrategyType | None = None
    elo_before: float
    elo_after: float
    elo_delta: float
    outcome: ELOOutcome
    accuracy_score: float
    match_key: str
    team_number: int
    event_key: str
    created_at: datetime | None = None


class ELOCalculation(BaseContract):
    """Result of one ELO update computation."""

    new_rating: float
    delta: float
    outcome: ELOOutcome
    expected_score: float
    actual_score: float


class RankProgress(BaseContract):
    """Where a rating sits between two rank tiers."""

    current_rank: EloRank
    next_rank: EloRank | None
    progress: float = Field(..., ge=0.0, le=100.0)
    points_needed: float = Field(..., ge=0.0)


class ELOUpdateSummary(BaseContract):
    """Per-scouter rollup of one validation run."""

    scouter_id: str
    old_rating: float
    new_rating: float
    delta: float
    validations_processed: int
    average_accuracy: float


class ValidationErrorEntry(BaseContract):
    """A per-item failure collected during a run."""

    match_key: str | None = None
    team_number: int | None = None
    scouter_id: str | None = None
    error: str


class ValidationExecutionSummary(BaseContract):
    """Top-level result of validate_event / validate_match."""

    execution_id: str
    event_key: str
    total_validations: int = 0
    scouters_affected: int = 0
    strategy_breakdown: dict[str, int] = Field(default_factory=dict)
    elo_updates: list[ELOUpdateSummary] = Field(default_factory=list)
    errors: list[ValidationErrorEntry] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime
    duration_ms: float = Field(0.0, ge=0.0)


class HistoryQueryOptions(BaseContract):
    """Filters for rating history queries."""

    limit: int = Field(50, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    event_key: str | None = None
    validation_type: ValidationStrategyType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    order_by: Literal["created_at", "elo_delta"] = "created_at"
    order_direction: Literal["asc", "desc"] = "desc"


class ValidationQueryOptions(BaseContract):
    """Filters for validation result queries."""

    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    event_key: str | None = None
    match_key: str | None = None
    validation_type: ValidationStrategyType | None = None
    outcome: ValidationOutcome | None = None
    field_path: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    order_by: Literal["created_at", "accuracy_score"] = "created_at"
    order_direction: Literal["asc", "desc"] = "desc"


class ScouterLeaderboardEntry(BaseContract):
    rank: int = Field(..., ge=1)
    scouter_id: str
    scouter_name: str | None = None
    current_elo: float
    peak_elo: float
    total_validations: int
    successful_validations: int
    success_rate: float = Field(..., ge=0.0, le=100.0, description="Percentage 0-100")
    confidence_level: float
    elo_rank: EloRank = EloRank.UNRANKED
    recent_trend: float | None = Field(None, description="Average delta over recent validations")


class ScouterLeaderboard(BaseContract):
    event_key: str = Field(..., description="Event key, or 'season' for season-wide boards")
    season_year: int
    entries: list[ScouterLeaderboardEntry] = Field(default_factory=list)
    generated_at: datetime


class ConsensusValue(BaseContract):
    """Consolidated value of one field with agreement metadata."""

    field_path: str
    value: Any = None
    method: ConsensusMethod
    scout_count: int = Field(..., ge=0)
    agreement_percentage: float = Field(..., ge=0.0, le=100.0)
    confidence_level: float = Field(..., ge=0.0, le=1.0)
    standard_deviation: float | None = None
    outlier_count: int | None = None
    event_key: str | None = None
    match_key: str | None = None
    team_number: int | None = None
    execution_id: str | None = None


class ScouterValidationStatistics(BaseContract):
    scouter_id: str
    total_validations: int = 0
    exact_matches: int = 0
    close_matches: int = 0
    mismatches: int = 0
    average_accuracy: float = 0.0
    by_strategy: dict[str, int] = Field(default_factory=dict)


class EventValidationStatistics(BaseContract):
    event_key: str
    total_validations: int = 0
    unique_scouters: int = 0
    average_accuracy: float = 0.0
    outcome_distribution: dict[str, int] = Field(default_factory=dict)
