"""Port interfaces for persistence.

The core never talks to a database directly; every read and write goes
through one of these repositories.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from scoutrank.contracts.match import Match, MatchObservation
from scoutrank.contracts.validation import (
    ConsensusValue,
    ELOHistoryEntry,
    ELORatingUpdate,
    EventValidationStatistics,
    HistoryQueryOptions,
    ManualCorrection,
    ScouterLeaderboardEntry,
    ScouterRating,
    ScouterRatingHistory,
    ScouterValidationStatistics,
    ValidationQueryOptions,
    ValidationResult,
)


class MatchRepositoryPort(ABC):
    """Port for the match schedule and official results."""

    @abstractmethod
    async def find_by_event_key(self, event_key: str) -> list[Match]:
        """All matches of an event, ordered by comp level and match number."""
        pass

    @abstractmethod
    async def find_by_match_key(self, match_key: str) -> Match | None:
        """A single match, or None when unknown."""
        pass


class ScoutingDataPort(ABC):
    """Port for scouts' match observations."""

    @abstractmethod
    async def find_by_match(self, match_key: str) -> list[MatchObservation]:
        """Every observation submitted for a match (all teams)."""
        pass

    @abstractmethod
    async def find_by_match_and_team(self, match_key: str, team_number: int) -> list[MatchObservation]:
        """Observations of one team in one match."""
        pass


class ManualCorrectionPort(ABC):
    """Port for human-entered authoritative corrections."""

    @abstractmethod
    async def find_correction(self, match_key: str, team_number: int) -> ManualCorrection | None:
        pass

    @abstractmethod
    async def save_correction(self, correction: ManualCorrection) -> ManualCorrection:
        pass


class ScouterEloRepositoryPort(ABC):
    """Port for scouter ratings and their history."""

    @abstractmethod
    async def get_current_rating(self, scouter_id: str, season_year: int) -> ScouterRating:
        """Current rating, initializing a default row when none exists.

        Args:
            scouter_id: Scouter identifier
            season_year: Season the rating belongs to

        Returns:
            The scouter's rating for the season
        """
        pass

    @abstractmethod
    async def update_rating(self, update: ELORatingUpdate) -> ScouterRating:
        """Apply one rating change.

        The write only succeeds while the stored rating still equals
        ``update.previous_rating``.

        Raises:
            RatingConflictError: If another writer changed the rating first
        """
        pass

    @abstractmethod
    async def initialize_rating(self, scouter_id: str, season_year: int) -> ScouterRating:
        pass

    @abstractmethod
    async def create_history_entry(self, entry: ELOHistoryEntry) -> None:
        pass

    @abstractmethod
    async def create_history_entries(self, entries: Sequence[ELOHistoryEntry]) -> None:
        pass

    @abstractmethod
    async def get_rating_history(
        self, scouter_id: str, options: HistoryQueryOptions | None = None
    ) -> list[ScouterRatingHistory]:
        pass

    @abstractmethod
    async def get_ratings_for_scouters(
        self, scouter_ids: Sequence[str], season_year: int
    ) -> list[ScouterRating]:
        pass

    @abstractmethod
    async def get_event_leaderboard(
        self, event_key: str, season_year: int, limit: int = 50
    ) -> list[ScouterLeaderboardEntry]:
        """Scouters who scouted the event, highest rating first."""
        pass

    @abstractmethod
    async def get_season_leaderboard(self, season_year: int, limit: int = 50) -> list[ScouterLeaderboardEntry]:
        """All scouters of the season, ranked by rating weighted with confidence."""
        pass

    @abstractmethod
    async def get_top_performers(
        self, season_year: int, limit: int = 10, min_validations: int = 10
    ) -> list[ScouterRating]:
        pass

    @abstractmethod
    async def get_rating_trend(self, scouter_id: str, season_year: int, recent: int = 10) -> float:
        """Average delta over the most recent history entries."""
        pass


class ValidationResultRepositoryPort(ABC):
    """Port for the append-only validation result audit trail."""

    @abstractmethod
    async def create(self, result: ValidationResult) -> None:
        pass

    @abstractmethod
    async def create_batch(self, results: Sequence[ValidationResult]) -> None:
        pass

    @abstractmethod
    async def find_by_execution(self, execution_id: str) -> list[ValidationResult]:
        pass

    @abstractmethod
    async def find_by_scouter(
        self, scouter_id: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        pass

    @abstractmethod
    async def find_by_match(self, match_key: str) -> list[ValidationResult]:
        pass

    @abstractmethod
    async def find_by_event(
        self, event_key: str, options: ValidationQueryOptions | None = None
    ) -> list[ValidationResult]:
        pass

    @abstractmethod
    async def get_scouter_statistics(
        self, scouter_id: str, season_year: int | None = None
    ) -> ScouterValidationStatistics:
        pass

    @abstractmethod
    async def get_event_statistics(self, event_key: str) -> EventValidationStatistics:
        pass

    @abstractmethod
    async def delete_by_execution(self, execution_id: str) -> int:
        """Delete a run's results; returns the number of rows removed."""
        pass


class ValidationConsensusRepositoryPort(ABC):
    """Port for consolidated consensus values."""

    @abstractmethod
    async def upsert_consensus(self, value: ConsensusValue) -> None:
        pass

    @abstractmethod
    async def upsert_consensus_batch(self, values: Sequence[ConsensusValue]) -> None:
        pass

    @abstractmethod
    async def get_match_consensus(self, match_key: str, team_number: int | None = None) -> list[ConsensusValue]:
        pass

    @abstractmethod
    async def get_event_consensus(self, event_key: str) -> list[ConsensusValue]:
        pass

    @abstractmethod
    async def delete_by_execution(self, execution_id: str) -> int:
        pass

    @abstractmethod
    async def get_low_agreement_fields(
        self, event_key: str, threshold: float = 70.0
    ) -> list[ConsensusValue]:
        """Consensus values whose agreement percentage is below ``threshold``."""
        pass
