"""Error taxonomy for scoutrank.

Every error carries a machine-readable ``code`` and a ``details`` dict so
callers branch on type/code and never on message text.
"""

from __future__ import annotations

from typing import Any


class ScoutRankError(Exception):
    """Base exception for scoutrank failures."""

    code = "SCOUTRANK_ERROR"

    def __init__(
        self, message: str, code: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "code": self.code, "message": self.message, "details": self.details}


class ValidationError(ScoutRankError):
    """Raised by the validation orchestrator for whole-run failures.

    Codes: EVENT_VALIDATION_FAILED, MATCH_NOT_FOUND, MATCH_VALIDATION_FAILED,
    GET_RATING_FAILED, GET_HISTORY_FAILED, GET_LEADERBOARD_FAILED,
    GET_VALIDATIONS_FAILED, GET_STATISTICS_FAILED, GET_CONSENSUS_FAILED,
    ROLLBACK_FAILED, SAVE_CORRECTION_FAILED, INVALID_CONTEXT, INSUFFICIENT_SCOUTS.
    """

    code = "VALIDATION_FAILED"


class ELOCalculationError(ScoutRankError):
    """Raised for inputs the ELO calculator cannot rate."""

    code = "ELO_CALCULATION_FAILED"

    def __init__(
        self, message: str, scouter_id: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, details=details)
        self.scouter_id = scouter_id


class InsufficientDataError(ScoutRankError):
    """Raised when there is not enough data for a statistic to be meaningful."""

    code = "INSUFFICIENT_DATA"

    def __init__(self, message: str, *, required: int, available: int, **details: Any) -> None:
        super().__init__(message, details={"required": required, "available": available, **details})
        self.required = required
        self.available = available


class RatingConflictError(ScoutRankError):
    """Raised when a rating changed between read and conditional write."""

    code = "RATING_CONFLICT"

    def __init__(self, scouter_id: str, season_year: int, expected: float) -> None:
        super().__init__(
            f"Rating for scouter {scouter_id} ({season_year}) no longer equals {expected}",
            details={"scouter_id": scouter_id, "season_year": season_year, "expected": expected},
        )
        self.scouter_id = scouter_id
        self.season_year = season_year
        self.expected = expected


class RepositoryError(ScoutRankError):
    """Raised by persistence adapters when a query fails."""

    code = "REPOSITORY_ERROR"
