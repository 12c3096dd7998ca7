"""ELO rating calculation - pure domain functions with zero I/O.

A scouter's rating moves by ``K * (accuracy - expected)`` after every
validation result, where ``expected`` is the standard logistic expectation
against a reference opponent (the default rating). Accuracy plays the role of
the game score: 1.0 is a win, 0.0 a loss.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from scoutrank.contracts.common import ELOOutcome, EloRank, ValidationOutcome
from scoutrank.contracts.validation import ELOCalculation, RankProgress
from scoutrank.core.errors import ELOCalculationError

DEFAULT_K_FACTOR = 32.0
DEFAULT_RATING = 1500.0
MIN_RATING = 0.0
MAX_RATING = 3000.0

# Deltas within this band are reported as neutral
_NEUTRAL_BAND = 0.5

OUTCOME_ACCURACY: dict[ValidationOutcome, float] = {
    ValidationOutcome.EXACT_MATCH: 1.0,
    ValidationOutcome.CLOSE_MATCH: 0.7,
    ValidationOutcome.MISMATCH: 0.0,
}

ELO_RANK_THRESHOLDS: dict[EloRank, float] = {
    EloRank.DIAMOND: 2000.0,
    EloRank.PLATINUM: 1700.0,
    EloRank.GOLD: 1400.0,
    EloRank.SILVER: 1100.0,
    EloRank.BRONZE: 800.0,
    EloRank.UNRANKED: 0.0,
}


class EloCalculator:
    """Stateless ELO calculator configured with K-factor and rating bounds."""

    def __init__(
        self,
        k_factor: float = DEFAULT_K_FACTOR,
        default_rating: float = DEFAULT_RATING,
        min_rating: float = MIN_RATING,
        max_rating: float = MAX_RATING,
    ) -> None:
        if k_factor <= 0:
            raise ValueError("k_factor must be positive")
        if not min_rating <= default_rating <= max_rating:
            raise ValueError("default_rating must lie within [min_rating, max_rating]")
        self._k_factor = float(k_factor)
        self._default_rating = float(default_rating)
        self._min_rating = float(min_rating)
        self._max_rating = float(max_rating)

    @property
    def k_factor(self) -> float:
        return self._k_factor

    @property
    def default_rating(self) -> float:
        return self._default_rating

    @property
    def rating_range(self) -> tuple[float, float]:
        return self._min_rating, self._max_rating

    def expected_score(self, rating: float, opponent_rating: float | None = None) -> float:
        opponent = self._default_rating if opponent_rating is None else opponent_rating
        return 1.0 / (1.0 + 10 ** ((opponent - rating) / 400.0))

    def calculate_new_rating(
        self,
        current_rating: float,
        accuracy_score: float,
        opponent_rating: float | None = None,
    ) -> ELOCalculation:
        """Apply one validation result to a rating.

        Args:
            current_rating: Rating before this validation
            accuracy_score: Agreement with the truth, in [0, 1]
            opponent_rating: Reference opponent (defaults to the default rating)

        Returns:
            ELOCalculation with the clamped new rating and the applied delta

        Raises:
            ELOCalculationError: If accuracy is outside [0, 1] or rating is negative
        """
        if math.isnan(accuracy_score) or not 0.0 <= accuracy_score <= 1.0:
            raise ELOCalculationError(
                f"Accuracy score must be between 0 and 1, got {accuracy_score}",
                details={"accuracy_score": accuracy_score},
            )
        if current_rating < 0:
            raise ELOCalculationError(
                f"Current rating cannot be negative, got {current_rating}",
                details={"current_rating": current_rating},
            )

        expected = self.expected_score(current_rating, opponent_rating)
        raw_delta = self._k_factor * (accuracy_score - expected)
        new_rating = min(self._max_rating, max(self._min_rating, current_rating + raw_delta))
        delta = new_rating - current_rating

        if delta > _NEUTRAL_BAND:
            outcome = ELOOutcome.GAIN
        elif delta < -_NEUTRAL_BAND:
            outcome = ELOOutcome.LOSS
        else:
            outcome = ELOOutcome.NEUTRAL

        return ELOCalculation(
            new_rating=new_rating,
            delta=delta,
            outcome=outcome,
            expected_score=expected,
            actual_score=accuracy_score,
        )

    def predict_delta(self, current_rating: float, accuracy_score: float) -> float:
        return self.calculate_new_rating(current_rating, accuracy_score).delta

    @staticmethod
    def outcome_to_accuracy_score(outcome: ValidationOutcome | str) -> float:
        return OUTCOME_ACCURACY[ValidationOutcome(outcome)]

    @staticmethod
    def calculate_average_accuracy(scores: Sequence[float]) -> float:
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    @staticmethod
    def calculate_weighted_accuracy(weighted_scores: Iterable[tuple[float, float]]) -> float:
        """Weighted mean of (score, weight) pairs; 0.0 when total weight is zero."""
        total_weight = 0.0
        total = 0.0
        for score, weight in weighted_scores:
            total += score * weight
            total_weight += weight
        if total_weight <= 0:
            return 0.0
        return total / total_weight

    @staticmethod
    def calculate_confidence(validation_count: int) -> float:
        """Confidence grows logarithmically with validations: 0.5 at zero, capped at 0.95."""
        if validation_count < 0:
            raise ELOCalculationError(
                "Validation count cannot be negative",
                details={"validation_count": validation_count},
            )
        return min(0.95, 0.5 + 0.45 * math.log(validation_count + 1) / math.log(100))


def create_elo_calculator(k_factor: float = DEFAULT_K_FACTOR, **kwargs: float) -> EloCalculator:
    return EloCalculator(k_factor=k_factor, **kwargs)


def get_elo_rank(rating: float) -> EloRank:
    for rank, threshold in ELO_RANK_THRESHOLDS.items():
        if rating >= threshold:
            return rank
    return EloRank.UNRANKED


def get_progress_to_next_rank(rating: float) -> RankProgress:
    """Progress (0-100) from the current tier threshold towards the next one."""
    current = get_elo_rank(rating)
    tiers = list(ELO_RANK_THRESHOLDS)
    index = tiers.index(current)
    if index == 0:
        return RankProgress(current_rank=current, next_rank=None, progress=100.0, points_needed=0.0)

    next_rank = tiers[index - 1]
    floor = ELO_RANK_THRESHOLDS[current]
    ceiling = ELO_RANK_THRESHOLDS[next_rank]
    progress = (rating - floor) / (ceiling - floor) * 100.0
    return RankProgress(
        current_rank=current,
        next_rank=next_rank,
        progress=round(min(100.0, max(0.0, progress)), 2),
        points_needed=round(max(0.0, ceiling - rating), 2),
    )
