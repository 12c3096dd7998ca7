"""Unit tests for the ELO calculator and rank tiers.

Pure domain logic, no mocking.
"""

import math

import pytest

from scoutrank.contracts.common import ELOOutcome, EloRank, ValidationOutcome
from scoutrank.core.errors import ELOCalculationError
from scoutrank.core.scoring.elo import (
    EloCalculator,
    create_elo_calculator,
    get_elo_rank,
    get_progress_to_next_rank,
)


@pytest.fixture
def calculator() -> EloCalculator:
    return EloCalculator()


class TestCalculateNewRating:
    def test_perfect_accuracy_at_default_rating_gains_half_k(self, calculator: EloCalculator) -> None:
        result = calculator.calculate_new_rating(1500, 1.0)

        assert result.expected_score == pytest.approx(0.5)
        assert result.delta == pytest.approx(16.0)
        assert result.new_rating == pytest.approx(1516.0)
        assert result.outcome == ELOOutcome.GAIN

    def test_zero_accuracy_loses_half_k(self, calculator: EloCalculator) -> None:
        result = calculator.calculate_new_rating(1500, 0.0)

        assert result.delta == pytest.approx(-16.0)
        assert result.outcome == ELOOutcome.LOSS

    def test_expected_accuracy_is_neutral(self, calculator: EloCalculator) -> None:
        result = calculator.calculate_new_rating(1500, 0.5)

        assert result.delta == pytest.approx(0.0)
        assert result.outcome == ELOOutcome.NEUTRAL

    def test_higher_accuracy_never_yields_lower_rating(self, calculator: EloCalculator) -> None:
        # Arrange
        accuracies = [0.0, 0.25, 0.5, 0.7, 0.75, 1.0]

        # Act
        ratings = [calculator.calculate_new_rating(1620, a).new_rating for a in accuracies]

        # Assert
        assert ratings == sorted(ratings)
        assert len(set(ratings)) == len(ratings)

    def test_chained_updates_thread_the_rating(self, calculator: EloCalculator) -> None:
        # Arrange
        first = calculator.calculate_new_rating(1500, 1.0)

        # Act
        second = calculator.calculate_new_rating(first.new_rating, 1.0)

        # Assert: a higher rating expects more, so the second gain is smaller
        assert 0 < second.delta < first.delta
        assert second.new_rating == pytest.approx(first.new_rating + second.delta)

    def test_new_rating_is_clamped_to_max(self) -> None:
        calculator = EloCalculator(max_rating=1510)

        result = calculator.calculate_new_rating(1500, 1.0)

        assert result.new_rating == 1510
        assert result.delta == pytest.approx(10.0)

    def test_new_rating_is_clamped_to_min(self) -> None:
        calculator = EloCalculator(min_rating=1495)

        result = calculator.calculate_new_rating(1500, 0.0)

        assert result.new_rating == 1495
        assert result.delta == pytest.approx(-5.0)

    @pytest.mark.parametrize("accuracy", [-0.1, 1.5, math.nan])
    def test_invalid_accuracy_raises(self, calculator: EloCalculator, accuracy: float) -> None:
        with pytest.raises(ELOCalculationError):
            calculator.calculate_new_rating(1500, accuracy)

    def test_negative_rating_raises(self, calculator: EloCalculator) -> None:
        with pytest.raises(ELOCalculationError) as exc_info:
            calculator.calculate_new_rating(-1, 0.5)

        assert exc_info.value.code == "ELO_CALCULATION_FAILED"
        assert exc_info.value.details["current_rating"] == -1

    def test_predict_delta_matches_calculation(self, calculator: EloCalculator) -> None:
        assert calculator.predict_delta(1500, 1.0) == pytest.approx(16.0)


class TestCalculatorConfiguration:
    def test_custom_k_factor(self) -> None:
        calculator = create_elo_calculator(k_factor=40)

        assert calculator.k_factor == 40
        assert calculator.calculate_new_rating(1500, 1.0).delta == pytest.approx(20.0)

    def test_rating_range(self) -> None:
        assert EloCalculator(min_rating=100, max_rating=2500).rating_range == (100, 2500)

    def test_non_positive_k_factor_rejected(self) -> None:
        with pytest.raises(ValueError):
            EloCalculator(k_factor=0)

    def test_default_rating_outside_bounds_rejected(self) -> None:
        with pytest.raises(ValueError):
            EloCalculator(default_rating=3500)


class TestAccuracyHelpers:
    @pytest.mark.parametrize(
        ("outcome", "expected"),
        [
            (ValidationOutcome.EXACT_MATCH, 1.0),
            (ValidationOutcome.CLOSE_MATCH, 0.7),
            (ValidationOutcome.MISMATCH, 0.0),
            ("close_match", 0.7),
        ],
    )
    def test_outcome_to_accuracy_score(self, outcome: ValidationOutcome | str, expected: float) -> None:
        assert EloCalculator.outcome_to_accuracy_score(outcome) == expected

    def test_average_accuracy(self) -> None:
        assert EloCalculator.calculate_average_accuracy([1.0, 0.5, 0.0]) == pytest.approx(0.5)
        assert EloCalculator.calculate_average_accuracy([]) == 0.0

    def test_weighted_accuracy(self) -> None:
        assert EloCalculator.calculate_weighted_accuracy([(1.0, 3), (0.0, 1)]) == pytest.approx(0.75)
        assert EloCalculator.calculate_weighted_accuracy([(1.0, 0)]) == 0.0

    def test_confidence_grows_and_caps(self) -> None:
        assert EloCalculator.calculate_confidence(0) == pytest.approx(0.5)
        assert EloCalculator.calculate_confidence(99) == pytest.approx(0.95)
        assert EloCalculator.calculate_confidence(10_000) == 0.95
        assert EloCalculator.calculate_confidence(10) > EloCalculator.calculate_confidence(5)

    def test_negative_validation_count_raises(self) -> None:
        with pytest.raises(ELOCalculationError):
            EloCalculator.calculate_confidence(-1)


class TestRankTiers:
    @pytest.mark.parametrize(
        ("rating", "rank"),
        [
            (2000, EloRank.DIAMOND),
            (1999.9, EloRank.PLATINUM),
            (1500, EloRank.GOLD),
            (1100, EloRank.SILVER),
            (800, EloRank.BRONZE),
            (799, EloRank.UNRANKED),
        ],
    )
    def test_get_elo_rank(self, rating: float, rank: EloRank) -> None:
        assert get_elo_rank(rating) == rank

    def test_progress_between_tiers(self) -> None:
        progress = get_progress_to_next_rank(1550)

        assert progress.current_rank == EloRank.GOLD
        assert progress.next_rank == EloRank.PLATINUM
        assert progress.progress == pytest.approx(50.0)
        assert progress.points_needed == pytest.approx(150.0)

    def test_top_tier_has_no_next_rank(self) -> None:
        progress = get_progress_to_next_rank(2400)

        assert progress.current_rank == EloRank.DIAMOND
        assert progress.next_rank is None
        assert progress.progress == 100.0
        assert progress.points_needed == 0.0
