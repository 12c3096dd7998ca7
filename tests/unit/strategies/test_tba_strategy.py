"""Unit tests for TBAValidationStrategy."""

from unittest.mock import AsyncMock, Mock

import pytest

from scoutrank.contracts.common import ValidationOutcome
from scoutrank.core.services.strategies.tba_strategy import (
    FIELD_MAPPINGS_2025,
    TBAValidationStrategy,
    calculate_accuracy,
    count_auto_mobility,
    determine_outcome,
    tba_value,
)

RED_BREAKDOWN = {
    "teleopCoralCount": 12,
    "autoLineRobot1": "Yes",
    "autoLineRobot2": "Yes",
    "autoLineRobot3": "No",
}
TELEOP_CORAL = "tba.teleopCoralCount"
MOBILITY = "auto_performance.left_starting_zone"


@pytest.fixture
def match(make_match):
    return make_match(score_breakdown={"red": RED_BREAKDOWN, "blue": {}}, posted=True)


@pytest.fixture
def match_repository(match) -> Mock:
    repository = Mock()
    repository.find_by_match_key = AsyncMock(return_value=match)
    return repository


@pytest.fixture
def scouting_data(make_observation) -> Mock:
    port = Mock()
    port.find_by_match = AsyncMock(
        return_value=[
            make_observation("s1", 1111, auto={"left_starting_zone": True}, teleop={"coral_scored_L1": 4}),
            make_observation("s2", 2222, auto={"left_starting_zone": True}, teleop={"coral_scored_L2": 4}),
            make_observation("s3", 3333, auto={"left_starting_zone": False}, teleop={"coral_scored_L4": 4}),
        ]
    )
    return port


@pytest.fixture
def strategy(match_repository, scouting_data) -> TBAValidationStrategy:
    return TBAValidationStrategy(match_repository, scouting_data)


class TestHelpers:
    def test_mobility_counts_yes_flags(self) -> None:
        assert count_auto_mobility(RED_BREAKDOWN) == 2
        assert count_auto_mobility({}) == 0

    def test_tba_value_skips_missing_and_non_numeric(self) -> None:
        by_field = {m.tba_field: m for m in FIELD_MAPPINGS_2025}

        assert tba_value(RED_BREAKDOWN, by_field["teleopCoralCount"]) == 12.0
        assert tba_value(RED_BREAKDOWN, by_field["autoCoralCount"]) is None
        assert tba_value({"netAlgaeCount": "lots"}, by_field["netAlgaeCount"]) is None
        assert tba_value({}, by_field["autoMobilityCount"]) == 0.0

    def test_accuracy_and_outcome(self) -> None:
        assert calculate_accuracy(12, 0) == 1.0
        assert calculate_accuracy(12, 3) == pytest.approx(0.75)
        assert calculate_accuracy(0, 5) == 0.0
        assert determine_outcome(0.95) == ValidationOutcome.EXACT_MATCH
        assert determine_outcome(0.75) == ValidationOutcome.CLOSE_MATCH
        assert determine_outcome(0.74) == ValidationOutcome.MISMATCH

    def test_field_path_of_multi_path_mapping(self) -> None:
        paths = {m.tba_field: m.field_path for m in FIELD_MAPPINGS_2025}

        assert paths["teleopCoralCount"] == TELEOP_CORAL
        assert paths["netAlgaeCount"] == "teleop_performance.algae_scored_barge"


class TestCanValidate:
    @pytest.mark.asyncio
    async def test_posted_breakdown(self, strategy, make_context) -> None:
        assert await strategy.can_validate(make_context()) is True

    @pytest.mark.asyncio
    async def test_unposted_match(self, strategy, match_repository, make_match, make_context) -> None:
        match_repository.find_by_match_key.return_value = make_match(score_breakdown={"red": RED_BREAKDOWN})

        assert await strategy.can_validate(make_context()) is False

    @pytest.mark.asyncio
    async def test_missing_match(self, strategy, match_repository, make_context) -> None:
        match_repository.find_by_match_key.return_value = None

        assert await strategy.can_validate(make_context()) is False

    @pytest.mark.asyncio
    async def test_repository_failure_returns_false(self, strategy, match_repository, make_context) -> None:
        match_repository.find_by_match_key.side_effect = RuntimeError("timeout")

        assert await strategy.can_validate(make_context()) is False


class TestValidate:
    @pytest.mark.asyncio
    async def test_matching_alliance_totals_are_exact(self, strategy, make_context) -> None:
        # Act
        results = await strategy.validate(make_context(team_number=1111))

        # Assert
        assert {r.field_path for r in results} == {TELEOP_CORAL, MOBILITY}
        assert all(r.scouter_id == "s1" for r in results)
        assert all(r.outcome == ValidationOutcome.EXACT_MATCH for r in results)
        assert all(r.accuracy_score == 1.0 for r in results)
        assert all(r.confidence_level == 0.6 for r in results)
        coral = next(r for r in results if r.field_path == TELEOP_CORAL)
        assert coral.expected_value == 12.0
        assert coral.actual_value == 4.0
        assert coral.validation_type == "tba"

    @pytest.mark.asyncio
    async def test_each_scout_of_a_shared_team_is_judged_separately(
        self, strategy, scouting_data, make_observation, make_context
    ) -> None:
        # Arrange: two scouts watched 3333 and disagree (4 vs 7, consolidated to 6)
        scouting_data.find_by_match.return_value = [
            make_observation("s1", 1111, teleop={"coral_scored_L1": 4}),
            make_observation("s2", 2222, teleop={"coral_scored_L2": 4}),
            make_observation("s3", 3333, teleop={"coral_scored_L4": 4}),
            make_observation("s4", 3333, teleop={"coral_scored_L4": 7}),
        ]

        # Act
        results = await strategy.validate(make_context(team_number=3333))

        # Assert
        coral = {r.scouter_id: r for r in results if r.field_path == TELEOP_CORAL}
        assert coral["s3"].accuracy_score == 1.0
        assert coral["s4"].accuracy_score == pytest.approx(1 - 1 / 12)
        assert coral["s4"].outcome == ValidationOutcome.CLOSE_MATCH
        assert "scouted total: 15" in coral["s4"].notes

    @pytest.mark.asyncio
    async def test_alliance_without_three_scouted_teams_is_skipped(self, strategy, make_context) -> None:
        assert await strategy.validate(make_context(team_number=4444)) == []

    @pytest.mark.asyncio
    async def test_match_results_are_cached_per_execution(self, strategy, match_repository, make_context) -> None:
        await strategy.validate(make_context(team_number=1111))
        await strategy.validate(make_context(team_number=2222))
        assert match_repository.find_by_match_key.await_count == 1

        await strategy.validate(make_context(team_number=1111, execution_id="exec-2"))
        assert match_repository.find_by_match_key.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_season_has_no_mappings(self, strategy, make_context) -> None:
        assert await strategy.validate(make_context(season_year=2019)) == []

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_returns_nothing(self, strategy, match_repository, make_context) -> None:
        match_repository.find_by_match_key.side_effect = RuntimeError("timeout")

        assert await strategy.validate(make_context()) == []
