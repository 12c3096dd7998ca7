"""Unit tests for ScouterValidationService.

All repositories are AsyncMock-backed; strategies are small in-test fakes
so each scenario controls exactly which teams produce results or fail.
"""

from collections.abc import Iterable
from unittest.mock import AsyncMock, Mock

import pytest

from scoutrank.contracts.common import ConsensusMethod, ValidationOutcome, ValidationStrategyType
from scoutrank.contracts.validation import (
    ConsensusValue,
    EventValidationStatistics,
    ScouterLeaderboardEntry,
    ScouterRating,
    ScouterValidationStatistics,
    ValidationContext,
    ValidationResult,
)
from scoutrank.core.errors import RatingConflictError, ValidationError
from scoutrank.core.ports import ValidationStrategy
from scoutrank.core.scoring.elo import EloCalculator
from scoutrank.core.services.scouter_validation_service import (
    ScouterValidationService,
    history_outcome,
    match_sort_key,
    season_from_event_key,
)
from scoutrank.core.services.strategies.consensus_strategy import ConsensusValidationStrategy
from scoutrank.core.services.validation_strategy_factory import ValidationStrategyRegistry


class FakeStrategy(ValidationStrategy):
    """Emits one result per team, scouted by ``s<team>``."""

    def __init__(
        self,
        strategy_type: ValidationStrategyType,
        *,
        outcome: ValidationOutcome = ValidationOutcome.EXACT_MATCH,
        fail_for: Iterable[int] = (),
        applicable: bool = True,
        scouter_id: str | None = None,
        fields: Iterable[str] = ("teleop_performance.coral_scored_L4",),
    ) -> None:
        self.strategy_type = strategy_type
        self.outcome = outcome
        self.fail_for = set(fail_for)
        self.applicable = applicable
        self.scouter_id = scouter_id
        self.fields = list(fields)

    async def can_validate(self, context: ValidationContext) -> bool:
        return self.applicable

    async def validate(self, context: ValidationContext) -> list[ValidationResult]:
        if context.team_number in self.fail_for:
            raise RuntimeError(f"no data for team {context.team_number}")
        return [
            ValidationResult(
                validation_id=f"{self.strategy_type.value}-{context.match_key}-{context.team_number}-{field}",
                scouter_id=self.scouter_id or f"s{context.team_number}",
                match_key=context.match_key,
                team_number=context.team_number,
                event_key=context.event_key,
                season_year=context.season_year,
                field_path=field,
                outcome=self.outcome,
                accuracy_score=1.0 if self.outcome == ValidationOutcome.EXACT_MATCH else 0.0,
                validation_type=self.strategy_type,
                validation_method=type(self).__name__,
                execution_id=context.execution_id,
            )
            for field in self.fields
        ]


class ConsensusEmittingStrategy(FakeStrategy):
    """FakeStrategy that also reports one consensus value per team."""

    async def consensus_values(self, context: ValidationContext) -> list[ConsensusValue]:
        return [
            ConsensusValue(
                field_path="teleop_performance.coral_scored_L4",
                value=4,
                method=ConsensusMethod.WEIGHTED_AVERAGE,
                scout_count=3,
                agreement_percentage=100.0,
                confidence_level=0.8,
                match_key=context.match_key,
                team_number=context.team_number,
                execution_id=context.execution_id,
            )
        ]


def _rating(scouter_id: str, elo: float = 1500.0) -> ScouterRating:
    return ScouterRating(
        scouter_id=scouter_id, season_year=2025, current_elo=elo, peak_elo=elo, lowest_elo=elo
    )


@pytest.fixture
def elo_repository() -> Mock:
    repository = Mock()
    repository.get_current_rating = AsyncMock(side_effect=lambda scouter_id, season: _rating(scouter_id))
    repository.update_rating = AsyncMock(side_effect=lambda update: _rating(update.scouter_id, update.new_rating))
    repository.create_history_entries = AsyncMock()
    repository.get_event_leaderboard = AsyncMock(return_value=[])
    repository.get_season_leaderboard = AsyncMock(return_value=[])
    repository.get_rating_history = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def result_repository() -> Mock:
    repository = Mock()
    repository.create_batch = AsyncMock()
    repository.find_by_scouter = AsyncMock(return_value=[])
    repository.find_by_match = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def consensus_repository() -> Mock:
    repository = Mock()
    repository.upsert_consensus_batch = AsyncMock()
    return repository


@pytest.fixture
def match_repository() -> Mock:
    repository = Mock()
    repository.find_by_event_key = AsyncMock(return_value=[])
    repository.find_by_match_key = AsyncMock(return_value=None)
    return repository


@pytest.fixture
def make_service(elo_repository, result_repository, consensus_repository, match_repository):
    def _make(*strategies: ValidationStrategy, **kwargs) -> ScouterValidationService:
        return ScouterValidationService(
            ValidationStrategyRegistry(strategies),
            EloCalculator(),
            elo_repository,
            result_repository,
            consensus_repository,
            match_repository,
            **kwargs,
        )

    return _make


class TestHelpers:
    def test_matches_sort_by_comp_level_then_number(self, make_match) -> None:
        matches = [
            make_match("2025wimi_f1m1"),
            make_match("2025wimi_qm10"),
            make_match("2025wimi_sf2m1"),
            make_match("2025wimi_sf1m2"),
            make_match("2025wimi_qm2"),
        ]

        ordered = [m.match_key for m in sorted(matches, key=match_sort_key)]

        assert ordered == [
            "2025wimi_qm2",
            "2025wimi_qm10",
            "2025wimi_sf1m2",
            "2025wimi_sf2m1",
            "2025wimi_f1m1",
        ]

    def test_season_from_event_key(self) -> None:
        assert season_from_event_key("2025wimi") == 2025
        with pytest.raises(ValidationError) as exc_info:
            season_from_event_key("wimi")
        assert exc_info.value.code == "INVALID_CONTEXT"

    @pytest.mark.parametrize(
        ("accuracy", "expected"), [(1.0, "gain"), (0.8, "gain"), (0.7, "neutral"), (0.0, "loss")]
    )
    def test_history_outcome(self, accuracy: float, expected: str) -> None:
        assert history_outcome(accuracy) == expected

    def test_batch_size_must_be_positive(self, make_service) -> None:
        with pytest.raises(ValueError):
            make_service(batch_size=0)


class TestValidateMatch:
    @pytest.mark.asyncio
    async def test_failing_team_is_isolated(
        self, make_service, match_repository, result_repository, make_match
    ) -> None:
        # Arrange: one alliance of three teams, 2222 has no usable data
        match_repository.find_by_match_key.return_value = make_match(blue=())
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS, fail_for={2222}))

        # Act
        summary = await service.validate_match("2025wimi_qm1")

        # Assert
        assert summary.total_validations == 2
        assert summary.scouters_affected == 2
        assert len(summary.errors) == 1
        assert summary.errors[0].team_number == 2222
        assert summary.errors[0].match_key == "2025wimi_qm1"
        assert "no data for team 2222" in summary.errors[0].error
        persisted = result_repository.create_batch.await_args.args[0]
        assert [r.team_number for r in persisted] == [1111, 3333]

    @pytest.mark.asyncio
    async def test_missing_match(self, make_service) -> None:
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS))

        with pytest.raises(ValidationError) as exc_info:
            await service.validate_match("2025wimi_qm99")

        assert exc_info.value.code == "MATCH_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_single_unit_failure_escalates(self, make_service, match_repository, make_match) -> None:
        match_repository.find_by_match_key.return_value = make_match(red=(1111,), blue=())
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS, fail_for={1111}))

        with pytest.raises(ValidationError) as exc_info:
            await service.validate_match("2025wimi_qm1")

        assert exc_info.value.code == "MATCH_VALIDATION_FAILED"
        assert exc_info.value.details["team_number"] == 1111

    @pytest.mark.asyncio
    async def test_repository_failure_is_wrapped(self, make_service, match_repository) -> None:
        match_repository.find_by_match_key.side_effect = RuntimeError("pool closed")
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS))

        with pytest.raises(ValidationError) as exc_info:
            await service.validate_match("2025wimi_qm1")

        assert exc_info.value.code == "MATCH_VALIDATION_FAILED"
        assert exc_info.value.details["error"] == "pool closed"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_inapplicable_strategies_produce_empty_summary(
        self, make_service, match_repository, result_repository, elo_repository, make_match
    ) -> None:
        match_repository.find_by_match_key.return_value = make_match()
        service = make_service(FakeStrategy(ValidationStrategyType.TBA, applicable=False))

        summary = await service.validate_match("2025wimi_qm1")

        assert summary.total_validations == 0
        assert summary.strategy_breakdown == {"tba": 0}
        assert summary.errors == []
        result_repository.create_batch.assert_not_awaited()
        elo_repository.update_rating.assert_not_awaited()


class TestValidateEvent:
    @pytest.mark.asyncio
    async def test_no_matches_returns_empty_summary(self, make_service) -> None:
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS))

        summary = await service.validate_event("2025wimi")

        assert summary.event_key == "2025wimi"
        assert summary.total_validations == 0
        assert summary.elo_updates == []

    @pytest.mark.asyncio
    async def test_two_scouts_per_team_is_below_consensus_minimum(
        self, make_service, match_repository, result_repository, make_match, make_observation
    ) -> None:
        # Arrange: two matches, every team watched by exactly two scouts
        matches = [make_match("2025wimi_qm1"), make_match("2025wimi_qm2")]
        match_repository.find_by_event_key.return_value = matches
        scouting = Mock()
        scouting.find_by_match = AsyncMock(
            side_effect=lambda match_key: [
                make_observation(scout, team, match_key, teleop={"coral_scored_L4": 3})
                for team in (1111, 2222, 3333, 4444, 5555, 6666)
                for scout in ("a", "b")
            ]
        )
        service = make_service(ConsensusValidationStrategy(scouting))

        # Act
        summary = await service.validate_event("2025wimi", ["consensus"])

        # Assert
        assert summary.total_validations == 0
        assert summary.scouters_affected == 0
        assert summary.strategy_breakdown == {"consensus": 0}
        assert summary.errors == []
        result_repository.create_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_results_are_persisted_in_canonical_order(
        self, make_service, match_repository, result_repository, make_match
    ) -> None:
        # Arrange: schedule returned out of order
        match_repository.find_by_event_key.return_value = [
            make_match("2025wimi_qm2", red=(1111,), blue=(2222,)),
            make_match("2025wimi_qm1", red=(2222,), blue=(1111,)),
        ]
        service = make_service(
            FakeStrategy(ValidationStrategyType.TBA),
            FakeStrategy(ValidationStrategyType.CONSENSUS),
            batch_size=1,
        )

        # Act
        summary = await service.validate_event("2025wimi")

        # Assert
        persisted = result_repository.create_batch.await_args.args[0]
        assert [(r.match_key[-3:], r.validation_type, r.team_number) for r in persisted] == [
            ("qm1", "consensus", 1111),
            ("qm1", "consensus", 2222),
            ("qm1", "tba", 1111),
            ("qm1", "tba", 2222),
            ("qm2", "consensus", 1111),
            ("qm2", "consensus", 2222),
            ("qm2", "tba", 1111),
            ("qm2", "tba", 2222),
        ]
        assert summary.strategy_breakdown == {"consensus": 4, "tba": 4}
        assert summary.scouters_affected == 2

    @pytest.mark.asyncio
    async def test_consensus_of_failed_team_is_not_persisted(
        self, make_service, match_repository, consensus_repository, make_match
    ) -> None:
        # Arrange: consensus succeeds for both teams, the later TBA strategy fails for 2222
        match_repository.find_by_event_key.return_value = [make_match(red=(1111,), blue=(2222,))]
        service = make_service(
            ConsensusEmittingStrategy(ValidationStrategyType.CONSENSUS),
            FakeStrategy(ValidationStrategyType.TBA, fail_for=[2222]),
        )

        # Act
        summary = await service.validate_event("2025wimi")

        # Assert
        persisted = consensus_repository.upsert_consensus_batch.await_args.args[0]
        assert [v.team_number for v in persisted] == [1111]
        assert [e.team_number for e in summary.errors] == [2222]

    @pytest.mark.asyncio
    async def test_unknown_strategy_selection_is_ignored(self, make_service, match_repository, make_match) -> None:
        match_repository.find_by_event_key.return_value = [make_match()]
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS))

        summary = await service.validate_event("2025wimi", ["bogus"])

        assert summary.total_validations == 0
        assert summary.strategy_breakdown == {}

    @pytest.mark.asyncio
    async def test_repository_failure_is_wrapped(self, make_service, match_repository) -> None:
        match_repository.find_by_event_key.side_effect = RuntimeError("pool closed")
        service = make_service(FakeStrategy(ValidationStrategyType.CONSENSUS))

        with pytest.raises(ValidationError) as exc_info:
            await service.validate_event("2025wimi")

        assert exc_info.value.code == "EVENT_VALIDATION_FAILED"
        assert exc_info.value.details == {"event_key": "2025wimi", "error": "pool closed"}


class TestEloUpdates:
    @pytest.mark.asyncio
    async def test_rating_is_threaded_through_each_result(
        self, make_service, match_repository, elo_repository, make_match
    ) -> None:
        # Arrange: one scouter, one exact and one mismatched field
        match_repository.find_by_match_key.return_value = make_match(red=(1111,), blue=())
        service = make_service(
            FakeStrategy(ValidationStrategyType.CONSENSUS, scouter_id="s1", fields=["a.x"]),
            FakeStrategy(
                ValidationStrategyType.TBA, scouter_id="s1", fields=["b.y"], outcome=ValidationOutcome.MISMATCH
            ),
        )

        # Act
        summary = await service.validate_match("2025wimi_qm1")

        # Assert
        updates = [call.args[0] for call in elo_repository.update_rating.await_args_list]
        assert [u.previous_rating for u in updates] == [1500.0, pytest.approx(1516.0)]
        assert updates[0].new_rating == pytest.approx(1516.0)
        assert updates[0].success_count == 1
        assert updates[1].failure_count == 1
        assert updates[1].new_rating < 1516.0

        history = elo_repository.create_history_entries.await_args.args[0]
        assert [h.outcome for h in history] == ["gain", "loss"]
        assert history[1].elo_before == history[0].elo_after

        (rollup,) = summary.elo_updates
        assert rollup.scouter_id == "s1"
        assert rollup.old_rating == 1500.0
        assert rollup.new_rating == updates[1].new_rating
        assert rollup.delta == pytest.approx(rollup.new_rating - 1500.0)
        assert rollup.validations_processed == 2
        assert rollup.average_accuracy == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_conflict_keeps_history_of_applied_updates(
        self, make_service, match_repository, elo_repository, make_match
    ) -> None:
        # Arrange: the second conditional write loses the race
        match_repository.find_by_match_key.return_value = make_match(red=(1111,), blue=())
        elo_repository.update_rating.side_effect = [
            _rating("s1", 1516.0),
            RatingConflictError("s1", 2025, 1516.0),
        ]
        service = make_service(
            FakeStrategy(ValidationStrategyType.CONSENSUS, scouter_id="s1", fields=["a.x", "a.y"])
        )

        # Act
        summary = await service.validate_match("2025wimi_qm1")

        # Assert
        assert summary.total_validations == 2
        assert summary.elo_updates == []
        assert summary.errors[0].scouter_id == "s1"
        history = elo_repository.create_history_entries.await_args.args[0]
        assert len(history) == 1
        assert history[0].validation_id.endswith("a.x")

    @pytest.mark.asyncio
    async def test_one_scouter_failing_does_not_stop_others(
        self, make_service, elo_repository, make_context
    ) -> None:
        async def _current(scouter_id: str, season: int) -> ScouterRating:
            if scouter_id == "s1111":
                raise RuntimeError("row locked")
            return _rating(scouter_id)

        elo_repository.get_current_rating.side_effect = _current
        strategy = FakeStrategy(ValidationStrategyType.CONSENSUS)
        service = make_service(strategy)
        results = [
            result
            for team in (1111, 2222)
            for result in await strategy.validate(make_context(team_number=team, execution_id="e"))
        ]
        errors: list = []

        summaries = await service.update_elo_ratings(results, "e", errors)

        assert [s.scouter_id for s in summaries] == ["s2222"]
        assert errors[0].scouter_id == "s1111"


class TestQueries:
    @pytest.mark.asyncio
    async def test_leaderboard_entries_get_rank_tiers(self, make_service, elo_repository) -> None:
        elo_repository.get_event_leaderboard.return_value = [
            ScouterLeaderboardEntry(
                rank=1,
                scouter_id="s1",
                current_elo=1750.0,
                peak_elo=1800.0,
                total_validations=40,
                successful_validations=30,
                success_rate=75.0,
                confidence_level=0.8,
            )
        ]
        service = make_service()

        board = await service.get_event_leaderboard("2025wimi", 2025)

        assert board.event_key == "2025wimi"
        assert board.entries[0].elo_rank == "platinum"

    @pytest.mark.asyncio
    async def test_season_leaderboard_is_keyed_as_season(self, make_service) -> None:
        board = await make_service().get_season_leaderboard(2025)

        assert board.event_key == "season"
        assert board.entries == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("repository", "method", "call", "code"),
        [
            ("elo", "get_current_rating", ("get_scouter_rating", "s1", 2025), "GET_RATING_FAILED"),
            ("elo", "get_rating_history", ("get_scouter_rating_history", "s1"), "GET_HISTORY_FAILED"),
            ("elo", "get_event_leaderboard", ("get_event_leaderboard", "2025wimi", 2025), "GET_LEADERBOARD_FAILED"),
            ("elo", "get_season_leaderboard", ("get_season_leaderboard", 2025), "GET_LEADERBOARD_FAILED"),
            ("results", "find_by_scouter", ("get_scouter_validations", "s1"), "GET_VALIDATIONS_FAILED"),
            ("results", "find_by_match", ("get_match_validations", "2025wimi_qm1"), "GET_VALIDATIONS_FAILED"),
            ("results", "find_by_event", ("get_event_validations", "2025wimi"), "GET_VALIDATIONS_FAILED"),
            ("results", "find_by_execution", ("get_execution_validations", "exec-1"), "GET_VALIDATIONS_FAILED"),
            ("elo", "get_ratings_for_scouters", ("get_scouter_ratings", ["s1"], 2025), "GET_RATING_FAILED"),
            ("elo", "get_top_performers", ("get_top_performers", 2025), "GET_LEADERBOARD_FAILED"),
            ("elo", "get_rating_trend", ("get_scouter_rating_trend", "s1", 2025), "GET_HISTORY_FAILED"),
            ("results", "get_scouter_statistics", ("get_scouter_statistics", "s1"), "GET_STATISTICS_FAILED"),
            ("results", "get_event_statistics", ("get_event_statistics", "2025wimi"), "GET_STATISTICS_FAILED"),
            ("consensus", "get_match_consensus", ("get_match_consensus", "2025wimi_qm1"), "GET_CONSENSUS_FAILED"),
            ("consensus", "get_event_consensus", ("get_event_consensus", "2025wimi"), "GET_CONSENSUS_FAILED"),
            ("consensus", "get_low_agreement_fields", ("get_low_agreement_fields", "2025wimi"), "GET_CONSENSUS_FAILED"),
            ("results", "delete_by_execution", ("rollback_execution", "exec-1"), "ROLLBACK_FAILED"),
        ],
    )
    async def test_query_failures_carry_codes(
        self, make_service, elo_repository, result_repository, consensus_repository, repository, method, call, code
    ) -> None:
        target = {"elo": elo_repository, "results": result_repository, "consensus": consensus_repository}[repository]
        getattr(target, method).side_effect = RuntimeError("db down")
        service = make_service()
        name, *args = call

        with pytest.raises(ValidationError) as exc_info:
            await getattr(service, name)(*args)

        assert exc_info.value.code == code
        assert exc_info.value.details["error"] == "db down"

    @pytest.mark.asyncio
    async def test_top_performers_pass_filters_through(self, make_service, elo_repository) -> None:
        elo_repository.get_top_performers = AsyncMock(return_value=[_rating("s1", 1820.0)])

        performers = await make_service().get_top_performers(2025, limit=5, min_validations=20)

        assert [p.scouter_id for p in performers] == ["s1"]
        elo_repository.get_top_performers.assert_awaited_once_with(2025, 5, 20)

    @pytest.mark.asyncio
    async def test_low_agreement_fields_default_threshold(self, make_service, consensus_repository) -> None:
        consensus_repository.get_low_agreement_fields = AsyncMock(return_value=[])

        await make_service().get_low_agreement_fields("2025wimi")

        consensus_repository.get_low_agreement_fields.assert_awaited_once_with("2025wimi", 70.0)

    @pytest.mark.asyncio
    async def test_statistics_are_returned_from_the_result_store(self, make_service, result_repository) -> None:
        result_repository.get_event_statistics = AsyncMock(
            return_value=EventValidationStatistics(event_key="2025wimi", total_validations=42, unique_scouters=6)
        )
        result_repository.get_scouter_statistics = AsyncMock(
            return_value=ScouterValidationStatistics(scouter_id="s1", total_validations=7, exact_matches=5)
        )
        service = make_service()

        event = await service.get_event_statistics("2025wimi")
        scouter = await service.get_scouter_statistics("s1", 2025)

        assert (event.total_validations, event.unique_scouters) == (42, 6)
        assert scouter.exact_matches == 5
        result_repository.get_scouter_statistics.assert_awaited_once_with("s1", 2025)


class TestRollback:
    @pytest.mark.asyncio
    async def test_results_and_consensus_of_a_run_are_deleted(
        self, make_service, result_repository, consensus_repository
    ) -> None:
        result_repository.delete_by_execution = AsyncMock(return_value=12)
        consensus_repository.delete_by_execution = AsyncMock(return_value=4)

        deleted = await make_service().rollback_execution("exec-1")

        assert deleted == {"validation_results": 12, "consensus_values": 4}
        result_repository.delete_by_execution.assert_awaited_once_with("exec-1")
        consensus_repository.delete_by_execution.assert_awaited_once_with("exec-1")
