"""Pytest configuration and shared builders for scoutrank tests.

The builders return plain contracts so tests stay independent of any
database or cache.
"""

import re
from datetime import UTC, datetime
from typing import Any

import pytest

from scoutrank.contracts.match import Match, MatchObservation
from scoutrank.contracts.validation import ValidationContext

# qm12, sf2m1, f1m3
MATCH_SUFFIX = re.compile(r"^(qm|ef|qf|sf|f)(\d+)(?:m(\d+))?$")


def build_match(
    match_key: str = "2025wimi_qm1",
    *,
    red: tuple[int, ...] = (1111, 2222, 3333),
    blue: tuple[int, ...] = (4444, 5555, 6666),
    red_score: int | None = None,
    blue_score: int | None = None,
    score_breakdown: dict[str, Any] | None = None,
    posted: bool = False,
    **overrides: Any,
) -> Match:
    event_key, _, suffix = match_key.partition("_")
    parsed = MATCH_SUFFIX.match(suffix)
    comp_level, set_number, match_number = "qm", None, 0
    if parsed:
        comp_level = parsed.group(1)
        if parsed.group(3) is None:
            match_number = int(parsed.group(2))
        else:
            set_number, match_number = int(parsed.group(2)), int(parsed.group(3))
    slots: dict[str, Any] = {}
    for prefix, teams in (("red", red), ("blue", blue)):
        for index, team in enumerate(teams, start=1):
            slots[f"{prefix}_{index}"] = team
    data: dict[str, Any] = {
        "event_key": event_key,
        "match_key": match_key,
        "comp_level": comp_level,
        "set_number": set_number,
        "match_number": match_number,
        "red_score": red_score,
        "blue_score": blue_score,
        "score_breakdown": score_breakdown,
        "post_result_time": datetime(2025, 3, 14, 12, 0, tzinfo=UTC) if posted else None,
        **slots,
        **overrides,
    }
    return Match(**data)


def build_observation(
    scouter_id: str,
    team_number: int,
    match_key: str = "2025wimi_qm1",
    *,
    auto: dict[str, Any] | None = None,
    teleop: dict[str, Any] | None = None,
    endgame: dict[str, Any] | None = None,
    **overrides: Any,
) -> MatchObservation:
    return MatchObservation(
        id=f"obs-{scouter_id}-{team_number}-{match_key}",
        scouter_id=scouter_id,
        match_key=match_key,
        team_number=team_number,
        auto_performance=auto or {},
        teleop_performance=teleop or {},
        endgame_performance=endgame or {},
        **overrides,
    )


def build_context(
    match_key: str = "2025wimi_qm1", team_number: int = 1111, **overrides: Any
) -> ValidationContext:
    data: dict[str, Any] = {
        "event_key": match_key.partition("_")[0],
        "match_key": match_key,
        "team_number": team_number,
        "season_year": 2025,
        "execution_id": "exec-1",
        "min_scouts_required": 3,
        **overrides,
    }
    return ValidationContext(**data)


@pytest.fixture
def make_match():
    return build_match


@pytest.fixture
def make_observation():
    return build_observation


@pytest.fixture
def make_context():
    return build_context
