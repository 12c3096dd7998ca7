"""
Match schedule and match scouting data contracts.
"""

from datetime import datetime
from typing import Any

from pydantic import Field, computed_field

from .common import AllianceColor, RecordContract

RED_SLOTS = ("red_1", "red_2", "red_3")
BLUE_SLOTS = ("blue_1", "blue_2", "blue_3")
PERFORMANCE_PERIODS = ("auto_performance", "teleop_performance", "endgame_performance")


class Match(RecordContract):
    """One row of an event's match schedule, with official results once posted."""

    match_id: int | None = Field(None, description="Database identifier")
    event_key: str = Field(..., description="Event key, e.g. 2025wimi")
    match_key: str = Field(..., description="Match key, e.g. 2025wimi_qm12")
    comp_level: str = Field("qm", description="qm, ef, qf, sf or f")
    set_number: int | None = Field(None)
    match_number: int = Field(0, ge=0)

    red_1: int | None = Field(None)
    red_2: int | None = Field(None)
    red_3: int | None = Field(None)
    blue_1: int | None = Field(None)
    blue_2: int | None = Field(None)
    blue_3: int | None = Field(None)

    red_score: int | None = Field(None)
    blue_score: int | None = Field(None)
    winning_alliance: str | None = Field(None)
    post_result_time: datetime | None = Field(None)
    score_breakdown: dict[str, Any] | None = Field(
        None, description="Official breakdown keyed by alliance color"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_completed(self) -> bool:
        return self.red_score is not None and self.blue_score is not None

    @property
    def red_teams(self) -> list[int]:
        return [t for t in (self.red_1, self.red_2, self.red_3) if t is not None]

    @property
    def blue_teams(self) -> list[int]:
        return [t for t in (self.blue_1, self.blue_2, self.blue_3) if t is not None]

    def team_slots(self) -> list[tuple[str, int]]:
        """Occupied slots in schedule order (red_1..3, then blue_1..3)."""
        slots: list[tuple[str, int]] = []
        for slot in RED_SLOTS + BLUE_SLOTS:
            team = getattr(self, slot)
            if team is not None:
                slots.append((slot, team))
        return slots

    def alliance_of(self, team_number: int) -> AllianceColor | None:
        if team_number in self.red_teams:
            return AllianceColor.RED
        if team_number in self.blue_teams:
            return AllianceColor.BLUE
        return None

    def alliance_teams(self, alliance: AllianceColor | str) -> list[int]:
        return self.red_teams if AllianceColor(alliance) is AllianceColor.RED else self.blue_teams

    def alliance_score(self, alliance: AllianceColor | str) -> int | None:
        return self.red_score if AllianceColor(alliance) is AllianceColor.RED else self.blue_score


class MatchObservation(RecordContract):
    """A single scout's observation of one team in one match."""

    id: str | None = Field(None, description="Observation identifier")
    scouter_id: str = Field(..., description="Scouter who submitted the observation")
    scout_name: str | None = Field(None)
    match_id: int | None = Field(None)
    match_key: str = Field(...)
    team_number: int = Field(..., gt=0)
    alliance_color: AllianceColor | None = Field(None)
    starting_position: int | None = Field(None, ge=1, le=3)

    # Reliability tracking
    robot_disconnected: bool = Field(False)
    robot_disabled: bool = Field(False)
    robot_tipped: bool = Field(False)
    foul_count: int = Field(0, ge=0)
    tech_foul_count: int = Field(0, ge=0)
    yellow_card: bool = Field(False)
    red_card: bool = Field(False)

    # Season-specific payloads
    auto_performance: dict[str, Any] = Field(default_factory=dict)
    teleop_performance: dict[str, Any] = Field(default_factory=dict)
    endgame_performance: dict[str, Any] = Field(default_factory=dict)

    # Qualitative assessments (1-5 scale)
    defense_rating: int | None = Field(None, ge=1, le=5)
    driver_skill_rating: int | None = Field(None, ge=1, le=5)
    speed_rating: int | None = Field(None, ge=1, le=5)

    strengths: str | None = Field(None)
    weaknesses: str | None = Field(None)
    notes: str | None = Field(None)
    confidence_level: float | None = Field(None, ge=0, le=1)

    def period(self, name: str) -> dict[str, Any]:
        return getattr(self, name) or {}
