"""
Team statistics contracts: OPR, DPR, CCWM and alliance recommendations.
"""

from datetime import datetime

from pydantic import Field

from .common import BaseContract


class OPRResult(BaseContract):
    team_number: int
    opr: float = Field(..., description="Offensive Power Rating")
    matches_played: int = Field(0, ge=0)


class DPRResult(BaseContract):
    team_number: int
    dpr: float = Field(..., description="Defensive Power Rating (points allowed)")
    matches_played: int = Field(0, ge=0)


class CCWMResult(BaseContract):
    team_number: int
    opr: float
    dpr: float
    ccwm: float = Field(..., description="Calculated Contribution to Winning Margin")
    matches_played: int = Field(0, ge=0)


class CCWMStatistics(BaseContract):
    """Field-wide context for CCWM figures."""

    average_opr: float = 0.0
    average_dpr: float = 0.0
    average_ccwm: float = 0.0
    median_ccwm: float = 0.0
    min_ccwm: float = 0.0
    max_ccwm: float = 0.0
    std_dev_ccwm: float = 0.0


class AllianceRecommendations(BaseContract):
    first_pick: list[CCWMResult] = Field(default_factory=list)
    second_pick: list[CCWMResult] = Field(default_factory=list)
    defensive_specialists: list[CCWMResult] = Field(default_factory=list)
    balanced_teams: list[CCWMResult] = Field(default_factory=list)


class OPRMetrics(BaseContract):
    """All offensive/defensive statistics of one event, as cached."""

    event_key: str
    opr: list[OPRResult] = Field(default_factory=list)
    dpr: list[DPRResult] = Field(default_factory=list)
    ccwm: list[CCWMResult] = Field(default_factory=list)
    statistics: CCWMStatistics = Field(default_factory=CCWMStatistics)
    calculated_at: datetime
    total_matches: int = Field(0, ge=0)
    warnings: list[str] = Field(default_factory=list)


class TeamOPRSnapshot(BaseContract):
    """One team's figures at one event."""

    event_key: str
    team_number: int
    opr: float
    dpr: float
    ccwm: float
    matches_played: int
    calculated_at: datetime
