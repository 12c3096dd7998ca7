"""scoutrank - scouter validation, ELO rating and OPR statistics for FRC scouting."""

__version__ = "0.1.0"
