"""Pure scoring and statistics logic (zero I/O).

- ELO rating updates and rank tiers
- Field comparison and accuracy scoring
- Multi-scout consolidation
- OPR/DPR/CCWM estimation and alliance recommendations
"""

from scoutrank.core.scoring.ccwm import (
    calculate_ccwm,
    calculate_ccwm_statistics,
    generate_alliance_recommendations,
)
from scoutrank.core.scoring.comparison import compare_field_values
from scoutrank.core.scoring.consolidation import (
    consolidate_match_observations,
    consolidate_performance_data,
    majority_vote,
    mode,
    weighted_average,
)
from scoutrank.core.scoring.elo import EloCalculator, get_elo_rank, get_progress_to_next_rank
from scoutrank.core.scoring.opr import calculate_dpr, calculate_opr

__all__ = [
    "EloCalculator",
    "get_elo_rank",
    "get_progress_to_next_rank",
    "compare_field_values",
    "consolidate_match_observations",
    "consolidate_performance_data",
    "majority_vote",
    "mode",
    "weighted_average",
    "calculate_opr",
    "calculate_dpr",
    "calculate_ccwm",
    "calculate_ccwm_statistics",
    "generate_alliance_recommendations",
]
