"""
Bucketed percentile estimation and leaderboard summaries.
"""

from .engine import bucket_index, coerce_rtt, faster_than_pct, percentile_from_histogram
from .leaderboard import DEFAULT_TOP_N, build_leaderboard, top_locations

__all__ = [
    "bucket_index",
    "coerce_rtt",
    "faster_than_pct",
    "percentile_from_histogram",
    "DEFAULT_TOP_N",
    "build_leaderboard",
    "top_locations",
]
