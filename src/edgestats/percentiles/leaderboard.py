"""
Daily leaderboard summary built from a stored aggregate.
"""

from __future__ import annotations

from ..core.models import DailyAggregate, LeaderboardSummary, LocationSummary
from .engine import percentile_from_histogram

DEFAULT_TOP_N = 15


def top_locations(aggregate: DailyAggregate, limit: int = DEFAULT_TOP_N) -> list[LocationSummary]:
    """
    Busiest locations first.

    Sorting is stable, so locations with equal counts keep their stored order.
    """
    rows = [
        LocationSummary(
            location=location,
            count=stats.count,
            avg_rtt_ms=stats.avg_rtt_ms,
            country_code=stats.country_code,
        )
        for location, stats in aggregate.location_stats.items()
    ]
    rows.sort(key=lambda r: r.count, reverse=True)
    return rows[:limit]


def build_leaderboard(
    aggregate: DailyAggregate,
    day: str,
    top_n: int = DEFAULT_TOP_N,
) -> LeaderboardSummary:
    """
    Summarize one day: p50/p90/p99 and the top locations by sample count.

    Args:
        aggregate: Loaded daily aggregate (may be empty)
        day: Day key the aggregate belongs to
        top_n: Maximum number of locations to include

    Returns:
        LeaderboardSummary; percentiles are None for a day with no samples

    Raises:
        ValueError: If top_n is below 1
    """
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")
    samples = aggregate.sample_count
    buckets = aggregate.buckets
    edges = aggregate.bucket_edges

    return LeaderboardSummary(
        day=day,
        samples=samples,
        p50=percentile_from_histogram(samples, buckets, edges, 50),
        p90=percentile_from_histogram(samples, buckets, edges, 90),
        p99=percentile_from_histogram(samples, buckets, edges, 99),
        top_locations=top_locations(aggregate, top_n),
    )
