"""
edgestats - daily edge-latency histograms and leaderboard percentiles.

Accumulates client round-trip times (RTT) to the serving point of presence
into one fixed-bucket histogram per UTC day, kept in a shared key-value store,
and answers approximate percentile and rank queries from it.

Key Features:
- Bucketed histograms with per-location count / RTT sums
- Approximate p50/p90/p99 and "faster than N%" ranking
- In-memory, Redis and Cloudflare Workers KV backends
- Best-effort recording: store failures never reach the caller

Usage:
    from edgestats import HistogramStore

    store = HistogramStore.from_settings()
    day = store.today()

    await store.record_sample(day, rtt_ms=18, location="AMS", country_code="NL")
    rank = await store.peek_rank(day, 18)
    board = await store.leaderboard(day)
"""

from .core import (
    DEFAULT_BUCKET_EDGES,
    UNKNOWN_LOCATION,
    CorruptAggregate,
    DailyAggregate,
    EdgeStatsError,
    InvalidSample,
    LeaderboardSummary,
    LocationStats,
    LocationSummary,
    RankResult,
    Settings,
    StoreUnavailable,
    current_day_key,
    get_settings,
    parse_day_key,
)
from .percentiles import (
    bucket_index,
    build_leaderboard,
    faster_than_pct,
    percentile_from_histogram,
    top_locations,
)
from .store import (
    CloudflareKVBackend,
    HistogramStore,
    InMemoryBackend,
    KVBackend,
    RedisBackend,
    get_backend,
)

__version__ = "0.1.0"

__all__ = [
    # Store
    "HistogramStore",
    "KVBackend",
    "InMemoryBackend",
    "RedisBackend",
    "CloudflareKVBackend",
    "get_backend",
    # Percentiles
    "bucket_index",
    "percentile_from_histogram",
    "faster_than_pct",
    "build_leaderboard",
    "top_locations",
    # Models
    "DailyAggregate",
    "LocationStats",
    "RankResult",
    "LeaderboardSummary",
    "LocationSummary",
    "DEFAULT_BUCKET_EDGES",
    "UNKNOWN_LOCATION",
    # Errors
    "EdgeStatsError",
    "InvalidSample",
    "StoreUnavailable",
    "CorruptAggregate",
    # Config / days
    "Settings",
    "get_settings",
    "current_day_key",
    "parse_day_key",
]
