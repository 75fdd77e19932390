"""
Core module for edgestats.

This module provides the foundational components:
- Configuration management (config.py)
- Aggregate and summary models (models.py)
- Error types (errors.py)
- UTC day keys (clock.py)

Usage:
    from edgestats.core import Settings, get_settings
    from edgestats.core import DailyAggregate, current_day_key
"""

# Configuration
from .config import DEFAULT_BUCKET_EDGES, Settings, get_settings

# Day keys
from .clock import Clock, current_day_key, parse_day_key, storage_key, utc_now

# Errors
from .errors import CorruptAggregate, EdgeStatsError, InvalidSample, StoreUnavailable

# Models
from .models import (
    UNKNOWN_LOCATION,
    DailyAggregate,
    LeaderboardSummary,
    LocationStats,
    LocationSummary,
    RankResult,
    round_half_up,
)

__all__ = [
    # Config
    "DEFAULT_BUCKET_EDGES",
    "Settings",
    "get_settings",
    # Day keys
    "Clock",
    "current_day_key",
    "parse_day_key",
    "storage_key",
    "utc_now",
    # Errors
    "CorruptAggregate",
    "EdgeStatsError",
    "InvalidSample",
    "StoreUnavailable",
    # Models
    "UNKNOWN_LOCATION",
    "DailyAggregate",
    "LeaderboardSummary",
    "LocationStats",
    "LocationSummary",
    "RankResult",
    "round_half_up",
]
