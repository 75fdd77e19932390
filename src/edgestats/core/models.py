"""
Pydantic models for the daily latency aggregate and the views derived from it.

The aggregate's serialized field names (``samples``, ``buckets``,
``bucketEdges``, ``colo`` with ``count``/``sumRtt``/``country``) are a storage
contract shared with days that were persisted before this package existed.
Python attribute names are snake_case; aliases carry the stored names.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    ValidationError,
    model_validator,
)

from .errors import CorruptAggregate

# Location id used when the serving point of presence is unknown
UNKNOWN_LOCATION = "—"


# =============================================================================
# Stored Aggregate
# =============================================================================


class LocationStats(BaseModel):
    """Per-location accumulation inside a daily aggregate."""

    model_config = ConfigDict(populate_by_name=True, strict=True)

    count: NonNegativeInt = 0
    sum_rtt_ms: NonNegativeInt = Field(default=0, alias="sumRtt")
    country_code: Optional[str] = Field(default=None, alias="country")

    @property
    def avg_rtt_ms(self) -> Optional[int]:
        """Mean RTT rounded half-up, or None before the first sample."""
        if not self.count:
            return None
        return round_half_up(self.sum_rtt_ms / self.count)


class DailyAggregate(BaseModel):
    """
    One UTC day of RTT samples.

    Invariants (checked on every validation, so a stored value that breaks
    them is rejected as corrupt):
    - len(buckets) == len(bucket_edges) + 1
    - bucket_edges strictly ascending
    - sum(buckets) == sample_count == sum(location counts)
    """

    model_config = ConfigDict(populate_by_name=True, strict=True)

    sample_count: NonNegativeInt = Field(alias="samples")
    buckets: list[NonNegativeInt]
    bucket_edges: list[NonNegativeInt] = Field(alias="bucketEdges")
    location_stats: dict[str, LocationStats] = Field(alias="colo")

    @model_validator(mode="after")
    def _check_invariants(self) -> "DailyAggregate":
        edges = self.bucket_edges
        if not edges:
            raise ValueError("bucketEdges must not be empty")
        if any(b <= a for a, b in zip(edges, edges[1:])):
            raise ValueError("bucketEdges must be strictly ascending")
        if len(self.buckets) != len(edges) + 1:
            raise ValueError(
                f"expected {len(edges) + 1} buckets for {len(edges)} edges, got {len(self.buckets)}"
            )
        if sum(self.buckets) != self.sample_count:
            raise ValueError("bucket counts do not add up to samples")
        if sum(s.count for s in self.location_stats.values()) != self.sample_count:
            raise ValueError("location counts do not add up to samples")
        return self

    @classmethod
    def empty(cls, bucket_edges: Sequence[int]) -> "DailyAggregate":
        """Fresh aggregate: zero counts, one zero bucket per edge plus overflow."""
        edges = list(bucket_edges)
        return cls(
            sample_count=0,
            buckets=[0] * (len(edges) + 1),
            bucket_edges=edges,
            location_stats={},
        )

    # -------------------------------------------------------------------------
    # Storage encoding
    # -------------------------------------------------------------------------

    def to_storage(self) -> str:
        """Serialize with the stored field names; unknown countries are omitted."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, raw: str | bytes, key: str | None = None) -> "DailyAggregate":
        """
        Strictly parse a stored value.

        Raises:
            CorruptAggregate: If the value is not UTF-8 JSON or does not
                match the aggregate schema and invariants.
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptAggregate(
                f"Stored aggregate failed validation ({e.error_count()} errors)",
                key=key,
            ) from e
        except UnicodeDecodeError as e:
            raise CorruptAggregate(f"Stored aggregate is not UTF-8: {e.reason}", key=key) from e


# =============================================================================
# Derived Views
# =============================================================================


class RankResult(BaseModel):
    """Where one RTT ranks against a day's stored samples."""

    model_config = ConfigDict(populate_by_name=True)

    faster_than_pct: int = Field(ge=0, le=100, alias="fasterThanPct")
    samples: int
    day: str


class LocationSummary(BaseModel):
    """One row of the leaderboard's location breakdown."""

    model_config = ConfigDict(populate_by_name=True)

    location: str = Field(alias="colo")
    count: int
    avg_rtt_ms: Optional[int] = Field(default=None, alias="avgRtt")
    country_code: Optional[str] = Field(default=None, alias="country")


class LeaderboardSummary(BaseModel):
    """Shareable daily summary: approximate percentiles and busiest locations."""

    model_config = ConfigDict(populate_by_name=True)

    day: str
    samples: int
    p50: Optional[int] = None
    p90: Optional[int] = None
    p99: Optional[int] = None
    top_locations: list[LocationSummary] = Field(default_factory=list, alias="topColos")


def round_half_up(value: float) -> int:
    """Round halves upward, matching how historical days were stored."""
    return math.floor(value + 0.5)
