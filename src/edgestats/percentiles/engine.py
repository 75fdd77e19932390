"""
Histogram percentile math - pure functions, no I/O.

Percentiles here are bucket-resolution approximations: a reported value is the
inclusive upper edge of the bucket the target rank falls in, so the error is
bounded by that bucket's width. Values above the last edge are reported as
``edges[-1] + 1`` ("at least this much").
"""

from __future__ import annotations

import math
from bisect import bisect_left
from numbers import Real
from typing import Optional, Sequence

from ..core.errors import InvalidSample
from ..core.models import round_half_up


def coerce_rtt(value: object) -> int:
    """
    Validate an RTT sample and round it to whole milliseconds.

    Args:
        value: Measured round-trip time in ms

    Returns:
        RTT rounded half-up

    Raises:
        InvalidSample: If value is missing, not a real number, not finite
            (including integers too large for a float), or negative
    """
    if value is None:
        raise InvalidSample("RTT is missing")
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidSample(f"RTT is not a number: {value!r}", value=value)
    try:
        rtt = float(value)
    except OverflowError as e:
        raise InvalidSample("RTT is too large to represent", value=value) from e
    if not math.isfinite(rtt):
        raise InvalidSample(f"RTT is not finite: {value!r}", value=value)
    if rtt < 0:
        raise InvalidSample(f"RTT is negative: {value!r}", value=value)
    return round_half_up(rtt)


def bucket_index(rtt_ms: float, edges: Sequence[int]) -> int:
    """
    Index of the bucket an RTT falls in.

    Edges are inclusive upper bounds: ``rtt_ms == edges[i]`` lands in bucket
    ``i``. Anything above the last edge goes to the overflow bucket
    ``len(edges)``.
    """
    return bisect_left(edges, rtt_ms)


def percentile_from_histogram(
    samples: int,
    buckets: Sequence[int],
    edges: Sequence[int],
    target_pct: float,
) -> Optional[int]:
    """
    Approximate the value at a percentile from bucket counts.

    Args:
        samples: Total sample count
        buckets: Per-bucket counts (len(edges) + 1)
        edges: Inclusive bucket upper edges
        target_pct: Percentile to estimate, 0-100

    Returns:
        Upper edge of the first bucket whose cumulative count reaches the
        target rank (edges[-1] + 1 for the overflow bucket), or None if there
        are no samples or the counts never reach the rank

    Raises:
        ValueError: If target_pct is outside 0-100
    """
    if not 0 <= target_pct <= 100:
        raise ValueError(f"target_pct must be within 0-100, got {target_pct}")
    if samples <= 0:
        return None

    target_rank = math.ceil(target_pct / 100 * samples)
    acc = 0
    for i, count in enumerate(buckets):
        acc += count
        if acc >= target_rank:
            if i < len(edges):
                return edges[i]
            return edges[-1] + 1
    return None


def faster_than_pct(
    samples: int,
    buckets: Sequence[int],
    edges: Sequence[int],
    rtt_ms: float,
) -> int:
    """
    Share of stored samples (0-100) whose bucket is at or below the RTT's.

    The RTT's own bucket counts in full. Returns 0 for an empty histogram.
    """
    if samples <= 0:
        return 0
    idx = bucket_index(rtt_ms, edges)
    count_le = sum(buckets[: idx + 1])
    return max(0, min(100, round_half_up(count_le / samples * 100)))
