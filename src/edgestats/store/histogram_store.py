"""
Per-day latency histogram persistence.

Every operation is one self-contained load -> mutate -> save round-trip
against the key-value backend; no aggregate is held between calls.

Concurrency: the backend offers no compare-and-swap, so two writers that load
the same day concurrently each save their own increment and the later save
wins. That sample is lost from the aggregate. This is accepted for a
best-effort stats feature. Setting ``serialize_writes`` removes the race
between writers inside one process (per-day asyncio.Lock); writers in other
processes can still interleave.

Failure policy: recording is best-effort telemetry and never raises. Store
failures are logged and the sample dropped; ranking returns None; a corrupt
stored value is treated as an empty day.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..core.clock import Clock, current_day_key, storage_key
from ..core.config import DEFAULT_BUCKET_EDGES, Settings, get_settings, validate_bucket_edges
from ..core.errors import CorruptAggregate, InvalidSample, StoreUnavailable
from ..core.models import (
    UNKNOWN_LOCATION,
    DailyAggregate,
    LeaderboardSummary,
    LocationStats,
    RankResult,
)
from ..percentiles.engine import bucket_index, coerce_rtt, faster_than_pct
from ..percentiles.leaderboard import DEFAULT_TOP_N, build_leaderboard
from .backends import KVBackend, get_backend

logger = logging.getLogger(__name__)


# =============================================================================
# Aggregate Mutation
# =============================================================================


def apply_sample(
    aggregate: DailyAggregate,
    rtt_ms: int,
    location: str,
    country_code: Optional[str] = None,
) -> None:
    """
    Fold one validated, already-rounded sample into an aggregate in place.

    The location's country is overwritten with whatever this sample reports.
    """
    aggregate.sample_count += 1

    idx = bucket_index(rtt_ms, aggregate.bucket_edges)
    aggregate.buckets[idx] += 1

    stats = aggregate.location_stats.get(location)
    if stats is None:
        stats = LocationStats()
        aggregate.location_stats[location] = stats
    stats.count += 1
    stats.sum_rtt_ms += rtt_ms
    stats.country_code = country_code


def merge_aggregates(base: DailyAggregate, batch: DailyAggregate) -> None:
    """
    Add a pre-aggregated batch into base in place.

    A batch location's country replaces the stored one when the batch knows it.

    Raises:
        ValueError: If the batch breaks the aggregate invariants or uses
            different bucket edges
    """
    # Batches can be mutated after construction; re-check before touching base
    batch = DailyAggregate.model_validate_json(batch.to_storage())
    if list(base.bucket_edges) != list(batch.bucket_edges):
        raise ValueError(
            f"Bucket edges differ: stored {base.bucket_edges}, batch {batch.bucket_edges}"
        )

    base.sample_count += batch.sample_count
    base.buckets = [a + b for a, b in zip(base.buckets, batch.buckets)]

    for location, incoming in batch.location_stats.items():
        stats = base.location_stats.get(location)
        if stats is None:
            base.location_stats[location] = incoming.model_copy()
            continue
        stats.count += incoming.count
        stats.sum_rtt_ms += incoming.sum_rtt_ms
        if incoming.country_code is not None:
            stats.country_code = incoming.country_code


# =============================================================================
# Store
# =============================================================================


class HistogramStore:
    """
    Records RTT samples into per-day histograms and answers rank queries.

    Usage:
        store = HistogramStore.from_settings()
        day = store.today()
        store.record_sample_background(day, rtt_ms=23, location="SJC", country_code="US")
        rank = await store.peek_rank(day, 23)
        board = await store.leaderboard(day)
    """

    def __init__(
        self,
        backend: KVBackend,
        *,
        bucket_edges: Optional[Sequence[int]] = None,
        key_prefix: str = "stats:",
        timeout_ms: int = 300,
        retries: int = 1,
        retry_backoff_ms: int = 50,
        serialize_writes: bool = False,
        top_n: int = DEFAULT_TOP_N,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            backend: Key-value backend holding serialized aggregates
            bucket_edges: Edges for days created from now on (stored days
                keep the edges they were created with)
            key_prefix: Prefix in front of the day key
            timeout_ms: Upper bound on each backend call
            retries: Extra attempts after a failed backend call
            retry_backoff_ms: Initial delay between attempts (doubles each time)
            serialize_writes: Serialize read-modify-write per day in-process
            top_n: Default number of locations on the leaderboard
            clock: UTC clock used by today()

        Raises:
            ValueError: If bucket_edges are empty, negative or not strictly ascending
        """
        self.backend = backend
        if bucket_edges is None:
            bucket_edges = DEFAULT_BUCKET_EDGES
        self.bucket_edges = validate_bucket_edges(bucket_edges)
        self.key_prefix = key_prefix
        self.top_n = top_n
        self._timeout = timeout_ms / 1000
        self._retries = retries
        self._retry_backoff = retry_backoff_ms / 1000
        self._serialize_writes = serialize_writes
        self._clock = clock
        self._write_locks: dict[str, asyncio.Lock] = {}
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        backend: Optional[KVBackend] = None,
        clock: Optional[Clock] = None,
    ) -> "HistogramStore":
        """Build a store (and, unless given, its backend) from settings."""
        settings = settings or get_settings()
        return cls(
            backend or get_backend(settings),
            bucket_edges=settings.default_bucket_edges,
            key_prefix=settings.stats_key_prefix,
            timeout_ms=settings.store_timeout_ms,
            retries=settings.store_retries,
            retry_backoff_ms=settings.store_retry_backoff_ms,
            serialize_writes=settings.serialize_writes,
            top_n=settings.leaderboard_top_n,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def today(self) -> str:
        """Current UTC day key according to the store's clock."""
        return current_day_key(self._clock)

    def key_for(self, day: str) -> str:
        return storage_key(day, self.key_prefix)

    def empty_aggregate(self) -> DailyAggregate:
        return DailyAggregate.empty(self.bucket_edges)

    # -------------------------------------------------------------------------
    # Backend round-trips
    # -------------------------------------------------------------------------

    async def _call(self, op: str, key: str, func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run one backend call with a timeout, retrying with backoff.

        Raises:
            StoreUnavailable: If every attempt failed or timed out
        """
        attempts = self._retries + 1
        last_error: StoreUnavailable | None = None

        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(func(), timeout=self._timeout)
            except asyncio.TimeoutError:
                last_error = StoreUnavailable(
                    f"{op} {key} timed out after {self._timeout * 1000:.0f}ms", key=key
                )
            except StoreUnavailable as e:
                last_error = e

            if attempt < attempts - 1:
                wait = self._retry_backoff * (2 ** attempt)
                logger.warning(
                    f"Store {op} failed, retrying in {wait * 1000:.0f}ms: {last_error.message}"
                )
                await asyncio.sleep(wait)

        raise last_error or StoreUnavailable(f"{op} {key} failed", key=key)

    async def _fetch(self, key: str) -> DailyAggregate:
        """
        Read the aggregate at key.

        Absent and corrupt values both come back as a fresh empty aggregate.

        Raises:
            StoreUnavailable: If the backend could not be read
        """
        try:
            raw = await self._call("get", key, lambda: self.backend.get(key))
            if raw is None:
                return self.empty_aggregate()
            return DailyAggregate.from_storage(raw, key=key)
        except CorruptAggregate as e:
            logger.warning(f"Corrupt aggregate at {key}, treating as empty: {e.message}")
            return self.empty_aggregate()

    async def _save(self, key: str, aggregate: DailyAggregate) -> None:
        payload = aggregate.to_storage()
        await self._call("put", key, lambda: self.backend.put(key, payload))

    def _write_lock(self, key: str) -> contextlib.AbstractAsyncContextManager:
        if not self._serialize_writes:
            return contextlib.nullcontext()
        lock = self._write_locks.get(key)
        if lock is None:
            lock = self._write_locks[key] = asyncio.Lock()
        return lock

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def load(self, day: str) -> DailyAggregate:
        """
        Get the aggregate for a day.

        Never raises: an unseen day, a corrupt value, or an unreachable
        backend all yield an empty aggregate with the default edges.
        """
        key = self.key_for(day)
        try:
            return await self._fetch(key)
        except StoreUnavailable as e:
            logger.warning(f"Could not load {key}, returning empty aggregate: {e.message}")
            return self.empty_aggregate()

    async def record_sample(
        self,
        day: str,
        rtt_ms: Any,
        location: Optional[str] = None,
        country_code: Optional[str] = None,
    ) -> None:
        """
        Fold one RTT sample into the day's aggregate and write it back.

        Invalid samples are ignored. If the day cannot be read the write is
        skipped, so an unreadable day is never replaced by a fresh one.

        Args:
            day: UTC day key (YYYY-MM-DD)
            rtt_ms: Measured round-trip time in ms
            location: Serving location id (UNKNOWN_LOCATION when missing)
            country_code: Client country, stored last-writer-wins
        """
        try:
            rtt = coerce_rtt(rtt_ms)
        except InvalidSample as e:
            logger.debug(f"Skipping sample for {day}: {e.message}")
            return

        key = self.key_for(day)
        try:
            async with self._write_lock(key):
                aggregate = await self._fetch(key)
                if location is None:
                    location = UNKNOWN_LOCATION
                apply_sample(aggregate, rtt, location, country_code)
                await self._save(key, aggregate)
        except StoreUnavailable as e:
            logger.warning(f"Dropped sample for {day}: {e.message}")

    def record_sample_background(
        self,
        day: str,
        rtt_ms: Any,
        location: Optional[str] = None,
        country_code: Optional[str] = None,
    ) -> asyncio.Task:
        """
        Schedule record_sample without waiting for it.

        Must be called from a running event loop. Use drain() before shutdown
        to let outstanding writes finish.
        """
        task = asyncio.get_running_loop().create_task(
            self.record_sample(day, rtt_ms, location, country_code)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all background recordings scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def peek_rank(self, day: str, rtt_ms: Any) -> Optional[RankResult]:
        """
        Rank an RTT against the day's stored samples without recording it.

        Returns:
            RankResult, or None if the RTT is invalid or the store unreachable
        """
        try:
            rtt = coerce_rtt(rtt_ms)
        except InvalidSample:
            return None

        key = self.key_for(day)
        try:
            aggregate = await self._fetch(key)
        except StoreUnavailable as e:
            logger.warning(f"Could not rank against {key}: {e.message}")
            return None

        pct = faster_than_pct(aggregate.sample_count, aggregate.buckets, aggregate.bucket_edges, rtt)
        return RankResult(faster_than_pct=pct, samples=aggregate.sample_count, day=day)

    async def merge(self, day: str, batch: DailyAggregate) -> bool:
        """
        Fold a pre-aggregated batch into the day in a single round-trip.

        Subject to the same lost-update race as record_sample.

        Returns:
            True if the merged aggregate was written, False otherwise
        """
        key = self.key_for(day)
        try:
            async with self._write_lock(key):
                aggregate = await self._fetch(key)
                merge_aggregates(aggregate, batch)
                await self._save(key, aggregate)
        except ValueError as e:
            logger.warning(f"Rejected batch for {day}: {e}")
            return False
        except StoreUnavailable as e:
            logger.warning(f"Dropped batch for {day}: {e.message}")
            return False
        return True

    async def leaderboard(self, day: Optional[str] = None, top_n: Optional[int] = None) -> LeaderboardSummary:
        """Summarize a day (default: today) as percentiles plus top locations."""
        day = day or self.today()
        aggregate = await self.load(day)
        return build_leaderboard(aggregate, day, self.top_n if top_n is None else top_n)

    async def close(self) -> None:
        """Finish background writes and close the backend."""
        await self.drain()
        await self.backend.close()
