"""
Pytest configuration for edgestats tests.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from edgestats.core.errors import StoreUnavailable
from edgestats.store.backends import InMemoryBackend, KVBackend
from edgestats.store.histogram_store import HistogramStore

DAY = "2026-10-18"


class SlowBackend(InMemoryBackend):
    """In-memory backend that yields during get, so concurrent writers interleave."""

    def __init__(self, delay: float = 0.01):
        super().__init__()
        self.delay = delay

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(self.delay)
        return value


class FlakyBackend(InMemoryBackend):
    """In-memory backend whose first N calls of each kind fail."""

    def __init__(self, get_failures: int = 0, put_failures: int = 0):
        super().__init__()
        self.get_failures = get_failures
        self.put_failures = put_failures
        self.get_calls = 0
        self.put_calls = 0

    async def get(self, key):
        self.get_calls += 1
        if self.get_calls <= self.get_failures:
            raise StoreUnavailable("backend down", key=key)
        return await super().get(key)

    async def put(self, key, value):
        self.put_calls += 1
        if self.put_calls <= self.put_failures:
            raise StoreUnavailable("backend down", key=key)
        await super().put(key, value)


class HangingBackend(KVBackend):
    """Backend that never answers."""

    async def get(self, key):
        await asyncio.sleep(10)

    async def put(self, key, value):
        await asyncio.sleep(10)


@pytest.fixture
def day():
    return DAY


@pytest.fixture
def clock():
    return lambda: datetime(2026, 10, 18, 23, 59, 30, tzinfo=timezone.utc)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def store(backend, clock):
    """Store with fast retries so failure tests stay quick."""
    return HistogramStore(backend, timeout_ms=200, retries=1, retry_backoff_ms=1, clock=clock)


@pytest.fixture
def small_store(backend):
    """Store whose new days use edges [5, 10, 15]."""
    return HistogramStore(backend, bucket_edges=[5, 10, 15], retry_backoff_ms=1)
