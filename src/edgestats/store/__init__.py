"""
Persistence of daily latency aggregates.
"""

from .backends import CloudflareKVBackend, InMemoryBackend, KVBackend, RedisBackend, get_backend
from .histogram_store import HistogramStore, apply_sample, merge_aggregates

__all__ = [
    "CloudflareKVBackend",
    "InMemoryBackend",
    "KVBackend",
    "RedisBackend",
    "get_backend",
    "HistogramStore",
    "apply_sample",
    "merge_aggregates",
]
