"""
Tests for the stored aggregate schema and day keys.

The serialized field names are shared with days persisted by the edge
deployment, so these tests pin the exact wire shape.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from edgestats.core.clock import current_day_key, parse_day_key, storage_key
from edgestats.core.config import DEFAULT_BUCKET_EDGES, Settings, validate_bucket_edges
from edgestats.core.errors import CorruptAggregate
from edgestats.core.models import DailyAggregate, LocationStats

STORED = json.dumps(
    {
        "samples": 3,
        "buckets": [1, 2, 0],
        "bucketEdges": [10, 20],
        "colo": {
            "SJC": {"count": 2, "sumRtt": 19, "country": "US"},
            "—": {"count": 1, "sumRtt": 4},
        },
    }
)


class TestDailyAggregateStorage:
    """Stored field names and strict parsing."""

    def test_parses_stored_names(self):
        aggregate = DailyAggregate.from_storage(STORED)
        assert aggregate.sample_count == 3
        assert aggregate.bucket_edges == [10, 20]
        assert aggregate.location_stats["SJC"].sum_rtt_ms == 19
        assert aggregate.location_stats["SJC"].country_code == "US"
        assert aggregate.location_stats["—"].country_code is None

    def test_serializes_stored_names(self):
        aggregate = DailyAggregate.from_storage(STORED)
        data = json.loads(aggregate.to_storage())
        assert list(data) == ["samples", "buckets", "bucketEdges", "colo"]
        assert data["colo"]["SJC"] == {"count": 2, "sumRtt": 19, "country": "US"}
        # unknown country is omitted rather than written as null
        assert data["colo"]["—"] == {"count": 1, "sumRtt": 4}

    def test_empty(self):
        aggregate = DailyAggregate.empty(DEFAULT_BUCKET_EDGES)
        assert aggregate.sample_count == 0
        assert aggregate.buckets == [0] * (len(DEFAULT_BUCKET_EDGES) + 1)
        assert aggregate.location_stats == {}

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            '{"samples": 0, "buckets": [0, 0], "bucketEdges": [10]}',
            '{"samples": "1", "buckets": [1, 0], "bucketEdges": [10], "colo": {"A": {"count": 1, "sumRtt": 1}}}',
            '{"samples": 1, "buckets": [1], "bucketEdges": [10], "colo": {"A": {"count": 1, "sumRtt": 1}}}',
            '{"samples": 2, "buckets": [1, 0], "bucketEdges": [10], "colo": {"A": {"count": 1, "sumRtt": 1}}}',
            '{"samples": 1, "buckets": [1, 0], "bucketEdges": [10], "colo": {}}',
            '{"samples": 0, "buckets": [0, 0, 0], "bucketEdges": [20, 10], "colo": {}}',
            '{"samples": 0, "buckets": [-1, 1], "bucketEdges": [10], "colo": {}}',
            b"\xff\xfe{",
        ],
        ids=[
            "invalid-json",
            "not-an-object",
            "missing-colo",
            "string-samples",
            "bucket-length",
            "bucket-sum",
            "location-sum",
            "descending-edges",
            "negative-count",
            "not-utf8",
        ],
    )
    def test_rejects_corrupt(self, raw):
        with pytest.raises(CorruptAggregate) as exc_info:
            DailyAggregate.from_storage(raw, key="stats:2026-10-18")
        assert exc_info.value.code == "CORRUPT_AGGREGATE"
        assert exc_info.value.key == "stats:2026-10-18"

    def test_average_rtt(self):
        assert LocationStats(count=3, sum_rtt_ms=90).avg_rtt_ms == 30
        assert LocationStats(count=2, sum_rtt_ms=5).avg_rtt_ms == 3
        assert LocationStats().avg_rtt_ms is None


class TestDayKeys:
    """UTC day key derivation."""

    def test_current_day_key_uses_utc(self):
        # 23:30 in New York on the 17th is already the 18th in UTC
        eastern = timezone(timedelta(hours=-4))
        clock = lambda: datetime(2026, 10, 17, 23, 30, tzinfo=eastern)
        assert current_day_key(clock) == "2026-10-18"

    def test_naive_clock_taken_as_utc(self):
        assert current_day_key(lambda: datetime(2026, 1, 2, 3, 4)) == "2026-01-02"

    def test_default_clock(self):
        assert len(current_day_key()) == 10

    def test_parse_day_key(self):
        assert parse_day_key(" 2026-10-18 ") == "2026-10-18"

    @pytest.mark.parametrize("value", ["2026-02-30", "yesterday", "", "18/10/2026"])
    def test_parse_day_key_rejects(self, value):
        with pytest.raises(ValueError):
            parse_day_key(value)

    def test_storage_key(self):
        assert storage_key("2026-10-18") == "stats:2026-10-18"
        assert storage_key("2026-10-18", prefix="edge:stats:") == "edge:stats:2026-10-18"


class TestSettings:
    """Configuration validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.default_bucket_edges == DEFAULT_BUCKET_EDGES
        assert settings.store_timeout_ms == 300
        assert settings.stats_key_prefix == "stats:"
        assert set(Settings.model_fields).isdisjoint({"app_name", "environment"})

    def test_edges_from_env(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_BUCKET_EDGES", "[10, 50, 100]")
        assert Settings(_env_file=None).default_bucket_edges == [10, 50, 100]

    @pytest.mark.parametrize("edges", [[], [10, 10], [20, 10], [-5, 10]])
    def test_rejects_bad_edges(self, edges):
        with pytest.raises(ValueError):
            Settings(_env_file=None, default_bucket_edges=edges)

    def test_validate_bucket_edges(self):
        assert validate_bucket_edges((5, 10, 15)) == [5, 10, 15]
        with pytest.raises(ValueError):
            validate_bucket_edges([10, 10])

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, store_backend="memcached")
