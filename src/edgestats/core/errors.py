"""
Error types for the latency stats core.

None of these are meant to reach the caller of a public store operation:
recording absorbs them, ranking turns them into ``None``. They exist so the
internals can signal *why* something was skipped and log it consistently.
"""


class EdgeStatsError(Exception):
    """Base exception for latency stats errors."""

    def __init__(self, message: str, code: str = "EDGE_STATS_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidSample(EdgeStatsError):
    """RTT is missing, negative, non-numeric or not finite."""

    def __init__(self, message: str, value: object = None):
        super().__init__(message, code="INVALID_SAMPLE")
        self.value = value


class StoreUnavailable(EdgeStatsError):
    """The key-value backend failed or timed out."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message, code="STORE_UNAVAILABLE")
        self.key = key


class CorruptAggregate(EdgeStatsError):
    """A stored value could not be read back as a daily aggregate."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message, code="CORRUPT_AGGREGATE")
        self.key = key
