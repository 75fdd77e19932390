"""
Configuration management for edgestats.

Uses Pydantic settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Optional, Sequence

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Last bucket is the implicit overflow (> 1000 ms)
DEFAULT_BUCKET_EDGES: list[int] = [5, 10, 15, 20, 30, 40, 60, 80, 100, 120, 150, 200, 300, 500, 1000]


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Lists are given as JSON in the environment:
    DEFAULT_BUCKET_EDGES="[10, 50, 100]"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Application Metadata
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Root log level for the CLI")

    # ==========================================================================
    # Store Backend
    # ==========================================================================
    store_backend: str = Field(
        default="memory",
        description="Key-value backend: memory, redis, cloudflare",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (redis://host:port/db)",
    )
    cloudflare_account_id: Optional[str] = None
    cloudflare_namespace_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None
    cloudflare_api_base: str = "https://api.cloudflare.com/client/v4"

    # ==========================================================================
    # Store Protocol
    # ==========================================================================
    stats_key_prefix: str = Field(default="stats:", description="Prefix for per-day keys")
    store_timeout_ms: int = Field(default=300, ge=1, le=30_000)
    store_retries: int = Field(default=1, ge=0, le=5, description="Retries after a failed backend call")
    store_retry_backoff_ms: int = Field(default=50, ge=0, le=5_000)
    serialize_writes: bool = Field(
        default=False,
        description="Serialize read-modify-write per day key within this process",
    )

    # ==========================================================================
    # Histogram / Leaderboard
    # ==========================================================================
    default_bucket_edges: list[int] = Field(default_factory=lambda: list(DEFAULT_BUCKET_EDGES))
    leaderboard_top_n: int = Field(default=15, ge=1, le=500)

    @field_validator("default_bucket_edges")
    @classmethod
    def _edges_ascending(cls, edges: list[int]) -> list[int]:
        return validate_bucket_edges(edges)

    @field_validator("store_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in {"memory", "redis", "cloudflare"}:
            raise ValueError(f"Unknown store backend: {value}")
        return value


def validate_bucket_edges(edges: Sequence[int]) -> list[int]:
    """
    Check that bucket edges are non-empty, non-negative and strictly ascending.

    Raises:
        ValueError: If any of those conditions does not hold
    """
    edges = list(edges)
    if not edges:
        raise ValueError("bucket edges must not be empty")
    if edges[0] < 0:
        raise ValueError("bucket edges must be non-negative")
    if any(b <= a for a, b in zip(edges, edges[1:])):
        raise ValueError("bucket edges must be strictly ascending")
    return edges


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
