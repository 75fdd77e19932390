"""
Key-value backends for persisted daily aggregates.

Every backend exposes the same two async operations:
- get(key) -> serialized value (str or raw bytes), or None when the key is absent
- put(key, value) -> overwrite the value at key

Backends raise StoreUnavailable for transport/server failures. Timeouts and
retries are applied one level up, by HistogramStore.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..core.config import Settings, get_settings
from ..core.errors import CorruptAggregate, StoreUnavailable

logger = logging.getLogger(__name__)


class KVBackend(ABC):
    """Abstract base class for key-value backends."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str | bytes]:
        """Get the value at key, or None if absent."""
        pass

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Overwrite the value at key."""
        pass

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


class InMemoryBackend(KVBackend):
    """Process-local backend, used for tests and one-off CLI runs."""

    name = "memory"

    def __init__(self, initial: Optional[dict[str, str | bytes]] = None):
        self._data: dict[str, str | bytes] = dict(initial or {})

    async def get(self, key: str) -> Optional[str | bytes]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> list[str]:
        return sorted(self._data)


class RedisBackend(KVBackend):
    """
    Redis backend. Values are stored as plain strings without expiry.

    Responses are returned as raw bytes and decoded by the aggregate parser.
    """

    name = "redis"

    def __init__(self, url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        if client is None:
            if not url:
                raise ValueError("RedisBackend requires a url or a client")
            client = aioredis.from_url(url)
        self._redis = client

    async def get(self, key: str) -> Optional[str | bytes]:
        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise StoreUnavailable(f"Redis get error: {e}", key=key) from e
        except UnicodeDecodeError as e:
            # clients built with decode_responses=True decode before returning
            raise CorruptAggregate(f"Redis value is not UTF-8: {e.reason}", key=key) from e

    async def put(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except RedisError as e:
            raise StoreUnavailable(f"Redis set error: {e}", key=key) from e

    async def close(self) -> None:
        await self._redis.aclose()


class CloudflareKVBackend(KVBackend):
    """
    Cloudflare Workers KV namespace accessed through the REST API.

    Lets the aggregation run outside a Worker while reading and writing the
    same namespace the edge deployment uses.

        backend = CloudflareKVBackend(account_id, namespace_id, api_token)
        raw = await backend.get("stats:2026-10-18")
        await backend.close()
    """

    name = "cloudflare"
    BASE_URL = "https://api.cloudflare.com/client/v4"

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        *,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not (account_id and namespace_id and api_token):
            raise ValueError("CloudflareKVBackend requires account_id, namespace_id and api_token")
        self._base_url = (base_url or self.BASE_URL).rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._values_path = f"/accounts/{account_id}/storage/kv/namespaces/{namespace_id}/values"
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the HTTP client, lazily creating it if needed."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    def _path(self, key: str) -> str:
        return f"{self._values_path}/{quote(key, safe='')}"

    async def get(self, key: str) -> Optional[str]:
        try:
            response = await self.client.get(self._path(key))
        except httpx.RequestError as e:
            raise StoreUnavailable(f"Request failed: {e}", key=key) from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise StoreUnavailable(f"HTTP {response.status_code}: {response.text[:200]}", key=key)
        return response.text

    async def put(self, key: str, value: str) -> None:
        try:
            response = await self.client.put(
                self._path(key),
                content=value.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )
        except httpx.RequestError as e:
            raise StoreUnavailable(f"Request failed: {e}", key=key) from e

        if response.is_error:
            raise StoreUnavailable(f"HTTP {response.status_code}: {response.text[:200]}", key=key)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def get_backend(settings: Optional[Settings] = None) -> KVBackend:
    """
    Build the backend named by settings.store_backend.

    Raises:
        ValueError: If the selected backend is missing required settings
    """
    settings = settings or get_settings()

    if settings.store_backend == "redis":
        logger.info("Using Redis stats backend")
        return RedisBackend(settings.redis_url)

    if settings.store_backend == "cloudflare":
        logger.info("Using Cloudflare KV stats backend")
        return CloudflareKVBackend(
            settings.cloudflare_account_id or "",
            settings.cloudflare_namespace_id or "",
            settings.cloudflare_api_token or "",
            base_url=settings.cloudflare_api_base,
        )

    logger.info("Using in-memory stats backend")
    return InMemoryBackend()
