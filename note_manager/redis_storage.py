"""Redis key-value backend for note collections.

Each collection is one string value under ``<prefix><key>``.  Redis
being unavailable is not fatal: persist/retrieve first try to connect
and otherwise raise BackendUnavailableError, which the store turns into
an error notification.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis

from .errors import BackendUnavailableError
from .storage import PersistenceBackend

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "notes:"


class RedisBackend(PersistenceBackend):
    """Async Redis storage for serialized note collections."""

    name = "redis"

    def __init__(self, redis_url: str, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__()
        self._redis_url = redis_url
        self._prefix = prefix
        self._client: Optional[aioredis.Redis] = None

    @property
    def available(self) -> bool:
        """Whether the Redis connection is active."""
        return self._client is not None

    async def connect(self) -> None:
        """Connect to Redis. Non-fatal if Redis is unavailable."""
        try:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
            await self._client.ping()
            logger.info("Redis storage connected: %s", self._redis_url)
        except Exception as e:
            logger.warning("Redis unavailable, persistence disabled: %s", e)
            self._client = None

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def describe_key(self, key: str) -> str:
        return f'Redis key "{self._make_key(key)}"'

    # ------------------------------------------------------------------
    # Backend operations
    # ------------------------------------------------------------------

    async def _persist(self, key: str, payload: str) -> None:
        client = await self._require_client()
        try:
            await client.set(self._make_key(key), payload)
        except Exception as e:
            raise BackendUnavailableError(f"Redis set failed: {e}") from e

    async def _retrieve(self, key: str) -> Optional[str]:
        client = await self._require_client()
        try:
            return await client.get(self._make_key(key))
        except Exception as e:
            raise BackendUnavailableError(f"Redis get failed: {e}") from e

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _require_client(self) -> aioredis.Redis:
        """Return the client, reconnecting once if the connection was lost."""
        if self._client is None:
            await self.connect()
        if self._client is None:
            raise BackendUnavailableError(
                f"Redis is not connected ({self._redis_url})"
            )
        return self._client

    def _make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"
