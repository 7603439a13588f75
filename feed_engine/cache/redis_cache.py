"""Redis-backed cache for multi-instance deployments."""

import json
from datetime import date, datetime
from typing import Any, Optional, Tuple

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from .interfaces import CacheInterface
from ..config.settings import settings
from ..errors import CacheUnavailableError, CacheWriteError

logger = structlog.get_logger()

DEFAULT_PREFIX = "feed-engine:"


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class RedisCache(CacheInterface):
    """Stores JSON-encoded values under a key prefix with native Redis expiry.

    Values come back as plain JSON types (dicts, lists, strings), so callers
    that store richer objects rebuild them on read.
    """

    def __init__(self, client, ttl_seconds: float = None, prefix: str = DEFAULT_PREFIX):
        self.client = client
        self.ttl = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.prefix = prefix or DEFAULT_PREFIX

    @classmethod
    async def connect(
        cls,
        url: str,
        ttl_seconds: float = None,
        prefix: str = DEFAULT_PREFIX,
        connect_timeout: float = None,
    ) -> "RedisCache":
        """Create a client and verify the connection.

        Raises CacheUnavailableError when Redis cannot be reached so the
        caller can fall back to the in-process backend.
        """
        timeout = settings.redis_connect_timeout_seconds if connect_timeout is None else connect_timeout
        client = aioredis.from_url(url, socket_connect_timeout=timeout, socket_timeout=timeout)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            await client.aclose()
            raise CacheUnavailableError(f"cannot connect to redis at {url}: {e}") from e
        return cls(client, ttl_seconds=ttl_seconds, prefix=prefix)

    def key(self, key: str) -> str:
        return self.prefix + key

    async def get(self, key: str) -> Tuple[Optional[Any], bool]:
        try:
            data = await self.client.get(self.key(key))
        except RedisError as e:
            logger.warning("redis_get_failed", key=key, error=str(e))
            return None, False

        if data is None:
            return None, False

        try:
            return json.loads(data), True
        except (TypeError, ValueError) as e:
            logger.warning("redis_value_undecodable", key=key, error=str(e))
            return None, False

    async def set(self, key: str, value: Any) -> None:
        await self.set_with_ttl(key, value, self.ttl)

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value, raising CacheWriteError when Redis rejects the write."""
        data = json.dumps(value, default=_json_default)
        ttl_ms = max(1, int(ttl_seconds * 1000))
        try:
            await self.client.set(self.key(key), data, px=ttl_ms)
        except RedisError as e:
            logger.error("redis_set_failed", key=key, error=str(e))
            raise CacheWriteError(f"failed to store {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self.key(key))
        except RedisError as e:
            logger.error("redis_delete_failed", key=key, error=str(e))

    async def clear(self) -> None:
        """Delete only keys under this cache's prefix."""
        batch = []
        deleted = 0
        try:
            async for found in self.client.scan_iter(match=f"{self.prefix}*", count=100):
                batch.append(found)
                if len(batch) >= 100:
                    deleted += await self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += await self.client.delete(*batch)
        except RedisError as e:
            logger.error("redis_clear_failed", prefix=self.prefix, deleted=deleted, error=str(e))
            return
        logger.info("redis_cache_cleared", prefix=self.prefix, deleted=deleted)

    async def close(self) -> None:
        await self.client.aclose()
