"""Distributed rate limiter backed by Redis sentinel keys.

Each permitted request writes ``prefix + host`` with SET NX and the interval
as its expiry; an existing key means "not allowed". This approximates
mutual exclusion across processes but is best effort only: two instances
racing on an expired key within the same instant can both be allowed, and
clock or network skew widens that window. It is not a strict guarantee.
"""

import asyncio

import structlog
from redis.exceptions import RedisError

from .limiter import RateLimiterInterface

logger = structlog.get_logger()

# Floor for polling sleeps when Redis reports no usable TTL
_MIN_POLL_SECONDS = 0.05


class RedisRateLimiter(RateLimiterInterface):
    """Best-effort cross-instance limiter sharing the cache's Redis client."""

    def __init__(self, client, prefix: str, min_interval_seconds: float):
        self.client = client
        self.prefix = prefix
        self.min_interval = max(0.0, float(min_interval_seconds))

    def _key(self, host: str) -> str:
        return f"{self.prefix}{host}"

    async def allow(self, host: str) -> bool:
        if self.min_interval <= 0:
            return True

        interval_ms = max(1, int(self.min_interval * 1000))
        acquired = await self.client.set(self._key(host), "1", nx=True, px=interval_ms)
        return bool(acquired)

    async def acquire(self, host: str) -> bool:
        return await self.allow(host)

    async def wait(self, host: str) -> None:
        while True:
            try:
                if await self.allow(host):
                    return
                ttl_ms = await self.client.pttl(self._key(host))
            except RedisError as e:
                # Degrade to unthrottled rather than stalling every fetcher
                logger.warning("redis_rate_limit_unavailable", host=host, error=str(e))
                return

            delay = ttl_ms / 1000.0 if ttl_ms and ttl_ms > 0 else _MIN_POLL_SECONDS
            await asyncio.sleep(max(delay, _MIN_POLL_SECONDS))

    async def reset(self, host: str) -> None:
        await self.client.delete(self._key(host))
