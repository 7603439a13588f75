"""Factory functions to create the cache backend.

The backend is chosen once from settings.cache_backend:
- Redis for multi-instance deployments
- In-process memory cache otherwise, and as the fallback when Redis
  cannot be reached at startup
"""

from typing import Tuple

import structlog

from .interfaces import CacheInterface
from .memory import MemoryCache
from .redis_cache import RedisCache
from ..config.settings import Settings, settings as default_settings
from ..errors import CacheUnavailableError
from ..ratelimit import RateLimiter, RateLimiterInterface, RedisRateLimiter

logger = structlog.get_logger()

REFRESH_LIMITER_PREFIX = "ratelimit:refresh:"


def is_redis(config: Settings = None) -> bool:
    config = config or default_settings
    return config.cache_backend == "redis"


def _memory_backend(config: Settings) -> Tuple[CacheInterface, RateLimiterInterface]:
    cache = MemoryCache(
        ttl_seconds=config.cache_ttl_seconds,
        sweep_interval_seconds=config.cache_sweep_interval_seconds,
    )
    cache.start()
    return cache, RateLimiter(config.refresh_rate_limit_seconds)


async def create_cache(config: Settings = None) -> Tuple[CacheInterface, RateLimiterInterface]:
    """Return the selected cache and a matching refresh rate limiter.

    With Redis, the limiter shares the cache's client so refresh throttling
    holds (best effort) across instances. Must be awaited inside a running
    event loop.
    """
    config = config or default_settings

    if not is_redis(config):
        logger.info("using_memory_cache")
        return _memory_backend(config)

    logger.info("using_redis_cache", url=config.redis_url)
    try:
        cache = await RedisCache.connect(
            config.redis_url,
            ttl_seconds=config.cache_ttl_seconds,
            prefix=config.redis_prefix,
        )
    except CacheUnavailableError as e:
        logger.error("redis_unavailable_falling_back_to_memory", error=str(e))
        return _memory_backend(config)

    limiter = RedisRateLimiter(
        cache.client,
        config.redis_prefix + REFRESH_LIMITER_PREFIX,
        config.refresh_rate_limit_seconds,
    )
    logger.info("using_redis_rate_limiter")
    return cache, limiter
