"""Engine wiring: settings -> cache and limiters -> fetchers -> aggregator."""

from dataclasses import dataclass
from typing import Optional

import structlog

from .aggregator import Aggregator, RefreshResult
from .cache import CacheInterface, create_cache
from .config.feeds import create_fetchers, resolve_feeds
from .config.settings import Settings, settings as default_settings
from .ingestion.interfaces import FetcherConfig
from .ratelimit import RateLimiter, RateLimiterInterface
from .tagging import Tagger

logger = structlog.get_logger()

REFRESH_LIMIT_KEY = "refresh"


@dataclass
class FeedEngine:
    """A wired aggregator plus the resources it owns."""
    aggregator: Aggregator
    cache: CacheInterface
    fetch_limiter: RateLimiter
    refresh_limiter: RateLimiterInterface

    async def request_refresh(self) -> Optional[RefreshResult]:
        """Refresh unless one was requested within the refresh rate limit.

        Returns None when throttled. Meant for user-triggered refreshes;
        scheduled refreshes call aggregator.refresh() directly.
        """
        if not await self.refresh_limiter.acquire(REFRESH_LIMIT_KEY):
            logger.info("refresh_throttled")
            return None
        return await self.aggregator.refresh()

    async def close(self) -> None:
        await self.cache.close()


async def build_engine(config: Settings = None, feeds_path: str = None) -> FeedEngine:
    """Assemble the engine from settings. Must run inside an event loop."""
    config = config or default_settings

    cache, refresh_limiter = await create_cache(config)
    fetch_limiter = RateLimiter(config.rate_limit_seconds)
    fetcher_config = FetcherConfig(
        timeout_seconds=config.fetch_timeout_seconds,
        max_items=config.fetch_max_items,
        user_agent=config.user_agent,
    )
    fetchers = create_fetchers(resolve_feeds(feeds_path), fetch_limiter, fetcher_config)

    aggregator = Aggregator(
        fetchers,
        cache,
        tagger=Tagger(),
        refresh_timeout=config.refresh_timeout_seconds,
        snapshot_ttl_seconds=config.snapshot_ttl_hours * 3600,
    )
    logger.info(
        "engine_built",
        sources=len(fetchers),
        cache=type(cache).__name__,
        refresh_limiter=type(refresh_limiter).__name__,
    )
    return FeedEngine(
        aggregator=aggregator,
        cache=cache,
        fetch_limiter=fetch_limiter,
        refresh_limiter=refresh_limiter,
    )
