"""Worker that refreshes the feed snapshot on a schedule.

Runs an initial refresh on startup, then one every
FEED_REFRESH_INTERVAL_MINUTES. A failed refresh is retried by the next
scheduled run only.

Usage:
    python scripts/worker.py

Environment Variables:
    FEED_CACHE_BACKEND: memory or redis
    FEED_REDIS_URL: Redis connection URL when using the redis backend
    FEED_REFRESH_INTERVAL_MINUTES: Minutes between refreshes
    FEEDS_CONFIG_PATH: Optional path to feeds.json
"""

import asyncio
import os
import signal
import sys
from datetime import datetime

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feed_engine.config.settings import settings
from feed_engine.engine import FeedEngine, build_engine
from feed_engine.errors import AggregationError, CacheWriteError
from feed_engine.logging_config import configure_logging

logger = structlog.get_logger()


class RefreshWorker:
    """Schedules periodic refreshes of one engine."""

    def __init__(self, engine: FeedEngine, interval_minutes: int = None):
        self.engine = engine
        self.interval_minutes = interval_minutes or settings.refresh_interval_minutes
        self.scheduler = AsyncIOScheduler()
        self.stopped = asyncio.Event()

    def setup_jobs(self):
        """Configure scheduled jobs."""
        self.scheduler.add_job(
            self.refresh_feeds,
            IntervalTrigger(minutes=self.interval_minutes),
            id="refresh_feeds",
            name="Refresh feed snapshot",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        logger.info("jobs_configured", count=len(self.scheduler.get_jobs()),
                    interval_minutes=self.interval_minutes)

    async def refresh_feeds(self):
        """Refresh all sources once."""
        logger.info("job_started", job="refresh_feeds")
        start_time = datetime.now()

        try:
            result = await self.engine.aggregator.refresh()
        except (AggregationError, CacheWriteError) as e:
            logger.error("job_failed", job="refresh_feeds", error=str(e))
            return {"error": str(e)}

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info("job_completed", job="refresh_feeds",
                    items=result.item_count,
                    sources=result.source_count,
                    failed_sources=len(result.failures),
                    elapsed_seconds=elapsed)
        return result.to_dict()

    def start(self):
        self.setup_jobs()
        self.scheduler.start()
        logger.info("worker_started", jobs=len(self.scheduler.get_jobs()))

    def stop(self):
        """Stop the worker gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.stopped.set()
        logger.info("worker_stopped")


async def main():
    """Main entry point."""
    configure_logging(settings.log_level, settings.log_json)
    engine = await build_engine()
    worker = RefreshWorker(engine)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    worker.start()

    # Run immediately on startup
    logger.info("running_initial_refresh")
    await worker.refresh_feeds()

    try:
        await worker.stopped.wait()
    finally:
        await engine.close()


if __name__ == "__main__":
    asyncio.run(main())
