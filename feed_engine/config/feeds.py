"""Feed configuration loader."""

import json
import os
import re
from pathlib import Path
from typing import List, Optional

import structlog

from ..errors import ConfigError
from ..ingestion.interfaces import FeedSource, FetcherConfig, FetcherInterface
from ..ingestion.fetcher import RSSFetcher
from ..ingestion.reddit import RedditFetcher
from ..ratelimit import RateLimiterInterface
from .settings import settings

logger = structlog.get_logger()

# Searched in order when no explicit path is configured
CONFIG_LOCATIONS = [
    "feeds.json",
    "../feeds.json",
    "/app/feeds.json",
    "config/feeds.json",
]

DEFAULT_SOURCES = [
    # News
    {"name": "DroneDJ", "url": "https://dronedj.com/feed/", "type": "rss", "category": "news"},
    {"name": "DroneLife", "url": "https://dronelife.com/feed/", "type": "rss", "category": "news"},
    {"name": "sUAS News", "url": "https://www.suasnews.com/feed/", "type": "rss", "category": "news"},
    # Community
    {"name": "r/fpv", "url": "https://www.reddit.com/r/fpv/.rss", "type": "reddit", "category": "community"},
    {"name": "r/Multicopter", "url": "https://www.reddit.com/r/Multicopter/.rss", "type": "reddit", "category": "community"},
    {"name": "r/drones", "url": "https://www.reddit.com/r/drones/.rss", "type": "reddit", "category": "community"},
]

_SUBREDDIT_PATTERN = re.compile(r"/r/([^/.\s]+)")


def find_feeds_config(config_path: str = None) -> Optional[Path]:
    """Return the first existing feeds.json, or None."""
    candidates = []
    if config_path:
        candidates.append(config_path)
    if settings.feeds_config_path:
        candidates.append(str(settings.feeds_config_path))
    env_path = os.environ.get("FEEDS_CONFIG_PATH")
    if env_path:
        candidates.append(env_path)
    candidates.extend(CONFIG_LOCATIONS)
    candidates.append(str(settings.base_dir / "config" / "feeds.json"))

    for candidate in candidates:
        path = Path(candidate)
        if path.is_file():
            return path.resolve()
    return None


def load_feeds(config_path: str) -> List[FeedSource]:
    """Load feed sources from a JSON file with a top-level "sources" list."""
    try:
        with open(config_path) as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"failed to read feeds config {config_path}: {e}") from e

    try:
        return [FeedSource.from_dict(entry) for entry in data.get("sources", [])]
    except (AttributeError, KeyError, TypeError) as e:
        raise ConfigError(f"invalid feeds config {config_path}: {e}") from e


def default_feeds() -> List[FeedSource]:
    return [FeedSource.from_dict(entry) for entry in DEFAULT_SOURCES]


def resolve_feeds(config_path: str = None) -> List[FeedSource]:
    """Load the configured feeds, falling back to the built-in defaults."""
    path = find_feeds_config(config_path)
    if path is None:
        logger.info("no_feeds_config_found_using_defaults")
        return default_feeds()

    try:
        feeds = load_feeds(str(path))
    except ConfigError as e:
        logger.warning("feeds_config_invalid_using_defaults", path=str(path), error=str(e))
        return default_feeds()

    logger.info("feeds_config_loaded", path=str(path), sources=len(feeds))
    return feeds


def extract_subreddit(url: str, fallback_name: str) -> str:
    """Subreddit from a /r/<name> URL, else from an "r/<name>" display name."""
    match = _SUBREDDIT_PATTERN.search(url or "")
    if match:
        return match.group(1)
    if fallback_name.startswith("r/"):
        return fallback_name[2:]
    return fallback_name


def create_fetchers(
    feeds: List[FeedSource],
    limiter: RateLimiterInterface,
    fetcher_config: FetcherConfig = None,
) -> List[FetcherInterface]:
    """Build fetchers for enabled feeds, skipping unknown types."""
    fetcher_config = fetcher_config or FetcherConfig()
    fetchers: List[FetcherInterface] = []

    for feed in feeds:
        if not feed.enabled:
            continue

        if feed.type in ("rss", "news"):
            fetchers.append(RSSFetcher(feed.name, feed.url, limiter, fetcher_config))
        elif feed.type == "reddit":
            subreddit = extract_subreddit(feed.url, feed.name)
            fetchers.append(RedditFetcher(subreddit, limiter, fetcher_config))
        else:
            logger.warning("unknown_feed_type_skipped", feed=feed.name, type=feed.type)

    return fetchers
