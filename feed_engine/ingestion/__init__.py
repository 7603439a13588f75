"""Data ingestion - fetching and normalizing source feeds."""

from .interfaces import (
    Engagement, FeedItem, FeedSource, SourceInfo, FetcherConfig, FetcherInterface,
    canonical_url, generate_id,
)
from .fetcher import RSSFetcher
from .reddit import RedditFetcher

__all__ = [
    "Engagement", "FeedItem", "FeedSource", "SourceInfo", "FetcherConfig", "FetcherInterface",
    "canonical_url", "generate_id", "RSSFetcher", "RedditFetcher",
]
