"""Pytest configuration and shared fixtures."""

import asyncio
import json
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from feed_engine.cache.memory import MemoryCache
from feed_engine.ingestion.interfaces import (
    Engagement, FeedItem, FetcherInterface, SourceInfo, generate_id
)

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher(FetcherInterface):
    """In-memory fetcher returning canned items or raising a canned error."""

    def __init__(self, name, items=None, error=None, delay=0.0, feed_type="rss", enabled=True):
        self._name = name
        self.items = items or []
        self.error = error
        self.delay = delay
        self.feed_type = feed_type
        self.enabled = enabled
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self):
        return self._name

    @property
    def source_info(self):
        return SourceInfo(
            id=self._name.lower().replace(" ", "-").replace("/", "-"),
            name=self._name,
            url=f"https://{self._name.lower().replace(' ', '')}.example.com/feed",
            source_type="community" if self.feed_type == "reddit" else "news",
            feed_type=self.feed_type,
            enabled=self.enabled,
        )

    async def fetch(self):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return [replace(item, tags=list(item.tags)) for item in self.items]
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_item():
    """Factory for FeedItems with stable ids."""
    def _make(
        source="DroneDJ",
        url="https://example.com/a",
        title="Untitled",
        hours_ago=0,
        tags=None,
        upvotes=None,
        summary="",
        content="",
        source_type="rss",
    ):
        source_id = source.lower().replace(" ", "-").replace("/", "-")
        return FeedItem(
            id=generate_id(source_id, url),
            title=title,
            url=url,
            source_id=source_id,
            source_name=source,
            source_type=source_type,
            summary=summary,
            content=content,
            published_at=BASE_TIME - timedelta(hours=hours_ago),
            fetched_at=BASE_TIME,
            tags=list(tags or []),
            engagement=Engagement(upvotes=upvotes, comments=0) if upvotes is not None else None,
        )
    return _make


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    """A MemoryCache on a manual clock, without the background sweep."""
    return MemoryCache(ttl_seconds=300, sweep_interval_seconds=60, clock=clock)


@pytest.fixture
def sample_rss():
    return """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>DroneDJ</title>
    <link>https://dronedj.com</link>
    <description>Drone news</description>
    <item>
      <title>DJI Mavic 4 Pro announced</title>
      <link>https://dronedj.com/2024/05/01/mavic-4/</link>
      <description>The new Mavic is here with a bigger camera.</description>
      <category>DJI</category>
      <category>News</category>
      <pubDate>Wed, 01 May 2024 12:00:00 +0000</pubDate>
      <media:thumbnail url="https://dronedj.com/img/mavic.jpg"/>
    </item>
    <item>
      <title>FAA updates Remote ID guidance</title>
      <link>https://dronedj.com/2024/05/02/remote-id/</link>
      <description>New guidance for operators.</description>
      <pubDate>Thu, 02 May 2024 08:30:00 +0000</pubDate>
    </item>
    <item>
      <title>Entry without a link</title>
      <description>Should be skipped.</description>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def sample_reddit_listing():
    posts = [
        {
            "id": "abc123",
            "title": "My first 5 inch freestyle build",
            "selftext": "Finally finished my build. " + "x" * 400,
            "author": "pilot1",
            "url": "https://i.redd.it/build.jpg",
            "permalink": "/r/fpv/comments/abc123/my_first_build/",
            "created_utc": 1714564800.0,
            "score": 250,
            "num_comments": 42,
            "thumbnail": "https://b.thumbs.redditmedia.com/build.jpg",
            "link_flair_text": "Build",
        },
        {
            "id": "def456",
            "title": "Goggles question",
            "selftext": "",
            "author": "pilot2",
            "url": "https://www.reddit.com/r/fpv/comments/def456/",
            "permalink": "/r/fpv/comments/def456/goggles_question/",
            "created_utc": 1714568400.0,
            "score": 3,
            "num_comments": 1,
            "thumbnail": "self",
            "link_flair_text": None,
        },
    ]
    return json.dumps({"data": {"children": [{"kind": "t3", "data": p} for p in posts]}})
