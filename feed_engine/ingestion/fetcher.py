"""RSS/Atom feed fetcher with async download and per-host rate limiting."""

import asyncio
import calendar
import time
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlsplit

import aiohttp
import feedparser
import structlog

from .interfaces import (
    FeedItem, FetcherConfig, FetcherInterface, SourceInfo, generate_id, utcnow
)
from ..errors import FetchError
from ..ratelimit import RateLimiterInterface

logger = structlog.get_logger()


def slugify_name(name: str) -> str:
    return name.strip().lower().replace(" ", "-")


class HTTPFetcherMixin:
    """Shared aiohttp download for fetchers that pull one URL per call."""

    config: FetcherConfig
    session: Optional[aiohttp.ClientSession]

    async def _download(self, url: str, headers: Optional[dict] = None) -> str:
        request_headers = {"User-Agent": self.config.user_agent}
        if headers:
            request_headers.update(headers)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        if self.session is not None:
            async with self.session.get(url, headers=request_headers, timeout=timeout) as response:
                return await self._read(response, url)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=request_headers) as response:
                return await self._read(response, url)

    async def _read(self, response: aiohttp.ClientResponse, url: str) -> str:
        if response.status >= 400:
            raise FetchError(self.name, f"{url} returned status {response.status}")
        return await response.text()


class RSSFetcher(HTTPFetcherMixin, FetcherInterface):
    """Fetches one syndication feed and normalizes its entries."""

    def __init__(
        self,
        name: str,
        url: str,
        limiter: RateLimiterInterface,
        config: FetcherConfig = None,
        session: aiohttp.ClientSession = None,
        enabled: bool = True,
    ):
        self._name = name
        self.enabled = enabled
        self.url = url
        self.limiter = limiter
        self.config = config or FetcherConfig()
        self.session = session
        self.host = urlsplit(url).netloc.lower() or url

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_info(self) -> SourceInfo:
        return SourceInfo(
            id=slugify_name(self._name),
            name=self._name,
            url=self.url,
            source_type="news",
            feed_type="rss",
            description=f"RSS feed from {self._name}",
            enabled=self.enabled,
        )

    async def fetch(self) -> List[FeedItem]:
        """Fetch and parse the feed. Raises FetchError on any failure."""
        await self.limiter.wait(self.host)
        start_time = time.time()

        try:
            body = await self._download(self.url)
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise FetchError(self.name, f"failed to fetch {self.url}: {e!r}") from e

        items = self.parse(body)

        logger.info(
            "feed_fetched",
            feed=self.name,
            items=len(items),
            time_ms=int((time.time() - start_time) * 1000),
        )
        return items

    def parse(self, body: str) -> List[FeedItem]:
        """Parse a feed document into items, all or nothing."""
        feed = feedparser.parse(body)
        if feed.bozo and not feed.entries:
            raise FetchError(
                self.name,
                f"failed to parse RSS feed {self.url}: {feed.get('bozo_exception')}",
            )

        fetched_at = utcnow()
        items = []
        try:
            for entry in feed.entries[: self.config.max_items]:
                item = self._parse_entry(entry, fetched_at)
                if item:
                    items.append(item)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise FetchError(self.name, f"malformed entry in {self.url}: {e}") from e

        return items

    def _parse_entry(self, entry, fetched_at: datetime) -> Optional[FeedItem]:
        """Parse a feed entry into a FeedItem."""
        url = entry.get("link")
        if not url:
            return None

        summary = entry.get("summary", "") or ""

        content = ""
        if entry.get("content"):
            content = entry.content[0].get("value", "") or ""

        published_at = None
        for attr in ["published_parsed", "updated_parsed"]:
            parsed = entry.get(attr)
            if parsed:
                try:
                    # feedparser normalizes *_parsed to UTC
                    published_at = datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
                    break
                except (TypeError, ValueError, OverflowError):
                    pass

        tags = []
        for tag in entry.get("tags") or []:
            term = (tag.get("term") or "").strip()
            if term and term.lower() not in {t.lower() for t in tags}:
                tags.append(term)

        source_id = slugify_name(self._name)
        return FeedItem(
            id=generate_id(source_id, url),
            title=(entry.get("title", "") or "").strip(),
            url=url,
            source_id=source_id,
            source_name=self._name,
            source_type="rss",
            author=entry.get("author", "") or "",
            summary=summary,
            content=content,
            published_at=published_at or fetched_at,
            fetched_at=fetched_at,
            thumbnail=self._thumbnail(entry),
            tags=tags,
        )

    @staticmethod
    def _thumbnail(entry) -> str:
        for key in ("media_thumbnail", "media_content"):
            media = entry.get(key)
            if media and media[0].get("url"):
                return media[0]["url"]
        for enclosure in entry.get("enclosures") or []:
            if (enclosure.get("type") or "").startswith("image/") and enclosure.get("href"):
                return enclosure["href"]
        image = entry.get("image")
        if isinstance(image, dict) and image.get("href"):
            return image["href"]
        return ""
