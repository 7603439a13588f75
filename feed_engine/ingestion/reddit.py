"""Reddit community fetcher using the public JSON listing API."""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import List

import aiohttp
import structlog

from .fetcher import HTTPFetcherMixin
from .interfaces import (
    Engagement, FeedItem, FetcherConfig, FetcherInterface, SourceInfo, generate_id, utcnow
)
from ..errors import FetchError
from ..ratelimit import RateLimiterInterface

logger = structlog.get_logger()

REDDIT_HOST = "reddit.com"
REDDIT_BASE_URL = "https://www.reddit.com"
SUMMARY_MAX_CHARS = 300

# Placeholder values reddit uses instead of a thumbnail URL
_NO_THUMBNAIL = {"", "self", "default", "nsfw", "spoiler", "image"}


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


class RedditFetcher(HTTPFetcherMixin, FetcherInterface):
    """Fetches the hot listing of one subreddit."""

    def __init__(
        self,
        subreddit: str,
        limiter: RateLimiterInterface,
        config: FetcherConfig = None,
        session: aiohttp.ClientSession = None,
        enabled: bool = True,
    ):
        self.subreddit = subreddit
        self.enabled = enabled
        self.limiter = limiter
        self.config = config or FetcherConfig()
        self.session = session

    @property
    def name(self) -> str:
        return f"r/{self.subreddit}"

    @property
    def listing_url(self) -> str:
        return f"{REDDIT_BASE_URL}/r/{self.subreddit}/hot.json?limit={self.config.max_items}"

    @property
    def source_info(self) -> SourceInfo:
        return SourceInfo(
            id=f"r-{self.subreddit.lower()}",
            name=self.name,
            url=f"{REDDIT_BASE_URL}/r/{self.subreddit}",
            source_type="community",
            feed_type="reddit",
            description=f"Reddit community r/{self.subreddit}",
            enabled=self.enabled,
        )

    async def fetch(self) -> List[FeedItem]:
        await self.limiter.wait(REDDIT_HOST)
        start_time = time.time()

        try:
            body = await self._download(self.listing_url, headers={"Accept": "application/json"})
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise FetchError(self.name, f"failed to fetch reddit posts: {e!r}") from e

        items = self.parse(body)

        logger.info(
            "subreddit_fetched",
            subreddit=self.subreddit,
            items=len(items),
            time_ms=int((time.time() - start_time) * 1000),
        )
        return items

    def parse(self, body: str) -> List[FeedItem]:
        """Parse a listing response, all or nothing."""
        try:
            data = json.loads(body)
            children = data["data"]["children"]
        except (ValueError, KeyError, TypeError) as e:
            raise FetchError(self.name, f"failed to decode reddit response: {e}") from e

        fetched_at = utcnow()
        items = []
        try:
            for child in children[: self.config.max_items]:
                items.append(self._parse_post(child["data"], fetched_at))
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise FetchError(self.name, f"malformed reddit post: {e}") from e

        return items

    def _parse_post(self, post: dict, fetched_at: datetime) -> FeedItem:
        url = REDDIT_BASE_URL + post["permalink"]
        selftext = post.get("selftext") or ""

        thumbnail = post.get("thumbnail") or ""
        if thumbnail in _NO_THUMBNAIL:
            thumbnail = ""

        tags = []
        flair = (post.get("link_flair_text") or "").strip()
        if flair:
            tags.append(flair)

        created = post.get("created_utc")
        published_at = (
            datetime.fromtimestamp(float(created), tz=timezone.utc) if created is not None else fetched_at
        )

        source_id = self.source_info.id
        return FeedItem(
            id=generate_id(source_id, url),
            title=(post.get("title") or "").strip(),
            url=url,
            source_id=source_id,
            source_name=self.name,
            source_type="reddit",
            author=post.get("author") or "",
            summary=truncate(selftext, SUMMARY_MAX_CHARS),
            content=selftext,
            published_at=published_at,
            fetched_at=fetched_at,
            thumbnail=thumbnail,
            tags=tags,
            engagement=Engagement(
                upvotes=int(post.get("score") or 0),
                comments=int(post.get("num_comments") or 0),
            ),
        )
