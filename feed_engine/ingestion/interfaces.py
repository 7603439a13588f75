"""Interface definitions for data ingestion."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from ..config.settings import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_url(url: str) -> str:
    """Normalize a URL so reposts of the same link compare equal.

    Lowercases scheme and host, drops the fragment and utm_* tracking
    parameters, and strips a trailing slash from the path.
    """
    url = (url or "").strip()
    if not url:
        return ""

    parts = urlsplit(url)
    query = urlencode([
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not k.lower().startswith("utm_")
    ])
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, query, ""))


def generate_id(source_id: str, url: str) -> str:
    """Stable item id derived from the source and its canonical URL."""
    digest = hashlib.sha256(f"{source_id}{canonical_url(url)}".encode()).hexdigest()
    return digest[:16]


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Engagement:
    """Community engagement counters."""
    upvotes: int = 0
    comments: int = 0


@dataclass
class FeedItem:
    """A normalized content item fetched from a source."""
    id: str = ""
    title: str = ""
    url: str = ""
    source_id: str = ""
    source_name: str = ""
    source_type: str = ""  # "rss" or "reddit"
    author: str = ""
    summary: str = ""
    content: str = ""
    published_at: Optional[datetime] = None
    fetched_at: datetime = field(default_factory=utcnow)
    thumbnail: str = ""
    tags: List[str] = field(default_factory=list)
    engagement: Optional[Engagement] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "source_type": self.source_type,
            "author": self.author,
            "summary": self.summary,
            "content": self.content,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "thumbnail": self.thumbnail,
            "tags": list(self.tags),
            "engagement": (
                {"upvotes": self.engagement.upvotes, "comments": self.engagement.comments}
                if self.engagement else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FeedItem":
        """Rebuild an item from the output of to_dict()."""
        engagement = data.get("engagement")
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            url=data.get("url", ""),
            source_id=data.get("source_id", ""),
            source_name=data.get("source_name", ""),
            source_type=data.get("source_type", ""),
            author=data.get("author", ""),
            summary=data.get("summary", ""),
            content=data.get("content", ""),
            published_at=parse_timestamp(data.get("published_at")),
            fetched_at=parse_timestamp(data.get("fetched_at")) or utcnow(),
            thumbnail=data.get("thumbnail", ""),
            tags=list(data.get("tags") or []),
            engagement=Engagement(
                upvotes=int(engagement.get("upvotes", 0)),
                comments=int(engagement.get("comments", 0)),
            ) if engagement else None,
        )


@dataclass(frozen=True)
class SourceInfo:
    """Static descriptor of a configured source."""
    id: str
    name: str
    url: str
    source_type: str  # "news" or "community"
    feed_type: str  # "rss" or "reddit"
    description: str = ""
    enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "source_type": self.source_type,
            "feed_type": self.feed_type,
            "description": self.description,
            "enabled": self.enabled,
        }


@dataclass
class FetcherConfig:
    """Per-fetcher network settings."""
    timeout_seconds: float = field(default_factory=lambda: settings.fetch_timeout_seconds)
    max_items: int = field(default_factory=lambda: settings.fetch_max_items)
    user_agent: str = field(default_factory=lambda: settings.user_agent)


class FetcherInterface:
    """Interface for a single-source fetcher.

    fetch() returns every normalized item of one call, or raises FetchError.
    It never returns a partial batch alongside a failure.
    """

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def source_info(self) -> SourceInfo:
        raise NotImplementedError

    async def fetch(self) -> List[FeedItem]:
        """Fetch and normalize items from the source."""
        raise NotImplementedError


@dataclass
class FeedSource:
    """One entry of the feeds configuration file."""
    name: str
    url: str
    type: str  # "rss" or "reddit"
    category: str = "news"  # "news" or "community"
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "FeedSource":
        return cls(
            name=data["name"],
            url=data["url"],
            type=(data.get("type") or "rss").lower(),
            category=(data.get("category") or "news").lower(),
            enabled=data.get("enabled", True),
        )
