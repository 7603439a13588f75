"""Concurrent multi-source aggregation with a cached, queryable snapshot."""

import asyncio
import re
import time
import unicodedata
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import structlog

from .interfaces import (
    AggregatedResponse, AggregatorSnapshot, AggregatorState, FilterParams,
    RefreshResult, SortKey, parse_date_filter,
)
from ..cache.interfaces import CacheInterface
from ..config.settings import settings
from ..errors import AggregationError, CacheWriteError
from ..ingestion.interfaces import (
    FeedItem, FetcherInterface, SourceInfo, canonical_url, parse_timestamp, utcnow
)
from ..tagging import Tagger

logger = structlog.get_logger()

SNAPSHOT_CACHE_KEY = "all_items"

# UI groupings for the source type filter
SOURCE_TYPE_GROUPS = {
    "community": {"reddit", "forum"},
    "news": {"rss"},
}

_MIN_DATETIME = datetime.min.replace(tzinfo=timezone.utc)
_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)


def normalize_title(title: str) -> str:
    """Case- and punctuation-insensitive title key for repost detection."""
    text = unicodedata.normalize("NFKC", title or "").lower()
    return _NON_WORD.sub(" ", text).strip()


def merge_tags(existing: Iterable[str], extra: Iterable[str]) -> List[str]:
    """Union two tag lists, dropping case-insensitive duplicates, first spelling wins."""
    seen = set()
    result = []
    for tag in list(existing or []) + list(extra or []):
        lower = tag.lower()
        if lower not in seen:
            seen.add(lower)
            result.append(tag)
    return result


def deduplicate(items: List[FeedItem]) -> List[FeedItem]:
    """Drop duplicates, keeping the first occurrence in fetch order.

    An item is a duplicate of an earlier kept item when it shares its id,
    its canonical URL (a repost of the same link by another source) or its
    normalized title. The survivor absorbs the duplicate's tags.
    """
    kept: List[FeedItem] = []
    index: Dict[tuple, int] = {}

    for item in items:
        keys = [
            ("id", item.id),
            ("url", canonical_url(item.url)),
            ("title", normalize_title(item.title)),
        ]
        keys = [k for k in keys if k[1]]

        match = next((index[k] for k in keys if k in index), None)
        if match is not None:
            kept[match] = replace(kept[match], tags=merge_tags(kept[match].tags, item.tags))
            continue

        position = len(kept)
        kept.append(replace(item, tags=merge_tags([], item.tags)))
        for k in keys:
            index[k] = position

    return kept


def sort_items(items: List[FeedItem], sort: str) -> List[FeedItem]:
    """Stable sort: newest first, or by upvotes with missing engagement as 0."""
    if SortKey.parse(sort) is SortKey.SCORE:
        return sorted(
            items,
            key=lambda i: i.engagement.upvotes if i.engagement else 0,
            reverse=True,
        )
    return sorted(items, key=lambda i: parse_timestamp(i.published_at) or _MIN_DATETIME, reverse=True)


def resolve_limit(limit: Optional[int]) -> int:
    """Clamp a requested page size. None or negative means the default."""
    if limit is None or limit < 0:
        return settings.default_page_limit
    return min(limit, settings.max_page_limit)


def paginate(items: List[FeedItem], limit: Optional[int], offset: int) -> List[FeedItem]:
    offset = max(0, offset or 0)
    if offset >= len(items):
        return []
    return items[offset: offset + resolve_limit(limit)]


def has_tag(item: FeedItem, target: str) -> bool:
    target = target.lower()
    return any(tag.lower() == target for tag in item.tags)


class Aggregator:
    """Owns the fetchers, refreshes them concurrently and serves reads.

    refresh() writes a complete new snapshot to the cache or leaves the
    previous one untouched; get_items() only reads the cache.
    """

    def __init__(
        self,
        fetchers: List[FetcherInterface],
        cache: CacheInterface,
        tagger: Tagger = None,
        refresh_timeout: float = None,
        snapshot_ttl_seconds: float = None,
    ):
        self.fetchers = list(fetchers)
        self.cache = cache
        self.tagger = tagger or Tagger()
        self.refresh_timeout = (
            settings.refresh_timeout_seconds if refresh_timeout is None else refresh_timeout
        )
        self.snapshot_ttl = (
            settings.snapshot_ttl_hours * 3600 if snapshot_ttl_seconds is None else snapshot_ttl_seconds
        )
        self.state = AggregatorState.IDLE
        self._refresh_lock = asyncio.Lock()

    async def refresh(self, timeout: float = None) -> RefreshResult:
        """Run one fetch-merge-cache cycle.

        Concurrent calls are serialized. Raises AggregationError when no
        source succeeds, and CacheWriteError when the snapshot cannot be
        stored. Either way the previous snapshot stays in place.
        """
        async with self._refresh_lock:
            return await self._refresh(self.refresh_timeout if timeout is None else timeout)

    async def _refresh(self, timeout: float) -> RefreshResult:
        start = time.time()
        fetchers = [f for f in self.fetchers if f.source_info.enabled]

        self.state = AggregatorState.FETCHING
        logger.info("refresh_started", sources=len(fetchers), timeout_seconds=timeout)

        tasks = [
            asyncio.create_task(f.fetch(), name=f"fetch:{f.name}") for f in fetchers
        ]
        cancelled = False
        try:
            if tasks:
                await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            cancelled = True
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

        batches: List[List[FeedItem]] = []
        succeeded: List[str] = []
        failures: Dict[str, str] = {}

        # Fetcher order, not completion order, decides dedup tie-breaks
        for fetcher, task in zip(fetchers, tasks):
            if task.cancelled():
                reason = "cancelled" if cancelled else f"timed out after {timeout}s"
                failures[fetcher.name] = reason
                logger.warning("source_fetch_failed", source=fetcher.name, error=reason)
                continue

            error = task.exception()
            if error is not None:
                failures[fetcher.name] = str(error) or type(error).__name__
                logger.warning("source_fetch_failed", source=fetcher.name, error=str(error))
                continue

            items = task.result()
            logger.info("source_fetched", source=fetcher.name, count=len(items))
            batches.append(items)
            succeeded.append(fetcher.name)

        if not succeeded:
            self.state = AggregatorState.IDLE
            logger.error("refresh_failed", failures=failures)
            if cancelled:
                raise asyncio.CancelledError()
            raise AggregationError(failures)

        self.state = AggregatorState.MERGING
        merged = [item for batch in batches for item in batch]
        items = self._tag(deduplicate(merged))

        snapshot = AggregatorSnapshot(
            items=items,
            fetched_at=utcnow(),
            source_count=len(succeeded),
        )
        try:
            await self.cache.set_with_ttl(SNAPSHOT_CACHE_KEY, snapshot, self.snapshot_ttl)
        except CacheWriteError as e:
            # Previous snapshot stays live
            self.state = AggregatorState.IDLE
            logger.error("snapshot_write_failed", items=len(items), error=str(e))
            raise
        self.state = AggregatorState.CACHED

        logger.info(
            "aggregation_complete",
            total_items=len(items),
            duplicates_dropped=len(merged) - len(items),
            sources_used=len(succeeded),
            sources_failed=len(failures),
            elapsed_seconds=round(time.time() - start, 2),
        )

        if cancelled:
            raise asyncio.CancelledError()

        return RefreshResult(
            fetched_at=snapshot.fetched_at,
            item_count=len(items),
            sources_succeeded=succeeded,
            failures=failures,
        )

    def _tag(self, items: List[FeedItem]) -> List[FeedItem]:
        tagged = []
        for item in items:
            inferred = self.tagger.infer_tags(item.title, item.content or item.summary)
            tagged.append(replace(item, tags=merge_tags(item.tags, inferred)))
        return tagged

    async def get_snapshot(self) -> Optional[AggregatorSnapshot]:
        """Current snapshot, or None before the first successful refresh."""
        value, found = await self.cache.get(SNAPSHOT_CACHE_KEY)
        if not found or value is None:
            return None
        try:
            return AggregatorSnapshot.from_cached(value)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("snapshot_undecodable", error=str(e))
            return None

    async def get_items(self, params: FilterParams = None) -> AggregatedResponse:
        """Filter, sort and paginate the cached snapshot."""
        params = params or FilterParams()
        snapshot = await self.get_snapshot()
        if snapshot is None:
            return AggregatedResponse(items=[], total_count=0, fetched_at=None, source_count=0)

        filtered = sort_items(self.filter_items(snapshot.items, params), params.sort)

        return AggregatedResponse(
            items=paginate(filtered, params.limit, params.offset),
            total_count=len(filtered),
            fetched_at=snapshot.fetched_at,
            source_count=snapshot.source_count,
        )

    def get_sources(self) -> List[SourceInfo]:
        return [f.source_info for f in self.fetchers]

    def _resolve_sources(self, source_ids: Iterable[str]) -> set:
        """Map requested source ids to the ids and names items may carry."""
        by_id = {f.source_info.id.lower(): f.source_info for f in self.fetchers}
        wanted = set()
        for source_id in source_ids:
            key = source_id.strip().lower()
            if not key:
                continue
            wanted.add(key)
            info = by_id.get(key)
            if info:
                wanted.add(info.name.lower())
        return wanted

    def filter_items(self, items: List[FeedItem], params: FilterParams) -> List[FeedItem]:
        """Apply source, source type, tag, query and date filters in that order."""
        sources = self._resolve_sources(params.sources or [])

        source_type = (params.source_type or "").strip().lower()
        allowed_types = SOURCE_TYPE_GROUPS.get(source_type, {source_type})

        tag = (params.tag or "").strip()
        query = (params.query or "").strip().lower()
        from_time = parse_date_filter(params.from_date)
        to_time = parse_date_filter(params.to_date, end_of_day=True)

        filtered = []
        for item in items:
            if sources and item.source_id.lower() not in sources \
                    and item.source_name.lower() not in sources:
                continue

            if source_type and item.source_type.lower() not in allowed_types:
                continue

            if tag and not has_tag(item, tag):
                continue

            if query and query not in item.title.lower() and query not in item.summary.lower():
                continue

            if from_time or to_time:
                published = item.published_at
                if published is None:
                    continue
                if published.tzinfo is None:
                    published = published.replace(tzinfo=timezone.utc)
                if from_time and published < from_time:
                    continue
                if to_time and published > to_time:
                    continue

            filtered.append(item)

        return filtered
