"""Interface definitions for aggregation queries and results."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from ..ingestion.interfaces import FeedItem, parse_timestamp

DateFilter = Union[str, date, datetime, None]

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


class AggregatorState(Enum):
    """Phases of one refresh cycle."""
    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    CACHED = "cached"


class SortKey(Enum):
    NEWEST = "newest"
    SCORE = "score"

    @classmethod
    def parse(cls, value) -> "SortKey":
        """Unknown or empty sort keys fall back to NEWEST."""
        if isinstance(value, cls):
            return value
        value = (value or "").strip().lower()
        if value in ("score", "top"):
            return cls.SCORE
        return cls.NEWEST


def parse_date_filter(value: DateFilter, end_of_day: bool = False) -> Optional[datetime]:
    """Parse a date bound into an aware UTC datetime.

    Accepts datetimes, dates, and strings in YYYY-MM-DD, MM/DD/YYYY or
    ISO-8601 form. Date-only values cover the whole day when end_of_day is
    set. Unparseable values return None so the bound is ignored.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    day = None
    if isinstance(value, date):
        day = value
    else:
        text = str(value).strip()
        if not text:
            return None
        for fmt in DATE_FORMATS:
            try:
                day = datetime.strptime(text, fmt).date()
                break
            except ValueError:
                continue
        if day is None:
            try:
                return parse_timestamp(text)
            except ValueError:
                return None

    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    if end_of_day:
        return start + timedelta(days=1) - timedelta(microseconds=1)
    return start


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class FilterParams:
    """A read query against the aggregated snapshot."""
    limit: Optional[int] = None
    offset: int = 0
    sources: List[str] = field(default_factory=list)  # Source ids
    source_type: str = ""
    query: str = ""
    sort: str = "newest"
    from_date: DateFilter = None
    to_date: DateFilter = None
    tag: str = ""

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "FilterParams":
        """Build params from wire-level string values, ignoring junk."""
        sources = query.get("sources") or ""
        if isinstance(sources, str):
            sources = [s.strip() for s in sources.split(",")]
        return cls(
            limit=_to_int(query.get("limit")),
            offset=_to_int(query.get("offset")) or 0,
            sources=[s for s in sources if s],
            source_type=(query.get("sourceType") or query.get("source_type") or "").strip(),
            query=(query.get("q") or query.get("query") or "").strip(),
            sort=(query.get("sort") or "newest").strip(),
            from_date=query.get("fromDate") or query.get("from_date"),
            to_date=query.get("toDate") or query.get("to_date"),
            tag=(query.get("tag") or "").strip(),
        )


@dataclass
class AggregatorSnapshot:
    """The merged item set written by the most recent refresh."""
    items: List[FeedItem]
    fetched_at: datetime
    source_count: int

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "fetched_at": self.fetched_at.isoformat(),
            "source_count": self.source_count,
        }

    @classmethod
    def from_cached(cls, value) -> "AggregatorSnapshot":
        """Accept either a stored snapshot or its JSON form from a remote cache."""
        if isinstance(value, cls):
            return value
        return cls(
            items=[FeedItem.from_dict(item) for item in value["items"]],
            fetched_at=parse_timestamp(value["fetched_at"]),
            source_count=int(value.get("source_count", 0)),
        )


@dataclass
class AggregatedResponse:
    """One page of filtered items plus snapshot metadata."""
    items: List[FeedItem]
    total_count: int
    fetched_at: Optional[datetime]
    source_count: int

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total_count": self.total_count,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "source_count": self.source_count,
        }


@dataclass
class RefreshResult:
    """Outcome of a refresh that stored a new snapshot."""
    fetched_at: datetime
    item_count: int
    sources_succeeded: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def source_count(self) -> int:
        return len(self.sources_succeeded)

    def to_dict(self) -> dict:
        return {
            "fetched_at": self.fetched_at.isoformat(),
            "item_count": self.item_count,
            "source_count": self.source_count,
            "sources_succeeded": list(self.sources_succeeded),
            "failures": dict(self.failures),
        }
