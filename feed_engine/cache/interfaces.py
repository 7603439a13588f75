"""Interface definitions for cache backends."""

from dataclasses import dataclass
from typing import Any, Optional, Tuple


@dataclass
class CacheEntry:
    """A stored value and the monotonic time after which it is a miss."""
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheInterface:
    """Time-boxed key/value store shared by the in-process and Redis backends."""

    async def get(self, key: str) -> Tuple[Optional[Any], bool]:
        """Return (value, found). Expired entries are reported as not found."""
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        """Store value with the backend's default TTL."""
        raise NotImplementedError

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value with an explicit TTL."""
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        """Remove every key owned by this cache."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release background tasks and connections."""
        raise NotImplementedError
