"""In-process cache with per-entry TTL and a periodic expiry sweep."""

import asyncio
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from .interfaces import CacheEntry, CacheInterface
from ..config.settings import settings

logger = structlog.get_logger()


class MemoryCache(CacheInterface):
    """Dict-backed cache guarded by a lock.

    Reads treat expired entries as misses; the background sweep started by
    start() only bounds memory and is independent of entry TTLs.
    """

    def __init__(
        self,
        ttl_seconds: float = None,
        sweep_interval_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.sweep_interval = (
            settings.cache_sweep_interval_seconds
            if sweep_interval_seconds is None else sweep_interval_seconds
        )
        self._clock = clock
        self._items: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    async def get(self, key: str) -> Tuple[Optional[Any], bool]:
        with self._lock:
            entry = self._items.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None, False
            return entry.value, True

    async def set(self, key: str, value: Any) -> None:
        await self.set_with_ttl(key, value, self.ttl)

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._items[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._items = {}

    def remove_expired(self) -> int:
        """Drop expired entries, returning how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._items.items() if e.is_expired(now)]
            for key in expired:
                del self._items[key]
        if expired:
            logger.debug("cache_swept", removed=len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.remove_expired()

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
