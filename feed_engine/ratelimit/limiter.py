"""Per-host minimum-interval rate limiting."""

import asyncio
import threading
import time
from typing import Callable, Dict

import structlog

logger = structlog.get_logger()


class RateLimiterInterface:
    """Interface shared by the in-process and distributed limiters."""

    async def acquire(self, host: str) -> bool:
        """Non-blocking attempt to take the slot for host."""
        raise NotImplementedError

    async def wait(self, host: str) -> None:
        """Block the calling task until a request to host is permitted."""
        raise NotImplementedError


class RateLimiter(RateLimiterInterface):
    """In-process limiter: at most one request per host per min_interval."""

    def __init__(self, min_interval_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.min_interval = max(0.0, float(min_interval_seconds))
        self.hosts: Dict[str, float] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _try_acquire(self, host: str) -> float:
        """Stamp host and return 0 if permitted, else the seconds left to wait."""
        with self._lock:
            now = self._clock()
            if self.min_interval <= 0:
                self.hosts[host] = now
                return 0.0

            last = self.hosts.get(host)
            if last is None or now - last >= self.min_interval:
                self.hosts[host] = now
                return 0.0

            return self.min_interval - (now - last)

    def allow(self, host: str) -> bool:
        """Non-blocking check. A rejected check does not reset the clock."""
        return self._try_acquire(host) == 0.0

    async def acquire(self, host: str) -> bool:
        return self.allow(host)

    async def wait(self, host: str) -> None:
        while True:
            remaining = self._try_acquire(host)
            if remaining <= 0:
                return
            logger.debug("rate_limit_wait", host=host, seconds=round(remaining, 3))
            await asyncio.sleep(remaining)

    def reset(self, host: str) -> None:
        with self._lock:
            self.hosts.pop(host, None)

    def reset_all(self) -> None:
        with self._lock:
            self.hosts.clear()
