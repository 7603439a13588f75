"""Exception types raised by the feed engine."""

from typing import Dict


class FeedEngineError(Exception):
    """Base class for all feed engine errors."""


class FetchError(FeedEngineError):
    """A single source could not be fetched or parsed."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class AggregationError(FeedEngineError):
    """Every source failed during a refresh cycle."""

    def __init__(self, failures: Dict[str, str]):
        self.failures = dict(failures)
        if self.failures:
            detail = "; ".join(f"{name}: {err}" for name, err in self.failures.items())
        else:
            detail = "no sources configured"
        super().__init__(f"all sources failed ({len(self.failures)}): {detail}")


class CacheUnavailableError(FeedEngineError):
    """The selected cache backend could not be reached."""


class ConfigError(FeedEngineError):
    """Feed configuration could not be loaded."""


class CacheWriteError(FeedEngineError):
    """A value could not be stored in the cache backend."""
