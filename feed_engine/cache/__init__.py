"""Cache backends and backend selection."""

from .interfaces import CacheEntry, CacheInterface
from .memory import MemoryCache
from .redis_cache import RedisCache
from .factory import create_cache

__all__ = ["CacheEntry", "CacheInterface", "MemoryCache", "RedisCache", "create_cache"]
