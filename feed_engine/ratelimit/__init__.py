"""Per-host request rate limiting."""

from .limiter import RateLimiterInterface, RateLimiter
from .redis_limiter import RedisRateLimiter

__all__ = ["RateLimiterInterface", "RateLimiter", "RedisRateLimiter"]
