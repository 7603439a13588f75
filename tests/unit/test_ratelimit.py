"""Unit tests for rate limiting."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from feed_engine.ratelimit import RateLimiter, RedisRateLimiter


class TestRateLimiter:
    """Tests for the in-process per-host limiter."""

    def test_first_request_allowed(self, clock):
        """Should allow the first request."""
        limiter = RateLimiter(1.0, clock=clock)
        assert limiter.allow("dronedj.com") is True

    def test_interval_enforced(self, clock):
        """Should deny requests inside the interval."""
        limiter = RateLimiter(1.0, clock=clock)
        assert limiter.allow("dronedj.com")

        clock.advance(0.5)
        assert limiter.allow("dronedj.com") is False

        clock.advance(0.6)
        assert limiter.allow("dronedj.com") is True

    def test_rejected_check_does_not_reset_clock(self, clock):
        """Should not reset the clock on a denied request."""
        limiter = RateLimiter(1.0, clock=clock)
        limiter.allow("dronedj.com")

        clock.advance(0.9)
        assert not limiter.allow("dronedj.com")
        clock.advance(0.2)
        assert limiter.allow("dronedj.com")

    def test_hosts_are_independent(self, clock):
        """Should track hosts independently."""
        limiter = RateLimiter(1.0, clock=clock)
        assert limiter.allow("dronedj.com")
        assert limiter.allow("dronelife.com")
        assert not limiter.allow("dronedj.com")

    def test_zero_interval_always_allows(self, clock):
        """Should always allow with a zero interval."""
        limiter = RateLimiter(0, clock=clock)
        assert all(limiter.allow("reddit.com") for _ in range(5))

    def test_negative_interval_treated_as_zero(self):
        """Should treat a negative interval as zero."""
        limiter = RateLimiter(-3)
        assert limiter.min_interval == 0.0

    def test_reset(self, clock):
        """Should forget hosts after reset."""
        limiter = RateLimiter(10.0, clock=clock)
        limiter.allow("a.com")
        limiter.allow("b.com")

        limiter.reset("a.com")
        assert limiter.allow("a.com")
        assert not limiter.allow("b.com")

        limiter.reset_all()
        assert limiter.hosts == {}
        assert limiter.allow("b.com")


@pytest.mark.asyncio
class TestRateLimiterAsync:
    """Tests for RateLimiter waiting."""

    async def test_acquire(self, clock):
        """Should report whether a slot was acquired."""
        limiter = RateLimiter(1.0, clock=clock)
        assert await limiter.acquire("refresh") is True
        assert await limiter.acquire("refresh") is False

    async def test_wait_blocks_for_remaining_interval(self):
        """Should block for the remaining interval."""
        limiter = RateLimiter(0.1)
        await limiter.wait("dronedj.com")

        start = time.monotonic()
        await limiter.wait("dronedj.com")
        elapsed = time.monotonic() - start

        assert elapsed >= 0.09

    async def test_wait_does_not_block_other_hosts(self):
        """Should not block other hosts while waiting."""
        limiter = RateLimiter(5.0)
        await limiter.wait("dronedj.com")

        start = time.monotonic()
        await limiter.wait("reddit.com")
        assert time.monotonic() - start < 1.0


@pytest.mark.asyncio
class TestRedisRateLimiter:
    """Tests for the Redis-backed limiter with a mocked client."""

    async def test_allow_uses_set_nx_with_expiry(self):
        """Should claim the slot with SET NX and an expiry."""
        client = MagicMock()
        client.set = AsyncMock(return_value=True)
        limiter = RedisRateLimiter(client, "feed-engine:ratelimit:", 120)

        assert await limiter.allow("refresh") is True
        client.set.assert_awaited_once_with(
            "feed-engine:ratelimit:refresh", "1", nx=True, px=120000
        )

    async def test_existing_key_denies(self):
        """Should deny while the key exists."""
        client = MagicMock()
        client.set = AsyncMock(return_value=None)
        limiter = RedisRateLimiter(client, "p:", 120)

        assert await limiter.acquire("refresh") is False

    async def test_zero_interval_skips_redis(self):
        """Should skip Redis with a zero interval."""
        client = MagicMock()
        client.set = AsyncMock()
        limiter = RedisRateLimiter(client, "p:", 0)

        assert await limiter.allow("refresh") is True
        client.set.assert_not_awaited()

    async def test_wait_polls_until_allowed(self):
        """Should poll until the slot frees up."""
        client = MagicMock()
        client.set = AsyncMock(side_effect=[None, True])
        client.pttl = AsyncMock(return_value=10)
        limiter = RedisRateLimiter(client, "p:", 1)

        await limiter.wait("reddit.com")

        assert client.set.await_count == 2
        client.pttl.assert_awaited_once_with("p:reddit.com")

    async def test_wait_gives_up_when_redis_fails(self):
        """Should stop waiting instead of raising when Redis fails."""
        client = MagicMock()
        client.set = AsyncMock(side_effect=RedisConnectionError("down"))
        limiter = RedisRateLimiter(client, "p:", 1)

        await limiter.wait("reddit.com")

    async def test_reset_deletes_key(self):
        """Should delete the host key on reset."""
        client = MagicMock()
        client.delete = AsyncMock()
        limiter = RedisRateLimiter(client, "p:", 1)

        await limiter.reset("reddit.com")
        client.delete.assert_awaited_once_with("p:reddit.com")
