"""
Sliding-window-log rate limiter tests (in-memory backend, manual clock).
"""
from __future__ import annotations

import asyncio

import pytest

from intake.security.rate_limiter import InMemoryRateLimiter

WINDOW = 60


@pytest.fixture
def limiter(clock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock, max_window_seconds=WINDOW)


async def _burst(limiter: InMemoryRateLimiter, key: str, count: int, limit: int, window: float = WINDOW):
    return [await limiter.allow(key, limit, window) for _ in range(count)]


@pytest.mark.asyncio
async def test_exactly_limit_requests_are_admitted(limiter) -> None:
    results = await _burst(limiter, "client-a", 100, limit=100)
    assert all(results)
    assert await limiter.allow("client-a", 100, WINDOW) is False


@pytest.mark.asyncio
async def test_admission_resumes_once_oldest_stamp_leaves_window(limiter, clock) -> None:
    await _burst(limiter, "client-a", 3, limit=3)
    clock.advance(WINDOW - 1)
    assert await limiter.allow("client-a", 3, WINDOW) is False
    clock.advance(1)
    assert await limiter.allow("client-a", 3, WINDOW) is True


@pytest.mark.asyncio
async def test_denied_requests_are_not_recorded(limiter, clock) -> None:
    assert await limiter.allow("client-a", 1, 10) is True     # t=0
    clock.advance(9)
    assert await limiter.allow("client-a", 1, 10) is False    # t=9, denied
    clock.advance(1.5)
    # t=10.5: the t=0 stamp has left the window; the t=9 denial never counted.
    assert await limiter.allow("client-a", 1, 10) is True


@pytest.mark.asyncio
async def test_keys_are_isolated(limiter) -> None:
    await _burst(limiter, "client-a", 2, limit=2)
    assert await limiter.allow("client-a", 2, WINDOW) is False
    assert await limiter.allow("client-b", 2, WINDOW) is True


@pytest.mark.asyncio
async def test_concurrent_callers_never_exceed_limit(limiter) -> None:
    results = await asyncio.gather(*(limiter.allow("client-a", 10, WINDOW) for _ in range(50)))
    assert results.count(True) == 10


@pytest.mark.asyncio
async def test_sweep_removes_idle_keys(limiter, clock) -> None:
    await limiter.allow("idle", 5, WINDOW)
    clock.advance(WINDOW // 2)
    await limiter.allow("active", 5, WINDOW)
    clock.advance(WINDOW // 2)

    assert await limiter.sweep() == 1
    assert len(limiter) == 1
    assert await limiter.sweep() == 0


@pytest.mark.asyncio
async def test_sweep_honours_longest_window_seen(clock) -> None:
    limiter = InMemoryRateLimiter(clock, max_window_seconds=10)
    await limiter.allow("hourly", 5, 3600)
    clock.advance(60)
    assert await limiter.sweep() == 0
    assert await limiter.allow("hourly", 1, 3600) is False
