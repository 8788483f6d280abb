"""
Sliding-window-log rate limiter.

For each client key we keep the timestamps of admitted requests. On every
call, timestamps older than now - window are dropped; the call is admitted
only if fewer than `limit` remain, and only an admitted call is recorded.
"""
from __future__ import annotations

import abc
import asyncio
import logging
import secrets
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict

import redis.asyncio as aioredis

from intake.cache import make_rate_key
from intake.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class RateLimiter(abc.ABC):
    @abc.abstractmethod
    async def allow(self, key: str, limit: int, window_seconds: float) -> bool:
        ...

    @abc.abstractmethod
    async def sweep(self) -> int:
        """Drop keys whose window holds no timestamps. Returns the number removed."""


class InMemoryRateLimiter(RateLimiter):
    def __init__(self, clock: Clock = utc_now, max_window_seconds: float = 3600) -> None:
        self._clock = clock
        self._windows: Dict[str, Deque[datetime]] = {}
        self._lock = asyncio.Lock()
        # The sweep has no per-key window size, so it prunes against the longest one in use.
        self._max_window = timedelta(seconds=max_window_seconds)

    async def allow(self, key: str, limit: int, window_seconds: float) -> bool:
        window = timedelta(seconds=window_seconds)
        async with self._lock:
            now = self._clock()
            if window > self._max_window:
                self._max_window = window
            stamps = self._windows.setdefault(key, deque())
            cutoff = now - window
            while stamps and stamps[0] <= cutoff:
                stamps.popleft()
            if len(stamps) >= limit:
                return False
            stamps.append(now)
            return True

    async def sweep(self) -> int:
        async with self._lock:
            cutoff = self._clock() - self._max_window
            removed = 0
            for key in list(self._windows):
                stamps = self._windows[key]
                while stamps and stamps[0] <= cutoff:
                    stamps.popleft()
                if not stamps:
                    del self._windows[key]
                    removed += 1
        if removed:
            logger.debug("Rate limiter swept %d idle key(s)", removed)
        return removed

    def __len__(self) -> int:
        return len(self._windows)


# KEYS[1] = window key; ARGV = now_ms, window_ms, limit, member
_SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
if redis.call('ZCARD', key) >= limit then
  return 0
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('PEXPIRE', key, window)
return 1
"""


class RedisRateLimiter(RateLimiter):
    """
    intake:rate:{key} is a sorted set scored by request time in milliseconds.
    Prune, count and append run in one Lua script so concurrent callers
    cannot both take the last slot.
    """

    def __init__(self, client: aioredis.Redis, clock: Clock = utc_now) -> None:
        self._redis = client
        self._clock = clock
        self._script = client.register_script(_SLIDING_WINDOW_LUA)

    async def allow(self, key: str, limit: int, window_seconds: float) -> bool:
        now_ms = int(self._clock().timestamp() * 1000)
        member = f"{now_ms}-{secrets.token_hex(4)}"
        admitted = await self._script(
            keys=[make_rate_key(key)],
            args=[now_ms, int(window_seconds * 1000), limit, member],
        )
        return bool(int(admitted))

    async def sweep(self) -> int:
        # Each window key carries PEXPIRE = window length.
        return 0
