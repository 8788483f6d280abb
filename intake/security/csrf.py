"""
CSRF protection — single-use anti-forgery tokens.

A token is 32 random bytes, URL-safe base64 encoded (256 bits of entropy).
Redeeming a token is one atomic check-and-delete, so when two requests race
on the same token exactly one of them is admitted.

Tokens are not bound to a session or client.
"""
from __future__ import annotations

import abc
import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

import redis.asyncio as aioredis

from intake.cache import make_csrf_key
from intake.clock import Clock, utc_now
from intake.errors import CsrfTokenInvalidError, CsrfTokenMissingError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_TOKEN_TTL = 4 * 60 * 60


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class CsrfTokenStore(abc.ABC):
    @abc.abstractmethod
    async def put(self, token: str, ttl: timedelta) -> None:
        ...

    @abc.abstractmethod
    async def consume(self, token: str) -> bool:
        """Atomically remove the token. True only if it existed and had not expired."""

    @abc.abstractmethod
    async def sweep_expired(self) -> int:
        ...


class InMemoryCsrfTokenStore(CsrfTokenStore):
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._tokens: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def put(self, token: str, ttl: timedelta) -> None:
        async with self._lock:
            self._tokens[token] = self._clock() + ttl

    async def consume(self, token: str) -> bool:
        async with self._lock:
            expires_at = self._tokens.pop(token, None)
            return expires_at is not None and self._clock() < expires_at

    async def sweep_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            expired = [t for t, exp in self._tokens.items() if now >= exp]
            for token in expired:
                del self._tokens[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._tokens)


class RedisCsrfTokenStore(CsrfTokenStore):
    """intake:csrf:{token} → "1" with EX = token TTL. Redemption is GETDEL."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    async def put(self, token: str, ttl: timedelta) -> None:
        await self._redis.set(make_csrf_key(token), "1", ex=int(ttl.total_seconds()))

    async def consume(self, token: str) -> bool:
        return await self._redis.getdel(make_csrf_key(token)) is not None

    async def sweep_expired(self) -> int:
        return 0


class CsrfGuard:
    """Issues and redeems tokens against an injected CsrfTokenStore."""

    def __init__(self, store: CsrfTokenStore, ttl_seconds: int = DEFAULT_TOKEN_TTL) -> None:
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)

    async def issue_token(self) -> str:
        token = generate_token()
        await self.store.put(token, self.ttl)
        return token

    async def validate_and_consume(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return await self.store.consume(token)

    async def verify_header(self, value: Optional[str]) -> None:
        """
        Redeem the token carried in a request header.

        Raises:
            CsrfTokenMissingError: header absent or blank.
            CsrfTokenInvalidError: unknown, expired or already used token.
        """
        if value is None or not value.strip():
            raise CsrfTokenMissingError()
        if not await self.validate_and_consume(value.strip()):
            raise CsrfTokenInvalidError()

    async def sweep_expired(self) -> int:
        count = await self.store.sweep_expired()
        if count:
            logger.info("Swept %d expired CSRF token(s)", count)
        return count
