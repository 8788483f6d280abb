"""
cache.py — Redis connection and key layout for the intake service.

Namespace conventions:
  intake:session:{session_id}   → session record JSON           TTL = session TTL (sliding)
  intake:csrf:{token}           → "1"                           TTL = CSRF token TTL
  intake:rate:{client_key}      → sorted set of request times   TTL = rate window

Design:
  - Uses redis.asyncio (async client from redis-py)
  - Pool created once in lifespan, stored on app.state.redis
  - Stores receive the client as a constructor argument — no module-level client
  - Logs only identifiers, never payload values
"""
import logging

import redis.asyncio as aioredis

from intake.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Key prefix constants
# ---------------------------------------------------------------------------
KEY_NAMESPACE = "intake"
SESSION_PREFIX = f"{KEY_NAMESPACE}:session"
CSRF_PREFIX = f"{KEY_NAMESPACE}:csrf"
RATE_PREFIX = f"{KEY_NAMESPACE}:rate"


# ---------------------------------------------------------------------------
# Key builders
# ---------------------------------------------------------------------------

def make_session_key(session_id: str) -> str:
    """Build Redis key for a session record: intake:session:{session_id}"""
    return f"{SESSION_PREFIX}:{session_id}"


def make_csrf_key(token: str) -> str:
    return f"{CSRF_PREFIX}:{token}"


def make_rate_key(client_key: str) -> str:
    return f"{RATE_PREFIX}:{client_key}"


# ---------------------------------------------------------------------------
# Pool factory: called once in lifespan
# ---------------------------------------------------------------------------

async def create_redis_pool(url: str = "") -> aioredis.Redis:
    """
    Create and return an async Redis connection pool.
    Verifies connectivity with PING before returning.
    """
    url = url or settings.redis_url
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await client.ping()
    logger.info("Redis connection pool established at %s", url)
    return client
