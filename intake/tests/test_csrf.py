"""
CSRF guard tests — single use, expiry, concurrent redemption.
"""
from __future__ import annotations

import asyncio

import pytest

from intake.errors import CsrfTokenInvalidError, CsrfTokenMissingError
from intake.security.csrf import CsrfGuard, InMemoryCsrfTokenStore, generate_token

TTL = 4 * 60 * 60


@pytest.fixture
def token_store(clock) -> InMemoryCsrfTokenStore:
    return InMemoryCsrfTokenStore(clock)


@pytest.fixture
def guard(token_store) -> CsrfGuard:
    return CsrfGuard(token_store, ttl_seconds=TTL)


def test_tokens_carry_256_bits() -> None:
    token = generate_token()
    assert len(token) >= 43
    assert token != generate_token()


@pytest.mark.asyncio
async def test_token_validates_exactly_once(guard) -> None:
    token = await guard.issue_token()
    assert await guard.validate_and_consume(token) is True
    assert await guard.validate_and_consume(token) is False


@pytest.mark.asyncio
async def test_unknown_and_empty_tokens_are_rejected(guard) -> None:
    assert await guard.validate_and_consume("never-issued") is False
    assert await guard.validate_and_consume("") is False
    assert await guard.validate_and_consume(None) is False


@pytest.mark.asyncio
async def test_expired_token_is_rejected(guard, clock) -> None:
    token = await guard.issue_token()
    clock.advance(TTL)
    assert await guard.validate_and_consume(token) is False


@pytest.mark.asyncio
async def test_token_is_valid_just_before_expiry(guard, clock) -> None:
    token = await guard.issue_token()
    clock.advance(TTL - 1)
    assert await guard.validate_and_consume(token) is True


@pytest.mark.asyncio
async def test_concurrent_redemption_admits_exactly_one(guard) -> None:
    token = await guard.issue_token()
    results = await asyncio.gather(*(guard.validate_and_consume(token) for _ in range(25)))
    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_verify_header_distinguishes_missing_from_invalid(guard) -> None:
    with pytest.raises(CsrfTokenMissingError):
        await guard.verify_header(None)
    with pytest.raises(CsrfTokenMissingError):
        await guard.verify_header("   ")
    with pytest.raises(CsrfTokenInvalidError):
        await guard.verify_header("forged")

    token = await guard.issue_token()
    await guard.verify_header(token)
    with pytest.raises(CsrfTokenInvalidError):
        await guard.verify_header(token)


@pytest.mark.asyncio
async def test_sweep_drops_expired_tokens_only(guard, token_store, clock) -> None:
    await guard.issue_token()
    clock.advance(TTL // 2)
    fresh = await guard.issue_token()
    clock.advance(TTL // 2)

    assert await guard.sweep_expired() == 1
    assert len(token_store) == 1
    assert await guard.validate_and_consume(fresh) is True
