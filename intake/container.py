"""
container.py — Explicitly constructed service graph.

Everything that holds shared state (session store, CSRF token store, rate
windows, external clients) is built here once and stored on app.state.container.
Routes reach it through get_container(); tests build their own container with
in-memory backends and a manual clock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import redis.asyncio as aioredis
from fastapi import Request

from intake.clock import Clock, utc_now
from intake.config import Settings
from intake.external.services import ExternalServices, build_external_services
from intake.registration.business_rules import BusinessRuleChecker
from intake.registration.orchestrator import SubmissionOrchestrator
from intake.registration.pipeline import ValidationPipeline
from intake.registration.repository import (
    InMemoryRegistrationRepository,
    RegistrationRepository,
    SqlRegistrationRepository,
)
from intake.security.csrf import CsrfGuard, InMemoryCsrfTokenStore, RedisCsrfTokenStore
from intake.security.rate_limiter import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from intake.sessions.store import (
    DatabaseSessionStore,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
)
from intake.sweeper import PeriodicSweeper

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    sessions: SessionStore
    csrf: CsrfGuard
    rate_limiter: RateLimiter
    external: ExternalServices
    pipeline: ValidationPipeline
    orchestrator: SubmissionOrchestrator
    sweepers: List[PeriodicSweeper] = field(default_factory=list)
    redis: Optional[aioredis.Redis] = None

    def start_sweepers(self) -> None:
        for sweeper in self.sweepers:
            sweeper.start()

    async def stop_sweepers(self) -> None:
        for sweeper in self.sweepers:
            await sweeper.stop()

    async def aclose(self) -> None:
        await self.stop_sweepers()
        await self.external.aclose()
        if self.redis is not None:
            await self.redis.aclose()
            logger.info("Redis connection pool closed")


def _assemble(
    settings: Settings,
    sessions: SessionStore,
    csrf: CsrfGuard,
    rate_limiter: RateLimiter,
    external: ExternalServices,
    registrations: RegistrationRepository,
    redis: Optional[aioredis.Redis] = None,
) -> ServiceContainer:
    checker = BusinessRuleChecker(
        catalog=external.catalog,
        inventory=external.inventory,
        region=external.region,
        timeout_seconds=settings.external_timeout_seconds,
    )
    pipeline = ValidationPipeline(checker)
    orchestrator = SubmissionOrchestrator(sessions, pipeline, registrations)
    sweepers = [
        PeriodicSweeper("sessions", sessions.sweep_expired, settings.session_sweep_interval_seconds),
        PeriodicSweeper("csrf_tokens", csrf.sweep_expired, settings.csrf_sweep_interval_seconds),
        PeriodicSweeper("rate_windows", rate_limiter.sweep, settings.rate_limit_sweep_interval_seconds),
    ]
    return ServiceContainer(
        settings=settings,
        sessions=sessions,
        csrf=csrf,
        rate_limiter=rate_limiter,
        external=external,
        pipeline=pipeline,
        orchestrator=orchestrator,
        sweepers=sweepers,
        redis=redis,
    )


def build_in_memory_container(
    settings: Settings,
    clock: Clock = utc_now,
    external: Optional[ExternalServices] = None,
) -> ServiceContainer:
    """Single-process container: no Redis, no database."""
    return _assemble(
        settings,
        sessions=InMemorySessionStore(settings.session_ttl_seconds, clock),
        csrf=CsrfGuard(InMemoryCsrfTokenStore(clock), settings.csrf_token_ttl_seconds),
        rate_limiter=InMemoryRateLimiter(clock, max_window_seconds=settings.rate_limit_window_seconds),
        external=external or ExternalServices(),
        registrations=InMemoryRegistrationRepository(clock),
    )


async def build_container(settings: Settings) -> ServiceContainer:
    """Container for the configured state_backend. Called once from the lifespan."""
    if settings.state_backend == "memory":
        container = build_in_memory_container(settings, external=build_external_services(settings))
        logger.info("State backend: memory")
        return container

    from intake.cache import create_redis_pool
    from intake.database import AsyncSessionLocal

    redis = await create_redis_pool(settings.redis_url)
    if settings.state_backend == "database":
        sessions: SessionStore = DatabaseSessionStore(AsyncSessionLocal, settings.session_ttl_seconds)
    else:
        sessions = RedisSessionStore(redis, settings.session_ttl_seconds)

    container = _assemble(
        settings,
        sessions=sessions,
        csrf=CsrfGuard(RedisCsrfTokenStore(redis), settings.csrf_token_ttl_seconds),
        rate_limiter=RedisRateLimiter(redis),
        external=build_external_services(settings),
        registrations=SqlRegistrationRepository(AsyncSessionLocal),
        redis=redis,
    )
    logger.info("State backend: %s", settings.state_backend)
    return container


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency: the container built in the lifespan."""
    return request.app.state.container
