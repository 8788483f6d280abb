"""
Test configuration for the intake service.

sys.path gets the project root so 'from intake...' resolves whether pytest is
run from the project root or from intake/tests/.

Shared fixtures:
  clock          ManualClock — advance() instead of sleeping
  test_settings  Settings with in-memory backends and small sweep intervals
  container      in-memory ServiceContainer bound to the manual clock
  client         httpx AsyncClient over ASGITransport (no live server, no lifespan)
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

_project_root = Path(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from intake.config import Settings
from intake.container import ServiceContainer, build_in_memory_container
from intake.tests.api_helpers import app_client


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        state_backend="memory",
        session_ttl_seconds=4 * 60 * 60,
        csrf_token_ttl_seconds=4 * 60 * 60,
        rate_limit_requests=100,
        rate_limit_window_seconds=60,
        external_timeout_seconds=0.2,
    )


@pytest.fixture
def container(test_settings: Settings, clock: ManualClock) -> ServiceContainer:
    return build_in_memory_container(test_settings, clock)


@pytest_asyncio.fixture
async def client(container: ServiceContainer):
    async with app_client(container) as ac:
        yield ac
