"""
FastAPI dependencies guarding state-mutating routes.

Mutating routes declare, in this order:
    dependencies=[Depends(require_csrf_token), Depends(enforce_rate_limit)]

Denials raise SecurityError subclasses; main.py renders them with a generic
message while the full context is logged here at WARNING.
"""
import logging

from fastapi import Depends, Request

from intake.container import ServiceContainer, get_container
from intake.errors import RateLimitExceededError, SecurityError

logger = logging.getLogger(__name__)

API_RATE_NAMESPACE = "api"
CSRF_ISSUE_RATE_NAMESPACE = "csrf-issue"


def client_key(request: Request) -> str:
    """Rate-limit identity: the peer address."""
    return request.client.host if request.client else "unknown"


async def require_csrf_token(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    header_name = container.settings.csrf_header_name
    try:
        await container.csrf.verify_header(request.headers.get(header_name))
    except SecurityError as exc:
        logger.warning(
            "CSRF check failed code=%s client=%s method=%s path=%s",
            exc.code,
            client_key(request),
            request.method,
            request.url.path,
        )
        raise


async def _admit(request: Request, container: ServiceContainer, namespace: str) -> None:
    limit = container.settings.rate_limit_requests
    window = container.settings.rate_limit_window_seconds
    key = f"{namespace}:{client_key(request)}"
    if not await container.rate_limiter.allow(key, limit, window):
        logger.warning(
            "Rate limit exceeded key=%s limit=%d window=%ds path=%s",
            key,
            limit,
            window,
            request.url.path,
        )
        raise RateLimitExceededError(limit, window)


async def enforce_rate_limit(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    await _admit(request, container, API_RATE_NAMESPACE)


async def enforce_csrf_issue_rate_limit(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    await _admit(request, container, CSRF_ISSUE_RATE_NAMESPACE)
