"""
main.py — Registration intake FastAPI application entry point.

Start with: uvicorn intake.main:app --reload --port 8000
(run from the project root)
"""
import logging
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from intake.config import settings
from intake.container import ServiceContainer, build_container
from intake.errors import INTERNAL_ERROR, VALIDATION_ERROR, IntakeError, RateLimitExceededError
from intake.responses import make_error_response, success_body
from intake.security.middleware import json_content_type_middleware, security_headers_middleware

# ---------------------------------------------------------------------------
# Logging: configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Apply Alembic migrations (alembic upgrade head) from the project root."""
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=project_root,
    )
    if result.returncode != 0:
        logger.error("Alembic migration failed:\n%s", result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr}")
    logger.info("Alembic: %s", result.stdout.strip() or "No pending migrations")


# ---------------------------------------------------------------------------
# Lifespan: startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Run Alembic migrations when RUN_MIGRATIONS=true
      2. Build the service container (unless one was injected)
      3. Start the periodic sweepers
    Shutdown:
      1. Stop sweepers, close external clients and the Redis pool
    """
    if getattr(app.state, "container", None) is None:
        if settings.run_migrations:
            run_migrations()
        app.state.container = await build_container(settings)
    container: ServiceContainer = app.state.container
    container.start_sweepers()

    logger.info("Intake service v%s starting up", settings.app_version)
    yield

    await container.aclose()
    logger.info("Intake service shutting down")


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------
_HTTP_CODE_MAP = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: VALIDATION_ERROR,
}


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request-body validation errors → {field: message}, all fields in one response."""
    details: Dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        details.setdefault(field or "request", error["msg"])
    return make_error_response(
        code=VALIDATION_ERROR,
        message="Request validation failed",
        details=details,
        status_code=422,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
    return make_error_response(code=code, message=str(exc.detail), status_code=exc.status_code)


async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    headers: Optional[Dict[str, str]] = None
    if isinstance(exc, RateLimitExceededError):
        headers = {
            "Retry-After": str(exc.window_seconds),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Window": f"{exc.window_seconds}s",
        }
    return make_error_response(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → exception type & message in details (dev only).
    DEBUG=false → generic message; traceback logged server-side only.
    """
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=True)
    details: Dict[str, str] = {}
    message = "An unexpected error occurred"
    if settings.debug:
        details = {"exception": f"{type(exc).__name__}: {exc}"}
        message = "An unexpected error occurred (debug details included)"
    return make_error_response(code=INTERNAL_ERROR, message=message, details=details, status_code=500)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def build_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI app. Passing a container skips building one in the
    lifespan (tests inject in-memory backends this way).
    """
    application = FastAPI(
        title="Registration Intake API",
        version=settings.app_version,
        description=(
            "Session-backed multi-step registration intake: autosaved drafts, "
            "three-stage validation, CSRF and rate-limit protection."
        ),
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    application.state.container = container

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", settings.csrf_header_name],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Window"],
    )
    application.middleware("http")(json_content_type_middleware)
    application.middleware("http")(security_headers_middleware)

    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(IntakeError, intake_error_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    @application.get("/api/health", tags=["System"])
    async def health_check(request: Request) -> dict:
        """Service health plus the state of each external collaborator."""
        current: Optional[ServiceContainer] = request.app.state.container
        services = await current.external.health_check() if current is not None else None
        return success_body({
            "status": "ok" if services is None or services["status"] == "healthy" else "degraded",
            "version": settings.app_version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "external": services,
        })

    from intake.external.routes import router as master_data_router
    from intake.registration.routes import router as registration_router
    from intake.security.routes import router as security_router
    from intake.sessions.routes import router as sessions_router

    application.include_router(security_router)
    application.include_router(sessions_router)
    application.include_router(registration_router)
    application.include_router(master_data_router)
    return application


app = build_app()
