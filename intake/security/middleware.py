"""
HTTP middleware: security response headers and a JSON content-type guard.

Registered on the app in main.build_app().
"""
import logging
from typing import Awaitable, Callable

from fastapi import Request, Response

from intake.errors import UNSUPPORTED_MEDIA_TYPE
from intake.responses import make_error_response

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'",
}

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


async def security_headers_middleware(request: Request, call_next: CallNext) -> Response:
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def json_content_type_middleware(request: Request, call_next: CallNext) -> Response:
    """Reject a body-carrying API request that is not declared as JSON (415)."""
    if request.method in BODY_METHODS and request.url.path.startswith("/api/"):
        length = request.headers.get("content-length", "")
        has_body = (length.isdigit() and int(length) > 0) or "transfer-encoding" in request.headers
        content_type = request.headers.get("content-type", "")
        if has_body and not content_type.lower().startswith("application/json"):
            logger.warning(
                "Rejected content-type=%r method=%s path=%s",
                content_type,
                request.method,
                request.url.path,
            )
            return make_error_response(
                code=UNSUPPORTED_MEDIA_TYPE,
                message="Content-Type must be application/json",
                status_code=415,
            )
    return await call_next(request)
