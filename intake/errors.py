"""
errors.py — Error taxonomy for the intake service.

Two shapes live here:

  PipelineError   — a plain value {kind, code, message, details} returned by the
                    validation stages. Stage outcomes are expected results, so
                    they are never raised.
  IntakeError     — exception hierarchy for the HTTP seam: request checks,
                    session lookups, CSRF / rate-limit denials and address
                    lookups.
                    main.py turns every IntakeError into the standard envelope.

ExternalCollaboratorError is raised by the external clients and caught inside
stage 3, where it becomes a fail-closed business-rule result. It never reaches
a response body.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    validation = "validation"
    business_rule = "business_rule"
    external = "external"
    session = "session"
    security = "security"
    internal = "internal"


# ---------------------------------------------------------------------------
# Error codes (wire values)
# ---------------------------------------------------------------------------
VALIDATION_ERROR = "VALIDATION_ERROR"
BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
CSRF_TOKEN_MISSING = "CSRF_TOKEN_MISSING"
CSRF_TOKEN_INVALID = "CSRF_TOKEN_INVALID"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
ADDRESS_NOT_FOUND = "ADDRESS_NOT_FOUND"
ADDRESS_SERVICE_UNAVAILABLE = "ADDRESS_SERVICE_UNAVAILABLE"
UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class PipelineError:
    """Tagged error value produced by a validation stage."""

    kind: ErrorKind
    code: str
    message: str
    details: Dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class IntakeError(Exception):
    """Base class for errors that map directly onto an HTTP error envelope."""

    kind: ErrorKind = ErrorKind.internal
    code: str = INTERNAL_ERROR
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, str]] = None,
    ) -> None:
        if message is not None:
            self.message = message
        self.details: Dict[str, str] = details or {}
        super().__init__(self.message)


class InvalidRequestError(IntakeError):
    """A query or path value the route itself rejects (e.g. an unknown plan_type)."""

    kind = ErrorKind.validation
    code = VALIDATION_ERROR
    status_code = 422
    message = "Request validation failed"


class SessionNotFoundError(IntakeError):
    """Unknown, deleted or expired session. Expired is deliberately indistinguishable."""

    kind = ErrorKind.session
    code = SESSION_NOT_FOUND
    status_code = 404
    message = "Session not found or expired. Please start again."

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__()


class SecurityError(IntakeError):
    kind = ErrorKind.security
    status_code = 403
    message = "Access denied"


class CsrfTokenMissingError(SecurityError):
    code = CSRF_TOKEN_MISSING
    message = "A security token is required for this request"


class CsrfTokenInvalidError(SecurityError):
    code = CSRF_TOKEN_INVALID
    message = "The security token is invalid or has expired"


class RateLimitExceededError(SecurityError):
    code = RATE_LIMIT_EXCEEDED
    status_code = 429
    message = "Too many requests. Please try again later."

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__()


class AddressNotFoundError(IntakeError):
    kind = ErrorKind.validation
    code = ADDRESS_NOT_FOUND
    status_code = 404
    message = "No address found for the given postal code"


class AddressServiceUnavailableError(IntakeError):
    kind = ErrorKind.external
    code = ADDRESS_SERVICE_UNAVAILABLE
    status_code = 503
    message = "Address lookup is temporarily unavailable. Please enter the address manually."


class ExternalCollaboratorError(Exception):
    """Timeout or failure while calling an external provider."""

    def __init__(self, collaborator: str, reason: str) -> None:
        self.collaborator = collaborator
        self.reason = reason
        super().__init__(f"{collaborator}: {reason}")
