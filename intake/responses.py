"""
responses.py — Uniform response envelope.

Every endpoint answers with one of two shapes:
    {"success": true,  "data": {...}}
    {"success": false, "error": {"code", "message", "details": {field: message}}}
"""
from typing import Any, Dict, Mapping, Optional

from fastapi.responses import JSONResponse


def success_body(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": data}


def error_body(
    code: str,
    message: str,
    details: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": dict(details or {}),
        },
    }


def make_success_response(data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=success_body(data))


def make_error_response(
    code: str,
    message: str,
    details: Optional[Mapping[str, str]] = None,
    status_code: int = 500,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build a standard {success: false, error: {code, message, details}} response."""
    return JSONResponse(
        status_code=status_code,
        content=error_body(code, message, details),
        headers=headers,
    )
