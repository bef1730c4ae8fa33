"""
Standardized error handling utilities for API endpoints.

HTTP exception classes plus the mapping from service-layer errors
(termalime.exceptions) to HTTP responses.
"""

from typing import Any

from fastapi import HTTPException

from termalime.exceptions import (
    MalformedResponseError,
    PtyIOError,
    ReaderAlreadyTakenError,
    RegistryUnavailableError,
    SessionNotFoundError,
    SpawnError,
    TermalimeError,
    TransportError,
)

# ===== Custom Exception Classes =====


class NotFoundError(HTTPException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: str | None = None):
        if identifier:
            detail = f"{resource} not found: {identifier}"
        else:
            detail = f"{resource} not found"
        super().__init__(status_code=404, detail=detail)


class ConflictError(HTTPException):
    """Resource conflict (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, detail=message)


class InternalError(HTTPException):
    """Operation failed on the server side (500)."""

    def __init__(self, message: str):
        super().__init__(status_code=500, detail=message)


class BadGatewayError(HTTPException):
    """Upstream model server failed or misbehaved (502)."""

    def __init__(self, message: str):
        super().__init__(status_code=502, detail=message)


class ServiceUnavailableError(HTTPException):
    """Service unavailable (503)."""

    def __init__(self, service: str, reason: str | None = None):
        detail = f"Service '{service}' is unavailable"
        if reason:
            detail += f": {reason}"
        super().__init__(status_code=503, detail=detail)


# ===== Service Error Mapping =====


def to_http_error(exc: TermalimeError) -> HTTPException:
    """Convert a service-layer error into the matching HTTP exception."""
    if isinstance(exc, SessionNotFoundError):
        return NotFoundError("Terminal session", exc.session_id)
    if isinstance(exc, ReaderAlreadyTakenError):
        return ConflictError(str(exc))
    if isinstance(exc, RegistryUnavailableError):
        return ServiceUnavailableError("terminal registry", str(exc))
    if isinstance(exc, (TransportError, MalformedResponseError)):
        return BadGatewayError(str(exc))
    if isinstance(exc, (SpawnError, PtyIOError)):
        return InternalError(str(exc))
    return InternalError(str(exc))


# ===== Error Response Builders =====


def build_error_response(
    status_code: int, message: str, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Build standardized error response."""
    response = {"error": True, "status_code": status_code, "message": message}
    if details:
        response["details"] = details
    return response
