"""
Utility functions and helpers for the Termalime backend.
"""

from .errors import (
    BadGatewayError,
    ConflictError,
    InternalError,
    NotFoundError,
    ServiceUnavailableError,
    build_error_response,
    to_http_error,
)
from .structured_logging import (
    JSONFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    log_execution,
)

__all__ = [
    "BadGatewayError",
    "ConflictError",
    "InternalError",
    "JSONFormatter",
    "NotFoundError",
    "ServiceUnavailableError",
    "StructuredLogger",
    "build_error_response",
    "configure_logging",
    "get_logger",
    "log_execution",
    "to_http_error",
]
