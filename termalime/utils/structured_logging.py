"""
Structured Logging Utilities

Provides JSON-formatted structured logging for the terminal and assistant services:
- Event logging with keyword context (session_id, score, stage, ...)
- Error tracking with exception details
- Performance timing for model-backed operations
"""

import inspect
import json
import logging
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps

# Set per request by the HTTP middleware
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "message",
    }
)


class StructuredLogger:
    """
    Structured logger that outputs JSON-formatted logs.

    Keyword arguments passed to the logging methods become top-level
    fields of the emitted JSON document.
    """

    def __init__(self, name: str, level: int | None = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

        if not self.logger.handlers and not logging.getLogger().handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def _log(self, level: int, message: str, **kwargs):
        """Internal logging method"""
        if not self.logger.isEnabledFor(level):
            return

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            **kwargs,
        }
        request_id = request_id_ctx.get()
        if request_id:
            log_data["request_id"] = request_id
        self.logger.log(level, json.dumps(log_data, default=str))

    def debug(self, message: str, **kwargs):
        """Log debug message"""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message"""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message"""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, error: Exception | None = None, **kwargs):
        """
        Log error message with optional exception details

        Args:
            message: Error description
            error: Exception object (will extract traceback)
            **kwargs: Additional context
        """
        if error:
            kwargs["error_type"] = type(error).__name__
            kwargs["error_message"] = str(error)
            kwargs["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self._log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message"""
        self._log(logging.CRITICAL, message, **kwargs)

    def performance(self, operation: str, duration_ms: float, success: bool = True, **kwargs):
        """
        Log performance metrics

        Args:
            operation: Operation name
            duration_ms: Duration in milliseconds
            success: Whether operation succeeded
            **kwargs: Additional metrics
        """
        self._log(
            logging.INFO,
            f"Performance: {operation}",
            event_type="performance",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            success=success,
            **kwargs,
        )


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for standard Python logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        message = record.getMessage()

        # StructuredLogger already produced a JSON document
        if message.startswith("{"):
            try:
                log_data = json.loads(message)
                log_data.setdefault("logger", record.name)
                return json.dumps(log_data, default=str)
            except ValueError:
                pass

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        request_id = request_id_ctx.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Add custom fields from extra
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def log_execution(
    operation: str,
    log_success: bool = True,
    log_failure: bool = True,
    logger: StructuredLogger | None = None,
):
    """
    Decorator to log function execution with timing.

    Args:
        operation: Operation name for logging
        log_success: Whether to log successful executions
        log_failure: Whether to log failed executions
        logger: Logger instance (creates default if None)

    Usage:
        @log_execution("preflight.analyze_command")
        async def analyze_command(self, command):
            ...
    """
    if logger is None:
        logger = get_logger(__name__)

    def _report(start_time: float, success: bool, error: Exception | None):
        duration_ms = (time.perf_counter() - start_time) * 1000
        if success and log_success:
            logger.performance(operation=operation, duration_ms=duration_ms, success=True)
        elif not success and log_failure:
            logger.performance(
                operation=operation,
                duration_ms=duration_ms,
                success=False,
                error=str(error) if error else None,
            )

    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(start_time, False, e)
                raise
            _report(start_time, True, None)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(start_time, False, e)
                raise
            _report(start_time, True, None)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# Global loggers
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def configure_logging(level: str | None = None, json_format: bool = True):
    """
    Configure global logging settings.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, read from TermalimeSettings.log_level.
        json_format: Whether to use JSON formatting
    """
    if level is None:
        from termalime.config import get_settings

        level = get_settings().log_level

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    root_logger.addHandler(handler)

    # Structured loggers carry their own handlers; keep them from double printing
    for structured in _loggers.values():
        structured.logger.propagate = True
        structured.logger.handlers = []
