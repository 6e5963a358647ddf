"""
Centralized logging and error classification utilities for the Chariot client.

Features:
- Structured logging with contextual information
- Error category detection for stream faults
- Operation timing via an async context manager
- Context-aware loggers bound to a single stream
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from .exceptions import MalformedFrameError, StreamSetupError, StreamTransportError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Apply the ``logging`` section of the YAML configuration."""
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level '{level_name}'")

    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger("chariot").setLevel(level)


class StreamErrorHandler:
    """Maps stream faults to the categories used in structured logs."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error raised while opening or reading a stream.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, MalformedFrameError):
            return "malformed_frame"
        if isinstance(error, StreamSetupError):
            return "setup_error"
        if isinstance(error, StreamTransportError):
            return "transport_error"
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, ConnectionError | OSError | httpx.TransportError):
            return "connection_error"
        return "unknown_error"

    @staticmethod
    def describe(error: BaseException) -> str:
        """Build the description carried by an ``error`` event."""
        if isinstance(error, StreamTransportError):
            return str(error)
        if isinstance(error, MalformedFrameError):
            return f"Failed to parse stream frame: {error}"
        return f"Request failed: {error}"


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(
        operation=operation,
        **(context or {}),
    )

    operation_logger.info("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger

        log_data: dict[str, Any] = {}
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            log_data["duration_ms"] = duration

        operation_logger.info("Operation completed successfully", **log_data)

    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_category": StreamErrorHandler.classify_error(e),
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.error("Operation failed", **error_log_data)
        raise


class ContextualLogger:
    """Logger that maintains context across related operations."""

    def __init__(
        self, base_context: dict[str, Any] | None = None, *, name: str | None = None
    ):
        self.base_context = base_context or {}
        self._logger = structlog.get_logger(name or __name__).bind(**self.base_context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def exception(self, message: str, **context: Any) -> None:
        """Log at error level with the active exception attached."""
        self._logger.exception(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)
