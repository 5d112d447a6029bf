"""
Centralized logging utilities for the CLI.

This module configures structlog once per invocation and hands back a
LogSettings value that callers pass explicitly to the components that log.
Standard output is reserved for streamed model output, so every log line
is rendered to standard error.

Features:
- Structured logging with contextual information
- Verbosity levels mapped from the -v count flag
- Wire tracing switch for request/response dumps
- Operation timing via an async context manager
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TextIO

import structlog

# Verbosity count at which request/response bodies are traced
TRACE_VERBOSITY = 2


@dataclass(frozen=True)
class LogSettings:
    """Logging options threaded through the transport and decoder."""
    level: int = logging.WARNING
    trace_wire: bool = False

    @classmethod
    def from_verbosity(cls, verbosity: int) -> LogSettings:
        if verbosity <= 0:
            return cls(level=logging.WARNING, trace_wire=False)
        return cls(level=logging.DEBUG, trace_wire=verbosity >= TRACE_VERBOSITY)

    def get_logger(self, component: str, **context: Any) -> structlog.stdlib.BoundLogger:
        """Return a logger bound to a component name and extra context."""
        return structlog.get_logger(f"ai_cli.{component}").bind(
            component=component, **context
        )


def configure_logging(verbosity: int = 0, stream: TextIO | None = None) -> LogSettings:
    """
    Configure structlog and the stdlib root logger for one invocation.

    Args:
        verbosity: Count of -v flags (0 warnings only, 1 debug, 2+ wire trace)
        stream: Destination for log lines, standard error by default

    Returns:
        LogSettings to pass into the components that log
    """
    settings = LogSettings.from_verbosity(verbosity)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(settings.level)

    # httpx/httpcore are chatty at DEBUG; only let them through when tracing
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(
            logging.DEBUG if settings.trace_wire else logging.WARNING
        )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=(stream or sys.stderr).isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return settings


def mask_secret(value: str | None) -> str:
    """Render a credential for logs without revealing it."""
    if not value:
        return "<none>"
    return "***"


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    logger: structlog.stdlib.BoundLogger | None = None,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
    failure_level: int = logging.ERROR,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        logger: Logger to bind, module logger when omitted
        context: Additional context for logging
        log_timing: Whether to log operation timing
        failure_level: Level of the failure record; callers that report
            errors themselves pass logging.DEBUG

    Yields:
        Bound logger for the operation
    """
    operation_logger = (logger or structlog.get_logger(__name__)).bind(
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
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.log(failure_level, "Operation failed", **error_log_data)
        raise
