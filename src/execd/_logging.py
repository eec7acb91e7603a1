"""Logging utilities for execd.

This module provides a standalone structlog logger factory that writes
JSON-formatted or text-formatted logs to a file or stderr, and the
LeveledLogger adapter that exposes it as a log sink. Each logger is
self-contained and does not modify global structlog configuration.
"""

import logging
import sys
from os import getenv
from pathlib import Path
from typing import Literal, Self, cast, final

import structlog
from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]

TRACE = "trace"


def _get_log_level() -> str:
    """Get the log level name from environment variables.

    Checks EXECD_DEBUG first (sets debug if present), then EXECD_LOG_LEVEL.
    Defaults to info if neither is set.

    Returns:
        The lowercase log level name.
    """
    if getenv("EXECD_DEBUG", None):
        return "debug"
    return getenv("EXECD_LOG_LEVEL", "info").lower()


def _log_level_from_string(level: str) -> int:
    """Convert a log level string to a logging level integer.

    Trace has no stdlib level; it filters as debug.

    Args:
        level: Log level string (trace, debug, info, warning, error).

    Returns:
        The logging level as an integer.
    """
    if level.lower() == TRACE:
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


@final
class LeveledLogger:
    """Log sink backed by a structlog logger.

    Adds a trace level on top of structlog's levels. Trace messages are
    written at debug level with ``trace=True`` when trace is enabled and
    dropped otherwise.
    """

    __slots__ = ("_logger", "_trace_enabled")

    def __init__(
        self, logger: FilteringBoundLogger, *, trace_enabled: bool = False
    ) -> None:
        """Initialize the adapter.

        Args:
            logger: The structlog logger to write to.
            trace_enabled: Whether trace messages are emitted.
        """
        self._logger = logger
        self._trace_enabled = trace_enabled

    @property
    def trace_enabled(self) -> bool:
        """Return whether trace messages are emitted."""
        return self._trace_enabled

    def bind(self, **context: object) -> Self:
        """Return a logger with additional context bound to every entry."""
        return type(self)(
            self._logger.bind(**context), trace_enabled=self._trace_enabled
        )

    def error(self, message: str) -> None:
        self._logger.error(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def trace(self, message: str) -> None:
        if self._trace_enabled:
            self._logger.debug(message, trace=True)


def create_logger(
    *,
    level: str | None = None,
    log_format: LogFormatType = "text",
    log_file: str = "",
) -> LeveledLogger:
    """Create a standalone leveled logger.

    The log level is determined by (in order of precedence):
    1. EXECD_DEBUG environment variable (if set, enables debug level)
    2. The `level` parameter (if provided)
    3. EXECD_LOG_LEVEL environment variable
    4. Default: info

    Args:
        level: Log level threshold (trace, debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        log_file: Path to a log file opened in append mode. Logs go to
            stderr if empty.

    Returns:
        A LeveledLogger writing structured entries.
    """
    if getenv("EXECD_DEBUG", None) and level != TRACE:
        effective_level = "debug"
    elif level is not None:
        effective_level = level.lower()
    else:
        effective_level = _get_log_level()

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger_factory = structlog.WriteLoggerFactory(file=log_path.open("a"))
    else:
        logger_factory = structlog.WriteLoggerFactory(file=sys.stderr)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    wrapper_class = structlog.make_filtering_bound_logger(
        _log_level_from_string(effective_level)
    )

    logger = cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            logger_factory(),
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )
    return LeveledLogger(logger, trace_enabled=effective_level == TRACE)
