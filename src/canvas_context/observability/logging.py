"""Structured logging with context for canvas_context.

This module provides a logging system with:
- Structured logging using structlog
- Context propagation (conversation and compaction ids)
- Console or JSON rendering
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import Processor


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_int(self) -> int:
        """Convert to logging module integer level."""
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARNING: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.CRITICAL: logging.CRITICAL,
        }[self]


@dataclass
class LogContext:
    """Context for structured logging.

    Holds contextual data that should be included in all log entries
    within the current execution scope.

    Attributes:
        conversation_id: ID of the conversation being processed.
        compaction_id: ID of the compaction currently running.
        extra: Additional context data.
    """

    conversation_id: Optional[str] = None
    compaction_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for logging."""
        result: Dict[str, Any] = {}
        if self.conversation_id:
            result["conversation_id"] = self.conversation_id
        if self.compaction_id:
            result["compaction_id"] = self.compaction_id
        result.update(self.extra)
        return result

    def with_extra(self, **kwargs: Any) -> LogContext:
        """Create a new context with additional data."""
        return LogContext(
            conversation_id=self.conversation_id,
            compaction_id=self.compaction_id,
            extra={**self.extra, **kwargs},
        )


_log_context: ContextVar[Optional[LogContext]] = ContextVar(
    "canvas_context_log_context", default=None
)


def set_context(context: LogContext) -> None:
    """Set the current log context."""
    _log_context.set(context)


def get_context() -> Optional[LogContext]:
    """Get the current log context."""
    return _log_context.get()


def clear_context() -> None:
    """Clear the current log context."""
    _log_context.set(None)


@dataclass
class LogConfig:
    """Configuration for the logging system.

    Attributes:
        level: Minimum log level.
        include_timestamp: Whether to include timestamps.
        include_caller: Whether to include caller info.
        json_format: Render JSON lines instead of console output.
    """

    level: LogLevel = LogLevel.INFO
    include_timestamp: bool = True
    include_caller: bool = False
    json_format: bool = False


def _build_processors(config: LogConfig) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if config.include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors.extend(
        [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]
    )
    if config.include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if config.json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


_configured: Optional[LogConfig] = None


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure structlog for the whole package.

    Args:
        config: Logging configuration to apply. Defaults to LogConfig().
    """
    global _configured

    config = config or LogConfig()
    structlog.configure(
        processors=_build_processors(config),
        wrapper_class=structlog.make_filtering_bound_logger(config.level.to_int()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = config
    _loggers.clear()


class ContextLogger:
    """Structured logger that merges the current LogContext into every entry."""

    def __init__(self, name: str, bound: Optional[Dict[str, Any]] = None):
        """Initialize the logger.

        Args:
            name: Logger name (usually module name).
            bound: Key/value pairs bound to every entry.
        """
        self.name = name
        self._bound = dict(bound or {})
        self._logger = structlog.get_logger(name)

    def _merged(self, **extra: Any) -> Dict[str, Any]:
        context: Dict[str, Any] = {"logger": self.name}
        log_context = get_context()
        if log_context:
            context.update(log_context.to_dict())
        context.update(self._bound)
        context.update(extra)
        return context

    def bind(self, **kwargs: Any) -> ContextLogger:
        """Create a new logger with bound context."""
        return ContextLogger(self.name, {**self._bound, **kwargs})

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self._logger.debug(msg, **self._merged(**kwargs))

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an info message."""
        self._logger.info(msg, **self._merged(**kwargs))

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self._logger.warning(msg, **self._merged(**kwargs))

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an error message."""
        self._logger.error(msg, **self._merged(**kwargs))

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self._logger.exception(msg, **self._merged(**kwargs))

    def log(self, level: LogLevel, msg: str, **kwargs: Any) -> None:
        """Log a message at the specified level."""
        getattr(self, level.value)(msg, **kwargs)


_loggers: Dict[str, ContextLogger] = {}


def get_logger(name: str = "canvas_context") -> ContextLogger:
    """Get or create a logger instance.

    The package configures structlog on first use unless the host already
    called configure_logging().
    """
    if _configured is None:
        configure_logging()
    if name not in _loggers:
        _loggers[name] = ContextLogger(name)
    return _loggers[name]
