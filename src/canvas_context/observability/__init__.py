"""Observability helpers for canvas_context.

Example:
    from canvas_context.observability import LogConfig, LogLevel, configure_logging

    configure_logging(LogConfig(level=LogLevel.DEBUG, json_format=True))
"""

from .logging import (
    ContextLogger,
    LogConfig,
    LogContext,
    LogLevel,
    clear_context,
    configure_logging,
    get_context,
    get_logger,
    set_context,
)

__all__ = [
    "ContextLogger",
    "LogConfig",
    "LogContext",
    "LogLevel",
    "clear_context",
    "configure_logging",
    "get_context",
    "get_logger",
    "set_context",
]
