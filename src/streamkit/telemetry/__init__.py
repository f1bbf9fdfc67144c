"""
Telemetry module for streamkit.

Provides structured logging with run-scoped context.
"""

from streamkit.telemetry.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    LogContext,
    LogLevel,
    StreamKitLogger,
    TextFormatter,
    get_log_context,
    get_logger,
    reset_log_context,
    set_log_context,
)

__all__ = [
    "ROOT_LOGGER",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "StreamKitLogger",
    "TextFormatter",
    "get_log_context",
    "get_logger",
    "reset_log_context",
    "set_log_context",
]
