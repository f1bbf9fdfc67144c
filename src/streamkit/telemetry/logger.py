"""
Structured logging for streamkit.

Every streamkit logger is a child of the ``streamkit`` logger, which owns
the single output handler. Keyword arguments passed to a log call become
structured fields, and the active LogContext adds the identity of the
pipeline run that is currently being pulled.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any

from streamkit.errors import ConfigError

ROOT_LOGGER = "streamkit"

_log_context: ContextVar[LogContext | None] = ContextVar(
    "streamkit_log_context", default=None
)


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def numeric(self) -> int:
        return getattr(logging, self.value)


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every log line written while the context is active.

    Attributes:
        run_id: Identifier of the pipeline run
        stage: Name of the stage doing the work
        extra: Caller-supplied fields
    """

    run_id: str | None = None
    stage: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        fields = {
            key: value
            for key, value in (("run_id", self.run_id), ("stage", self.stage))
            if value is not None
        }
        fields.update(self.extra)
        return fields


def get_log_context() -> LogContext:
    """Return the active context (empty when none is set)."""
    return _log_context.get() or LogContext()


def set_log_context(context: LogContext) -> Token:
    """Activate ``context``; hand the returned token to reset_log_context."""
    return _log_context.set(context)


def reset_log_context(token: Token) -> None:
    """Restore the context that was active before ``set_log_context``."""
    _log_context.reset(token)


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = get_log_context().to_dict()
    fields.update(getattr(record, "fields", {}))
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, then the fields."""

    def __init__(self, include_timestamp: bool = True) -> None:
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}
        if self.include_timestamp:
            entry["timestamp"] = (
                datetime.fromtimestamp(record.created, tz=timezone.utc)
                .isoformat(timespec="milliseconds")
                .replace("+00:00", "Z")
            )
        entry["level"] = record.levelname
        entry["logger"] = record.name
        entry["message"] = record.getMessage()
        entry.update(_record_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Single-line text with ``key=value`` fields appended."""

    def __init__(self, include_fields: bool = True) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.include_fields = include_fields

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if self.include_fields and (fields := _record_fields(record)):
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class StreamKitLogger:
    """Keyword-field facade over a stdlib logger below ``streamkit``.

    Example:
        >>> logger = get_logger("streamkit.pipeline.batch")
        >>> logger.debug("Flushing partial batch", size=3)
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @staticmethod
    def configure(
        level: LogLevel = LogLevel.INFO,
        format: str = "json",
        stream: IO[str] | None = None,
    ) -> None:
        """Replace the handler of the ``streamkit`` logger.

        Args:
            level: Minimum level written
            format: 'json' or 'text'
            stream: Output stream (default: stderr)

        Raises:
            ConfigError: If the format is unknown
        """
        formatters = {"json": JsonFormatter, "text": TextFormatter}
        if format not in formatters:
            raise ConfigError(f"Unknown log format: {format!r}", option="format")

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(formatters[format]())

        root = logging.getLogger(ROOT_LOGGER)
        for old in list(root.handlers):
            root.removeHandler(old)
        root.addHandler(handler)
        root.setLevel(level.numeric)
        root.propagate = False

    @classmethod
    def get_logger(cls, name: str) -> StreamKitLogger:
        """Get the logger for ``name``, placed below ``streamkit`` if needed."""
        if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
            name = f"{ROOT_LOGGER}.{name}"
        if not logging.getLogger(ROOT_LOGGER).handlers:
            cls.configure(LogLevel.INFO, format="text")
        return cls(logging.getLogger(name))

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: LogLevel) -> bool:
        return self._logger.isEnabledFor(level.numeric)

    def _log(self, level: int, msg: str, exc_info: bool, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, msg, exc_info=exc_info, extra={"fields": fields})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, False, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, False, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, False, fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info, fields)


def get_logger(name: str) -> StreamKitLogger:
    """Get a logger instance."""
    return StreamKitLogger.get_logger(name)
