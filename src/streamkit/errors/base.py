"""
Base error classes for streamkit.

Provides a layered error hierarchy:
- StreamKitError: Base class for all library errors
- ConfigError: Invalid stage configuration
- SourceError: Upstream byte source failures
- SinkError: Downstream sink failures
- PipelineError: Stage-internal stream processing errors
- TransformError: User-supplied map/tap function failures
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'source', 'sink', 'pipeline', 'transform')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class StreamKitError(Exception):
    """Base class for all streamkit errors.

    All errors from this library inherit from this class, making it easy
    to catch all library errors with a single except clause.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> StreamKitError:
        """Add a hint to this error."""
        self.context.hint = hint
        self.args = (self._format_message(),)
        return self


class ConfigError(StreamKitError):
    """Invalid stage configuration.

    Raised when:
    - A delimiter or quote is not a single character
    - The batch size is not a positive integer
    - An environment override cannot be parsed
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        option: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="config")
        if option:
            ctx.details["option"] = option
        super().__init__(message, ctx)
        self.option = option


class SourceError(StreamKitError):
    """The upstream byte source failed.

    Raised when:
    - Reading a chunk from the source raises
    - An HTTP source answers with an error status
    - The network connection breaks mid-stream
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="source")
        super().__init__(message, ctx)
        self.cause = cause


class SinkError(StreamKitError):
    """The downstream sink failed to accept or finalize output."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="sink")
        super().__init__(message, ctx)
        self.cause = cause


class PipelineError(StreamKitError):
    """Error during stream processing inside a stage.

    Raised when:
    - Incoming bytes are not valid UTF-8
    - A line grows past its configured bound
    - A delimited record does not match its header in strict mode
    - A record cannot be serialized
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        operator: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="pipeline")
        if operator:
            ctx.details["operator"] = operator
        super().__init__(message, ctx)
        self.operator = operator


class DecodeError(PipelineError):
    """Incoming bytes could not be decoded as UTF-8."""


class LineTooLongError(PipelineError):
    """A line exceeded the configured maximum length."""

    def __init__(self, limit: int, *, operator: str | None = None) -> None:
        super().__init__(
            f"Line exceeds maximum length of {limit} characters",
            operator=operator,
        )
        self.limit = limit
        self.context.details["limit"] = limit


class RecordParseError(PipelineError):
    """A delimited line does not match the header's field count."""

    def __init__(
        self,
        message: str,
        *,
        line_number: int,
        expected: int,
        actual: int,
        operator: str | None = None,
    ) -> None:
        super().__init__(message, operator=operator)
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        self.context.details.update(
            {"line_number": line_number, "expected": expected, "actual": actual}
        )


class EncodeError(PipelineError):
    """A value could not be serialized."""


class TransformError(StreamKitError):
    """A user-supplied map or tap function raised.

    The original exception is available as ``__cause__`` and ``cause``.

    Attributes:
        stage: Name of the failing stage
        record_index: 1-based position of the input that failed
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        stage: str | None = None,
        record_index: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transform")
        if stage:
            ctx.details["stage"] = stage
        if record_index is not None:
            ctx.details["record_index"] = record_index
        super().__init__(message, ctx)
        self.stage = stage
        self.record_index = record_index
        self.cause = cause
