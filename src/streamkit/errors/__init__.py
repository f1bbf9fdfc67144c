"""
Error hierarchy for streamkit.

Provides structured error types for every way a pipeline run can fail.
"""

from streamkit.errors.base import (
    ConfigError,
    DecodeError,
    EncodeError,
    ErrorContext,
    LineTooLongError,
    PipelineError,
    RecordParseError,
    SinkError,
    SourceError,
    StreamKitError,
    TransformError,
)

__all__ = [
    "ConfigError",
    "DecodeError",
    "EncodeError",
    "ErrorContext",
    "LineTooLongError",
    "PipelineError",
    "RecordParseError",
    "SinkError",
    "SourceError",
    "StreamKitError",
    "TransformError",
]
