"""streamkit: composable streaming transforms for large delimited files.

Bytes become lines, lines become records, records get mapped, tapped and
batched, and come out as JSON or text lines again, pulled one unit at a
time and in strict input order.
"""
from __future__ import annotations

from streamkit.errors import (
    ConfigError,
    PipelineError,
    SinkError,
    SourceError,
    StreamKitError,
    TransformError,
)
from streamkit.io import FileSink, MemorySink, read_file, read_http
from streamkit.pipeline import (
    Batcher,
    DelimitedRecordParser,
    JsonEncoder,
    LineJoiner,
    LineSplitter,
    MapShape,
    Mapper,
    Pipeline,
    Record,
    RunStats,
    Stage,
    Tap,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "Pipeline",
    "RunStats",
    "Stage",
    # Stages
    "Batcher",
    "DelimitedRecordParser",
    "JsonEncoder",
    "LineJoiner",
    "LineSplitter",
    "MapShape",
    "Mapper",
    "Record",
    "Tap",
    # I/O
    "FileSink",
    "MemorySink",
    "read_file",
    "read_http",
    # Errors
    "ConfigError",
    "PipelineError",
    "SinkError",
    "SourceError",
    "StreamKitError",
    "TransformError",
    # Version
    "__version__",
]
