"""
Pipeline layer - Stream processing stages.

This module implements the stages that turn byte streams into records and
back:
- LineSplitter: Splits byte/text chunks into lines
- DelimitedRecordParser: Parses delimited lines into records
- Mapper / Tap: Apply per-record functions in strict order
- Batcher: Groups records into fixed-size batches
- JsonEncoder / LineJoiner: Serialize values into output lines

Stages chain through a uniform async-iterator interface into a Pipeline.
"""

from streamkit.pipeline.base import Pipeline, RunStats, Stage, closing_upstream
from streamkit.pipeline.batch import Batcher
from streamkit.pipeline.config import (
    BatcherConfig,
    DelimitedParserConfig,
    JsonEncoderConfig,
    LineSplitterConfig,
)
from streamkit.pipeline.delimited import DelimitedRecordParser, Record, split_fields
from streamkit.pipeline.encode import JsonEncoder, LineJoiner
from streamkit.pipeline.lines import LineBuffer, LineSplitter, SplitterState
from streamkit.pipeline.mapping import MapShape, Mapper, Tap

__all__ = [
    # Base abstractions
    "Pipeline",
    "RunStats",
    "Stage",
    "closing_upstream",
    # Stages
    "Batcher",
    "DelimitedRecordParser",
    "JsonEncoder",
    "LineJoiner",
    "LineSplitter",
    "MapShape",
    "Mapper",
    "Tap",
    # Configuration
    "BatcherConfig",
    "DelimitedParserConfig",
    "JsonEncoderConfig",
    "LineSplitterConfig",
    # Helpers
    "LineBuffer",
    "Record",
    "SplitterState",
    "split_fields",
]
