"""
Byte-stream sources and sinks.

The pipeline stages never touch files, sockets or codecs directly; these
helpers adapt them to plain chunk streams.
"""

from streamkit.io.sinks import ByteSink, FileSink, MemorySink
from streamkit.io.sources import (
    DEFAULT_CHUNK_SIZE,
    Source,
    is_compressed,
    iter_source,
    read_file,
    read_http,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "ByteSink",
    "FileSink",
    "MemorySink",
    "Source",
    "is_compressed",
    "iter_source",
    "read_file",
    "read_http",
]
