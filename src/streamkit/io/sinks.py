"""
Byte sinks.

A sink accepts encoded output chunks in order and is finalized exactly
once at end of stream.
"""

from __future__ import annotations

import asyncio
import gzip
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from streamkit.errors import SinkError
from streamkit.io.sources import is_compressed
from streamkit.telemetry import get_logger

logger = get_logger("streamkit.io")


@runtime_checkable
class ByteSink(Protocol):
    """Destination for pipeline output.

    ``write`` may suspend to apply the sink's own backpressure. An optional
    ``abort()`` coroutine is called instead of ``close`` when a run fails.
    """

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class MemorySink:
    """Sink that keeps every written chunk in memory.

    Example:
        >>> sink = MemorySink()
        >>> await pipeline.run(source, sink)
        >>> sink.text()
    """

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.close_count = 0
        self.aborted = False

    @property
    def closed(self) -> bool:
        return self.close_count > 0 or self.aborted

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise SinkError("Write to a closed MemorySink")
        self.chunks.append(data)

    async def close(self) -> None:
        self.close_count += 1

    async def abort(self) -> None:
        self.aborted = True

    def getvalue(self) -> bytes:
        """All written bytes, concatenated."""
        return b"".join(self.chunks)

    def text(self) -> str:
        """All written bytes decoded as UTF-8."""
        return self.getvalue().decode("utf-8")


class FileSink:
    """Sink writing to a file, gzip-compressed when flagged or ``.gz``.

    The file is opened on the first write or on close, so a run that fails
    before producing output leaves no file behind. Blocking writes run in
    a worker thread.
    """

    def __init__(self, path: str | Path, *, compressed: bool | None = None) -> None:
        """Initialize the sink.

        Args:
            path: Destination file
            compressed: Force or disable gzip; None infers it from the suffix
        """
        self._path = Path(path)
        self._compressed = is_compressed(self._path, compressed)
        self._handle: IO[bytes] | None = None
        self._finished = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def compressed(self) -> bool:
        return self._compressed

    def _open(self) -> IO[bytes]:
        if self._compressed:
            return gzip.open(self._path, "wb")
        return open(self._path, "wb")

    async def _ensure_open(self) -> IO[bytes]:
        if self._finished:
            raise SinkError(f"FileSink for {self._path} is already closed")
        if self._handle is None:
            try:
                self._handle = await asyncio.to_thread(self._open)
            except OSError as e:
                raise SinkError(f"Cannot open {self._path}: {e}", cause=e) from e
            logger.debug("Writing file", path=str(self._path), compressed=self._compressed)
        return self._handle

    async def write(self, data: bytes) -> None:
        handle = await self._ensure_open()
        try:
            await asyncio.to_thread(handle.write, data)
        except OSError as e:
            raise SinkError(f"Failed writing {self._path}: {e}", cause=e) from e

    async def close(self) -> None:
        handle = await self._ensure_open()
        self._finished = True
        self._handle = None
        try:
            await asyncio.to_thread(handle.close)
        except OSError as e:
            raise SinkError(f"Failed closing {self._path}: {e}", cause=e) from e

    async def abort(self) -> None:
        """Release the file handle; partial output stays on disk."""
        self._finished = True
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await asyncio.to_thread(handle.close)
