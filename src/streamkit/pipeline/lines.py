"""
Line splitting.

Turns a stream of byte (or text) chunks into lines, regardless of where the
chunk boundaries fall.
"""

from __future__ import annotations

import codecs
from enum import Enum
from typing import TYPE_CHECKING, Any

from streamkit.errors import DecodeError, LineTooLongError, PipelineError
from streamkit.pipeline.base import Stage, closing_upstream
from streamkit.pipeline.config import LineSplitterConfig, resolve_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

TERMINATOR = "\n"


class SplitterState(str, Enum):
    """Lifecycle of a line buffer."""

    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    CLOSED = "closed"


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


class LineBuffer:
    """Residual text buffer for one splitting run.

    Partial lines are kept as a list of fragments with a running length,
    and only newly fed text is scanned for terminators, so input without
    any terminator costs linear time instead of repeated concatenation.

    Example:
        >>> buf = LineBuffer()
        >>> buf.feed("a\\nb")
        ['a']
        >>> buf.feed("c\\r\\n")
        ['bc']
        >>> buf.finish()
        >>> buf.state
        <SplitterState.CLOSED: 'closed'>
    """

    def __init__(self, max_line_length: int | None = None) -> None:
        self._pending: list[str] = []
        self._pending_length = 0
        self._max_line_length = max_line_length
        self.state = SplitterState.ACCUMULATING

    @property
    def pending_length(self) -> int:
        """Characters held for the current, unterminated line."""
        return self._pending_length

    def feed(self, text: str) -> list[str]:
        """Append text and return the lines it completes."""
        if self.state is not SplitterState.ACCUMULATING:
            raise PipelineError("Input after end of stream", operator="LineSplitter")

        lines: list[str] = []
        start = 0
        while (end := text.find(TERMINATOR, start)) != -1:
            piece = text[start:end]
            if self._pending:
                self._pending.append(piece)
                piece = "".join(self._pending)
                self._pending.clear()
                self._pending_length = 0
            lines.append(self._check(_strip_cr(piece)))
            start = end + 1

        if start < len(text):
            rest = text[start:]
            self._pending.append(rest)
            self._pending_length += len(rest)
            if (
                self._max_line_length is not None
                and self._pending_length > self._max_line_length + 1
            ):
                # +1 leaves room for a '\r' whose '\n' has not arrived yet
                raise LineTooLongError(self._max_line_length, operator="LineSplitter")
        return lines

    def finish(self) -> str | None:
        """End the input; return the residual line, if any."""
        self.state = SplitterState.FLUSHING
        residual = None
        if self._pending:
            residual = self._check(_strip_cr("".join(self._pending)))
            self._pending.clear()
            self._pending_length = 0
        self.state = SplitterState.CLOSED
        return residual

    def _check(self, line: str) -> str:
        if self._max_line_length is not None and len(line) > self._max_line_length:
            raise LineTooLongError(self._max_line_length, operator="LineSplitter")
        return line


class LineSplitter(Stage[Any, str]):
    """Split byte or text chunks into lines.

    Lines end at ``\\n``; one trailing ``\\r`` is stripped. Undelimited
    text left at end of input becomes a final line. Bytes are decoded with
    an incremental UTF-8 decoder, so multi-byte characters may straddle
    chunks.

    Example:
        >>> splitter = LineSplitter(max_line_length=1_000_000)
        >>> async for line in splitter.process(read_file("big.log.gz")):
        ...     handle(line)
    """

    def __init__(self, config: LineSplitterConfig | None = None, **options: Any) -> None:
        """Initialize the splitter.

        Args:
            config: Splitter configuration
            **options: LineSplitterConfig fields, when no config is given
        """
        self._config = resolve_config(LineSplitterConfig, config, options)

    @property
    def config(self) -> LineSplitterConfig:
        return self._config

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[str]:
        """Split chunks into lines.

        Args:
            inputs: Async iterator of bytes or str chunks

        Yields:
            Lines without their terminators
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors=self._config.errors)
        buffer = LineBuffer(self._config.max_line_length)

        async with closing_upstream(inputs):
            async for chunk in inputs:
                for line in buffer.feed(self._decode(decoder, chunk)):
                    yield line

        for line in buffer.feed(self._decode(decoder, b"", final=True)):
            yield line
        residual = buffer.finish()
        if residual is not None:
            yield residual

    def _decode(
        self, decoder: codecs.IncrementalDecoder, chunk: Any, final: bool = False
    ) -> str:
        if isinstance(chunk, str):
            return chunk
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise PipelineError(
                f"Expected bytes or str chunk, got {type(chunk).__name__}",
                operator=self.name,
            )
        try:
            return decoder.decode(chunk, final=final)
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 input: {e}", operator=self.name) from e
