"""
Delimited-text parsing.

Turns lines into records keyed by the first line's field names, with
quote-aware tokenization.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from streamkit.errors import RecordParseError
from streamkit.pipeline.base import Stage, closing_upstream
from streamkit.pipeline.config import DelimitedParserConfig, resolve_config
from streamkit.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

Record = dict[str, str | None]

logger = get_logger("streamkit.pipeline.delimited")


def split_fields(line: str, delimiter: str = ",", quote: str = '"') -> list[str]:
    """Split one line into field values.

    A field opening with ``quote`` is quoted: delimiters inside it are
    literal and every doubled quote collapses to one. Text between the
    closing quote and the next delimiter is kept. An unterminated quoted
    field runs to end of line. Quotes inside an unquoted field are literal.

    Args:
        line: Line without terminator
        delimiter: Single-character field separator
        quote: Single-character quote

    Returns:
        Field values; always at least one (an empty line is one empty field)

    Example:
        >>> split_fields('a,"x,y",c')
        ['a', 'x,y', 'c']
        >>> split_fields('a,"b ""c"" d"')
        ['a', 'b "c" d']
    """
    fields: list[str] = []
    pos = 0
    length = len(line)

    while True:
        if pos < length and line[pos] == quote:
            parts: list[str] = []
            pos += 1
            while True:
                close = line.find(quote, pos)
                if close == -1:
                    parts.append(line[pos:])
                    pos = length
                    break
                parts.append(line[pos:close])
                if close + 1 < length and line[close + 1] == quote:
                    parts.append(quote)
                    pos = close + 2
                else:
                    pos = close + 1
                    break
            end = line.find(delimiter, pos)
            if end == -1:
                end = length
            parts.append(line[pos:end])
            fields.append("".join(parts))
        else:
            end = line.find(delimiter, pos)
            if end == -1:
                end = length
            fields.append(line[pos:end])

        if end >= length:
            return fields
        pos = end + 1


class DelimitedRecordParser(Stage[str, Record]):
    """Parse delimited lines into records.

    The first line is the header. Every later line becomes a dict from
    header name to value, in header order, with empty values as None.

    Field-count mismatches are resolved by the ``strict`` option: lenient
    mode fills missing trailing values with None and ignores extra values;
    strict mode raises RecordParseError.

    Example:
        >>> parser = DelimitedRecordParser(delimiter=";")
        >>> async for record in parser.process(lines):
        ...     print(record["name"])
    """

    def __init__(
        self, config: DelimitedParserConfig | None = None, **options: Any
    ) -> None:
        """Initialize the parser.

        Args:
            config: Parser configuration
            **options: DelimitedParserConfig fields, when no config is given
        """
        self._config = resolve_config(DelimitedParserConfig, config, options)

    @property
    def config(self) -> DelimitedParserConfig:
        return self._config

    def split(self, line: str) -> list[str]:
        """Tokenize a line with this parser's delimiter and quote."""
        return split_fields(line, self._config.delimiter, self._config.quote)

    async def process(self, inputs: AsyncIterator[str]) -> AsyncIterator[Record]:
        """Parse lines into records.

        Args:
            inputs: Async iterator of lines; the first is the header

        Yields:
            One record per data line
        """
        header: list[str] | None = None
        line_number = 0

        async with closing_upstream(inputs):
            async for line in inputs:
                line_number += 1
                if header is None:
                    header = self.split(line)
                    logger.debug("Header parsed", stage=self.name, fields=len(header))
                    continue
                if not line and self._config.skip_blank_lines:
                    continue
                yield self._build_record(header, self.split(line), line_number)

    def _build_record(
        self, header: list[str], values: list[str], line_number: int
    ) -> Record:
        if len(values) != len(header):
            if self._config.strict:
                raise RecordParseError(
                    f"Line {line_number} has {len(values)} fields, "
                    f"header has {len(header)}",
                    line_number=line_number,
                    expected=len(header),
                    actual=len(values),
                    operator=self.name,
                )
            logger.debug(
                "Field count mismatch",
                stage=self.name,
                line_number=line_number,
                expected=len(header),
                actual=len(values),
            )

        record: Record = {}
        for index, name in enumerate(header):
            value = values[index] if index < len(values) else ""
            record[name] = value or None
        return record
