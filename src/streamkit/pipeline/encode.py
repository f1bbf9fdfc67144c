"""
Output encoders.

Serialize values into newline-terminated text, one line per value.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from streamkit.errors import EncodeError
from streamkit.pipeline.base import Stage, closing_upstream
from streamkit.pipeline.config import JsonEncoderConfig, resolve_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

NEW_LINE = "\n"


def _drop_absent(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: v for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_absent(v) if isinstance(v, dict) else v for v in value]
    return value


class JsonEncoder(Stage[Any, str]):
    """Serialize each value as one compact JSON line.

    Keys keep the record's own order. Absent (None) values of a record are
    left out, as are those of records inside a batch; pass
    ``omit_absent=False`` to write them as null. NaN and infinities are
    rejected rather than written as non-standard JSON.

    Example:
        >>> encoder = JsonEncoder()
        >>> encoder.encode({"a": 1})
        '{"a":1}\\n'
    """

    def __init__(self, config: JsonEncoderConfig | None = None, **options: Any) -> None:
        """Initialize the encoder.

        Args:
            config: Encoder configuration
            **options: JsonEncoderConfig fields, when no config is given
        """
        self._config = resolve_config(JsonEncoderConfig, config, options)

    def encode(self, value: Any) -> str:
        """Serialize a single value.

        Raises:
            EncodeError: If the value is not JSON-serializable
        """
        if self._config.omit_absent:
            value = _drop_absent(value)
        try:
            text = json.dumps(
                value, ensure_ascii=False, separators=(",", ":"), allow_nan=False
            )
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Cannot encode value as JSON: {e}", operator=self.name) from e
        return text + NEW_LINE

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[str]:
        """Encode values.

        Args:
            inputs: Async iterator of JSON-serializable values

        Yields:
            One JSON line per value
        """
        async with closing_upstream(inputs):
            async for value in inputs:
                yield self.encode(value)


class LineJoiner(Stage[Any, str]):
    """Turn each value into one text line.

    Strings pass through, bytes are decoded as UTF-8, anything else uses
    ``str()``.
    """

    def encode(self, value: Any) -> str:
        if isinstance(value, str):
            text = value
        elif isinstance(value, (bytes, bytearray)):
            try:
                text = bytes(value).decode("utf-8")
            except UnicodeDecodeError as e:
                raise EncodeError(f"Cannot encode bytes as text: {e}", operator=self.name) from e
        else:
            text = str(value)
        return text + NEW_LINE

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[str]:
        async with closing_upstream(inputs):
            async for value in inputs:
                yield self.encode(value)
