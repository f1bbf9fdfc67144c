"""
Batching stage.

Groups values into fixed-size, ordered lists.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from streamkit.pipeline.base import Stage, closing_upstream
from streamkit.pipeline.config import BatcherConfig, resolve_config
from streamkit.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

T = TypeVar("T")

logger = get_logger("streamkit.pipeline.batch")


class Batcher(Stage[T, list[T]]):
    """Accumulate values into batches of ``batch_size``.

    Every emitted batch is a fresh list that the stage never touches
    again. At end of input a non-empty remainder is emitted as a final,
    shorter batch.

    Example:
        >>> batcher = Batcher(batch_size=500)
        >>> async for rows in batcher.process(records):
        ...     await db.insert_many(rows)
    """

    def __init__(self, config: BatcherConfig | None = None, **options: Any) -> None:
        """Initialize the batcher.

        Args:
            config: Batcher configuration
            **options: BatcherConfig fields, when no config is given
        """
        self._config = resolve_config(BatcherConfig, config, options)

    @property
    def batch_size(self) -> int:
        return self._config.batch_size

    async def process(self, inputs: AsyncIterator[T]) -> AsyncIterator[list[T]]:
        """Group values into batches.

        Args:
            inputs: Async iterator of values

        Yields:
            Lists of at most ``batch_size`` values, in input order
        """
        size = self._config.batch_size
        buffer: list[T] = []
        emitted = 0

        async with closing_upstream(inputs):
            async for value in inputs:
                buffer.append(value)
                if len(buffer) >= size:
                    batch, buffer = buffer, []
                    emitted += 1
                    yield batch

        if buffer:
            logger.debug(
                "Flushing partial batch",
                stage=self.name,
                size=len(buffer),
                batches=emitted + 1,
            )
            yield buffer

    def __repr__(self) -> str:
        return f"Batcher(batch_size={self._config.batch_size})"
