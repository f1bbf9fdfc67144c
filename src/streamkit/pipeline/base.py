"""
Base abstractions for the pipeline layer.

Defines the stage interface every operator implements and the Pipeline
that chains stages between a byte source and a sink.
"""

from __future__ import annotations

import inspect
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from streamkit.errors import PipelineError, SinkError, SourceError, StreamKitError
from streamkit.io.sources import iter_source
from streamkit.telemetry import (
    LogContext,
    get_log_context,
    get_logger,
    reset_log_context,
    set_log_context,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from streamkit.io.sinks import ByteSink
    from streamkit.io.sources import Source

InT = TypeVar("InT")
OutT = TypeVar("OutT")
T = TypeVar("T")

logger = get_logger("streamkit.pipeline")


@asynccontextmanager
async def closing_upstream(inputs: AsyncIterator[T]) -> AsyncIterator[AsyncIterator[T]]:
    """Close the upstream iterator when the consuming stage stops.

    Whether the stage finishes, fails or is itself closed by its consumer,
    the abort reaches every stage above it and finally the source.
    """
    try:
        yield inputs
    finally:
        aclose = getattr(inputs, "aclose", None)
        if aclose is not None:
            await aclose()


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call ``fn`` and await the result if it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Stage(ABC, Generic[InT, OutT]):
    """Abstract pipeline stage.

    A stage pulls input units from an async iterator and yields output
    units. Stages only advance when their consumer asks for the next unit,
    which is what gives a pipeline its backpressure. Stage objects hold
    configuration only; all buffers live in the ``process`` call, so one
    stage may serve many runs.
    """

    @property
    def name(self) -> str:
        """Stage name used in logs and errors."""
        return type(self).__name__

    @abstractmethod
    async def process(self, inputs: AsyncIterator[InT]) -> AsyncIterator[OutT]:
        """Process a stream of input units.

        Args:
            inputs: Async iterator of upstream units

        Yields:
            Output units, in input order
        """
        ...

    def __repr__(self) -> str:
        return f"{self.name}()"


@dataclass
class RunStats:
    """Statistics for a single pipeline run written to a sink.

    Attributes:
        run_id: Identifier used in the run's log lines
        units_written: Output units handed to the sink
        bytes_written: Bytes handed to the sink
        elapsed_seconds: Wall time from first pull to sink finalization
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    units_written: int = 0
    bytes_written: int = 0
    elapsed_seconds: float = 0.0


class Pipeline(Stage[Any, Any]):
    """Linear chain of stages.

    Each stage's output feeds the next stage's input. Pipelines are
    immutable: the builder methods return a new pipeline. A pipeline is
    itself a stage, so pipelines nest.

    Example:
        >>> pipeline = (
        ...     Pipeline()
        ...     .split_lines()
        ...     .parse_delimited(delimiter=",")
        ...     .map(lambda r: {"x": int(r["x"])})
        ...     .batch(2)
        ...     .encode_json()
        ... )
        >>> async for line in pipeline.stream(read_file("data.csv.gz")):
        ...     print(line, end="")
    """

    def __init__(self, stages: Sequence[Stage[Any, Any]] | None = None) -> None:
        """Initialize the pipeline.

        Args:
            stages: Stages to chain, first to last
        """
        self._stages: tuple[Stage[Any, Any], ...] = tuple(stages or ())

    @property
    def stages(self) -> tuple[Stage[Any, Any], ...]:
        """The chained stages, first to last."""
        return self._stages

    def then(self, stage: Stage[Any, Any]) -> Pipeline:
        """Append a stage.

        Args:
            stage: Stage fed by the current last stage

        Returns:
            New Pipeline with the stage appended
        """
        if not isinstance(stage, Stage):
            raise TypeError(f"Expected a Stage, got {type(stage).__name__}")
        return Pipeline([*self._stages, stage])

    def __or__(self, stage: Stage[Any, Any]) -> Pipeline:
        return self.then(stage)

    def split_lines(self, **options: Any) -> Pipeline:
        """Append a LineSplitter."""
        from streamkit.pipeline.lines import LineSplitter

        return self.then(LineSplitter(**options))

    def parse_delimited(self, **options: Any) -> Pipeline:
        """Append a DelimitedRecordParser."""
        from streamkit.pipeline.delimited import DelimitedRecordParser

        return self.then(DelimitedRecordParser(**options))

    def map(self, fn: Callable[[Any], Any]) -> Pipeline:
        """Append a Mapper whose function returns zero or one value."""
        from streamkit.pipeline.mapping import Mapper

        return self.then(Mapper.returning(fn))

    def map_emit(self, fn: Callable[[Any, Callable[[Any], None]], Any]) -> Pipeline:
        """Append a Mapper whose function emits through a callback."""
        from streamkit.pipeline.mapping import Mapper

        return self.then(Mapper.emitting(fn))

    def tap(self, fn: Callable[[Any], Any]) -> Pipeline:
        """Append a Tap."""
        from streamkit.pipeline.mapping import Tap

        return self.then(Tap(fn))

    def batch(self, batch_size: int = 100) -> Pipeline:
        """Append a Batcher."""
        from streamkit.pipeline.batch import Batcher

        return self.then(Batcher(batch_size=batch_size))

    def encode_json(self, **options: Any) -> Pipeline:
        """Append a JsonEncoder."""
        from streamkit.pipeline.encode import JsonEncoder

        return self.then(JsonEncoder(**options))

    def join_lines(self) -> Pipeline:
        """Append a LineJoiner."""
        from streamkit.pipeline.encode import LineJoiner

        return self.then(LineJoiner())

    @classmethod
    def delimited(cls, **options: Any) -> Pipeline:
        """Create a pipeline turning delimited bytes into records.

        Args:
            **options: DelimitedParserConfig options

        Returns:
            Pipeline of LineSplitter then DelimitedRecordParser
        """
        return cls().split_lines().parse_delimited(**options)

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[Any]:
        """Chain every stage over ``inputs``.

        Args:
            inputs: Async iterator feeding the first stage

        Yields:
            Output units of the last stage
        """
        stream = inputs
        for stage in self._stages:
            stream = stage.process(stream)

        async with closing_upstream(stream):
            async for unit in stream:
                yield unit

    async def stream(self, source: Source, *, run_id: str | None = None) -> AsyncIterator[Any]:
        """Run the pipeline over a source.

        Failures of the source are raised as SourceError; the first error
        of any stage ends the run and is raised exactly once. While a unit
        is being pulled through the stages, a LogContext carrying the run
        id is active, so every log line of the run can be attributed to it.

        Args:
            source: Async or sync iterable of chunks (or a single chunk)
            run_id: Identifier for the run's log lines (default: random)

        Yields:
            Output units of the last stage
        """
        outer = get_log_context()
        context = LogContext(
            run_id=run_id or uuid.uuid4().hex[:12],
            stage=outer.stage,
            extra=outer.extra,
        )
        emitted = 0

        async with aclosing(self.process(_guard_source(source))) as outputs:
            while True:
                token = set_log_context(context)
                try:
                    if emitted == 0:
                        logger.debug(
                            "Pipeline run started",
                            stages=[stage.name for stage in self._stages],
                        )
                    try:
                        unit = await outputs.__anext__()
                    except StopAsyncIteration:
                        logger.debug("Pipeline run finished", emitted=emitted)
                        return
                    except StreamKitError as e:
                        logger.error(
                            "Pipeline run failed",
                            emitted=emitted,
                            error=type(e).__name__,
                            reason=e.message,
                        )
                        raise
                finally:
                    reset_log_context(token)

                emitted += 1
                try:
                    yield unit
                except GeneratorExit:
                    token = set_log_context(context)
                    try:
                        logger.debug("Pipeline run closed by consumer", emitted=emitted)
                    finally:
                        reset_log_context(token)
                    raise

    async def collect(self, source: Source) -> list[Any]:
        """Run the pipeline and gather every output unit.

        Args:
            source: Async or sync iterable of chunks

        Returns:
            Output units in order
        """
        async with aclosing(self.stream(source)) as outputs:
            return [unit async for unit in outputs]

    async def run(self, source: Source, sink: ByteSink) -> RunStats:
        """Run the pipeline and write its output to a sink.

        Text units are UTF-8 encoded; bytes are written as-is. The sink is
        closed exactly once when the stream ends. If the run fails, the
        sink is aborted (when it supports it) and nothing written so far
        is rolled back.

        Args:
            source: Async or sync iterable of chunks
            sink: Destination for the encoded output

        Returns:
            Run statistics
        """
        stats = RunStats()
        started = time.monotonic()
        try:
            async with aclosing(self.stream(source, run_id=stats.run_id)) as outputs:
                async for unit in outputs:
                    data = _to_bytes(unit)
                    try:
                        await sink.write(data)
                    except Exception as e:
                        raise SinkError(f"Sink write failed: {e}", cause=e) from e
                    stats.units_written += 1
                    stats.bytes_written += len(data)
        except BaseException:
            abort = getattr(sink, "abort", None)
            if abort is not None:
                await abort()
            raise

        try:
            await sink.close()
        except Exception as e:
            raise SinkError(f"Sink finalization failed: {e}", cause=e) from e

        stats.elapsed_seconds = time.monotonic() - started
        return stats

    def __repr__(self) -> str:
        inner = " | ".join(repr(stage) for stage in self._stages)
        return f"Pipeline({inner})"


async def _guard_source(source: Source) -> AsyncIterator[Any]:
    """Pull from the source, raising its failures as SourceError."""
    iterator = iter_source(source)
    async with closing_upstream(iterator):
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                return
            except SourceError:
                raise
            except Exception as e:
                raise SourceError(f"Source read failed: {e}", cause=e) from e
            yield chunk


def _to_bytes(unit: Any) -> bytes:
    if isinstance(unit, str):
        return unit.encode("utf-8")
    if isinstance(unit, (bytes, bytearray, memoryview)):
        return bytes(unit)
    raise PipelineError(
        f"Sink output must be str or bytes, got {type(unit).__name__}",
        operator="Pipeline",
    ).with_hint("end the pipeline with encode_json() or join_lines()")
