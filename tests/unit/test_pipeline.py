"""Tests for pipeline composition."""

import asyncio
import random
from contextlib import aclosing
from typing import Any

import pytest

from streamkit.errors import PipelineError, SinkError, SourceError, TransformError
from streamkit.io import MemorySink
from streamkit.pipeline import (
    Batcher,
    DelimitedRecordParser,
    JsonEncoder,
    LineSplitter,
    Mapper,
    Pipeline,
    Tap,
)


def to_numbers(record: dict) -> dict:
    return {"x": int(record["x"]), "y": int(record["y"])}


class FailingSink(MemorySink):
    """Sink that fails on a given write."""

    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self._fail_on = fail_on

    async def write(self, data: bytes) -> None:
        if len(self.chunks) + 1 == self._fail_on:
            raise OSError("disk full")
        await super().write(data)


class TestPipelineComposition:
    """Tests for building pipelines."""

    def test_builder_is_immutable(self) -> None:
        """Test builder methods return new pipelines."""
        base = Pipeline().split_lines()
        extended = base.parse_delimited()

        assert len(base.stages) == 1
        assert len(extended.stages) == 2
        assert isinstance(extended.stages[1], DelimitedRecordParser)

    def test_pipe_operator(self) -> None:
        """Test stages can be chained with |."""
        pipeline = Pipeline() | LineSplitter() | Batcher(batch_size=5)
        assert [type(s) for s in pipeline.stages] == [LineSplitter, Batcher]
        assert "Batcher(batch_size=5)" in repr(pipeline)

    def test_then_rejects_non_stage(self) -> None:
        """Test only stages can be appended."""
        with pytest.raises(TypeError):
            Pipeline().then(lambda x: x)  # type: ignore[arg-type]

    def test_builder_stage_types(self) -> None:
        """Test each builder method appends the matching stage."""
        pipeline = (
            Pipeline()
            .split_lines()
            .parse_delimited(delimiter=";")
            .map(to_numbers)
            .map_emit(lambda r, emit: emit(r))
            .tap(print)
            .batch(10)
            .encode_json()
            .join_lines()
        )
        names = [type(s).__name__ for s in pipeline.stages]
        assert names == [
            "LineSplitter",
            "DelimitedRecordParser",
            "Mapper",
            "Mapper",
            "Tap",
            "Batcher",
            "JsonEncoder",
            "LineJoiner",
        ]

    @pytest.mark.asyncio
    async def test_empty_pipeline_passes_through(self) -> None:
        """Test a pipeline without stages yields its source."""
        assert await Pipeline().collect([1, 2, 3]) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_nested_pipelines(self) -> None:
        """Test a pipeline can be used as a stage."""
        records = Pipeline.delimited()
        encoded = Pipeline().then(records).encode_json()
        assert await encoded.collect(b"a\n1\n") == ['{"a":"1"}\n']


class TestPipelineEndToEnd:
    """End-to-end pipeline tests."""

    @pytest.mark.asyncio
    async def test_full_pipeline_string_input(self) -> None:
        """Test parse, map, batch and encode together."""
        pipeline = (
            Pipeline.delimited()
            .map(to_numbers)
            .batch(2)
            .encode_json()
        )
        result = await pipeline.collect("\n".join(["x,y", "1,2", "3,4"]))
        assert result == ['[{"x":1,"y":2},{"x":3,"y":4}]\n']

    @pytest.mark.asyncio
    async def test_csv_to_json_lines_bytes(self) -> None:
        """Test byte chunks through to a sink."""
        chunks = [b"name,age\nJo", b"hn,40\nJane,", b"30\n"]
        sink = MemorySink()
        stats = await Pipeline.delimited().encode_json().run(chunks, sink)

        assert sink.text() == '{"name":"John","age":"40"}\n{"name":"Jane","age":"30"}\n'
        assert stats.units_written == 2
        assert stats.bytes_written == len(sink.getvalue())
        assert sink.close_count == 1
        assert not sink.aborted

    @pytest.mark.asyncio
    async def test_order_preserved_end_to_end(self) -> None:
        """Test async stages with jitter keep total order."""
        rng = random.Random(11)

        async def jitter(record):
            await asyncio.sleep(rng.random() / 1000)
            return int(record["n"])

        seen: list[int] = []

        async def observe(n):
            await asyncio.sleep(rng.random() / 1000)
            seen.append(n)

        lines = "n\n" + "".join(f"{i}\n" for i in range(40))
        pipeline = Pipeline.delimited().map(jitter).tap(observe).join_lines()
        result = await pipeline.collect(lines.encode())

        assert result == [f"{i}\n" for i in range(40)]
        assert seen == list(range(40))

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self) -> None:
        """Test one pipeline object serves simultaneous runs."""
        pipeline = Pipeline.delimited().batch(2)

        async def slow_source(text: str):
            for ch in text:
                await asyncio.sleep(0)
                yield ch

        first, second = await asyncio.gather(
            pipeline.collect(slow_source("a\n1\n2\n3\n")),
            pipeline.collect(slow_source("b\n9\n")),
        )
        assert first == [[{"a": "1"}, {"a": "2"}], [{"a": "3"}]]
        assert second == [[{"b": "9"}]]


class TestPipelineFailures:
    """Tests for fail-fast error propagation."""

    @pytest.mark.asyncio
    async def test_map_error_stops_pipeline(self) -> None:
        """Test a failure on the second of three records."""
        pulled: list[int] = []
        tapped: list[dict] = []

        def source():
            for i in (1, 2, 3):
                pulled.append(i)
                yield {"id": i}

        def broken(obj):
            if obj["id"] == 2:
                raise ValueError("broken")
            return obj

        pipeline = Pipeline().then(Mapper.returning(broken)).then(Tap(tapped.append))
        outputs: list[Any] = []
        with pytest.raises(TransformError) as exc_info:
            async for out in pipeline.stream(source()):
                outputs.append(out)

        assert str(exc_info.value.cause) == "broken"
        assert outputs == [{"id": 1}]
        assert tapped == [{"id": 1}]
        assert pulled == [1, 2]

    @pytest.mark.asyncio
    async def test_upstream_tap_sees_records_up_to_failure(self) -> None:
        """Test a tap before the mapper sees the failing record but nothing after it."""
        tapped: list[int] = []

        def fail_on_two(n):
            if n == 2:
                raise ValueError("broken")
            return n

        pipeline = Pipeline().tap(tapped.append).map(fail_on_two)
        with pytest.raises(TransformError):
            await pipeline.collect([1, 2, 3])
        assert tapped == [1, 2]

    @pytest.mark.asyncio
    async def test_source_error_wrapped_once(self) -> None:
        """Test a failing source surfaces as a single SourceError."""

        async def source():
            yield b"a\n1\n"
            raise ConnectionResetError("peer reset")

        pipeline = Pipeline.delimited().encode_json()
        outputs: list[str] = []
        with pytest.raises(SourceError) as exc_info:
            async for out in pipeline.stream(source()):
                outputs.append(out)

        assert isinstance(exc_info.value.cause, ConnectionResetError)
        assert outputs == ['{"a":"1"}\n']

    @pytest.mark.asyncio
    async def test_source_error_passes_through_transform_stages(self) -> None:
        """Test stages do not rewrap source failures."""

        async def source():
            yield 1
            raise OSError("gone")

        pipeline = Pipeline().map(lambda n: n).tap(lambda n: None)
        with pytest.raises(SourceError):
            await pipeline.collect(source())

    @pytest.mark.asyncio
    async def test_run_failure_aborts_sink(self) -> None:
        """Test a failing run aborts the sink instead of finalizing it."""

        def fail_on_three(n):
            if n == 3:
                raise ValueError("bad record")
            return n

        sink = MemorySink()
        pipeline = Pipeline().map(fail_on_three).join_lines()
        with pytest.raises(TransformError):
            await pipeline.run([1, 2, 3, 4], sink)

        assert sink.text() == "1\n2\n"
        assert sink.aborted
        assert sink.close_count == 0

    @pytest.mark.asyncio
    async def test_sink_write_error(self) -> None:
        """Test sink failures surface as SinkError and stop the source."""
        state = {"closed": False}

        async def source():
            try:
                for i in range(100):
                    yield f"{i}\n"
            finally:
                state["closed"] = True

        sink = FailingSink(fail_on=2)
        with pytest.raises(SinkError) as exc_info:
            await Pipeline().run(source(), sink)

        assert isinstance(exc_info.value.cause, OSError)
        assert sink.chunks == [b"0\n"]
        assert state["closed"] is True

    @pytest.mark.asyncio
    async def test_run_requires_encoded_output(self) -> None:
        """Test records must be encoded before reaching a sink."""
        with pytest.raises(PipelineError) as exc_info:
            await Pipeline.delimited().run(b"a\n1\n", MemorySink())
        assert "encode_json" in str(exc_info.value)


class TestPipelineFlowControl:
    """Tests for pull-based backpressure and cancellation."""

    @pytest.mark.asyncio
    async def test_source_pulled_on_demand(self) -> None:
        """Test nothing is read ahead of what the consumer asks for."""
        pulled = 0

        async def source():
            nonlocal pulled
            for i in range(1000):
                pulled += 1
                yield {"i": i}

        pipeline = Pipeline().map(lambda r: r["i"]).then(JsonEncoder())
        async with aclosing(pipeline.stream(source())) as outputs:
            first = await outputs.__anext__()
            assert first == "0\n"
            assert pulled == 1
            await outputs.__anext__()
            assert pulled == 2

    @pytest.mark.asyncio
    async def test_early_close_propagates_to_source(self) -> None:
        """Test closing the output stream closes every stage and the source."""
        state = {"pulled": 0, "closed": False}

        async def source():
            try:
                for i in range(1000):
                    state["pulled"] += 1
                    yield f"{i}\n".encode()
            finally:
                state["closed"] = True

        pipeline = Pipeline().split_lines().map(int)
        async with aclosing(pipeline.stream(source())) as numbers:
            async for n in numbers:
                if n == 2:
                    break

        assert state["closed"] is True
        assert state["pulled"] == 3

    @pytest.mark.asyncio
    async def test_task_cancellation_closes_source(self) -> None:
        """Test cancelling the consuming task stops the source."""
        state = {"closed": False}
        started = asyncio.Event()

        async def source():
            try:
                while True:
                    started.set()
                    await asyncio.sleep(0.01)
                    yield b"x\n"
            finally:
                state["closed"] = True

        async def consume():
            await Pipeline().split_lines().collect(source())

        task = asyncio.create_task(consume())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert state["closed"] is True
