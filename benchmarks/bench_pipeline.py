#!/usr/bin/env python3
"""
Pipeline performance benchmarks.

Measures throughput of the streaming stages on an in-memory CSV document.
"""

import asyncio
import time
from typing import Any

from streamkit.io import MemorySink
from streamkit.pipeline import (
    Batcher,
    DelimitedRecordParser,
    JsonEncoder,
    LineSplitter,
    Pipeline,
)


def generate_csv_chunks(rows: int, chunk_size: int = 4096) -> list[bytes]:
    """Generate a CSV document split into fixed-size byte chunks."""
    lines = ["id,name,amount,note"]
    for i in range(rows):
        lines.append(f'{i},user{i},{i * 3 % 1000},"note, with comma {i}"')
    data = ("\n".join(lines) + "\n").encode()
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


async def byte_stream(chunks: list[Any]):
    for chunk in chunks:
        yield chunk


def _result(name: str, rows: int, produced: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "rows": rows,
        "produced": produced,
        "elapsed_seconds": elapsed,
        "throughput_ups": produced / elapsed if elapsed else 0,
        "latency_us": (elapsed / produced) * 1_000_000 if produced else 0,
    }


async def benchmark_line_splitter(rows: int = 50_000) -> dict[str, Any]:
    """Benchmark LineSplitter throughput."""
    chunks = generate_csv_chunks(rows)
    splitter = LineSplitter()

    start = time.perf_counter()
    count = 0
    async for _ in splitter.process(byte_stream(chunks)):
        count += 1
    return _result("LineSplitter", rows, count, time.perf_counter() - start)


async def benchmark_delimited_parser(rows: int = 50_000) -> dict[str, Any]:
    """Benchmark DelimitedRecordParser throughput on pre-split lines."""
    lines = [line async for line in LineSplitter().process(byte_stream(generate_csv_chunks(rows)))]
    parser = DelimitedRecordParser()

    start = time.perf_counter()
    count = 0
    async for _ in parser.process(byte_stream(lines)):
        count += 1
    return _result("DelimitedRecordParser", rows, count, time.perf_counter() - start)


async def benchmark_batch_and_encode(rows: int = 50_000) -> dict[str, Any]:
    """Benchmark Batcher followed by JsonEncoder."""
    records = [{"id": str(i), "name": f"user{i}"} for i in range(rows)]
    pipeline = Pipeline([Batcher(batch_size=100), JsonEncoder()])

    start = time.perf_counter()
    count = 0
    async for _ in pipeline.process(byte_stream(records)):
        count += 1
    return _result("Batcher+JsonEncoder", rows, count, time.perf_counter() - start)


async def benchmark_full_pipeline(rows: int = 50_000) -> dict[str, Any]:
    """Benchmark a complete CSV to JSON Lines run into a memory sink."""
    chunks = generate_csv_chunks(rows)
    pipeline = (
        Pipeline.delimited()
        .map(lambda r: {"id": int(r["id"]), "amount": int(r["amount"])})
        .encode_json()
    )

    sink = MemorySink()
    stats = await pipeline.run(chunks, sink)
    result = _result("FullPipeline", rows, stats.units_written, stats.elapsed_seconds)
    result["bytes_written"] = stats.bytes_written
    return result


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Pipeline Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_line_splitter,
        benchmark_delimited_parser,
        benchmark_batch_and_encode,
        benchmark_full_pipeline,
    ]

    for bench in benchmarks:
        result = await bench()
        print(f"{result['name']}:")
        print(f"  Rows: {result['rows']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        print(f"  Throughput: {result['throughput_ups']:.0f} units/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/unit")
        if "bytes_written" in result:
            print(f"  Output: {result['bytes_written']} bytes")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
