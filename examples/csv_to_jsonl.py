#!/usr/bin/env python3
"""
CSV to JSON Lines example.

Reads a (possibly gzipped) delimited file, converts numeric columns,
logs progress every 10,000 records and writes batched JSON Lines.

Usage:
    python examples/csv_to_jsonl.py input.csv.gz output.jsonl.gz
    STREAMKIT_BATCH_SIZE=500 python examples/csv_to_jsonl.py in.csv out.jsonl
"""

import asyncio
import sys

from streamkit import FileSink, Pipeline, read_file
from streamkit.pipeline import Batcher, BatcherConfig
from streamkit.telemetry import LogLevel, StreamKitLogger, get_logger

logger = get_logger("streamkit.examples.csv_to_jsonl")


def convert(record: dict) -> dict:
    """Turn digit-only fields into integers."""
    return {
        key: int(value) if value is not None and value.isdigit() else value
        for key, value in record.items()
    }


async def main(source_path: str, target_path: str) -> None:
    """Run the conversion."""
    StreamKitLogger.configure(level=LogLevel.INFO, format="text")

    seen = 0

    def progress(record: dict) -> None:
        nonlocal seen
        seen += 1
        if seen % 10_000 == 0:
            logger.info("Progress", records=seen)

    pipeline = (
        Pipeline.delimited()
        .map(convert)
        .tap(progress)
        .then(Batcher(BatcherConfig.from_env()))
        .encode_json()
    )

    stats = await pipeline.run(read_file(source_path), FileSink(target_path))
    logger.info(
        "Done",
        records=seen,
        batches=stats.units_written,
        bytes=stats.bytes_written,
        seconds=round(stats.elapsed_seconds, 3),
    )


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1], sys.argv[2]))
