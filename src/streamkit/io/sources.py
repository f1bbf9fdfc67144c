"""
Byte sources.

A source is anything that yields chunks in order: an async iterable, a
plain iterable, or a single ``bytes``/``str`` value. The helpers here read
files (with transparent gzip) and HTTP response bodies.
"""

from __future__ import annotations

import asyncio
import gzip
from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

import httpx

from streamkit.errors import SourceError
from streamkit.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

Source = Union[AsyncIterable[Any], Iterable[Any], bytes, str]

DEFAULT_CHUNK_SIZE = 64 * 1024

logger = get_logger("streamkit.io")


def is_compressed(path: str | Path, compressed: bool | None = None) -> bool:
    """Decide whether ``path`` holds gzip data.

    Args:
        path: File path
        compressed: Explicit flag; None infers it from a ``.gz`` suffix

    Returns:
        True if the file should go through gzip
    """
    if compressed is not None:
        return compressed
    return Path(path).suffix.lower() == ".gz"


def iter_source(source: Source) -> AsyncIterator[Any]:
    """Normalize a source into an async iterator.

    A bare ``bytes`` or ``str`` value is a source of exactly one chunk.

    Args:
        source: Async iterable, iterable, or single chunk

    Returns:
        Async iterator over the chunks
    """
    if isinstance(source, (bytes, bytearray, str)):
        return _from_iterable([source])
    if isinstance(source, AsyncIterable):
        return aiter(source)
    if isinstance(source, Iterable):
        return _from_iterable(source)
    raise TypeError(f"Unsupported source type: {type(source).__name__}")


async def _from_iterable(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


async def read_file(
    path: str | Path,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    compressed: bool | None = None,
) -> AsyncIterator[bytes]:
    """Read a file as a stream of byte chunks.

    Blocking reads run in a worker thread. Gzip files are decompressed
    transparently.

    Args:
        path: File to read
        chunk_size: Maximum bytes per chunk
        compressed: Force or disable gzip; None infers it from the suffix

    Yields:
        Raw (decompressed) byte chunks

    Raises:
        SourceError: If the file cannot be opened, read or decompressed
    """
    gz = is_compressed(path, compressed)
    try:
        handle = await asyncio.to_thread(gzip.open if gz else open, path, "rb")
    except OSError as e:
        raise SourceError(f"Cannot open {path}: {e}", cause=e) from e

    logger.debug("Reading file", path=str(path), compressed=gz)
    try:
        while True:
            try:
                chunk = await asyncio.to_thread(handle.read, chunk_size)
            except (OSError, EOFError) as e:
                raise SourceError(f"Failed reading {path}: {e}", cause=e) from e
            if not chunk:
                return
            yield chunk
    finally:
        handle.close()


async def read_http(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    chunk_size: int | None = None,
) -> AsyncIterator[bytes]:
    """Stream an HTTP response body as byte chunks.

    Content-Encoding (gzip, deflate) is decoded by httpx.

    Args:
        url: Resource to fetch
        client: Client to use; a private one is created and closed if None
        method: HTTP method
        headers: Extra request headers
        chunk_size: Preferred chunk size, None for whatever arrives

    Yields:
        Response body chunks

    Raises:
        SourceError: On status >= 400 or any transport failure
    """
    owns_client = client is None
    http = client or httpx.AsyncClient()
    try:
        async with http.stream(method, url, headers=headers) as response:
            if response.status_code >= 400:
                raise SourceError(
                    f"HTTP {response.status_code} while fetching {url}"
                ).with_hint("check the URL and credentials")
            logger.debug("Streaming HTTP body", url=url, status=response.status_code)
            async for chunk in response.aiter_bytes(chunk_size):
                yield chunk
    except httpx.HTTPError as e:
        raise SourceError(f"HTTP source failed: {e}", cause=e) from e
    finally:
        if owns_client:
            await http.aclose()
