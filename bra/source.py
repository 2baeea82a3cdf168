# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial
"""Byte sources a reader can pull from.

A source is anything with a `readinto(buffer) -> int` pull:
  - returns how many bytes were written into `buffer` (may be fewer than asked),
  - returns 0 only once the data has run out,
  - raises OSError on failure.

Adapters here turn the usual suspects (binary files, sockets' `makefile`,
pipes, bytes, generators of chunks) into that shape.
"""

from __future__ import annotations

import errno
import io
import os
import sys
import urllib.parse
import urllib.request
from collections.abc import Iterable, Iterator
from typing import Any, Protocol


class ByteSource(Protocol):
    """Forward-only, single-pass byte provider."""

    def readinto(self, buffer: memoryview) -> int: ...

    def close(self) -> None: ...


class StreamSource:
    """Source backed by a binary file-like object.

    Uses the stream's single-read calls (`readinto1`, then `read1`) when it
    has them: a buffered pipe or socket then hands over whatever is ready
    instead of blocking until the whole buffer is full. Falls back to
    `readinto`, then `read(n)`. A `None` result (non-blocking stream with
    nothing ready) is reported as BlockingIOError so the caller can retry
    later.
    """

    def __init__(self, stream: Any, close_stream: bool = True):
        self.stream = stream
        self.close_stream = close_stream

    def readinto(self, buffer: memoryview) -> int:
        stream = self.stream
        if hasattr(stream, "readinto1"):
            count = stream.readinto1(buffer)
        elif hasattr(stream, "read1"):
            count = _copy_chunk(stream.read1(len(buffer)), buffer)
        elif hasattr(stream, "readinto"):
            count = stream.readinto(buffer)
        else:
            count = _copy_chunk(stream.read(len(buffer)), buffer)
        if count is None:
            raise BlockingIOError(errno.EAGAIN, "source has no data available yet")
        return count

    def close(self) -> None:
        if self.close_stream and hasattr(self.stream, "close"):
            self.stream.close()

    def __repr__(self) -> str:
        return f"StreamSource({self.stream!r})"


class IterableSource:
    """Source backed by an iterable of bytes-like chunks.

    A plain int counts as a single byte, so `[10, 20, 30]` or a generator of
    byte values work as well. Chunks larger than the destination are split;
    the remainder is served by the next pull. Empty chunks are skipped, only
    the end of the iterable counts as end-of-data.

    Raises:
        TypeError: If a chunk is neither bytes-like nor an int.
        ValueError: If an int chunk is outside `range(256)`.
    """

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = memoryview(b"")

    def readinto(self, buffer: memoryview) -> int:
        while not self._pending:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                return 0
            self._pending = _as_chunk(chunk)
        count = min(len(buffer), len(self._pending))
        buffer[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count

    def close(self) -> None:
        close = getattr(self._chunks, "close", None)
        if close is not None:
            close()


def as_source(obj: Any) -> ByteSource:
    """Adapt `obj` into a ByteSource.

    Accepts existing sources, bytes-like objects, binary streams and
    iterables of chunks. Text streams are rejected: wrap their `.buffer`.
    """
    if isinstance(obj, (StreamSource, IterableSource)):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return StreamSource(io.BytesIO(bytes(obj)))
    if isinstance(obj, io.TextIOBase):
        raise TypeError("text streams are not byte sources; pass the binary .buffer instead")
    if hasattr(obj, "readinto") or hasattr(obj, "read"):
        return StreamSource(obj)
    if isinstance(obj, Iterable) and not isinstance(obj, str):
        return IterableSource(obj)
    raise TypeError(f"cannot read bytes from {type(obj).__name__}")


def open_source(uri: str) -> StreamSource:
    """Open a source from a URI: `-` for stdin, `file://` URIs or plain paths."""
    if uri == "-":
        return StreamSource(sys.stdin.buffer, close_stream=False)
    path = _uri_to_path(uri)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"resource does not exist: {uri}")
    # unbuffered, the reader does its own buffering
    return StreamSource(open(path, "rb", buffering=0))


def _copy_chunk(chunk: bytes | None, buffer: memoryview) -> int | None:
    if chunk is None:
        return None
    count = len(chunk)
    buffer[:count] = chunk
    return count


def _as_chunk(chunk: Any) -> memoryview:
    if isinstance(chunk, int):
        return memoryview(bytes((chunk,)))
    try:
        with memoryview(chunk) as view:
            return memoryview(view.tobytes())
    except TypeError:
        raise TypeError(
            f"chunks must be bytes-like or ints, not {type(chunk).__name__}"
        ) from None


def _uri_to_path(uri: str) -> str:
    if uri.startswith("file://"):
        parsed = urllib.parse.urlparse(uri)
        return urllib.request.url2pathname(parsed.path)
    return uri
