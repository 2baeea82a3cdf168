# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial
"""Greedy random-access reader over a forward-only byte source.

Intent:
  - Keep every byte ever pulled from the source in one growing buffer.
  - Serve sequential reads (a cursor, like any buffered reader) and random
    access (absolute index or range, ahead of or behind the cursor) from
    that same buffer, pulling more from the source only when needed.

Defined here:
  - GreedyAccessReader: the reader itself (an `io.BufferedIOBase`).
  - ReaderError and its subclasses: the failure taxonomy callers match on.

Indices are always relative to where the source was when it was handed to
the reader. Nothing is ever evicted, so index 0 stays index 0.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .growth import GrowthPolicy
from .source import ByteSource, as_source

logger = logging.getLogger(__name__)


class ReaderError(Exception):
    """Base exception for reader failures."""


class SourceError(ReaderError, OSError):
    """Raised when the underlying source fails while filling the buffer.

    Bytes pulled before the failure stay resident; the same call may be
    retried.
    """


class OutOfRangeError(ReaderError, IndexError):
    """Raised when random access addresses bytes the source never produced."""


class InvalidRangeError(ReaderError, ValueError):
    """Raised for malformed positions or ranges, before any I/O happens."""


class UnexpectedEofError(ReaderError, EOFError):
    """Raised when an exact read runs into the end of the stream."""


class GreedyAccessReader(io.BufferedIOBase):
    """Buffered reader that retains everything it reads for random access.

    Sequential reads advance a cursor; `byte_at`, `slice` and indexing
    (`reader[i]`, `reader[a:b]`) never move it. Returned slices are copies.
    For zero-copy access use `borrow`, whose view is only valid inside the
    `with` block.

    Args:
        source: Anything `bra.source.as_source` accepts.
        capacity: Bytes to pre-allocate for the backing storage.
        growth: Growth policy for the backing storage.
    """

    def __init__(
        self, source: Any, capacity: int = 0, growth: GrowthPolicy | None = None
    ) -> None:
        super().__init__()
        self._source: ByteSource | None = None
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._source = as_source(source)
        self._growth = growth or GrowthPolicy()
        self._storage = bytearray(capacity)
        self._filled = 0
        self._cursor = 0
        self._exhausted = False

    @property
    def filled_len(self) -> int:
        """Number of resident bytes pulled from the source so far."""
        return self._filled

    @property
    def cursor(self) -> int:
        """Position of the next byte returned by sequential reads."""
        return self._cursor

    @property
    def exhausted(self) -> bool:
        """Whether the source has signalled end-of-data."""
        return self._exhausted

    @property
    def capacity(self) -> int:
        return len(self._storage)

    @property
    def growth(self) -> GrowthPolicy:
        return self._growth

    # Random access

    def ensure_filled_to(self, target_len: int) -> int:
        """Pull from the source until `target_len` bytes are resident.

        Whenever the storage is full it grows by one step of the growth
        policy before the next pull. Stops early when the source runs out.
        Returns the resident length, which is below `target_len` only if the
        source is exhausted.

        Raises:
            InvalidRangeError: If `target_len` is negative.
            SourceError: If the source fails; partial progress is kept.
        """
        self._check_open()
        if target_len < 0:
            raise InvalidRangeError(f"negative length {target_len} is not supported")
        if self._filled >= target_len or self._exhausted:
            return self._filled
        # One growth step per pull, never straight to target_len.
        while self._filled < target_len:
            if not self._pull():
                break
        return self._filled

    def byte_at(self, index: int) -> int:
        """Return the byte at absolute `index`, reading ahead if needed.

        Raises:
            InvalidRangeError: If `index` is negative.
            OutOfRangeError: If the stream ends before `index`.
            SourceError: If the source fails while filling.
        """
        if index < 0:
            raise InvalidRangeError(f"negative index {index} is not supported")
        if self.ensure_filled_to(index + 1) <= index:
            raise OutOfRangeError(
                f"index {index} is beyond the end of the stream ({self._filled} bytes)"
            )
        return self._storage[index]

    def slice(self, start: int, end: int) -> bytes:
        """Return a copy of bytes `[start, end)`; never truncated.

        Raises:
            InvalidRangeError: If `start > end` or either bound is negative.
            OutOfRangeError: If the stream ends before `end`.
            SourceError: If the source fails while filling.
        """
        self._fill_range(start, end)
        with memoryview(self._storage) as view, view[start:end] as window:
            return window.tobytes()

    @contextmanager
    def borrow(self, start: int, end: int) -> Iterator[memoryview]:
        """Yield a read-only view of bytes `[start, end)` without copying.

        While the view is held the storage cannot grow: reads that need more
        bytes from the source raise BufferError until the block exits.
        """
        self._fill_range(start, end)
        with (
            memoryview(self._storage) as view,
            view[start:end] as window,
            window.toreadonly() as frozen,
        ):
            yield frozen

    def __getitem__(self, key: int | slice) -> int | bytes:
        if isinstance(key, slice):
            if key.step not in (None, 1):
                raise InvalidRangeError("stepped slices are not supported")
            if key.stop is None:
                raise InvalidRangeError("slice end must be bounded")
            start = 0 if key.start is None else key.start
            return self.slice(start, key.stop)
        if isinstance(key, int):
            return self.byte_at(key)
        raise TypeError("index must be an integer or a slice")

    # Sequential reads

    def readinto(self, buffer: Any) -> int:
        """Fill `buffer` from the cursor; returns 0 only at the end of the stream."""
        with memoryview(buffer) as raw, raw.cast("B") as destination:
            self.ensure_filled_to(self._cursor + len(destination))
            return self._copy_out(destination)

    def read(self, size: int | None = -1) -> bytes:
        """Read up to `size` bytes, or everything left when `size` is negative."""
        if size is None or size < 0:
            return self.read_to_end()
        self.ensure_filled_to(self._cursor + size)
        return self._take(size)

    def readinto1(self, buffer: Any) -> int:
        """Like `readinto`, but with at most one pull from the source."""
        self._check_open()
        with memoryview(buffer) as raw, raw.cast("B") as destination:
            if len(destination):
                self._fill_once()
            return self._copy_out(destination)

    def read1(self, size: int | None = -1) -> bytes:
        """Like `read`, but with at most one pull from the source."""
        if size is None:
            size = -1
        if size != 0:
            self._fill_once()
        if size < 0:
            size = self._filled - self._cursor
        return self._take(size)

    def read_exact(self, size: int) -> bytes:
        """Read exactly `size` bytes.

        Raises:
            UnexpectedEofError: If the stream ends first. The cursor does not
                move, so the remaining bytes can still be read.
        """
        if size < 0:
            raise InvalidRangeError(f"negative size {size} is not supported")
        target_len = self._cursor + size
        if self.ensure_filled_to(target_len) < target_len:
            raise UnexpectedEofError(
                f"needed {size} bytes but only {self._filled - self._cursor} remain"
            )
        return self._take(size)

    def read_to_end(self) -> bytes:
        """Read the source to exhaustion and return every byte after the cursor."""
        self._check_open()
        while not self._exhausted:
            self._pull()
        return self._take(self._filled - self._cursor)

    def peek(self, size: int = 0) -> bytes:
        """Return unread resident bytes without advancing the cursor.

        Reads ahead until at least `size` (minimum one) bytes are unread, or
        the stream ends. The result may be longer than `size`.
        """
        self.ensure_filled_to(self._cursor + max(size, 1))
        return self.slice(self._cursor, self._filled)

    def consume(self, amount: int) -> None:
        """Advance the cursor over `amount` resident bytes, e.g. after `peek`."""
        self._check_open()
        if amount < 0 or self._cursor + amount > self._filled:
            raise InvalidRangeError(
                f"cannot consume {amount} bytes, {self._filled - self._cursor} are resident"
            )
        self._cursor += amount

    def tell(self) -> int:
        self._check_open()
        return self._cursor

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    # Ownership

    def shrink_to_fit(self) -> None:
        """Release spare capacity; resident bytes are kept."""
        self._check_open()
        del self._storage[self._filled :]

    def detach(self) -> ByteSource:
        """Hand back the source; the reader becomes unusable.

        Resident bytes that were not read yet are lost to the caller.
        """
        self._check_open()
        source, self._source = self._source, None
        super().close()
        return source

    def into_parts(self) -> tuple[ByteSource, bytearray]:
        """Hand back the source and the resident bytes; the reader becomes unusable."""
        self._check_open()
        buffer = self._storage
        del buffer[self._filled :]
        self._storage = bytearray()
        return self.detach(), buffer

    def into_buffer(self) -> bytearray:
        """Close the source and return the resident bytes."""
        source, buffer = self.into_parts()
        source.close()
        return buffer

    def close(self) -> None:
        if self.closed:
            return
        source, self._source = self._source, None
        try:
            if source is not None:
                source.close()
        finally:
            super().close()

    def __repr__(self) -> str:
        if self.closed:
            return "GreedyAccessReader(closed)"
        return (
            f"GreedyAccessReader(filled_len={self._filled}, cursor={self._cursor}, "
            f"exhausted={self._exhausted})"
        )

    # Internals

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed reader")

    def _fill_range(self, start: int, end: int) -> None:
        if start < 0 or end < 0:
            raise InvalidRangeError(f"negative bounds [{start}, {end}) are not supported")
        if start > end:
            raise InvalidRangeError(f"range start {start} is after end {end}")
        if self.ensure_filled_to(end) < end:
            raise OutOfRangeError(
                f"range [{start}, {end}) is beyond the end of the stream ({self._filled} bytes)"
            )

    def _reserve(self, target_len: int) -> None:
        capacity = len(self._storage)
        new_capacity = self._growth.next_capacity(capacity, target_len)
        if new_capacity > capacity:
            logger.debug("growing storage from %d to %d bytes", capacity, new_capacity)
            self._storage.extend(bytes(new_capacity - capacity))

    def _pull(self) -> int:
        """Read once from the source into spare capacity; 0 means end-of-data."""
        if self._filled == len(self._storage):
            self._reserve(self._filled + 1)
        with memoryview(self._storage) as view, view[self._filled :] as spare:
            try:
                count = self._source.readinto(spare)
            except OSError as error:
                logger.debug("source failed with %d bytes resident: %s", self._filled, error)
                raise _as_source_error(error) from error
            if not 0 <= count <= len(spare):
                raise SourceError(f"source reported an invalid read count: {count!r}")
        if count == 0:
            self._exhausted = True
            logger.debug("source exhausted after %d bytes", self._filled)
        self._filled += count
        return count

    def _fill_once(self) -> None:
        self._check_open()
        if self._cursor == self._filled and not self._exhausted:
            self._pull()

    def _take(self, size: int) -> bytes:
        count = min(size, self._filled - self._cursor)
        data = self.slice(self._cursor, self._cursor + count)
        self._cursor += count
        return data

    def _copy_out(self, destination: memoryview) -> int:
        count = min(len(destination), self._filled - self._cursor)
        destination[:count] = self._storage[self._cursor : self._cursor + count]
        self._cursor += count
        return count


def _as_source_error(error: OSError) -> SourceError:
    if error.errno is not None:
        return SourceError(error.errno, f"source read failed: {error.strerror or error}")
    return SourceError(f"source read failed: {error}")
