import errno
import itertools
import logging

import pytest

from bra.greedy import (
    GreedyAccessReader,
    InvalidRangeError,
    OutOfRangeError,
    ReaderError,
    SourceError,
    UnexpectedEofError,
)
from bra.growth import GrowthPolicy
from bra.source import IterableSource


class ScriptedSource:
    """Serves chunks in order (split to fit the buffer), then ends or fails."""

    def __init__(self, chunks, error=None):
        self.chunks = [bytes(chunk) for chunk in chunks]
        self.error = error
        self.pulls = 0
        self.closed = False

    def readinto(self, buffer):
        self.pulls += 1
        if self.chunks:
            chunk = self.chunks.pop(0)
            count = min(len(buffer), len(chunk))
            buffer[:count] = chunk[:count]
            if count < len(chunk):
                self.chunks.insert(0, chunk[count:])
            return count
        if self.error is not None:
            raise self.error
        return 0

    def close(self):
        self.closed = True


FIVE = bytes([10, 20, 30, 40, 50])
DATA = bytes([1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16, 50])


def test_five_byte_scenario():
    reader = GreedyAccessReader(FIVE)
    assert reader.byte_at(2) == 30
    assert reader.slice(1, 4) == bytes([20, 30, 40])
    with pytest.raises(OutOfRangeError):
        reader.byte_at(5)

    buf = bytearray(3)
    assert reader.readinto(buf) == 3
    assert buf == bytes([10, 20, 30])

    buf = bytearray(10)
    assert reader.readinto(buf) == 2
    assert buf[:2] == bytes([40, 50])
    assert reader.readinto(buf) == 0


def test_source_error_keeps_resident_bytes():
    source = ScriptedSource([b"abc"], error=OSError(errno.EIO, "boom"))
    reader = GreedyAccessReader(source)

    with pytest.raises(SourceError) as excinfo:
        reader.byte_at(10)
    assert excinfo.value.errno == errno.EIO
    assert isinstance(excinfo.value.__cause__, OSError)
    assert reader.filled_len == 3
    assert not reader.exhausted

    assert reader.byte_at(1) == ord("b")


def test_source_error_is_not_sticky():
    source = ScriptedSource([b"abc"], error=OSError("flaky"))
    reader = GreedyAccessReader(source)
    with pytest.raises(SourceError):
        reader.byte_at(5)

    source.error = None
    source.chunks = [b"def"]
    assert reader.byte_at(5) == ord("f")


def test_invalid_range_touches_nothing():
    source = ScriptedSource([FIVE])
    reader = GreedyAccessReader(source)
    with pytest.raises(InvalidRangeError):
        reader.slice(5, 3)
    assert source.pulls == 0
    assert reader.filled_len == 0


def test_errors_share_builtin_bases():
    reader = GreedyAccessReader(FIVE)
    with pytest.raises(IndexError):
        reader.byte_at(99)
    with pytest.raises(ValueError):
        reader.slice(2, 1)
    with pytest.raises(EOFError):
        reader.read_exact(6)
    with pytest.raises(ReaderError):
        reader.byte_at(-1)


def test_get_arbitrary_order():
    reader = GreedyAccessReader(DATA)
    assert reader.byte_at(1) == 2
    assert reader.byte_at(2) == 3
    assert reader.byte_at(16) == 50
    assert reader.byte_at(10) == 11
    with pytest.raises(OutOfRangeError):
        reader.byte_at(17)


def test_slice_bounds():
    reader = GreedyAccessReader(DATA)
    assert reader.slice(0, 0) == b""
    assert reader.slice(1, 2) == bytes([2])
    assert reader.slice(0, 6) == bytes([1, 2, 3, 4, 5, 6])
    assert reader.slice(14, 17) == bytes([15, 16, 50])
    assert reader.slice(10, 12) == bytes([11, 12])
    with pytest.raises(OutOfRangeError):
        reader.slice(7, 18)
    with pytest.raises(InvalidRangeError):
        reader.slice(6, 5)


def test_repeated_get_does_no_io():
    source = ScriptedSource([DATA])
    reader = GreedyAccessReader(source)
    first = reader.byte_at(3)
    pulls = source.pulls
    assert reader.byte_at(3) == first
    assert source.pulls == pulls


def test_prefix_is_available_once_later_byte_is():
    reader = GreedyAccessReader(IterableSource([DATA[:5], DATA[5:9], DATA[9:]]))
    j = 12
    last = reader.byte_at(j)
    window = reader.slice(4, j + 1)
    assert window[-1] == last
    assert window[0] == reader.byte_at(4)


def test_exhaustion_is_monotonic():
    source = ScriptedSource([FIVE])
    reader = GreedyAccessReader(source)
    with pytest.raises(OutOfRangeError):
        reader.byte_at(100)
    assert reader.exhausted
    assert reader.filled_len == 5

    pulls = source.pulls
    reader.ensure_filled_to(1000)
    assert reader.exhausted
    assert reader.filled_len == 5
    assert source.pulls == pulls


def test_sequential_matches_random_access():
    data = bytes(range(256)) * 4
    chunks = [data[i : i + 7] for i in range(0, len(data), 7)]
    reader = GreedyAccessReader(IterableSource(chunks))

    expected = reader.slice(0, 500)
    pieces = []
    while sum(len(piece) for piece in pieces) < 500:
        pieces.append(reader.read(10))
    assert b"".join(pieces)[:500] == expected


def test_sequential_never_raises_out_of_range():
    reader = GreedyAccessReader(FIVE)
    assert reader.read(100) == FIVE
    assert reader.read(100) == b""
    assert reader.read() == b""
    assert reader.read1(4) == b""


def test_random_access_does_not_move_cursor():
    reader = GreedyAccessReader(DATA)
    reader.byte_at(16)
    reader.slice(3, 9)
    assert reader.cursor == 0
    assert reader.tell() == 0
    assert reader.read(3) == bytes([1, 2, 3])
    assert reader.byte_at(0) == 1


def test_infinite_source():
    reader = GreedyAccessReader(IterableSource(itertools.repeat(b"\x33" * 7)))
    for index in (4, 13, 24389, 156, 9006, 2019, 100000):
        assert reader.byte_at(index) == 0x33
    assert not reader.exhausted


def test_read_to_end():
    reader = GreedyAccessReader(IterableSource([DATA[:3], b"", DATA[3:]]))
    assert reader.read() == DATA
    assert reader.exhausted
    assert reader.read_to_end() == b""


def test_read_exact():
    reader = GreedyAccessReader(DATA)
    assert reader.read_exact(8) == bytes([1, 2, 3, 4, 5, 6, 7, 8])
    assert reader.byte_at(0) == 1
    assert reader.byte_at(8) == 9

    with pytest.raises(UnexpectedEofError):
        reader.read_exact(20)
    assert reader.cursor == 8
    assert reader.read_exact(9) == DATA[8:]


def test_read1_pulls_at_most_once():
    source = ScriptedSource([b"ab", b"cd"])
    reader = GreedyAccessReader(source)
    assert reader.read1(10) == b"ab"
    assert source.pulls == 1
    assert reader.read1(10) == b"cd"
    assert source.pulls == 2
    assert reader.read1(10) == b""
    assert reader.exhausted


def test_readinto1_uses_resident_bytes_first():
    source = ScriptedSource([b"abcd", b"ef"])
    reader = GreedyAccessReader(source)
    reader.byte_at(0)
    pulls = source.pulls

    buf = bytearray(10)
    assert reader.readinto1(buf) == 4
    assert source.pulls == pulls
    assert buf[:4] == b"abcd"


def test_peek_and_consume():
    reader = GreedyAccessReader(ScriptedSource([b"ab", b"cd"]))
    assert reader.peek() == b"ab"
    assert reader.cursor == 0
    assert reader.peek(3) == b"abcd"

    reader.consume(2)
    assert reader.read() == b"cd"
    with pytest.raises(InvalidRangeError):
        reader.consume(1)


def test_indexing():
    reader = GreedyAccessReader(DATA)
    assert reader[2] == 3
    assert reader[1:3] == bytes([2, 3])
    assert reader[:2] == bytes([1, 2])
    with pytest.raises(InvalidRangeError):
        reader[1:]
    with pytest.raises(InvalidRangeError):
        reader[0:4:2]
    with pytest.raises(InvalidRangeError):
        reader[-1]
    with pytest.raises(OutOfRangeError):
        reader[10:40]
    with pytest.raises(TypeError):
        reader["0"]


def test_borrow_blocks_growth_while_held():
    reader = GreedyAccessReader(bytes(range(200)))
    with reader.borrow(0, 3) as view:
        assert bytes(view) == bytes([0, 1, 2])
        assert view.readonly
        with pytest.raises(BufferError):
            reader.byte_at(150)
    assert reader.byte_at(150) == 150
    with pytest.raises(ValueError):
        bytes(view)


def test_default_growth_starts_at_sixteen_and_doubles():
    reader = GreedyAccessReader(bytes(100))
    reader.byte_at(0)
    assert reader.capacity == 16
    reader.byte_at(16)
    assert reader.capacity == 32
    reader.byte_at(80)
    assert reader.capacity == 128
    assert reader.filled_len == 100


def test_far_index_on_short_source_stays_small():
    reader = GreedyAccessReader(ScriptedSource([FIVE]))
    with pytest.raises(OutOfRangeError):
        reader.byte_at(10**9)
    assert reader.capacity == 16
    assert reader.filled_len == 5


def test_large_target_grows_one_step_per_pull(caplog):
    caplog.set_level(logging.DEBUG, logger="bra.greedy")
    reader = GreedyAccessReader(bytes(1000))
    assert reader.byte_at(999) == 0
    steps = [r.getMessage() for r in caplog.records if "growing storage" in r.getMessage()]
    assert steps[:3] == [
        "growing storage from 0 to 16 bytes",
        "growing storage from 16 to 32 bytes",
        "growing storage from 32 to 64 bytes",
    ]
    assert reader.capacity == 1024


def test_preallocated_capacity_is_kept():
    reader = GreedyAccessReader(DATA, capacity=64)
    reader.byte_at(10)
    assert reader.capacity == 64


def test_custom_growth_policy():
    reader = GreedyAccessReader(bytes(100), growth=GrowthPolicy(initial_capacity=4, factor=3))
    reader.byte_at(0)
    assert reader.capacity == 4
    reader.byte_at(4)
    assert reader.capacity == 12


def test_shrink_to_fit_keeps_bytes():
    reader = GreedyAccessReader(FIVE)
    reader.byte_at(4)
    reader.shrink_to_fit()
    assert reader.capacity == reader.filled_len == 5
    assert reader.slice(0, 5) == FIVE


def test_readline_and_iteration():
    reader = GreedyAccessReader(b"one\ntwo\nthree")
    assert list(reader) == [b"one\n", b"two\n", b"three"]
    assert reader[0:3] == b"one"


def test_close_releases_source():
    source = ScriptedSource([FIVE])
    with GreedyAccessReader(source) as reader:
        assert reader.read(2) == FIVE[:2]
    assert source.closed
    assert reader.closed
    with pytest.raises(ValueError):
        reader.read(1)


def test_detach_returns_source_without_closing():
    source = ScriptedSource([FIVE])
    reader = GreedyAccessReader(source)
    reader.byte_at(0)
    detached = reader.detach()
    assert detached.stream is source
    assert not source.closed
    with pytest.raises(ValueError):
        reader.byte_at(0)


def test_into_parts_and_into_buffer():
    source = ScriptedSource([FIVE])
    reader = GreedyAccessReader(source)
    reader.byte_at(2)
    detached, buffer = reader.into_parts()
    assert detached.stream is source
    assert buffer == FIVE
    assert reader.closed

    source = ScriptedSource([FIVE])
    reader = GreedyAccessReader(source)
    reader.byte_at(0)
    assert reader.into_buffer() == FIVE
    assert source.closed


def test_non_blocking_source_without_data():
    class Idle:
        def readinto(self, buffer):
            return None

    reader = GreedyAccessReader(Idle())
    with pytest.raises(SourceError) as excinfo:
        reader.byte_at(0)
    assert excinfo.value.errno == errno.EAGAIN
    assert isinstance(excinfo.value.__cause__, BlockingIOError)


def test_source_reporting_too_many_bytes():
    class Liar:
        def readinto(self, buffer):
            return len(buffer) + 1

    with pytest.raises(SourceError, match="invalid read count"):
        GreedyAccessReader(Liar()).byte_at(0)


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        GreedyAccessReader(FIVE, capacity=-1)


def test_stream_properties():
    reader = GreedyAccessReader(FIVE)
    assert reader.readable()
    assert not reader.seekable()
    assert "filled_len=0" in repr(reader)


def test_logs_growth_and_exhaustion(caplog):
    caplog.set_level(logging.DEBUG, logger="bra.greedy")
    reader = GreedyAccessReader(FIVE)
    with pytest.raises(OutOfRangeError):
        reader.byte_at(5)
    assert "growing storage from 0 to 16 bytes" in caplog.text
    assert "source exhausted after 5 bytes" in caplog.text
