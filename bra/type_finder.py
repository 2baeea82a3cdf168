# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial
"""Format detection at the head of a stream, without consuming it.

Key pieces:
  - HeaderDetector: small predicate over a reader paired with a resulting Caps.
  - HeaderAnalyzer: runs detectors sequentially to find the first match.
  - matches_at / head_sample: random-access helpers detectors are built from.

Detectors only use random access (`byte_at`, `slice`), so the reader's cursor
stays where it was and every sniffed byte is still delivered to whoever reads
the stream sequentially afterwards. A pipe or socket can be typed and then
passed on whole.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .caps import Caps
from .greedy import GreedyAccessReader

DEFAULT_SAMPLE_BYTES = 2048


@dataclass(frozen=True)
class HeaderDetector:
    """Mapping of a detection function to its resulting Caps."""

    name: str
    detector: Callable[[GreedyAccessReader], bool]
    caps: Caps


PDF_CAPS = Caps("application/pdf", "pdf", "Portable Document Format.", ("pdf",))
PNG_CAPS = Caps("image/png", "png", "PNG image.", ("png",))
JPEG_CAPS = Caps("image/jpeg", "jpeg", "JPEG image.", ("jpg", "jpeg"))
GIF_CAPS = Caps("image/gif", "gif", "GIF image.", ("gif",))
VIDEO_CAPS = Caps("video/mp4", "mp4", "ISO base media container (mp4/mov).", ("mp4", "m4v", "mov"))
GZIP_CAPS = Caps("application/gzip", "gzip", "gzip compressed data.", ("gz",))
BZIP2_CAPS = Caps("application/x-bzip2", "bzip2", "bzip2 compressed data.", ("bz2",))
XZ_CAPS = Caps("application/x-xz", "xz", "xz compressed data.", ("xz",))
ZIP_CAPS = Caps("application/zip", "zip", "ZIP archive.", ("zip",))
TAR_CAPS = Caps("application/x-tar", "tar", "POSIX tar archive.", ("tar",))
ELF_CAPS = Caps("application/x-executable", "elf", "ELF executable or library.")
CALENDAR_CAPS = Caps("text/calendar", "calendar", "Calendar data (ICS/vCalendar).", ("ics",))
TEXT_CAPS = Caps("text/plain", "plain-text", "Mostly printable text.", ("txt", "md"))


def matches_at(reader: GreedyAccessReader, offset: int, magic: bytes) -> bool:
    """Check for `magic` at `offset`; a stream too short to hold it does not match."""
    end = offset + len(magic)
    if reader.ensure_filled_to(end) < end:
        return False
    return reader.slice(offset, end) == magic


def head_sample(reader: GreedyAccessReader, size: int = DEFAULT_SAMPLE_BYTES) -> bytes:
    """Return up to `size` bytes from the start of the stream."""
    available = reader.ensure_filled_to(size)
    return reader.slice(0, min(size, available))


def _is_pdf(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"%PDF-")


def _is_png(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"\x89PNG\r\n\x1a\n")


def _is_jpeg(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"\xff\xd8\xff")


def _is_gif(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"GIF87a") or matches_at(reader, 0, b"GIF89a")


def _is_mp4(reader: GreedyAccessReader) -> bool:
    """Detect ISOBMFF by the `ftyp` box type after the 4-byte box size."""
    return matches_at(reader, 4, b"ftyp")


def _is_gzip(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"\x1f\x8b")


def _is_bzip2(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"BZh")


def _is_xz(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"\xfd7zXZ\x00")


def _is_zip(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"PK\x03\x04")


def _is_tar(reader: GreedyAccessReader) -> bool:
    """Detect tar by the `ustar` magic in the first header block (offset 257)."""
    return matches_at(reader, 257, b"ustar")


def _is_elf(reader: GreedyAccessReader) -> bool:
    return matches_at(reader, 0, b"\x7fELF")


def _is_calendar(reader: GreedyAccessReader) -> bool:
    text = head_sample(reader).decode("utf-8", errors="ignore").lower()
    return "begin:vcalendar" in text


def _is_text(reader: GreedyAccessReader) -> bool:
    """Detect text-heavy content: at least 85% printable ASCII or whitespace."""
    sample = head_sample(reader)
    if not sample:
        return False
    printable = sum(1 for byte in sample if 32 <= byte <= 126 or byte in (9, 10, 13))
    return printable / len(sample) >= 0.85


DEFAULT_DETECTORS: list[HeaderDetector] = [
    # Order matters: specific signatures before generic ones (tar holds text, text last).
    HeaderDetector("pdf", _is_pdf, PDF_CAPS),
    HeaderDetector("png", _is_png, PNG_CAPS),
    HeaderDetector("jpeg", _is_jpeg, JPEG_CAPS),
    HeaderDetector("gif", _is_gif, GIF_CAPS),
    HeaderDetector("mp4", _is_mp4, VIDEO_CAPS),
    HeaderDetector("gzip", _is_gzip, GZIP_CAPS),
    HeaderDetector("bzip2", _is_bzip2, BZIP2_CAPS),
    HeaderDetector("xz", _is_xz, XZ_CAPS),
    HeaderDetector("zip", _is_zip, ZIP_CAPS),
    HeaderDetector("elf", _is_elf, ELF_CAPS),
    HeaderDetector("tar", _is_tar, TAR_CAPS),
    HeaderDetector("calendar", _is_calendar, CALENDAR_CAPS),
    HeaderDetector("text", _is_text, TEXT_CAPS),
]


class HeaderAnalyzer:
    """Sequentially executes detectors to identify a Caps match."""

    def __init__(self, detectors: Sequence[HeaderDetector] | None = None):
        self.detectors = list(detectors or DEFAULT_DETECTORS)

    def detect(self, reader: GreedyAccessReader) -> Caps | None:
        for detector in self.detectors:
            if detector.detector(reader):
                return detector.caps
        return None


class TypeFinderError(RuntimeError):
    """Raised when no detector recognizes the stream."""
