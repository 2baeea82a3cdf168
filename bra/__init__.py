# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial

"""Buffered random access over forward-only byte streams.

The format sniffing layer (`bra.caps`, `bra.type_finder`) needs rdflib,
installed with the `typefinder` extra. It is imported on first use only, so
the reader itself works without it.
"""

from importlib import import_module

from .greedy import (
    GreedyAccessReader,
    InvalidRangeError,
    OutOfRangeError,
    ReaderError,
    SourceError,
    UnexpectedEofError,
)
from .growth import GrowthPolicy
from .source import ByteSource, IterableSource, StreamSource, as_source, open_source

_LAZY_EXPORTS = {
    "Caps": "caps",
    "caps_to_turtle": "caps",
    "caps_triples": "caps",
    "summarize_caps": "caps",
    "HeaderAnalyzer": "type_finder",
    "HeaderDetector": "type_finder",
    "TypeFinderError": "type_finder",
}

__all__ = [
    "ByteSource",
    "Caps",
    "GreedyAccessReader",
    "GrowthPolicy",
    "HeaderAnalyzer",
    "HeaderDetector",
    "InvalidRangeError",
    "IterableSource",
    "OutOfRangeError",
    "ReaderError",
    "SourceError",
    "StreamSource",
    "TypeFinderError",
    "UnexpectedEofError",
    "as_source",
    "caps_to_turtle",
    "caps_triples",
    "open_source",
    "summarize_caps",
]


def __getattr__(name: str) -> object:
    if name in _LAZY_EXPORTS:
        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted({*globals().keys(), *__all__})
