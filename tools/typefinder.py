# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial

from __future__ import annotations

import argparse
import logging
import sys
from typing import BinaryIO

from bra.caps import caps_to_turtle, summarize_caps
from bra.greedy import GreedyAccessReader, SourceError
from bra.growth import GrowthPolicy
from bra.source import open_source
from bra.type_finder import HeaderAnalyzer, TypeFinderError

COPY_CHUNK_BYTES = 65_536


def build_reader(args: argparse.Namespace) -> GreedyAccessReader:
    growth = GrowthPolicy(initial_capacity=args.initial_capacity)
    return GreedyAccessReader(open_source(args.uri), growth=growth)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Determine the format of a file or stream from its header bytes."
    )
    parser.add_argument("uri", nargs="?", default="-", help="URI/path to inspect, '-' for stdin.")
    parser.add_argument(
        "--initial-capacity",
        type=int,
        default=4096,
        help="First buffer reservation in bytes (default: 4096).",
    )
    parser.add_argument(
        "--passthrough",
        action="store_true",
        help="Copy the whole stream to stdout after detection; the summary goes to stderr.",
    )
    parser.add_argument("--turtle", action="store_true", help="Print caps as Turtle instead of JSON.")
    parser.add_argument("--verbose", action="store_true", help="Log buffer activity to stderr.")
    return parser.parse_args(argv)


def copy_stream(reader: GreedyAccessReader, out: BinaryIO) -> int:
    """Copy everything from the reader's cursor onwards to `out`."""
    total = 0
    while True:
        chunk = reader.read1(COPY_CHUNK_BYTES)
        if not chunk:
            return total
        out.write(chunk)
        total += len(chunk)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    try:
        reader = build_reader(args)
    except (FileNotFoundError, ValueError) as error:
        print(f"[error] {error}", file=sys.stderr)
        return 1

    with reader:
        try:
            caps = HeaderAnalyzer().detect(reader)
            if caps is None:
                raise TypeFinderError("Unknown format")
        except (TypeFinderError, SourceError) as error:
            print(f"[error] {error}", file=sys.stderr)
            return 1

        if args.turtle:
            summary = caps_to_turtle(caps)
        else:
            summary = summarize_caps(caps, sniffed_bytes=reader.filled_len)

        if args.passthrough:
            print(summary, file=sys.stderr)
            try:
                copy_stream(reader, sys.stdout.buffer)
            except SourceError as error:
                print(f"[error] {error}", file=sys.stderr)
                return 1
            sys.stdout.flush()
        else:
            print(summary)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
