#!/usr/bin/env python3
"""Command-line interface that binarizes images with ``img2bin_toolkit``.

Every PNG/JPEG/HEIC file found among the inputs (directories are walked
recursively) is written as ``./output/<name>-bin.png``.

Examples:
    python img2bin_cli.py scan.jpg
    python img2bin_cli.py photos/ extra.png --threshold 100
    img2bin -t 200 -v ~/Pictures
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import img2bin_toolkit as bt

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="img2bin",
        description="Convert PNG/JPEG/HEIC images to black-and-white PNG files in ./output",
    )
    parser.add_argument(
        "-t",
        "--threshold",
        type=int,
        default=bt.DEFAULT_THRESHOLD,
        help="Samples above this 0-255 value become white, the rest black (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Also log debug messages")
    parser.add_argument("inputs", nargs="+", help="Input files or directories")
    return parser


def parse_inputs(args: argparse.Namespace) -> List[bt.InputSpec]:
    return [bt.InputSpec(path=raw, threshold=args.threshold) for raw in args.inputs]


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )

    specs = parse_inputs(args)
    output_dir = Path.cwd() / bt.OUTPUT_DIR_NAME
    logger.debug("Writing outputs to %s with threshold %d", output_dir, args.threshold)

    try:
        bt.convert_specs(specs, output_dir=output_dir)
    except bt.FatalSetupError as exc:
        print(f"img2bin: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
