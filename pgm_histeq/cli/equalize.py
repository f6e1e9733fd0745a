#!/usr/bin/env python3
"""
pgm-equalize: histogram equalization of binary graymaps (P5).

Single file:  pgm-equalize input.pgm -o output.pgm
Whole folder: pgm-equalize --input-dir scans/ --output-dir scans_eq/ --recursive
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..errors import HistEqError
from ..pipeline.equalize_pipeline import equalize_directory, equalize_file

logger = logging.getLogger("pgm_histeq.cli")

LOG_FORMAT = '%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s'
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgm-equalize",
        description="Histogram equalization for binary PGM (P5) images",
    )
    parser.add_argument("input", nargs="?",
                        default=os.getenv("HISTEQ_INPUT_PATH", "input.pgm"),
                        help="Input graymap (default: %(default)s)")
    parser.add_argument("-o", "--output",
                        default=os.getenv("HISTEQ_OUTPUT_PATH", "output.pgm"),
                        help="Output graymap (default: %(default)s)")
    parser.add_argument("--input-dir", help="Equalize every graymap in this folder")
    parser.add_argument("--output-dir", help="Destination folder for --input-dir")
    parser.add_argument("--recursive", action="store_true",
                        help="Descend into sub-folders of --input-dir")
    parser.add_argument("--overwrite", action="store_true",
                        help="Replace existing output files")
    parser.add_argument("--strict", action="store_true",
                        help="Fail on single-intensity images instead of copying them unchanged")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        choices=LOG_LEVELS,
                        type=str.upper)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid log level {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")

    if bool(args.input_dir) != bool(args.output_dir):
        parser.error("--input-dir and --output-dir must be given together")

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format=LOG_FORMAT,
        datefmt='%H:%M:%S'
    )

    try:
        if args.input_dir:
            report = equalize_directory(
                args.input_dir,
                args.output_dir,
                recursive=args.recursive,
                overwrite=args.overwrite,
                strict=args.strict,
            )
            for path, reason in report.failed:
                logger.error("%s: %s", path, reason)
            return 0 if report.ok else 1

        equalize_file(args.input, args.output,
                      overwrite=args.overwrite, strict=args.strict)
    except (HistEqError, OSError, ValueError) as err:
        logger.error("%s", err)
        return 1

    logger.info("Histogram equalization complete -> %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
