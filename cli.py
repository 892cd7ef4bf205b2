#!/usr/bin/env python3
"""Replay a CSV file of client events and print the final balances."""

import argparse
import sys
from typing import Optional, Sequence

import structlog

from config import get_settings
from csv_io import replay_csv, write_snapshot
from logging_config import configure_logging

logger = structlog.get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay deposit/withdrawal/dispute events and print account balances as CSV"
    )
    parser.add_argument("path", help="CSV file with columns type,client,tx,amount")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (logs go to stderr)")
    parser.add_argument(
        "--strict-whitespace",
        action="store_true",
        help="Drop rows whose fields carry any whitespace instead of trimming it",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    configure_logging(settings)

    trim_whitespace = settings.trim_whitespace and not args.strict_whitespace

    try:
        # Undecodable bytes become U+FFFD so only the row carrying them is dropped
        with open(args.path, newline="", encoding="utf-8-sig", errors="replace") as stream:
            ledger = replay_csv(stream, trim_whitespace=trim_whitespace)
    except OSError as e:
        logger.error("Cannot read input file", path=args.path, error=str(e))
        return 1

    write_snapshot(ledger.snapshot(), sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
