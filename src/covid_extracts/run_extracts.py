"""
Extract build entry point.

Usage (from project root):

    covid-extracts
    python -m covid_extracts.run_extracts --no-testing

This will:
  - Fetch the NYT national/state/county feeds and the testing feeds
  - Reconcile, derive deltas and cut the trailing window
  - Write:
        data/state/all.csv, data/state/90d.csv
        data/county/all/<code>.csv, data/county/90d/<code>.csv

Exits non-zero (after logging the error) on any fetch or validation failure.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from covid_extracts.config import ExtractConfig
from covid_extracts.errors import ExtractError
from covid_extracts.pipeline import run_extracts


logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure basic logging to stdout."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    defaults = ExtractConfig()
    parser = argparse.ArgumentParser(
        description="Build the state and county COVID-19 CSV extracts",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=defaults.output_dir,
        help="Root directory for the state/ and county/ extracts (default: %(default)s).",
    )
    parser.add_argument(
        "--feeds-config",
        type=Path,
        default=defaults.feeds_config,
        help="YAML file with feed URLs and column contracts (default: %(default)s).",
    )
    parser.add_argument(
        "--no-testing",
        action="store_true",
        help="Skip the testing feeds; state extracts then carry case/death columns only.",
    )
    parser.add_argument(
        "--unmapped-regions",
        choices=["drop", "raise"],
        default=defaults.unmapped_regions,
        help="What to do with county rows whose state has no region code "
        "(default: %(default)s).",
    )
    parser.add_argument(
        "--window-days",
        type=int,
        default=defaults.window_days,
        help="Days shown in the trailing extract; %d lookback days are added on top "
        "(default: %%(default)s)." % defaults.lookback_days,
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=defaults.timeout_s,
        help="Per-feed HTTP timeout in seconds (default: %(default)s).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging()

    config = ExtractConfig(
        output_dir=args.output_dir,
        feeds_config=args.feeds_config,
        include_testing=not args.no_testing,
        unmapped_regions=args.unmapped_regions,
        window_days=args.window_days,
        timeout_s=args.timeout,
    )
    logger.info("Using config: %s", config)

    t0 = time.perf_counter()
    try:
        artifacts = run_extracts(config=config)
    except (ExtractError, ValueError, OSError) as exc:
        logger.error("Extract build failed: %s", exc)
        return 1

    logger.info(
        "Wrote %d files (%d state rows, %d state regions with county data)",
        len(artifacts.written),
        len(artifacts.state_rows),
        len(artifacts.county_rows),
    )
    logger.info("Finished in %.2fs", time.perf_counter() - t0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
