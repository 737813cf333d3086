"""
Extract build: fetch, reconcile, derive deltas, window, write.

This layer:
  - Fetches every feed in parallel and validates it against its contract
  - Builds the region index from the state feed
  - Prepends national rows to state rows and reconciles them with testing data
  - Derives newCases/newDeaths (and testing deltas) per region series
  - Splits each extract into all-history and trailing-window files

Nothing on disk is touched until every feed has been validated and every
frame computed, so a failed run leaves the previous output in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List

import pandas as pd

from covid_extracts import paths
from covid_extracts.config import ExtractConfig, UnmappedPolicy, load_feed_specs, required_feeds
from covid_extracts.data.deltas import add_county_deltas, add_state_deltas
from covid_extracts.data.reconcile import combine_testing, prepend_national, reconcile
from covid_extracts.data.regions import RegionIndex, build_region_index
from covid_extracts.data.window import latest_date, split_window, window_cutoff
from covid_extracts.errors import InsufficientData
from covid_extracts.external.feeds import fetch_feeds
from covid_extracts.output.extracts import (
    COUNTY_COLUMNS,
    clear_dir,
    remove_files,
    safe_code,
    state_columns,
    write_extract,
)


logger = logging.getLogger(__name__)


# ── Public API ─────────────────────────────────────────────────────────────────

@dataclass
class ExtractArtifacts:
    """What a run computed (and, if saved, wrote)."""

    latest_date: date
    cutoff: date
    state_rows: pd.DataFrame
    county_rows: Dict[str, pd.DataFrame]
    written: List[Path] = field(default_factory=list)


def run_extracts(config: ExtractConfig | None = None, save: bool = True) -> ExtractArtifacts:
    """
    Orchestrate the full extract build and optionally write the CSV files.
    """
    config = config or ExtractConfig()

    logger.info("Starting extract build")
    specs = load_feed_specs(config.feeds_config)
    names = required_feeds(config)
    missing = [n for n in names if n not in specs]
    if missing:
        raise ValueError(f"{config.feeds_config} does not define feeds: {missing}")

    # 1. Fetch + validate everything up front
    feeds = fetch_feeds(
        [specs[n] for n in names],
        timeout_s=config.timeout_s,
        max_workers=config.fetch_workers,
    )

    # 2. Trailing-window cutoff, from the national feed
    latest = latest_date(feeds["us_cases"])
    cutoff = window_cutoff(latest, days=config.window_days, lookback_days=config.lookback_days)
    logger.info("Latest national date %s → trailing window starts %s", latest, cutoff)

    # 3. National + state series
    testing = None
    if config.include_testing:
        testing = combine_testing(feeds["us_testing"], feeds["state_testing"])
    state_rows = build_state_rows(feeds["us_cases"], feeds["state_cases"], testing)

    # 4. County series, keyed by state region code
    index = build_region_index(feeds["state_cases"])
    county_rows = build_county_rows(
        feeds["county_cases"],
        index,
        on_missing=config.unmapped_regions,
        min_regions=config.min_county_regions,
    )

    artifacts = ExtractArtifacts(
        latest_date=latest,
        cutoff=cutoff,
        state_rows=state_rows,
        county_rows=county_rows,
    )

    # 5. Persist
    if save:
        artifacts.written += write_state_files(
            state_rows, cutoff, config.output_dir, include_testing=config.include_testing
        )
        artifacts.written += write_county_files(county_rows, cutoff, config.output_dir)

    return artifacts


# ── Step 3: National + State ──────────────────────────────────────────────────

def build_state_rows(
    national_cases: pd.DataFrame,
    state_cases: pd.DataFrame,
    testing: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """National rows (as region "US") followed by state rows, reconciled and delta'd."""
    rows = prepend_national(national_cases, state_cases)
    if testing is not None:
        rows = reconcile(rows, testing)
    return add_state_deltas(rows)


# ── Step 4: Counties ──────────────────────────────────────────────────────────

def build_county_rows(
    county_cases: pd.DataFrame,
    index: RegionIndex,
    *,
    on_missing: UnmappedPolicy = "drop",
    min_regions: int = 50,
) -> Dict[str, pd.DataFrame]:
    """
    Group county rows by their state's region code and add deltas per county.

    Rows naming a state that is not in `index` are handled per `on_missing`.
    """
    rows = index.assign_codes(county_cases, name_col="state", code_col="region_code", on_missing=on_missing)

    n_regions = rows["region_code"].nunique()
    if n_regions < min_regions:
        raise InsufficientData(
            f"Found less than {min_regions} states with county data ({n_regions}), "
            "something is wrong, bailing out."
        )

    out: Dict[str, pd.DataFrame] = {}
    for code, group in rows.groupby("region_code", sort=False):
        out[str(code)] = add_county_deltas(group.drop(columns="region_code"))
    logger.info("County rows: %d rows across %d state regions", len(rows), len(out))
    return out


# ── Step 5: Persistence ───────────────────────────────────────────────────────

def write_state_files(
    state_rows: pd.DataFrame,
    cutoff: date,
    output_dir: Path,
    *,
    include_testing: bool = True,
) -> List[Path]:
    out_dir = paths.state_dir(output_dir)
    all_path = out_dir / "all.csv"
    window_path = out_dir / "90d.csv"
    remove_files([window_path, all_path])

    columns = state_columns(include_testing)
    all_rows, recent_rows = split_window(state_rows, cutoff)
    return [
        write_extract(all_rows, columns, all_path),
        write_extract(recent_rows, columns, window_path),
    ]


def write_county_files(
    county_rows: Dict[str, pd.DataFrame],
    cutoff: date,
    output_dir: Path,
) -> List[Path]:
    all_dir = paths.county_dir(output_dir, "all")
    window_dir = paths.county_dir(output_dir, "90d")

    # The set of region codes varies run to run, so clear whole directories.
    clear_dir(window_dir)
    clear_dir(all_dir)

    written: List[Path] = []
    for code, rows in county_rows.items():
        name = safe_code(code)
        if not name:
            logger.warning("Skipping county rows for region code %r (no digits)", code)
            continue
        all_rows, recent_rows = split_window(rows, cutoff)
        written.append(write_extract(all_rows, COUNTY_COLUMNS, all_dir / f"{name}.csv"))
        written.append(write_extract(recent_rows, COUNTY_COLUMNS, window_dir / f"{name}.csv"))
    return written
