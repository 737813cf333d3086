"""
Extract Writer: CSV files consumed by the dashboard.

Layout under the output directory:
    state/all.csv, state/90d.csv          national + state rows
    county/all/<code>.csv                 one file per state region code
    county/90d/<code>.csv
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

STATE_COLUMNS = ["date", "state", "fips", "cases", "newCases", "deaths", "newDeaths"]
STATE_TESTING_COLUMNS = [
    "tests",
    "newTests",
    "positive",
    "newPositive",
    "negative",
    "newNegative",
    "pending",
]
COUNTY_COLUMNS = ["date", "county", "state", "fips", "cases", "newCases", "deaths", "newDeaths"]


def state_columns(include_testing: bool) -> list[str]:
    if include_testing:
        return [*STATE_COLUMNS, *STATE_TESTING_COLUMNS]
    return list(STATE_COLUMNS)


def safe_code(code: str) -> str:
    """Region code reduced to its digits, for use as a file name."""
    return re.sub(r"\D", "", str(code))


def remove_files(paths: Iterable[Path]) -> None:
    """Delete prior single-file outputs; missing files are fine."""
    for p in paths:
        p.unlink(missing_ok=True)


def clear_dir(directory: Path) -> None:
    """Create `directory` if needed, then remove every file inside it."""
    directory.mkdir(parents=True, exist_ok=True)
    for p in directory.iterdir():
        if p.is_file():
            p.unlink()


def write_extract(rows: pd.DataFrame, columns: Sequence[str], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    rows.to_csv(path, columns=list(columns), index=False)
    logger.info("Wrote %s (%d rows)", path, len(rows))
    return path
