from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd


INT64_MIN = int(np.iinfo(np.int64).min)
INT64_MAX = int(np.iinfo(np.int64).max)

# cumulative column -> derived day-over-day column
CASE_METRICS: dict[str, str] = {"cases": "newCases", "deaths": "newDeaths"}
TESTING_METRICS: dict[str, str] = {
    "tests": "newTests",
    "positive": "newPositive",
    "negative": "newNegative",
}

STATE_GROUP = ["fips"]
COUNTY_GROUP = ["state", "county"]


def _parse_count(value: Any) -> Any:
    # Decimal keeps integral text exact ("9007199254740993" stays odd).
    if isinstance(value, (bool, np.bool_)):
        return pd.NA
    if isinstance(value, (int, np.integer)):
        n = int(value)
    else:
        try:
            d = Decimal(value.strip()) if isinstance(value, str) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            return pd.NA
        if not d.is_finite() or d != d.to_integral_value():
            return pd.NA
        n = int(d)
    return n if INT64_MIN <= n <= INT64_MAX else pd.NA


def to_count(values: pd.Series) -> pd.Series:
    """
    Coerce raw feed values to nullable integers.

    Missing, non-numeric, non-integral and out-of-int64-range values become NA.
    """
    if pd.api.types.is_integer_dtype(values.dtype):
        return values.astype("Int64")
    parsed = [_parse_count(v) for v in values]
    return pd.Series(pd.array(parsed, dtype="Int64"), index=values.index, name=values.name)


def add_deltas(
    rows: pd.DataFrame,
    *,
    group_cols: Sequence[str],
    metrics: Mapping[str, str] = CASE_METRICS,
    date_col: str = "date",
    only_where: str | None = None,
) -> pd.DataFrame:
    """
    Add first differences of each cumulative metric, per region series.

    - Groups by `group_cols`; each group is walked in ascending date order
      (stable, so same-date rows keep their input order).
    - The first row of a group is measured from zero: newX = X.
    - Every later row is measured against the row right before it in the
      group, whatever the gap in dates.
    - Non-numeric / missing values give NA deltas (for that row and the next).
    - `only_where` names a boolean column; if given, only those rows form the
      series and all other rows get NA deltas.

    Output keeps the input row order; metric columns come back as Int64.
    """
    out = rows.copy()
    for src in metrics:
        out[src] = to_count(out[src])

    series = out.sort_values(date_col, kind="mergesort")
    if only_where is not None:
        series = series.loc[series[only_where].astype(bool)]

    grouped = series.groupby(list(group_cols), sort=False, dropna=False)
    is_first = grouped.cumcount() == 0

    for src, dst in metrics.items():
        previous = grouped[src].shift(1)
        delta = (series[src] - previous).mask(is_first, series[src])
        out[dst] = delta.reindex(out.index).astype("Int64")

    return out


def add_state_deltas(rows: pd.DataFrame) -> pd.DataFrame:
    """National + state rows: case deltas always, testing deltas where reconciled."""
    out = add_deltas(rows, group_cols=STATE_GROUP, metrics=CASE_METRICS)
    if "has_testing" in out.columns:
        out = add_deltas(out, group_cols=STATE_GROUP, metrics=TESTING_METRICS, only_where="has_testing")
    return out


def add_county_deltas(rows: pd.DataFrame) -> pd.DataFrame:
    # County names repeat across states, so the series key is (state, county).
    return add_deltas(rows, group_cols=COUNTY_GROUP, metrics=CASE_METRICS)
