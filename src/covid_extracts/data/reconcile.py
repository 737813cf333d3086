"""
Series Reconciler: join case/death rows with testing rows per (region, date).

Case rows are the primary series and are never dropped or reordered. Testing
rows are optional: a case row either gets the testing fields of its matching
record (`has_testing == True`) or nulls everywhere (`has_testing == False`).
"""

from __future__ import annotations

import logging

import pandas as pd

from covid_extracts.data.deltas import to_count
from covid_extracts.data.regions import NATIONAL_CODE, NATIONAL_NAME

logger = logging.getLogger(__name__)

CASE_COLUMNS = ["date", "state", "fips", "cases", "deaths"]
TESTING_FIELDS = ["positive", "negative", "tests", "pending"]

# Field the testing feeds use for a directly reported test total.
TOTAL_FIELD = "totalTestResults"

_KEY = "_region_key"


def prepend_national(national_rows: pd.DataFrame, state_rows: pd.DataFrame) -> pd.DataFrame:
    """National rows first, relabelled as region "US" / "00", then state rows."""
    us = national_rows[["date", "cases", "deaths"]].assign(state=NATIONAL_NAME, fips=NATIONAL_CODE)
    return pd.concat([us[CASE_COLUMNS], state_rows[CASE_COLUMNS]], ignore_index=True)


def combine_testing(
    national_rows: pd.DataFrame | None,
    state_rows: pd.DataFrame | None,
) -> pd.DataFrame:
    """Stack national and state testing rows, giving national rows the national code."""
    parts: list[pd.DataFrame] = []
    if national_rows is not None and len(national_rows):
        parts.append(national_rows.assign(fips=NATIONAL_CODE))
    if state_rows is not None and len(state_rows):
        parts.append(state_rows)
    if not parts:
        return pd.DataFrame(columns=["fips", "date", "positive", "negative"])
    return pd.concat(parts, ignore_index=True, sort=False)


def normalize_code(values: pd.Series) -> pd.Series:
    """Numeric region codes as zero-padded two-digit strings; anything else → NA."""
    num = pd.to_numeric(values, errors="coerce")
    num = num.where(num == num.round())
    return num.astype("Int64").astype("string").str.zfill(2)


def build_testing_lookup(testing_rows: pd.DataFrame | None) -> pd.DataFrame:
    """
    One testing record per (region code, date), last write wins.

    Returns
    -------
    DataFrame  [_region_key, date, positive, negative, tests, pending]
        - tests: the feed's own total where given, else positive + negative
        - pending: NA when the feed has no pending field
    """
    cols = [_KEY, "date", *TESTING_FIELDS]
    if testing_rows is None or testing_rows.empty:
        empty = {_KEY: pd.Series(dtype="string"), "date": pd.Series(dtype=object)}
        empty.update({c: pd.Series(dtype="Int64") for c in TESTING_FIELDS})
        return pd.DataFrame(empty)

    df = pd.DataFrame({_KEY: normalize_code(testing_rows["fips"]), "date": testing_rows["date"]})
    df["positive"] = to_count(testing_rows["positive"])
    df["negative"] = to_count(testing_rows["negative"])

    reconstructed = df["positive"] + df["negative"]
    if TOTAL_FIELD in testing_rows.columns:
        total = to_count(testing_rows[TOTAL_FIELD])
        df["tests"] = total.where(total.notna(), reconstructed)
    else:
        df["tests"] = reconstructed

    if "pending" in testing_rows.columns:
        df["pending"] = to_count(testing_rows["pending"])
    else:
        df["pending"] = pd.array([pd.NA] * len(df), dtype="Int64")

    no_code = df[_KEY].isna()
    if no_code.any():
        logger.warning("Ignoring %d testing rows without a usable region code", int(no_code.sum()))
        df = df.loc[~no_code]

    return df.drop_duplicates(subset=[_KEY, "date"], keep="last")[cols]


def reconcile(case_rows: pd.DataFrame, testing_rows: pd.DataFrame | None = None) -> pd.DataFrame:
    """
    Attach testing fields to every case row that has a testing record for the
    same region code and date.

    Row count and order of `case_rows` are preserved.
    """
    lookup = build_testing_lookup(testing_rows)

    left = case_rows.copy()
    left[_KEY] = normalize_code(left["fips"])
    merged = left.merge(
        lookup,
        on=[_KEY, "date"],
        how="left",
        validate="many_to_one",
        indicator=True,
    )
    merged["has_testing"] = merged["_merge"] == "both"
    merged = merged.drop(columns=[_KEY, "_merge"])
    merged.index = case_rows.index

    logger.info(
        "Reconciled %d case rows, %d with testing data",
        len(merged),
        int(merged["has_testing"].sum()),
    )
    return merged
