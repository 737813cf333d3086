"""
Feed Reader: download an upstream feed and hand back validated rows.

Each feed declares its column contract once (`config.FeedSpec`, loaded from
`config/feeds.yaml`). A feed is trusted only after:
  - the CSV header equals the declared columns exactly (JSON: every declared
    key is present, optional keys may be missing)
  - every value of the date column parses with the declared format
  - the row count reaches the feed's `min_rows`

CSV cells are kept as text so region codes keep their leading zeros; numeric
coercion happens later, in the delta step. Dates always come out as
`YYYY-MM-DD` strings regardless of the upstream representation.
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Iterable

import pandas as pd
import requests

from covid_extracts.config import FeedSpec
from covid_extracts.errors import ExtractError, FetchFailure, InsufficientData, SchemaMismatch

logger = logging.getLogger(__name__)

USER_AGENT = "covid-extracts/1.0"


def fetch_feed(spec: FeedSpec, *, timeout_s: int = 60) -> pd.DataFrame:
    """Fetch one feed and return its validated rows."""
    try:
        r = requests.get(spec.url, timeout=timeout_s, headers={"User-Agent": USER_AGENT})
        r.raise_for_status()
    except requests.RequestException as exc:
        raise FetchFailure(f"Failed to fetch {spec.name} from {spec.url}: {exc}") from exc

    if spec.format == "csv":
        df = _csv_to_df(spec, r.text)
    else:
        try:
            payload = r.json()
        except ValueError as exc:
            raise SchemaMismatch(f"{spec.name}: response is not valid JSON ({exc})") from exc
        df = _payload_to_df(spec, payload)

    df = _normalize_dates(spec, df)

    if len(df) < spec.min_rows:
        raise InsufficientData(
            f"Found less than {spec.min_rows} rows in {spec.name} ({len(df)}), bailing out."
        )

    logger.info("Fetched %s: %d rows from %s", spec.name, len(df), spec.url)
    return df


def fetch_feeds(
    specs: Iterable[FeedSpec],
    *,
    timeout_s: int = 60,
    max_workers: int = 5,
) -> dict[str, pd.DataFrame]:
    """
    Fetch independent feeds in parallel and wait for all of them.

    Every feed gets a chance to finish (so all failures are logged); then the
    failure of the earliest feed in `specs` order is re-raised.
    """
    out: dict[str, pd.DataFrame] = {}
    failures: dict[str, ExtractError] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(fetch_feed, spec, timeout_s=timeout_s): spec.name for spec in specs}
        for future in as_completed(futures):
            name = futures[future]
            try:
                out[name] = future.result()
            except ExtractError as exc:
                logger.error("Feed %s failed: %s", name, exc)
                failures[name] = exc

    for name in futures.values():
        if name in failures:
            raise failures[name]
    return out


def _csv_to_df(spec: FeedSpec, text: str) -> pd.DataFrame:
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, index_col=False)
    except pd.errors.EmptyDataError as exc:
        raise SchemaMismatch(f"{spec.name}: response has no header row") from exc
    except pd.errors.ParserError as exc:
        raise SchemaMismatch(f"{spec.name}: malformed CSV ({exc})") from exc

    header = list(df.columns)
    if header != list(spec.columns):
        raise SchemaMismatch(
            f"{spec.name}: unexpected header {header}, expected {list(spec.columns)}"
        )
    return df


def _payload_to_df(spec: FeedSpec, payload: Any) -> pd.DataFrame:
    if not isinstance(payload, list) or not all(isinstance(rec, dict) for rec in payload):
        raise SchemaMismatch(f"{spec.name}: expected a JSON list of objects")
    if not payload:
        return pd.DataFrame(columns=list(spec.columns))

    df = pd.DataFrame.from_records(payload)
    missing = [c for c in spec.columns if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"{spec.name}: records missing expected keys: {missing}")

    keep = [*spec.columns, *(c for c in spec.optional_columns if c in df.columns)]
    return df[keep].copy()


def _normalize_dates(spec: FeedSpec, df: pd.DataFrame) -> pd.DataFrame:
    """Parse the date column with the feed's format and rewrite it as YYYY-MM-DD."""
    col = spec.date_column
    if col not in df.columns:
        raise SchemaMismatch(f"{spec.name}: date column {col!r} not in feed")

    raw = df[col].astype(str).str.strip()
    parsed = pd.to_datetime(raw, format=spec.date_format, errors="coerce")
    bad = raw[parsed.isna()]
    if len(bad):
        raise SchemaMismatch(
            f"{spec.name}: {len(bad)} {col} values do not match {spec.date_format!r}, "
            f"e.g. {bad.iloc[0]!r}"
        )

    out = df.copy()
    out[col] = parsed.dt.strftime("%Y-%m-%d")
    return out
