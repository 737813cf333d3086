from __future__ import annotations

from datetime import date, timedelta

import pandas as pd


def latest_date(rows: pd.DataFrame, *, date_col: str = "date") -> date:
    """Latest calendar date in a feed (used on the national feed)."""
    if rows.empty:
        raise ValueError("Cannot take the latest date of an empty feed")
    return pd.to_datetime(rows[date_col]).max().date()


def window_cutoff(latest: date, *, days: int = 90, lookback_days: int = 7) -> date:
    """
    First date of the trailing window.

    `lookback_days` extra days are kept so that a 7-day moving average computed
    from the trailing file alone has full lead-in for its first displayed day.
    """
    return latest - timedelta(days=days + lookback_days)


def split_window(
    rows: pd.DataFrame,
    cutoff: date,
    *,
    date_col: str = "date",
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Return (all rows unchanged, rows dated on or after `cutoff`)."""
    mask = pd.to_datetime(rows[date_col]) >= pd.Timestamp(cutoff)
    return rows, rows.loc[mask]
