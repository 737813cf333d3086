from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

from covid_extracts import paths


FeedFormat = Literal["csv", "json"]
UnmappedPolicy = Literal["drop", "raise"]

# Feeds every run needs; the testing feeds are only required with testing on.
CASE_FEEDS = ("us_cases", "state_cases", "county_cases")
TESTING_FEEDS = ("us_testing", "state_testing")


@dataclass(frozen=True)
class FeedSpec:
    name: str
    url: str
    format: FeedFormat
    columns: tuple[str, ...]
    optional_columns: tuple[str, ...] = ()
    min_rows: int = 10
    date_column: str = "date"
    date_format: str = "%Y-%m-%d"


@dataclass(frozen=True)
class ExtractConfig:
    """Settings for a single extract build."""

    output_dir: Path = field(default_factory=paths.outputs_dir)
    feeds_config: Path = field(default_factory=lambda: paths.config_dir() / "feeds.yaml")
    include_testing: bool = True
    window_days: int = 90
    lookback_days: int = 7   # lead-in for the dashboard's 7-day moving average
    min_county_regions: int = 50
    unmapped_regions: UnmappedPolicy = "drop"
    fetch_workers: int = 5
    timeout_s: int = 60


def load_feed_specs(path: Path | None = None) -> dict[str, FeedSpec]:
    p = path or (paths.config_dir() / "feeds.yaml")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Cannot parse feeds config {p}: {exc}") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("feeds") or {}, dict):
        raise ValueError(f"{p} must map `feeds` to one entry per feed")

    out: dict[str, FeedSpec] = {}
    for name, v in (raw.get("feeds") or {}).items():
        if not isinstance(v, dict) or "url" not in v:
            raise ValueError(f"Feed {name!r} in {p} has no url")
        fmt = str(v.get("format", "csv"))
        if fmt not in ("csv", "json"):
            raise ValueError(f"Feed {name!r} has unsupported format {fmt!r}")
        out[name] = FeedSpec(
            name=name,
            url=str(v["url"]),
            format=fmt,  # type: ignore[arg-type]
            columns=tuple(v.get("columns", [])),
            optional_columns=tuple(v.get("optional_columns", [])),
            min_rows=int(v.get("min_rows", 10)),
            date_column=str(v.get("date_column", "date")),
            date_format=str(v.get("date_format", "%Y-%m-%d")),
        )
    return out


def required_feeds(config: ExtractConfig) -> tuple[str, ...]:
    if config.include_testing:
        return CASE_FEEDS + TESTING_FEEDS
    return CASE_FEEDS
