from __future__ import annotations

from pathlib import Path


def repo_root() -> Path:
    # This file is src/covid_extracts/paths.py → repo root is 3 levels up.
    return Path(__file__).resolve().parents[2]


def config_dir() -> Path:
    return repo_root() / "config"


def outputs_dir() -> Path:
    return repo_root() / "data"


def state_dir(output_dir: Path) -> Path:
    return output_dir / "state"


def county_dir(output_dir: Path, variant: str) -> Path:
    """`variant` is either "all" or "90d"."""
    return output_dir / "county" / variant
