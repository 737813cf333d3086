"""
Region Index: display name → region code, built from the state-level feed.

The index is an explicit value handed to later steps; nothing here keeps
module-level state between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import pandas as pd

from covid_extracts.errors import MissingRegionMapping, SchemaMismatch

logger = logging.getLogger(__name__)

# The national aggregate is treated as one more region with a fixed identity.
NATIONAL_NAME = "US"
NATIONAL_CODE = "00"


@dataclass(frozen=True)
class RegionIndex:
    codes: dict[str, str]

    def __len__(self) -> int:
        return len(self.codes)

    def __contains__(self, name: object) -> bool:
        return name in self.codes

    def code_for(self, name: str) -> str:
        try:
            return self.codes[name]
        except KeyError:
            raise MissingRegionMapping([name]) from None

    def assign_codes(
        self,
        rows: pd.DataFrame,
        *,
        name_col: str = "state",
        code_col: str = "region_code",
        on_missing: Literal["drop", "raise"] = "drop",
    ) -> pd.DataFrame:
        """
        Add `code_col` with each row's region code.

        Rows whose region name is unknown are dropped (and logged) or raise
        `MissingRegionMapping`, depending on `on_missing`.
        """
        out = rows.copy()
        out[code_col] = out[name_col].map(self.codes)

        unmapped = out[code_col].isna()
        if unmapped.any():
            names = sorted(out.loc[unmapped, name_col].astype(str).unique().tolist())
            if on_missing == "raise":
                raise MissingRegionMapping(names)
            logger.warning(
                "Dropping %d rows with no region code for %s: %s",
                int(unmapped.sum()),
                name_col,
                names,
            )
            out = out.loc[~unmapped]
        return out


def build_region_index(state_rows: pd.DataFrame, *, name_col: str = "state", code_col: str = "fips") -> RegionIndex:
    """
    First row seen for a name decides its code; later rows never overwrite it.

    Two names sharing one code would merge their series downstream (deltas
    and county files are keyed by code), so that raises `SchemaMismatch`.
    """
    codes: dict[str, str] = {}
    owners: dict[str, str] = {}
    for name, code in zip(state_rows[name_col], state_rows[code_col]):
        if not name or name in codes:
            continue
        code = str(code)
        codes[name] = code
        if code in owners:
            raise SchemaMismatch(f"Region code {code} claimed by both {owners[code]!r} and {name!r}")
        owners[code] = name

    logger.info("Region index: %d regions", len(codes))
    return RegionIndex(codes=codes)
