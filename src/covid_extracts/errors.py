"""
Error kinds raised by the extract build.

Everything except `MissingRegionMapping` is fatal for a run: it propagates to
`run_extracts.main`, gets logged and turns into a non-zero exit status.
"""

from __future__ import annotations


class ExtractError(Exception):
    """Base class for all extract build failures."""


class SchemaMismatch(ExtractError, ValueError):
    """A feed's header, keys or date values break its column contract."""


class FetchFailure(ExtractError):
    """A feed could not be downloaded (network error or non-success status)."""


class InsufficientData(ExtractError):
    """A feed returned fewer rows or regions than the sanity threshold."""


class MissingRegionMapping(ExtractError, KeyError):
    """A row references a region name that the region index does not know."""

    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)
        super().__init__(f"No region code for: {', '.join(self.names)}")

    def __str__(self) -> str:
        return str(self.args[0])
