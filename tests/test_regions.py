"""Unit tests for the region index"""
import logging

import pandas as pd
import pytest

from covid_extracts.data.regions import NATIONAL_CODE, NATIONAL_NAME, build_region_index
from covid_extracts.errors import MissingRegionMapping, SchemaMismatch


def _state_rows(rows):
    return pd.DataFrame(rows, columns=["date", "state", "fips", "cases", "deaths"])


def test_first_code_seen_for_a_name_wins():
    rows = _state_rows([
        ("2020-03-01", "Washington", "53", "1", "0"),
        ("2020-03-01", "Illinois", "17", "1", "0"),
        ("2020-03-02", "Washington", "99", "2", "0"),
    ])

    index = build_region_index(rows)

    assert index.codes == {"Washington": "53", "Illinois": "17"}
    assert len(index) == 2
    assert "Illinois" in index
    assert index.code_for("Washington") == "53"


def test_unknown_name_raises_missing_region_mapping():
    index = build_region_index(_state_rows([("2020-03-01", "Washington", "53", "1", "0")]))

    with pytest.raises(MissingRegionMapping, match="Atlantis"):
        index.code_for("Atlantis")
    # Also usable wherever a plain KeyError is expected
    with pytest.raises(KeyError):
        index.code_for("Atlantis")


def test_shared_code_is_schema_mismatch():
    """Two names on one code would merge into a single series"""
    rows = _state_rows([
        ("2020-03-01", "Washington", "53", "1", "0"),
        ("2020-03-01", "Wash.", "53", "1", "0"),
    ])

    with pytest.raises(SchemaMismatch, match="53 claimed by both 'Washington' and 'Wash.'"):
        build_region_index(rows)


def test_assign_codes_drops_unknown_regions_by_default(caplog):
    index = build_region_index(_state_rows([("2020-03-01", "Washington", "53", "1", "0")]))
    counties = pd.DataFrame(
        {
            "county": ["King", "Lost County", "Pierce"],
            "state": ["Washington", "Atlantis", "Washington"],
        }
    )

    with caplog.at_level(logging.WARNING):
        out = index.assign_codes(counties)

    assert out["county"].tolist() == ["King", "Pierce"]
    assert out["region_code"].tolist() == ["53", "53"]
    assert "Atlantis" in caplog.text


def test_assign_codes_can_raise_instead():
    index = build_region_index(_state_rows([("2020-03-01", "Washington", "53", "1", "0")]))
    counties = pd.DataFrame({"county": ["Lost County"], "state": ["Atlantis"]})

    with pytest.raises(MissingRegionMapping) as exc_info:
        index.assign_codes(counties, on_missing="raise")

    assert exc_info.value.names == ["Atlantis"]


def test_assign_codes_leaves_input_untouched():
    index = build_region_index(_state_rows([("2020-03-01", "Washington", "53", "1", "0")]))
    counties = pd.DataFrame({"county": ["King"], "state": ["Washington"]})

    index.assign_codes(counties)

    assert list(counties.columns) == ["county", "state"]


def test_national_identity_is_fixed():
    assert NATIONAL_NAME == "US"
    assert NATIONAL_CODE == "00"
