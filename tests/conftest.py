# pylint: disable=redefined-outer-name
import json
from datetime import date, timedelta

import pytest
import requests

from covid_extracts.config import ExtractConfig
from covid_extracts.external import feeds as feeds_mod

BASE_URL = "https://feeds.test"

FEEDS_YAML = f"""
feeds:
  us_cases:
    url: {BASE_URL}/us.csv
    format: csv
    columns: [date, cases, deaths]
    min_rows: 10
  state_cases:
    url: {BASE_URL}/us-states.csv
    format: csv
    columns: [date, state, fips, cases, deaths]
    min_rows: 10
  county_cases:
    url: {BASE_URL}/us-counties.csv
    format: csv
    columns: [date, county, state, fips, cases, deaths]
    min_rows: 10
  us_testing:
    url: {BASE_URL}/us-daily.json
    format: json
    columns: [date, positive, negative]
    optional_columns: [totalTestResults, pending]
    min_rows: 10
    date_format: "%Y%m%d"
  state_testing:
    url: {BASE_URL}/states-daily.json
    format: json
    columns: [date, fips, positive, negative]
    optional_columns: [totalTestResults, pending]
    min_rows: 10
    date_format: "%Y%m%d"
"""

# National feed: 2020-01-01 .. 2020-06-30, cutoff for the trailing window is 2020-03-25
NATIONAL_START = date(2020, 1, 1)
NATIONAL_DAYS = 182
STATE_DATES = [(date(2020, 3, 20) + timedelta(days=k)).isoformat() for k in range(11)]
STATE_COUNT = 52
UNKNOWN_STATE = "Atlantis"
STATE_TESTING_GAP = "2020-03-22"


def state_name(i: int) -> str:
    return f"State {i:02d}"


def national_csv() -> str:
    lines = ["date,cases,deaths"]
    for k in range(NATIONAL_DAYS):
        d = NATIONAL_START + timedelta(days=k)
        lines.append(f"{d.isoformat()},{2 * k + 1},{k}")
    return "\n".join(lines) + "\n"


def states_csv() -> str:
    lines = ["date,state,fips,cases,deaths"]
    for k, d in enumerate(STATE_DATES):
        for i in range(1, STATE_COUNT + 1):
            lines.append(f"{d},{state_name(i)},{i:02d},{i * 10 + k},{k}")
    return "\n".join(lines) + "\n"


def counties_csv() -> str:
    # Every state has a "Springfield", so county names alone are ambiguous.
    lines = ["date,county,state,fips,cases,deaths"]
    for k, d in enumerate(STATE_DATES):
        for i in range(1, STATE_COUNT + 1):
            lines.append(f"{d},Springfield,{state_name(i)},{i:02d}001,{i + k},0")
        lines.append(f"{d},Lost County,{UNKNOWN_STATE},99001,5,0")
    return "\n".join(lines) + "\n"


def compact(d: str) -> int:
    return int(d.replace("-", ""))


def us_testing_json() -> str:
    records = [
        {
            "date": compact(d),
            "positive": 100 + k,
            "negative": 50 + k,
            "totalTestResults": 200 + 10 * k,
            "pending": 5,
        }
        for k, d in enumerate(STATE_DATES)
    ]
    # Upstream lists newest first.
    return json.dumps(list(reversed(records)))


def state_testing_json() -> str:
    # Only region 01 reports testing, without a total field and with one date missing.
    records = [
        {"date": compact(d), "state": "S1", "fips": "01", "positive": 100 + 10 * k, "negative": 50 + 10 * k}
        for k, d in enumerate(STATE_DATES)
        if d != STATE_TESTING_GAP
    ]
    return json.dumps(records)


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def feed_bodies():
    """URL → response body (str) or HTTP status (int). Tests may override entries."""
    return {
        f"{BASE_URL}/us.csv": national_csv(),
        f"{BASE_URL}/us-states.csv": states_csv(),
        f"{BASE_URL}/us-counties.csv": counties_csv(),
        f"{BASE_URL}/us-daily.json": us_testing_json(),
        f"{BASE_URL}/states-daily.json": state_testing_json(),
    }


@pytest.fixture
def fake_http(monkeypatch, feed_bodies):
    requested = []

    def fake_get(url, timeout=None, headers=None, **kwargs):
        requested.append(url)
        body = feed_bodies.get(url, 404)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, int):
            return FakeResponse("", status_code=body)
        return FakeResponse(body)

    monkeypatch.setattr(feeds_mod.requests, "get", fake_get)
    return requested


@pytest.fixture
def feeds_yaml(tmp_path):
    p = tmp_path / "feeds.yaml"
    p.write_text(FEEDS_YAML, encoding="utf-8")
    return p


@pytest.fixture
def extract_config(tmp_path, feeds_yaml):
    return ExtractConfig(output_dir=tmp_path / "data", feeds_config=feeds_yaml, fetch_workers=2)
