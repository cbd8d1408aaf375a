"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pandas as pd
import pytest

from surveylink.fetch.captures import TEXT_FIELDS
from surveylink.fetch.geolocation import GeolocationUnavailable
from surveylink.identity.registry import CodeRegistry, registry_from_frame
from surveylink.schemas.captures import CaptureStreams
from surveylink.schemas.study import (
    ATTENTION_CORRECT,
    ATTENTION_FIELD,
    BASELINE_FIELDS,
    CUDIT_ITEMS,
    FOLLOWUP_FIELDS,
    K6_ITEMS,
    MMM_ITEMS,
    NORMS_ITEMS,
    PBSM_ITEMS,
    TIMESTAMP_FIELDS,
)

BASELINE_START = datetime(2024, 6, 15, 9, 0, 0)
FOLLOWUP_START = datetime(2024, 7, 15, 9, 0, 0)


def s_code_for(i: int) -> str:
    return f"ABCDEFG{i:03d}"


def r_code_for(i: int) -> str:
    return "1AB"


def access_code_for(i: int) -> str:
    return f"AC{i:04d}"


def _varied(items: list[str]) -> dict[str, int]:
    # 1, 2, 3, 1, ... never straight-lines
    return {item: (j % 3) + 1 for j, item in enumerate(items)}


@pytest.fixture
def make_baseline():
    """Factory fixture for creating clean baseline capture DataFrames.

    Every row passes every check: registered code, 20 minute completion,
    consistent answers, correct attention check, Ontario province.
    """

    def _make(n_rows: int = 5, duration_minutes: float = 20.0) -> pd.DataFrame:
        rows = []
        for i in range(n_rows):
            start = BASELINE_START + timedelta(hours=i)
            row = {
                "response_id": f"R_base{i:03d}",
                "start_date": start,
                "end_date": start + timedelta(minutes=duration_minutes),
                "finished": 1,
                "r_code": r_code_for(i),
                "s_code": s_code_for(i),
                "access_code": access_code_for(i),
                "ip_address": f"10.0.0.{i}",
                "age": 30,
                "birth_year": 1994,
                "birth_month": 6,
                "province": 9,
                "cannabis_ever": 2,
                "cannabis_freq_3m": 3,
                "cannabis_use_3m": 1,
                "cannabis_use_6m": 1,
                "cannabis_ever_confirm": 2,
                ATTENTION_FIELD: ATTENTION_CORRECT,
            }
            for items in (CUDIT_ITEMS, MMM_ITEMS, PBSM_ITEMS, K6_ITEMS, NORMS_ITEMS):
                row.update(_varied(items))
            rows.append(row)

        df = pd.DataFrame(rows, columns=BASELINE_FIELDS)
        for col in BASELINE_FIELDS:
            if col in TIMESTAMP_FIELDS:
                df[col] = pd.to_datetime(df[col])
            elif col not in TEXT_FIELDS:
                # float, as the CSV loader gives whenever an answer is missing
                df[col] = df[col].astype(float)
        return df

    return _make


@pytest.fixture
def make_followup():
    """Factory fixture for creating follow-up capture DataFrames.

    One row per access code (None allowed); entrance times one hour apart.
    """

    def _make(
        access_codes: list[str | None] | None = None,
        prefix: str = "R_fu",
        start_ts: datetime | None = None,
    ) -> pd.DataFrame:
        access_codes = access_codes if access_codes is not None else []
        start_ts = start_ts or FOLLOWUP_START
        n_rows = len(access_codes)

        starts = [start_ts + timedelta(hours=i) for i in range(n_rows)]
        data = {
            "response_id": [f"{prefix}{i:03d}" for i in range(n_rows)],
            "start_date": pd.to_datetime(pd.Series(starts, dtype="datetime64[ns]")),
            "end_date": pd.to_datetime(
                pd.Series([s + timedelta(minutes=10) for s in starts], dtype="datetime64[ns]")
            ),
            "finished": [1] * n_rows,
            "access_code": pd.Series(access_codes, dtype=object),
            "cannabis_days_30d": [5] * n_rows,
        }
        for item in CUDIT_ITEMS:
            data[item] = [1] * n_rows
        for item in K6_ITEMS:
            data[item] = [2] * n_rows
        return pd.DataFrame(data, columns=FOLLOWUP_FIELDS)

    return _make


@pytest.fixture
def make_streams(make_baseline, make_followup):
    """Factory fixture for CaptureStreams; follow-up streams default to empty."""

    def _make(
        baseline: pd.DataFrame | None = None,
        fu1_control: pd.DataFrame | None = None,
        fu1_intervention: pd.DataFrame | None = None,
        fu2_control: pd.DataFrame | None = None,
        fu2_intervention: pd.DataFrame | None = None,
    ) -> CaptureStreams:
        return CaptureStreams(
            baseline=baseline if baseline is not None else make_baseline(),
            fu1_control=fu1_control if fu1_control is not None else make_followup(),
            fu1_intervention=fu1_intervention if fu1_intervention is not None else make_followup(),
            fu2_control=fu2_control if fu2_control is not None else make_followup(),
            fu2_intervention=fu2_intervention if fu2_intervention is not None else make_followup(),
        )

    return _make


@pytest.fixture
def make_registry():
    """Factory fixture for a registry holding the codes make_baseline issues."""

    def _make(n_codes: int = 20) -> CodeRegistry:
        df = pd.DataFrame(
            {
                "r_code": [r_code_for(i) for i in range(n_codes)],
                "s_code": [s_code_for(i) for i in range(n_codes)],
            }
        )
        return registry_from_frame(df, expected_size=None)

    return _make


class FakeGeolocator:
    """In-memory stand-in for the lookup service.

    Answers every IP with default_region unless overridden; records each
    batch it was asked for. With unavailable=True every call raises.
    """

    def __init__(
        self,
        default_region: str | None = "Ontario",
        overrides: dict[str, str | None] | None = None,
        unavailable: bool = False,
    ) -> None:
        self.default_region = default_region
        self.overrides = overrides or {}
        self.unavailable = unavailable
        self.calls: list[list[str]] = []

    def lookup(self, ips):
        self.calls.append(list(ips))
        if self.unavailable:
            raise GeolocationUnavailable("service down")
        return {ip: self.overrides.get(ip, self.default_region) for ip in ips}


@pytest.fixture
def fake_geolocator():
    """Factory fixture for FakeGeolocator instances."""

    def _make(**kwargs) -> FakeGeolocator:
        return FakeGeolocator(**kwargs)

    return _make
