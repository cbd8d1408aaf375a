"""Logical inconsistency detectors.

Each check is independent and writes its own flag (0 = pass, 1 = fail):
- incon_cannabis_ever: screening item or its duplicate says "never used"
- incon_cannabis_dup: the two duplicate screening items disagree
- incon_freq_3m: past-3-month frequency says "none"
- incon_use_3m_6m: past-3-month or past-6-month use says "no"
- incon_age: reported age does not match age derived from birth year/month

Eligible participants used cannabis in the past three months, so any answer
that says otherwise contradicts the screener they passed. A missing answer
never fails a check here.

The location check (incon_province) lives in detect.location because it
needs the geolocation collaborator.
"""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.quality_flags import (
    INCON_AGE,
    INCON_CANNABIS_DUP,
    INCON_CANNABIS_EVER,
    INCON_FREQ_3M,
    INCON_USE_3M_6M,
    add_flag,
)
from surveylink.schemas.study import (
    CANNABIS_EVER_NEVER,
    CANNABIS_FREQ_NONE,
    RESPONSE_NO,
)
from surveylink.schemas.validate import require_columns

WEEKS_PER_YEAR = 52.18

_DATASET_NAME = "inconsistency"


def _coded(df: pd.DataFrame, col: str) -> pd.Series:
    return pd.to_numeric(df[col], errors="coerce")


def flag_cannabis_ever(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records where either screening item equals the "never used" code."""
    require_columns(df.columns, ["cannabis_ever", "cannabis_ever_confirm"], dataset=_DATASET_NAME)

    never = (_coded(df, "cannabis_ever") == CANNABIS_EVER_NEVER) | (
        _coded(df, "cannabis_ever_confirm") == CANNABIS_EVER_NEVER
    )
    return add_flag(df, INCON_CANNABIS_EVER, never, dataset=_DATASET_NAME)


def flag_cannabis_duplicate(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records where both screening items are answered and disagree."""
    require_columns(df.columns, ["cannabis_ever", "cannabis_ever_confirm"], dataset=_DATASET_NAME)

    first = _coded(df, "cannabis_ever")
    second = _coded(df, "cannabis_ever_confirm")
    disagree = first.notna() & second.notna() & (first != second)
    return add_flag(df, INCON_CANNABIS_DUP, disagree, dataset=_DATASET_NAME)


def flag_frequency_3m(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records reporting no cannabis use in the past three months."""
    require_columns(df.columns, ["cannabis_freq_3m"], dataset=_DATASET_NAME)

    none = _coded(df, "cannabis_freq_3m") == CANNABIS_FREQ_NONE
    return add_flag(df, INCON_FREQ_3M, none, dataset=_DATASET_NAME)


def flag_use_3m_6m(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records answering "no" to past-3-month or past-6-month use."""
    require_columns(df.columns, ["cannabis_use_3m", "cannabis_use_6m"], dataset=_DATASET_NAME)

    said_no = (_coded(df, "cannabis_use_3m") == RESPONSE_NO) | (
        _coded(df, "cannabis_use_6m") == RESPONSE_NO
    )
    return add_flag(df, INCON_USE_3M_6M, said_no, dataset=_DATASET_NAME)


def computed_age(df: pd.DataFrame, weeks_per_year: float = WEEKS_PER_YEAR) -> pd.Series:
    """Age in whole years from birth year/month to the survey date.

    The birth date is taken as the first day of the birth month; the survey
    date is the baseline entrance date. Weeks between the two are divided by
    weeks_per_year and rounded (half to even).

    Returns:
        Float Series, NaN where birth year/month or survey date is missing
    """
    year = _coded(df, "birth_year")
    month = _coded(df, "birth_month")
    valid = year.notna() & month.between(1, 12)

    birth = pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")
    if valid.any():
        parts = pd.DataFrame(
            {
                "year": year[valid].astype(int),
                "month": month[valid].astype(int),
                "day": 1,
            }
        )
        birth.loc[valid] = pd.to_datetime(parts, errors="coerce")

    survey = df["start_date"]
    if survey.dt.tz is not None:
        survey = survey.dt.tz_localize(None)
    survey = survey.dt.normalize()

    weeks = (survey - birth).dt.days / 7
    return (weeks / weeks_per_year).round()


def flag_age(df: pd.DataFrame, weeks_per_year: float = WEEKS_PER_YEAR) -> pd.DataFrame:
    """Flag records whose reported age disagrees with the computed age.

    Passes when reported == computed or reported + 1 == computed (a birthday
    later in the birth month than the first). Anything else fails.
    """
    require_columns(
        df.columns,
        ["age", "birth_year", "birth_month", "start_date"],
        dataset=_DATASET_NAME,
    )

    reported = _coded(df, "age")
    computed = computed_age(df, weeks_per_year)
    consistent = (reported == computed) | (reported + 1 == computed)
    mismatch = reported.notna() & computed.notna() & ~consistent
    return add_flag(df, INCON_AGE, mismatch, dataset=_DATASET_NAME)


def flag_inconsistencies(
    df: pd.DataFrame,
    weeks_per_year: float = WEEKS_PER_YEAR,
    verbose: bool = True,
) -> pd.DataFrame:
    """Apply every answer-based inconsistency check.

    Args:
        df: Unified participant records
        weeks_per_year: Divisor for the computed age
        verbose: If True, print per-check counts

    Returns:
        Copy of df with the five answer-based inconsistency flags
    """
    df = flag_cannabis_ever(df)
    df = flag_cannabis_duplicate(df)
    df = flag_frequency_3m(df)
    df = flag_use_3m_6m(df)
    df = flag_age(df, weeks_per_year)

    if verbose:
        counts = {
            flag: int(df[flag].sum())
            for flag in (INCON_CANNABIS_EVER, INCON_CANNABIS_DUP, INCON_FREQ_3M, INCON_USE_3M_6M, INCON_AGE)
        }
        print("[detect] inconsistency: " + ", ".join(f"{k}={v}" for k, v in counts.items()))

    return df
