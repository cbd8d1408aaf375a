"""Combine every quality flag into one exclusion decision.

exclude = 1 when any contributing flag is 1. There is no weighting: one
failing signal is enough. An unknown (NA) flag contributes nothing.
Participants are never removed; exclusion is a column.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from surveylink.schemas.quality_flags import (
    EXCLUDE,
    EXCLUSION_FLAGS,
    WITHDREW,
    add_flag,
)
from surveylink.schemas.unified import validate_flagged
from surveylink.schemas.validate import require_columns

_DATASET_NAME = "exclusion"


def flag_withdrawals(
    df: pd.DataFrame,
    withdrawn_access_codes: Iterable[str],
) -> pd.DataFrame:
    """Flag records whose access code is on the external opt-out list."""
    require_columns(df.columns, ["access_code"], dataset=_DATASET_NAME)

    withdrawn = set(withdrawn_access_codes)
    return add_flag(df, WITHDREW, df["access_code"].isin(withdrawn), dataset=_DATASET_NAME)


def flag_exclusions(df: pd.DataFrame, verbose: bool = True) -> pd.DataFrame:
    """Add the exclude column as the OR of every exclusion flag.

    Args:
        df: Unified records carrying every column in EXCLUSION_FLAGS
        verbose: If True, print the flag summary

    Returns:
        Copy of df with the exclude column

    Raises:
        ValueError: If any contributing flag column is missing (an upstream
            stage did not run) or exclude already exists
    """
    require_columns(df.columns, EXCLUSION_FLAGS, dataset=_DATASET_NAME)

    raised = df[EXCLUSION_FLAGS].fillna(0).astype(int).eq(1).any(axis=1)
    df = add_flag(df, EXCLUDE, raised, dataset=_DATASET_NAME)

    if verbose:
        print_flag_summary(df)

    return df


def summarize_flags(df: pd.DataFrame) -> pd.DataFrame:
    """Count raised, clear and unknown values per flag (plus exclude)."""
    flags = [flag for flag in [*EXCLUSION_FLAGS, EXCLUDE] if flag in df.columns]
    rows = []
    for flag in flags:
        values = df[flag]
        rows.append(
            {
                "flag": flag,
                "raised": int((values == 1).sum()),
                "clear": int((values == 0).sum()),
                "unknown": int(values.isna().sum()),
            }
        )
    return pd.DataFrame(rows, columns=["flag", "raised", "clear", "unknown"])


def print_flag_summary(df: pd.DataFrame) -> None:
    """Print per-flag counts and the final included/excluded split."""
    summary = summarize_flags(df)
    print("[exclude] Flag summary:")
    for row in summary.itertuples(index=False):
        line = f"    {row.flag}: {row.raised}"
        if row.unknown:
            line += f" ({row.unknown} unknown)"
        print(line)

    if EXCLUDE in df.columns:
        excluded = int(df[EXCLUDE].sum())
        print(f"  Included: {len(df) - excluded}, excluded: {excluded}")


def write_dataset(
    df: pd.DataFrame,
    output_path: Path | str,
    flagged: bool = False,
) -> Path:
    """Write a dataset to parquet (atomic).

    Args:
        df: Unified dataset (raw) or decision-augmented dataset
        output_path: Path to write
        flagged: If True, validate as the flagged dataset first

    Raises:
        ValueError: If a flagged dataset fails validation
    """
    output_path = Path(output_path)

    if flagged:
        validate_flagged(df)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_suffix(".parquet.tmp")
    df.to_parquet(tmp_path, index=False)
    tmp_path.rename(output_path)

    print(f"[exclude] wrote {len(df)} rows to {output_path}")
    return output_path
