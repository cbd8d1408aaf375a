"""Recruitment counter: non-excluded participants per calendar date.

Persisted as one row per date. Re-running on the same date replaces that
date's row; other dates are left alone.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pandas as pd

from surveylink.config import recruitment_counter_path
from surveylink.schemas.quality_flags import EXCLUDE
from surveylink.schemas.validate import require_columns, require_unique

COUNTER_FIELDS = ["date", "n_included"]

_DATASET_NAME = "recruitment_counter"


def count_included(df: pd.DataFrame) -> int:
    """Number of records with exclude == 0."""
    require_columns(df.columns, [EXCLUDE], dataset=_DATASET_NAME)
    return int((df[EXCLUDE] == 0).sum())


def load_recruitment_counter(path: Path | str | None = None) -> pd.DataFrame:
    """Read the counter table, or an empty one if none exists yet."""
    counter_path = Path(path) if path else recruitment_counter_path()
    if not counter_path.exists():
        return pd.DataFrame(columns=COUNTER_FIELDS)

    df = pd.read_parquet(counter_path)
    require_columns(df.columns, COUNTER_FIELDS, dataset=_DATASET_NAME)
    return df[COUNTER_FIELDS]


def upsert_count(counter: pd.DataFrame, as_of: date, n_included: int) -> pd.DataFrame:
    """Return the counter with as_of's row inserted or replaced, sorted by date."""
    as_of_ts = pd.Timestamp(as_of)
    if counter.empty:
        kept = counter
    else:
        kept = counter[pd.to_datetime(counter["date"]) != as_of_ts]

    row = pd.DataFrame({"date": [as_of_ts], "n_included": [n_included]})
    parts = [part for part in (kept, row) if not part.empty]
    out = pd.concat(parts, ignore_index=True)
    out["date"] = pd.to_datetime(out["date"])
    out["n_included"] = out["n_included"].astype(int)
    out = out.sort_values("date").reset_index(drop=True)

    require_unique(out, ["date"], dataset=_DATASET_NAME)
    return out[COUNTER_FIELDS]


def update_recruitment_counter(
    flagged_df: pd.DataFrame,
    path: Path | str | None = None,
    as_of: date | None = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Record today's (or as_of's) included count and persist the counter.

    Args:
        flagged_df: Decision-augmented dataset
        path: Counter parquet (default: data/state/recruitment_counter.parquet)
        as_of: Date to record under (default: today)
        verbose: If True, print the recorded count

    Returns:
        The updated counter table
    """
    counter_path = Path(path) if path else recruitment_counter_path()
    as_of = as_of or date.today()
    n_included = count_included(flagged_df)

    counter = upsert_count(load_recruitment_counter(counter_path), as_of, n_included)

    counter_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = counter_path.with_suffix(".parquet.tmp")
    counter.to_parquet(tmp_path, index=False)
    tmp_path.rename(counter_path)

    if verbose:
        print(f"[recruitment] {as_of.isoformat()}: {n_included} included ({len(counter)} dates on record)")

    return counter
