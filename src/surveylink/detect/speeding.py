"""Speeding detector.

A participant is a speeder when their baseline completion time is at or below
a fraction (default 0.3) of the median completion time of the whole dataset.
The cutoff is recomputed from whatever dataset is passed in; it is never a
stored constant.
"""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.quality_flags import SPEEDER, add_flag
from surveylink.schemas.validate import require_columns

_DATASET_NAME = "speeding"


def completion_minutes(df: pd.DataFrame) -> pd.Series:
    """Baseline completion duration (exit - entrance) in minutes."""
    return (df["end_date"] - df["start_date"]).dt.total_seconds() / 60


def speeding_cutoff(durations: pd.Series, fraction: float = 0.3) -> float | None:
    """Return fraction x median of the non-missing durations.

    Returns None when no duration is available.
    """
    valid = durations.dropna()
    if valid.empty:
        return None
    return fraction * float(valid.median())


def flag_speeders(
    df: pd.DataFrame,
    fraction: float = 0.3,
    verbose: bool = True,
) -> pd.DataFrame:
    """Flag records completed at or below the speeding cutoff.

    Records with a missing duration are not flagged.

    Args:
        df: Unified participant records
        fraction: Fraction of the median duration used as cutoff
        verbose: If True, print the median, cutoff and flag count

    Returns:
        Copy of df with the speeder column
    """
    require_columns(df.columns, ["start_date", "end_date"], dataset=_DATASET_NAME)

    durations = completion_minutes(df)
    cutoff = speeding_cutoff(durations, fraction)

    if cutoff is None:
        speeding = pd.Series(False, index=df.index)
    else:
        speeding = (durations <= cutoff).fillna(False)

    df = add_flag(df, SPEEDER, speeding, dataset=_DATASET_NAME)

    if verbose:
        if cutoff is None:
            print("[detect] speeding: no completion durations available")
        else:
            print(
                f"[detect] speeding: median={durations.median():.1f} min, "
                f"cutoff={cutoff:.1f} min, flagged={int(df[SPEEDER].sum())}"
            )

    return df
