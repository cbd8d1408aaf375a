"""Straight-lining (long-string) detector.

Per scale, a record is straight-lined when every item holds the same answer.
A record with any unanswered item in a scale is never straight-lined on that
scale. SL_flag is raised when more than two of the five scales are
straight-lined; the threshold is a policy constant, not derived from the
number of scales.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from surveylink.schemas.quality_flags import SL_FLAG, add_flag
from surveylink.schemas.scales import SCALES, Scale, validate_scales
from surveylink.schemas.validate import require_columns

SL_MAX_SCALES = 2

_DATASET_NAME = "straightlining"


def straightline_by_scale(
    df: pd.DataFrame,
    scales: Sequence[Scale] = SCALES,
) -> pd.DataFrame:
    """Return one boolean column per scale: True where the record straight-lined.

    Args:
        df: Unified participant records
        scales: Scale declarations

    Returns:
        DataFrame indexed like df with one column per scale name

    Raises:
        ValueError: If an item column is missing or a scale declaration is
            invalid (e.g. it includes the attention check)
    """
    require_columns(
        df.columns,
        [item for scale in scales for item in scale.items],
        dataset=_DATASET_NAME,
    )
    validate_scales(scales, df.columns)

    result = pd.DataFrame(index=df.index)
    for scale in scales:
        items = df[list(scale.items)]
        complete = items.notna().all(axis=1)
        identical = items.nunique(axis=1, dropna=True) == 1
        result[scale.name] = complete & identical
    return result


def flag_straightlining(
    df: pd.DataFrame,
    scales: Sequence[Scale] = SCALES,
    max_scales: int = SL_MAX_SCALES,
    verbose: bool = True,
) -> pd.DataFrame:
    """Flag records straight-lined on more than max_scales scales.

    Args:
        df: Unified participant records
        scales: Scale declarations
        max_scales: Number of straight-lined scales tolerated
        verbose: If True, print per-scale counts

    Returns:
        Copy of df with the SL_flag column
    """
    by_scale = straightline_by_scale(df, scales)
    total = by_scale.sum(axis=1)

    df = add_flag(df, SL_FLAG, total > max_scales, dataset=_DATASET_NAME)

    if verbose:
        per_scale = ", ".join(f"{name}={int(count)}" for name, count in by_scale.sum().items())
        print(f"[detect] straight-lining: {per_scale}; SL_flag={int(df[SL_FLAG].sum())}")

    return df
