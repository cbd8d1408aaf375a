"""Attention check detector."""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.quality_flags import ATTNCHECK_FAIL, add_flag
from surveylink.schemas.study import ATTENTION_CORRECT, ATTENTION_FIELD
from surveylink.schemas.validate import require_columns


def flag_attention_check(df: pd.DataFrame, verbose: bool = True) -> pd.DataFrame:
    """Flag records whose attention check answer is anything but the correct code.

    An unanswered attention check counts as a failure.
    """
    require_columns(df.columns, [ATTENTION_FIELD], dataset="attention")

    answer = pd.to_numeric(df[ATTENTION_FIELD], errors="coerce")
    passed = (answer == ATTENTION_CORRECT).fillna(False)

    df = add_flag(df, ATTNCHECK_FAIL, ~passed, dataset="attention")

    if verbose:
        print(f"[detect] attention check: failed={int(df[ATTNCHECK_FAIL].sum())}")

    return df
