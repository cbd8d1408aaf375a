"""Quality flag vocabulary.

Each flag is its own 0/1 column (nullable Int64) on the unified dataset so
that every signal stays independently inspectable in the delivered file.

Rules:
- Never delete participants here
- Only label problems
- One stage owns each flag column; no stage overwrites another's flag
- NA means "unknown" (e.g. a location lookup that could not be made)
"""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.validate import require_absent

FLAG_OK = 0
FLAG_RAISED = 1

# Identity validator
INVALID_CODE = "invalid_code"
BLANK_CODE = "blank_code"
AC_DUPLICATE = "ac_duplicate"

# Signal detectors
SPEEDER = "speeder"
SL_FLAG = "SL_flag"
ATTNCHECK_FAIL = "attncheck_fail"
INCON_CANNABIS_EVER = "incon_cannabis_ever"
INCON_CANNABIS_DUP = "incon_cannabis_dup"
INCON_FREQ_3M = "incon_freq_3m"
INCON_USE_3M_6M = "incon_use_3m_6m"
INCON_AGE = "incon_age"
INCON_PROVINCE = "incon_province"

# External opt-out list
WITHDREW = "withdrew"

# Exclusion decision
EXCLUDE = "exclude"

IDENTITY_FLAGS = [INVALID_CODE, BLANK_CODE, AC_DUPLICATE]

INCONSISTENCY_FLAGS = [
    INCON_CANNABIS_EVER,
    INCON_CANNABIS_DUP,
    INCON_FREQ_3M,
    INCON_USE_3M_6M,
    INCON_AGE,
    INCON_PROVINCE,
]

DETECTOR_FLAGS = [SPEEDER, SL_FLAG, ATTNCHECK_FAIL, *INCONSISTENCY_FLAGS]

# Every flag that feeds the exclusion decision
EXCLUSION_FLAGS = [*IDENTITY_FLAGS, *DETECTOR_FLAGS, WITHDREW]


def add_flag(
    df: pd.DataFrame,
    name: str,
    values: pd.Series,
    dataset: str | None = None,
) -> pd.DataFrame:
    """Return a copy of df with a new 0/1 flag column.

    Args:
        df: Dataset to extend
        name: Flag column name (must not already exist)
        values: Boolean (or nullable boolean) Series aligned to df's index
        dataset: Optional dataset name for error messages

    Returns:
        Copy of df with the flag column added as nullable Int64

    Raises:
        ValueError: If the flag column already exists
    """
    require_absent(df.columns, [name], dataset=dataset)
    df = df.copy()
    df[name] = values.astype("boolean").astype("Int64")
    return df
