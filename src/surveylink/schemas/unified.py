"""Unified participant record schema.

One row per baseline submission that survived linkage. Baseline fields keep
their names; follow-up fields carry a suffix marking the survey they came
from. The record linker creates this table; the validator and detectors only
ever add flag columns to it.

Key rules:
- access_code is never null (baseline rows without one are discarded)
- response_id (the baseline record identifier) is unique
- id_code is the composite S-code + R-code exactly as the registry stores it
"""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.quality_flags import EXCLUDE, EXCLUSION_FLAGS
from surveylink.schemas.study import BASELINE_FIELDS, FOLLOWUP_FIELDS, MISSING_CODE_TEXT
from surveylink.schemas.validate import (
    require_columns,
    require_int_range,
    require_no_nulls,
    require_unique,
)

FU1_SUFFIX = "_fu1"
FU2_SUFFIX = "_fu2"
ARM_FIELD = "arm"
ID_CODE_FIELD = "id_code"


def followup_columns(suffix: str) -> list[str]:
    """Return follow-up field names as they appear in the unified table."""
    return [f"{name}{suffix}" for name in FOLLOWUP_FIELDS if name != "access_code"]


UNIFIED_FIELDS = [
    *BASELINE_FIELDS,
    ID_CODE_FIELD,
    ARM_FIELD,
    *followup_columns(FU1_SUFFIX),
    *followup_columns(FU2_SUFFIX),
]

_DATASET_NAME = "unified"
_FLAGGED_DATASET_NAME = "flagged"


def compose_id_code(s_code: pd.Series, r_code: pd.Series) -> pd.Series:
    """Concatenate S-code and R-code into the composite identity code.

    An absent sub-code is rendered as the platform's "NA" text, so a record
    with neither code gets the blank placeholder "NANA".
    """
    s_part = s_code.astype("string").fillna(MISSING_CODE_TEXT)
    r_part = r_code.astype("string").fillna(MISSING_CODE_TEXT)
    return s_part + r_part


def validate_unified(df: pd.DataFrame) -> None:
    """Validate that a DataFrame conforms to the unified record schema.

    Checks performed:
    - All unified columns present
    - No nulls in: response_id, access_code
    - Uniqueness on response_id

    Raises:
        ValueError: If any validation check fails
    """
    require_columns(df.columns, UNIFIED_FIELDS, dataset=_DATASET_NAME)

    if df.empty:
        return

    require_no_nulls(df, ["response_id", "access_code"], dataset=_DATASET_NAME)
    require_unique(df, ["response_id"], dataset=_DATASET_NAME)


def validate_flagged(df: pd.DataFrame) -> None:
    """Validate the decision-augmented dataset.

    Checks performed:
    - Unified schema checks
    - Every exclusion flag and the exclude column present
    - Flags are 0/1 (NA allowed, except for exclude)

    Raises:
        ValueError: If any validation check fails
    """
    validate_unified(df)
    require_columns(df.columns, [*EXCLUSION_FLAGS, EXCLUDE], dataset=_FLAGGED_DATASET_NAME)

    for flag in EXCLUSION_FLAGS:
        require_int_range(df, flag, lo=0, hi=1, allow_null=True, dataset=_FLAGGED_DATASET_NAME)
    require_int_range(df, EXCLUDE, lo=0, hi=1, allow_null=False, dataset=_FLAGGED_DATASET_NAME)
