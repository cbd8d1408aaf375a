"""Identity checks on unified participant records.

Three independent flags:
- invalid_code: composite code present but never issued
- blank_code: composite code missing, the wrong length, or the "NANA" placeholder
- ac_duplicate: access code shared by more than one surviving record

The checks are unconditional; test and development entries get no exemption.
blank_code and invalid_code overlap on purpose: a blank code is also not in
the registry.
"""

from __future__ import annotations

import pandas as pd

from surveylink.identity.registry import CodeRegistry
from surveylink.schemas.quality_flags import (
    AC_DUPLICATE,
    BLANK_CODE,
    INVALID_CODE,
    add_flag,
)
from surveylink.schemas.study import BLANK_ID_CODE, ID_CODE_LENGTH
from surveylink.schemas.unified import ID_CODE_FIELD
from surveylink.schemas.validate import require_columns

_DATASET_NAME = "identity"


def flag_invalid_code(df: pd.DataFrame, registry: CodeRegistry) -> pd.DataFrame:
    """Flag records whose non-empty composite code is absent from the registry."""
    require_columns(df.columns, [ID_CODE_FIELD], dataset=_DATASET_NAME)

    codes = df[ID_CODE_FIELD]
    present = codes.notna() & (codes.astype("string").str.len() > 0)
    issued = codes.isin(registry.id_codes)
    return add_flag(df, INVALID_CODE, present & ~issued, dataset=_DATASET_NAME)


def flag_blank_code(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records whose composite code is missing, mis-sized or the placeholder."""
    require_columns(df.columns, [ID_CODE_FIELD], dataset=_DATASET_NAME)

    codes = df[ID_CODE_FIELD].astype("string")
    blank = (
        codes.isna()
        | (codes.str.len() != ID_CODE_LENGTH).fillna(True)
        | (codes == BLANK_ID_CODE).fillna(False)
    )
    return add_flag(df, BLANK_CODE, blank, dataset=_DATASET_NAME)


def flag_ac_duplicate(df: pd.DataFrame) -> pd.DataFrame:
    """Flag records whose access code appears more than once among survivors."""
    require_columns(df.columns, ["access_code"], dataset=_DATASET_NAME)

    codes = df["access_code"]
    duplicated = codes.notna() & codes.duplicated(keep=False)
    return add_flag(df, AC_DUPLICATE, duplicated, dataset=_DATASET_NAME)


def validate_identity(
    df: pd.DataFrame,
    registry: CodeRegistry,
    verbose: bool = True,
) -> pd.DataFrame:
    """Add the three identity flags to the unified dataset.

    Args:
        df: Unified participant records
        registry: Issued code registry
        verbose: If True, print flag counts

    Returns:
        Copy of df with invalid_code, blank_code and ac_duplicate columns

    Raises:
        ValueError: If a required column is missing or a flag already exists
    """
    df = flag_invalid_code(df, registry)
    df = flag_blank_code(df)
    df = flag_ac_duplicate(df)

    if verbose:
        print(
            f"[identity] {len(df)} records: "
            f"invalid_code={int(df[INVALID_CODE].sum())}, "
            f"blank_code={int(df[BLANK_CODE].sum())}, "
            f"ac_duplicate={int(df[AC_DUPLICATE].sum())}"
        )

    return df
