"""Location consistency detector.

Compares the self-reported province with the region the baseline IP address
resolves to. Only a present-and-different pair is a failure. A record whose
IP could not be resolved (service down, token rejected, no geolocator) gets
NA rather than a pass or a fail.
"""

from __future__ import annotations

import unicodedata
from typing import Mapping

import pandas as pd

from surveylink.schemas.quality_flags import INCON_PROVINCE, add_flag
from surveylink.schemas.study import PROVINCES
from surveylink.schemas.validate import require_columns


def _normalize_region(value: object) -> object:
    if not isinstance(value, str):
        return value
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().casefold()


def reported_province(df: pd.DataFrame) -> pd.Series:
    """Map the coded province answer to its name (NaN if unanswered or unknown)."""
    return pd.to_numeric(df["province"], errors="coerce").map(PROVINCES)


def flag_location(
    df: pd.DataFrame,
    regions: Mapping[str, str | None] | None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Flag records whose reported province differs from their IP region.

    Args:
        df: Unified participant records
        regions: response_id -> region (None when the service had no answer)
            for every record whose IP was resolved; None if nothing resolved
        verbose: If True, print flag and unresolved counts

    Returns:
        Copy of df with the incon_province column (nullable; NA = unresolved)
    """
    require_columns(df.columns, ["response_id", "province", "ip_address"], dataset="location")
    regions = regions or {}

    ids = df["response_id"].astype(str)
    reported = reported_province(df)
    resolved = ids.isin(list(regions))
    region = ids.map(lambda rid: regions.get(rid))

    both = reported.notna() & region.notna()
    differ = both & (reported.map(_normalize_region) != region.map(_normalize_region))

    flag = differ.astype("boolean")
    unresolved = reported.notna() & df["ip_address"].notna() & ~resolved
    flag[unresolved] = pd.NA

    df = add_flag(df, INCON_PROVINCE, flag, dataset="location")

    if verbose:
        print(
            f"[detect] location: flagged={int(df[INCON_PROVINCE].sum())}, "
            f"unresolved={int(unresolved.sum())}"
        )

    return df
