"""Link baseline and follow-up captures into unified participant records.

This stage:
- Validates every capture stream (early fail on a missing field)
- Keeps the latest submission per access code within each follow-up stream
- Backfills follow-up-1 rows for access codes only seen at follow-up-2
- Full-outer-joins follow-up-1 and follow-up-2 per arm
- Row-unions the two arms
- Left-joins the follow-up table onto baseline by access code
- Validates the unified output schema

Design principles:
- Linking != filtering: the only rows dropped are baseline rows without an
  access code and superseded duplicate follow-up submissions
- Missing access codes never match, not even each other
- Deterministic: duplicates resolve by entrance time, then input order
"""

from __future__ import annotations

import pandas as pd

from surveylink.schemas.captures import CaptureStreams
from surveylink.schemas.study import ARMS, FOLLOWUP_FIELDS, TIMESTAMP_FIELDS
from surveylink.schemas.unified import (
    ARM_FIELD,
    FU1_SUFFIX,
    FU2_SUFFIX,
    ID_CODE_FIELD,
    UNIFIED_FIELDS,
    compose_id_code,
    validate_unified,
)

KEY = "access_code"


def _latest_timestamp(df: pd.DataFrame, ts_cols: list[str]) -> pd.Series:
    """Row-wise latest non-missing value across ts_cols, keeping their dtype."""
    latest = df[ts_cols[0]]
    for col in ts_cols[1:]:
        later = df[col] > latest
        latest = latest.mask(later | latest.isna(), df[col])
    return latest


def latest_by_access_code(df: pd.DataFrame, ts_cols: list[str]) -> pd.DataFrame:
    """Keep one row per access code: the one with the latest entrance time.

    The entrance time of a row is the latest non-missing value across ts_cols.
    Ties on entrance time go to the row that comes later in input order; a row
    with no entrance time loses to any row that has one. Rows without an
    access code are returned untouched since they can never be linked.

    Args:
        df: Captures with an access_code column and the ts_cols timestamps
        ts_cols: Entrance timestamp column(s)

    Returns:
        DataFrame in input order with superseded duplicates removed
    """
    if df.empty:
        return df

    df = df.reset_index(drop=True)
    keyed = df[df[KEY].notna()]
    entrance = _latest_timestamp(keyed, ts_cols)
    order = entrance.sort_values(kind="mergesort", na_position="first").index
    latest = keyed.loc[order].drop_duplicates(subset=KEY, keep="last")

    kept = latest.index.union(df.index[df[KEY].isna()])
    return df.loc[kept].reset_index(drop=True)


def backfill_followup1(fu1: pd.DataFrame, fu2: pd.DataFrame) -> pd.DataFrame:
    """Add empty follow-up-1 rows for access codes only present at follow-up-2.

    Without these, a participant who skipped the first follow-up but completed
    the second would have no follow-up-1 row to anchor the arm join. The
    synthesized rows hold the access code and nothing else.

    Args:
        fu1: Follow-up-1 captures for one arm
        fu2: Follow-up-2 captures for the same arm

    Returns:
        fu1 with one placeholder row appended per follow-up-2-only access code
    """
    fu2_codes = set(fu2[KEY].dropna())
    fu1_codes = set(fu1[KEY].dropna())
    only_fu2 = sorted(fu2_codes - fu1_codes)

    if not only_fu2:
        return fu1

    placeholders = pd.DataFrame({KEY: only_fu2}).reindex(columns=fu1.columns)
    for col in TIMESTAMP_FIELDS:
        placeholders[col] = pd.Series(pd.NaT, index=placeholders.index, dtype=fu1[col].dtype)

    if fu1.empty:
        return placeholders
    return pd.concat([fu1, placeholders], ignore_index=True)


def _suffix_fields(df: pd.DataFrame, suffix: str) -> pd.DataFrame:
    return df.rename(columns={col: f"{col}{suffix}" for col in df.columns if col != KEY})


def _add_missing_timestamps(part: pd.DataFrame, ts_dtypes: dict[str, object]) -> pd.DataFrame:
    """Add absent timestamp columns as all-NaT columns of the expected dtype."""
    missing = [col for col in ts_dtypes if col not in part.columns]
    if not missing:
        return part
    part = part.copy()
    for col in missing:
        part[col] = pd.Series(pd.NaT, index=part.index, dtype=ts_dtypes[col])
    return part


def _outer_join_on_access_code(left: pd.DataFrame, right: pd.DataFrame) -> pd.DataFrame:
    """Full outer join that never matches a missing access code."""
    left_keyed = left[left[KEY].notna()]
    right_keyed = right[right[KEY].notna()]

    matched = left_keyed.merge(right_keyed, on=KEY, how="outer")
    unmatched_left = left[left[KEY].isna()]
    unmatched_right = right[right[KEY].isna()]

    columns = [KEY, *[c for c in left.columns if c != KEY], *[c for c in right.columns if c != KEY]]
    ts_dtypes = {
        col: frame[col].dtype
        for frame in (left, right)
        for col in frame.columns
        if pd.api.types.is_datetime64_any_dtype(frame[col])
    }
    parts = [
        _add_missing_timestamps(part, ts_dtypes)
        for part in (matched, unmatched_left, unmatched_right)
        if not part.empty
    ]
    if not parts:
        return matched.reindex(columns=columns)
    return pd.concat(parts, ignore_index=True).reindex(columns=columns)


def join_followups(
    fu1: pd.DataFrame,
    fu2: pd.DataFrame,
    arm: str,
    verbose: bool = True,
) -> pd.DataFrame:
    """Join one arm's follow-up-1 and follow-up-2 captures on access code.

    Args:
        fu1: Follow-up-1 captures
        fu2: Follow-up-2 captures
        arm: Arm label written to the arm column
        verbose: If True, print join statistics

    Returns:
        One row per access code (plus unlinkable rows) with suffixed fields
    """
    fu1_latest = latest_by_access_code(fu1[FOLLOWUP_FIELDS], ["start_date"])
    fu2_latest = latest_by_access_code(fu2[FOLLOWUP_FIELDS], ["start_date"])

    fu1_filled = backfill_followup1(fu1_latest, fu2_latest)

    joined = _outer_join_on_access_code(
        _suffix_fields(fu1_filled, FU1_SUFFIX),
        _suffix_fields(fu2_latest, FU2_SUFFIX),
    )
    joined[ARM_FIELD] = arm

    if verbose:
        print(
            f"[link] {arm}: fu1 {len(fu1)} -> {len(fu1_latest)}, "
            f"fu2 {len(fu2)} -> {len(fu2_latest)} after dedupe, "
            f"{len(fu1_filled) - len(fu1_latest)} fu1 rows backfilled, "
            f"{len(joined)} joined"
        )

    return joined


def link_records(streams: CaptureStreams, verbose: bool = True) -> pd.DataFrame:
    """Build the unified participant record set from the five capture streams.

    Linking steps (in order):
    1. Validate every stream (early fail on malformed data)
    2. Per arm: dedupe, backfill follow-up-1, outer-join follow-ups
    3. Row-union the arms, keeping the latest entry per access code
    4. Discard baseline rows without an access code
    5. Left-join the follow-up table onto baseline
    6. Derive the composite identity code
    7. Validate output schema

    Args:
        streams: The five raw capture streams
        verbose: If True, print linkage statistics (default True)

    Returns:
        Unified DataFrame, one row per retained baseline submission

    Raises:
        ValueError: If any input stream or the output fails schema validation
    """
    streams.validate()

    arms = [join_followups(*streams.followups(arm), arm, verbose=verbose) for arm in ARMS]
    non_empty = [joined for joined in arms if not joined.empty]
    followups = pd.concat(non_empty, ignore_index=True) if non_empty else arms[0]
    followups = latest_by_access_code(
        followups,
        [f"start_date{FU1_SUFFIX}", f"start_date{FU2_SUFFIX}"],
    )
    followups = followups[followups[KEY].notna()]

    baseline = streams.baseline
    no_code = baseline[KEY].isna()
    baseline = baseline[~no_code]

    unified = baseline.merge(followups, on=KEY, how="left", validate="many_to_one")
    unified[ID_CODE_FIELD] = compose_id_code(unified["s_code"], unified["r_code"])
    unified = unified[UNIFIED_FIELDS].reset_index(drop=True)

    validate_unified(unified)

    if verbose:
        print_linkage_stats(unified, len(streams.baseline), int(no_code.sum()))

    return unified


def print_linkage_stats(
    unified: pd.DataFrame,
    baseline_count: int,
    discarded: int,
) -> None:
    """Print summary statistics after linkage.

    Args:
        unified: Linked DataFrame
        baseline_count: Number of baseline rows before linkage
        discarded: Number of baseline rows discarded for a missing access code
    """
    print("[link] Linkage summary:")
    print(f"  Baseline rows: {baseline_count} -> {len(unified)} ({discarded} without access code discarded)")

    fu1_present = unified[f"response_id{FU1_SUFFIX}"].notna().sum()
    fu2_present = unified[f"response_id{FU2_SUFFIX}"].notna().sum()
    no_followup = unified[ARM_FIELD].isna().sum()
    print(f"  With follow-up-1: {fu1_present}")
    print(f"  With follow-up-2: {fu2_present}")
    print(f"  Without any follow-up: {no_followup}")

    for arm, count in unified[ARM_FIELD].value_counts().sort_index().items():
        print(f"    {arm}: {count}")
