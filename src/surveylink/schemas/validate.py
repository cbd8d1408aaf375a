"""Validation helpers for schema enforcement.

These helpers ensure capture streams and linked datasets conform to the fixed
study schema. All helpers raise ValueError with actionable messages including:
- Dataset name (if provided)
- Offending columns
- Count of failing rows
- Sample of failing row indices (first 5)

A ValueError from here is always fatal: it means an upstream stage did not
produce what a downstream stage assumes.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import pandas as pd


def _format_error(
    dataset: str | None,
    rule: str,
    detail: str,
    failing_indices: list[Any] | None = None,
    count: int | None = None,
) -> str:
    """Format a validation error message consistently."""
    parts = []
    if dataset:
        parts.append(f"[{dataset}]")
    parts.append(rule)
    parts.append(f": {detail}")
    if count is not None:
        parts.append(f" ({count} rows)")
    if failing_indices:
        sample = failing_indices[:5]
        parts.append(f" | sample indices: {sample}")
    return "".join(parts)


def require_columns(
    df_columns: Iterable[str],
    required: Iterable[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if required columns are missing.

    Args:
        df_columns: Column names from a DataFrame (e.g., df.columns)
        required: Required column names
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If any required columns are missing
    """
    missing = set(required) - set(df_columns)
    if missing:
        raise ValueError(
            _format_error(dataset, "Missing columns", f"{sorted(missing)}")
        )


def require_absent(
    df_columns: Iterable[str],
    forbidden: Iterable[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if any of the given columns already exist.

    Used to guarantee that a stage never overwrites a column another stage owns.

    Raises:
        ValueError: If any forbidden column is present
    """
    present = set(forbidden) & set(df_columns)
    if present:
        raise ValueError(
            _format_error(dataset, "Column already exists", f"{sorted(present)}")
        )


def require_datetime(
    df: pd.DataFrame,
    cols: Iterable[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if any of the columns is not a datetime dtype.

    Args:
        df: DataFrame to check
        cols: Column names that must hold timestamps
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If a column has a non-datetime dtype
    """
    mismatches = []
    for col in cols:
        if col not in df.columns:
            continue  # Let require_columns handle missing columns
        if not pd.api.types.is_datetime64_any_dtype(df[col]):
            mismatches.append(f"{col}: expected datetime64, got {df[col].dtype}")

    if mismatches:
        raise ValueError(
            _format_error(dataset, "Dtype mismatch", "; ".join(mismatches))
        )


def require_consistent_timezone(
    frames: Mapping[str, pd.DataFrame],
    cols: Iterable[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if datetime columns across frames disagree on timezone.

    All columns must be either tz-naive or localized to the same timezone;
    otherwise they cannot be compared or concatenated. Empty frames count too,
    since their dtype still decides what a later concat produces.

    Args:
        frames: DataFrames keyed by a name used in the error message
        cols: Datetime column names to compare
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If more than one timezone (or naive and aware) is found
    """
    zones: dict[str, str] = {}
    for name, df in frames.items():
        for col in cols:
            if col not in df.columns or not pd.api.types.is_datetime64_any_dtype(df[col]):
                continue  # Let require_columns and require_datetime handle these
            tz = getattr(df[col].dtype, "tz", None)
            zones[f"{name}.{col}"] = str(tz) if tz is not None else "naive"

    if len(set(zones.values())) > 1:
        detail = ", ".join(f"{key}={tz}" for key, tz in zones.items())
        raise ValueError(_format_error(dataset, "Timezone mismatch", detail))


def require_no_nulls(
    df: pd.DataFrame,
    cols: Iterable[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if specified columns contain null values.

    Args:
        df: DataFrame to check
        cols: Column names that must not have nulls
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If any specified columns have null values
    """
    for col in cols:
        if col not in df.columns:
            continue  # Let require_columns handle missing columns

        null_mask = df[col].isna()
        null_count = int(null_mask.sum())
        if null_count > 0:
            failing_indices = df.index[null_mask].tolist()
            raise ValueError(
                _format_error(
                    dataset,
                    "Null values",
                    f"column '{col}' has nulls",
                    failing_indices,
                    null_count,
                )
            )


def require_unique(
    df: pd.DataFrame,
    key_cols: list[str],
    dataset: str | None = None,
) -> None:
    """Raise ValueError if key columns have duplicate combinations.

    Args:
        df: DataFrame to check
        key_cols: Column names that form a unique key
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If duplicate key combinations exist
    """
    if df.empty:
        return

    for col in key_cols:
        if col not in df.columns:
            return  # Let require_columns handle missing columns

    dup_mask = df.duplicated(subset=key_cols, keep=False)
    dup_count = int(dup_mask.sum())
    if dup_count > 0:
        failing_indices = df.index[dup_mask].tolist()
        raise ValueError(
            _format_error(
                dataset,
                "Duplicate keys",
                f"columns {key_cols} have duplicates",
                failing_indices,
                dup_count,
            )
        )


def require_int_range(
    df: pd.DataFrame,
    col: str,
    lo: int,
    hi: int,
    allow_null: bool = False,
    dataset: str | None = None,
) -> None:
    """Raise ValueError if integer values are outside the specified range.

    Args:
        df: DataFrame to check
        col: Column name to check
        lo: Minimum allowed value (inclusive)
        hi: Maximum allowed value (inclusive)
        allow_null: If True, null values are allowed
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If values are outside range, or null when not allowed
    """
    if col not in df.columns:
        return  # Let require_columns handle missing columns

    if df.empty:
        return

    series = df[col]
    if not allow_null:
        require_no_nulls(df, [col], dataset=dataset)
    non_null = series.dropna()

    if not non_null.empty:
        out_of_range = (non_null < lo) | (non_null > hi)
        bad_count = int(out_of_range.sum())
        if bad_count > 0:
            failing_indices = non_null.index[out_of_range].tolist()
            raise ValueError(
                _format_error(
                    dataset,
                    "Out of range",
                    f"column '{col}' must be in [{lo}, {hi}]",
                    failing_indices,
                    bad_count,
                )
            )


def require_string_length(
    df: pd.DataFrame,
    col: str,
    length: int,
    alphabet: str | None = None,
    dataset: str | None = None,
) -> None:
    """Raise ValueError if non-null strings have the wrong length or symbols.

    Args:
        df: DataFrame to check
        col: Column name to check
        length: Exact required string length
        alphabet: If given, every character must come from this set
        dataset: Optional dataset name for error messages

    Raises:
        ValueError: If any value is malformed
    """
    if col not in df.columns:
        return  # Let require_columns handle missing columns

    series = df[col].dropna().astype(str)
    bad = series.str.len() != length
    if alphabet is not None:
        allowed = set(alphabet)
        bad = bad | ~series.map(lambda value: set(value) <= allowed)

    bad_count = int(bad.sum())
    if bad_count > 0:
        failing_indices = series.index[bad].tolist()
        detail = f"column '{col}' must be {length} characters"
        if alphabet is not None:
            detail += f" from '{alphabet}'"
        raise ValueError(
            _format_error(dataset, "Malformed values", detail, failing_indices, bad_count)
        )
