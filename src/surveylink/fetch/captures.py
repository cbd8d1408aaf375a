"""Load the five capture stream exports from disk.

The survey platform exports one CSV per stream. Everything is read as text
first so that codes with leading zeros survive, blank cells become NA, and
then each column is typed according to the fixed study schema.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from surveylink.config import raw_capture_dir
from surveylink.schemas.captures import CaptureStreams, normalize_missing
from surveylink.schemas.study import (
    ALL_STREAMS,
    BASELINE,
    BASELINE_FIELDS,
    FOLLOWUP_FIELDS,
    TIMESTAMP_FIELDS,
)
from surveylink.schemas.validate import require_columns

# Free-text fields kept as strings; everything else is a numeric code
TEXT_FIELDS = {"response_id", "r_code", "s_code", "access_code", "ip_address"}


def capture_csv_path(data_dir: Path, stream: str) -> Path:
    return data_dir / f"{stream}.csv"


def _type_columns(
    df: pd.DataFrame,
    fields: list[str],
    stream: str,
    verbose: bool = True,
) -> pd.DataFrame:
    """Type each field to the study schema.

    Timestamps are parsed to UTC (naive values are read as UTC, explicit
    offsets are honoured) and stored tz-naive, so every stream shares one
    clock whether or not it has rows. Values that fail to parse become
    missing and are reported per column.
    """
    df = df.copy()
    for col in fields:
        raw = df[col]
        if col in TIMESTAMP_FIELDS:
            parsed = pd.to_datetime(raw, errors="coerce", utc=True, format="ISO8601").dt.tz_convert(None)
        elif col not in TEXT_FIELDS:
            parsed = pd.to_numeric(raw, errors="coerce")
        else:
            continue

        coerced = int((raw.notna() & parsed.isna()).sum())
        if coerced and verbose:
            print(f"[captures] WARNING: {stream}: {coerced} unparseable '{col}' values set to missing")
        df[col] = parsed
    return df


def read_capture_csv(path: Path | str, stream: str, verbose: bool = True) -> pd.DataFrame:
    """Read one stream export and type it to the study schema.

    Args:
        path: CSV export
        stream: Stream name used in messages
        verbose: If True, warn about values that could not be parsed

    Raises:
        FileNotFoundError: If the export does not exist
        ValueError: If an expected field is absent
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Capture export not found: {path}")

    fields = BASELINE_FIELDS if stream == BASELINE else FOLLOWUP_FIELDS
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    require_columns(df.columns, fields, dataset=stream)

    df = normalize_missing(df)
    return _type_columns(df, fields, stream, verbose=verbose)


def load_capture_streams(
    data_dir: Path | str | None = None,
    verbose: bool = True,
) -> CaptureStreams:
    """Load and validate all five capture streams.

    Args:
        data_dir: Directory holding <stream>.csv exports (default: data/raw/captures)
        verbose: If True, print row counts and parse warnings per stream

    Returns:
        Validated CaptureStreams

    Raises:
        FileNotFoundError: If an export is missing
        ValueError: If a stream does not match its schema
    """
    data_dir = Path(data_dir) if data_dir else raw_capture_dir()

    frames = {}
    for stream in ALL_STREAMS:
        frames[stream] = read_capture_csv(capture_csv_path(data_dir, stream), stream, verbose=verbose)
        if verbose:
            print(f"[captures] {stream}: {len(frames[stream])} rows")

    streams = CaptureStreams.from_mapping(frames)
    streams.validate()
    return streams
