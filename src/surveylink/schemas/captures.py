"""Capture stream schemas and the in-memory capture store.

A capture is one row from one of the five streams exported by the survey
platform. This module only defines structure and typed access; the record
linker does the work.

Non-negotiables:
- Every expected field is present (a missing field aborts before linkage)
- start_date and end_date are datetime dtypes, even in an empty stream
- All five streams share one timezone (naive or the same tz)
- response_id is present and unique within a stream
- Blank strings are normalised to NA; NA is the only missing representation
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import pandas as pd

from surveylink.schemas.study import (
    ARM_CONTROL,
    ARM_INTERVENTION,
    BASELINE,
    BASELINE_FIELDS,
    FOLLOWUP_FIELDS,
    FOLLOWUP_STREAMS,
    FU1_CONTROL,
    FU1_INTERVENTION,
    FU2_CONTROL,
    FU2_INTERVENTION,
    TIMESTAMP_FIELDS,
)
from surveylink.schemas.validate import (
    require_columns,
    require_consistent_timezone,
    require_datetime,
    require_no_nulls,
    require_unique,
)


def normalize_missing(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with blank and whitespace-only strings replaced by NA.

    String values are also stripped of surrounding whitespace.
    """
    df = df.copy()
    for col in df.columns:
        series = df[col]
        if not (pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series)):
            continue
        stripped = series.map(lambda value: value.strip() if isinstance(value, str) else value)
        blank = stripped.map(lambda value: isinstance(value, str) and value == "").astype(bool)
        df[col] = stripped.mask(blank)
    return df


def _validate_stream(df: pd.DataFrame, fields: list[str], dataset: str) -> None:
    require_columns(df.columns, fields, dataset=dataset)
    require_datetime(df, TIMESTAMP_FIELDS, dataset=dataset)

    if df.empty:
        return

    require_no_nulls(df, ["response_id"], dataset=dataset)
    require_unique(df, ["response_id"], dataset=dataset)


def validate_baseline(df: pd.DataFrame) -> None:
    """Validate that a DataFrame conforms to the baseline capture schema.

    Raises:
        ValueError: If any validation check fails
    """
    _validate_stream(df, BASELINE_FIELDS, BASELINE)


def validate_followup(df: pd.DataFrame, stream: str) -> None:
    """Validate that a DataFrame conforms to the follow-up capture schema.

    Args:
        df: DataFrame to validate
        stream: Stream name used in error messages (e.g. "fu1_control")

    Raises:
        ValueError: If any validation check fails
    """
    _validate_stream(df, FOLLOWUP_FIELDS, stream)


@dataclass(frozen=True, eq=False)
class CaptureStreams:
    """The five raw capture streams of one study export."""

    baseline: pd.DataFrame
    fu1_control: pd.DataFrame
    fu1_intervention: pd.DataFrame
    fu2_control: pd.DataFrame
    fu2_intervention: pd.DataFrame

    @classmethod
    def from_mapping(cls, frames: Mapping[str, pd.DataFrame]) -> CaptureStreams:
        """Build from a stream-name keyed mapping.

        Raises:
            KeyError: If any of the five streams is absent
        """
        missing = [name for name in (BASELINE, *FOLLOWUP_STREAMS) if name not in frames]
        if missing:
            raise KeyError(f"Capture streams missing: {missing}")
        return cls(
            baseline=frames[BASELINE],
            fu1_control=frames[FU1_CONTROL],
            fu1_intervention=frames[FU1_INTERVENTION],
            fu2_control=frames[FU2_CONTROL],
            fu2_intervention=frames[FU2_INTERVENTION],
        )

    def followups(self, arm: str) -> tuple[pd.DataFrame, pd.DataFrame]:
        """Return (follow-up-1, follow-up-2) captures for one arm."""
        if arm == ARM_CONTROL:
            return self.fu1_control, self.fu2_control
        if arm == ARM_INTERVENTION:
            return self.fu1_intervention, self.fu2_intervention
        raise ValueError(f"Unknown arm: {arm}")

    def validate(self) -> None:
        """Validate every stream against its fixed schema.

        Raises:
            ValueError: If any stream is missing a field, is mistyped, or the
                streams disagree on timezone
        """
        validate_baseline(self.baseline)
        validate_followup(self.fu1_control, FU1_CONTROL)
        validate_followup(self.fu1_intervention, FU1_INTERVENTION)
        validate_followup(self.fu2_control, FU2_CONTROL)
        validate_followup(self.fu2_intervention, FU2_INTERVENTION)
        require_consistent_timezone(
            {name: getattr(self, name) for name in (BASELINE, *FOLLOWUP_STREAMS)},
            TIMESTAMP_FIELDS,
            dataset="captures",
        )
