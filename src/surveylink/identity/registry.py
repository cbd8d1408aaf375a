"""Issued identity code registry.

The registry is the table of (R-code, S-code) pairs generated before data
collection and handed out one per participant. It is immutable for the life
of the study; the pipeline only reads membership.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from surveylink.config import registry_csv_path
from surveylink.schemas.study import (
    R_CODE_ALPHABET,
    R_CODE_LENGTH,
    REGISTRY_SIZE,
    S_CODE_ALPHABET,
    S_CODE_LENGTH,
)
from surveylink.schemas.unified import compose_id_code
from surveylink.schemas.validate import (
    require_columns,
    require_no_nulls,
    require_string_length,
    require_unique,
)

REGISTRY_FIELDS = ["r_code", "s_code"]

_DATASET_NAME = "registry"


@dataclass(frozen=True)
class CodeRegistry:
    id_codes: frozenset[str]

    def __contains__(self, id_code: object) -> bool:
        return id_code in self.id_codes

    def __len__(self) -> int:
        return len(self.id_codes)


def validate_registry(df: pd.DataFrame, expected_size: int | None = REGISTRY_SIZE) -> None:
    """Validate a registry table.

    Checks performed:
    - r_code and s_code columns present, no nulls
    - Code lengths and alphabets
    - No duplicate pairs
    - Exactly expected_size rows (skipped when expected_size is None)

    Raises:
        ValueError: If any validation check fails
    """
    require_columns(df.columns, REGISTRY_FIELDS, dataset=_DATASET_NAME)
    require_no_nulls(df, REGISTRY_FIELDS, dataset=_DATASET_NAME)
    require_string_length(df, "r_code", R_CODE_LENGTH, R_CODE_ALPHABET, dataset=_DATASET_NAME)
    require_string_length(df, "s_code", S_CODE_LENGTH, S_CODE_ALPHABET, dataset=_DATASET_NAME)
    require_unique(df, REGISTRY_FIELDS, dataset=_DATASET_NAME)

    if expected_size is not None and len(df) != expected_size:
        raise ValueError(
            f"[{_DATASET_NAME}]Wrong size: expected {expected_size} pairs, got {len(df)}"
        )


def registry_from_frame(df: pd.DataFrame, expected_size: int | None = REGISTRY_SIZE) -> CodeRegistry:
    """Build a CodeRegistry from a validated (r_code, s_code) table."""
    validate_registry(df, expected_size=expected_size)
    return CodeRegistry(frozenset(compose_id_code(df["s_code"], df["r_code"])))


def load_registry(
    path: Path | str | None = None,
    expected_size: int | None = REGISTRY_SIZE,
) -> CodeRegistry:
    """Read the issued code registry from CSV.

    Args:
        path: CSV with r_code and s_code columns (default: data/registry/registry.csv)
        expected_size: Required number of pairs, or None to skip the check

    Raises:
        FileNotFoundError: If the registry file does not exist
        ValueError: If the registry is malformed
    """
    registry_path = Path(path) if path else registry_csv_path()
    if not registry_path.exists():
        raise FileNotFoundError(f"Registry file not found: {registry_path}")
    df = pd.read_csv(registry_path, dtype=str, keep_default_na=False)
    return registry_from_frame(df, expected_size=expected_size)


def _random_codes(rng: np.random.Generator, alphabet: str, length: int, n: int) -> list[str]:
    symbols = np.array(list(alphabet))
    draws = rng.integers(0, len(symbols), size=(n, length))
    return ["".join(row) for row in symbols[draws]]


def generate_registry(n: int = REGISTRY_SIZE, seed: int | None = None) -> pd.DataFrame:
    """Generate n unique (r_code, s_code) pairs for a new study.

    Pairs are drawn until n distinct composite codes exist. Only used before
    data collection starts; a study's registry is never regenerated.

    Args:
        n: Number of pairs to issue
        seed: Random seed for reproducibility

    Returns:
        DataFrame with r_code and s_code columns, n rows
    """
    rng = np.random.default_rng(seed)
    pairs: dict[str, tuple[str, str]] = {}
    while len(pairs) < n:
        need = n - len(pairs)
        r_codes = _random_codes(rng, R_CODE_ALPHABET, R_CODE_LENGTH, need)
        s_codes = _random_codes(rng, S_CODE_ALPHABET, S_CODE_LENGTH, need)
        for r_code, s_code in zip(r_codes, s_codes):
            pairs.setdefault(s_code + r_code, (r_code, s_code))

    df = pd.DataFrame(list(pairs.values())[:n], columns=REGISTRY_FIELDS)
    validate_registry(df, expected_size=n)
    return df


def write_registry(df: pd.DataFrame, output_path: Path | str) -> Path:
    """Validate and write a registry table to CSV.

    Refuses to overwrite an existing registry.

    Raises:
        FileExistsError: If output_path already exists
        ValueError: If the registry is malformed
    """
    output_path = Path(output_path)
    if output_path.exists():
        raise FileExistsError(f"Registry already exists, refusing to overwrite: {output_path}")

    validate_registry(df, expected_size=None)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_suffix(".csv.tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.rename(output_path)

    print(f"[identity] wrote {len(df)} registry pairs to {output_path}")
    return output_path
