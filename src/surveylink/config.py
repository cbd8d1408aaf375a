"""Configuration settings for the survey linkage pipeline.

Path helpers locate the study's data tree. PipelineConfig holds the run
parameters; it is frozen at run start and dumped alongside the outputs.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def data_root() -> Path:
    return project_root() / "data"


def raw_capture_dir() -> Path:
    return data_root() / "raw" / "captures"


def registry_csv_path() -> Path:
    return data_root() / "registry" / "registry.csv"


def location_cache_path() -> Path:
    return data_root() / "cache" / "ip_regions.parquet"


def recruitment_counter_path() -> Path:
    return data_root() / "state" / "recruitment_counter.parquet"


def output_dir() -> Path:
    return data_root() / "clean"


@dataclass
class PipelineConfig:
    """Configuration for a linkage and flagging run.

    Attributes:
        study_name: Human-readable name written into run metadata
        speeding_fraction: Fraction of the median duration used as the speeding cutoff
        sl_max_scales: Straight-lined scale count tolerated before SL_flag is set
        weeks_per_year: Divisor converting weeks of age into years
        geolocation_enabled: If False, no external lookups are attempted
        geolocation_token_env: Environment variable holding the lookup token
        geolocation_batch_size: Maximum IPs per lookup request
        geolocation_timeout: Seconds before a lookup request is abandoned
        withdrawn_access_codes: Access codes of participants who opted out
    """

    study_name: str = "cannabis-intervention-trial"

    # Detector policy constants
    speeding_fraction: float = 0.3
    sl_max_scales: int = 2
    weeks_per_year: float = 52.18

    # Geolocation collaborator
    geolocation_enabled: bool = True
    geolocation_token_env: str = "IPINFO_TOKEN"
    geolocation_batch_size: int = 1000
    geolocation_timeout: float = 30.0

    # External opt-out list
    withdrawn_access_codes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate all configuration parameters."""
        errors = []

        if not 0 < self.speeding_fraction < 1:
            errors.append(
                f"speeding_fraction must be in (0, 1), got {self.speeding_fraction}"
            )

        if not 0 <= self.sl_max_scales < 5:
            errors.append(f"sl_max_scales must be in [0, 5), got {self.sl_max_scales}")

        if self.weeks_per_year <= 0:
            errors.append(f"weeks_per_year must be positive, got {self.weeks_per_year}")

        if self.geolocation_batch_size <= 0:
            errors.append(
                f"geolocation_batch_size must be positive, got {self.geolocation_batch_size}"
            )

        if self.geolocation_timeout <= 0:
            errors.append(
                f"geolocation_timeout must be positive, got {self.geolocation_timeout}"
            )

        if errors:
            raise ValueError("PipelineConfig validation failed:\n  - " + "\n  - ".join(errors))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize config to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: Path | str) -> Path:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json())
        return path

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PipelineConfig:
        """Create config from dictionary."""
        return cls(**d)

    @classmethod
    def from_json(cls, json_str: str) -> PipelineConfig:
        """Create config from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Path | str) -> PipelineConfig:
        """Load config from JSON file."""
        path = Path(path)
        return cls.from_json(path.read_text())


def generate_run_id() -> str:
    """Generate a unique run ID based on timestamp."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")
