"""Pipeline runner - main orchestration for linkage and quality flagging.

This module provides the main entry point for a run:
1. Link capture streams into unified records
2. Validate identities against the issued code registry
3. Run the signal detectors
4. Resolve IP regions (cache first) and check location consistency
5. Apply the opt-out list and compute the exclusion decision
6. Write artifacts

Steps 2-4 only add their own flag columns and read linked fields, so their
order does not change the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd

from surveylink.aggregate.exclusion import flag_exclusions, flag_withdrawals, write_dataset
from surveylink.config import PipelineConfig, generate_run_id
from surveylink.detect.attention import flag_attention_check
from surveylink.detect.inconsistency import flag_inconsistencies
from surveylink.detect.location import flag_location
from surveylink.detect.speeding import completion_minutes, flag_speeders, speeding_cutoff
from surveylink.detect.straightlining import flag_straightlining
from surveylink.fetch.geolocation import resolve_ip_regions
from surveylink.identity.validate_identity import validate_identity
from surveylink.link.link_records import link_records
from surveylink.schemas.unified import validate_flagged

if TYPE_CHECKING:
    from surveylink.fetch.geolocation import Geolocator
    from surveylink.identity.registry import CodeRegistry
    from surveylink.schemas.captures import CaptureStreams


@dataclass
class PipelineResult:
    """Result container for a pipeline run.

    Attributes:
        run_id: Unique run identifier
        config: Configuration used
        unified_df: Linked dataset before any flagging
        flagged_df: Decision-augmented dataset
        speeding_cutoff: Cutoff in minutes used by the speeding detector
        geolocation_calls: External lookup calls made this run
    """
    run_id: str
    config: PipelineConfig
    unified_df: pd.DataFrame
    flagged_df: pd.DataFrame
    speeding_cutoff: float | None
    geolocation_calls: int


def flag_records(
    unified: pd.DataFrame,
    registry: CodeRegistry,
    config: PipelineConfig,
    regions: dict[str, str | None] | None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Run the validator, every detector and the aggregator over linked records.

    Args:
        unified: Output of link_records
        registry: Issued code registry
        config: Run configuration (detector policy constants, opt-out list)
        regions: Resolved IP regions keyed by response_id
        verbose: Whether to print progress

    Returns:
        Decision-augmented dataset

    Raises:
        ValueError: If a stage's precondition columns are missing
    """
    df = validate_identity(unified, registry, verbose=verbose)
    df = flag_speeders(df, fraction=config.speeding_fraction, verbose=verbose)
    df = flag_straightlining(df, max_scales=config.sl_max_scales, verbose=verbose)
    df = flag_inconsistencies(df, weeks_per_year=config.weeks_per_year, verbose=verbose)
    df = flag_attention_check(df, verbose=verbose)
    df = flag_location(df, regions, verbose=verbose)
    df = flag_withdrawals(df, config.withdrawn_access_codes)
    df = flag_exclusions(df, verbose=verbose)

    validate_flagged(df)
    return df


def run_pipeline(
    streams: CaptureStreams,
    registry: CodeRegistry,
    config: PipelineConfig | None = None,
    geolocator: Geolocator | None = None,
    cache_path: Path | str | None = None,
    run_id: str | None = None,
    verbose: bool = True,
) -> PipelineResult:
    """Run linkage and quality flagging end to end.

    Args:
        streams: The five raw capture streams
        registry: Issued code registry
        config: Run configuration (defaults if not provided)
        geolocator: IP lookup collaborator, or None to use the cache only
        cache_path: Location cache parquet path
        run_id: Optional run identifier (auto-generated if not provided)
        verbose: Whether to print progress

    Returns:
        PipelineResult with the raw and flagged datasets

    Raises:
        ValueError: If a capture stream is malformed or a stage precondition fails
    """
    config = config or PipelineConfig()
    run_id = run_id or generate_run_id()

    if verbose:
        print(f"\n{'=' * 60}")
        print(f"SURVEY LINKAGE RUN: {run_id}")
        print(f"{'=' * 60}")
        print(f"Study: {config.study_name}")
        print()

    if verbose:
        print("[pipeline] Linking capture streams...")
    unified = link_records(streams, verbose=verbose)

    if verbose:
        print("[pipeline] Resolving IP regions...")
    if not config.geolocation_enabled:
        geolocator = None
    regions, calls = resolve_ip_regions(
        unified,
        geolocator,
        cache_path=cache_path,
        batch_size=config.geolocation_batch_size,
        verbose=verbose,
    )

    if verbose:
        print("[pipeline] Flagging records...")
    flagged = flag_records(unified, registry, config, regions, verbose=verbose)

    return PipelineResult(
        run_id=run_id,
        config=config,
        unified_df=unified,
        flagged_df=flagged,
        speeding_cutoff=speeding_cutoff(completion_minutes(unified), config.speeding_fraction),
        geolocation_calls=calls,
    )


def write_run_artifacts(result: PipelineResult, output_dir: Path | str) -> dict[str, Path]:
    """Write the raw and flagged datasets plus the run config.

    Layout:
        <output_dir>/<run_id>/unified.parquet
        <output_dir>/<run_id>/flagged.parquet
        <output_dir>/<run_id>/config.json

    Returns:
        Mapping of artifact name to written path

    Raises:
        FileExistsError: If the run directory already exists
    """
    run_dir = Path(output_dir) / result.run_id
    if run_dir.exists():
        raise FileExistsError(f"Run directory already exists, refusing to overwrite: {run_dir}")

    return {
        "unified": write_dataset(result.unified_df, run_dir / "unified.parquet"),
        "flagged": write_dataset(result.flagged_df, run_dir / "flagged.parquet", flagged=True),
        "config": result.config.save(run_dir / "config.json"),
    }
