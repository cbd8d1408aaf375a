"""Main script to run the survey linkage pipeline.

Pipeline flow:
    load capture exports -> link -> validate identity -> detect -> exclude
    -> write artifacts -> update recruitment counter

Usage:
    python scripts/run_pipeline.py
    python scripts/run_pipeline.py --config configs/study.json --no-geolocation
"""

from __future__ import annotations

import argparse
from pathlib import Path

from surveylink.aggregate.recruitment import update_recruitment_counter
from surveylink.config import PipelineConfig, output_dir
from surveylink.fetch.captures import load_capture_streams
from surveylink.fetch.geolocation import GeolocationUnavailable, IpinfoGeolocator
from surveylink.identity.registry import load_registry
from surveylink.runner import run_pipeline, write_run_artifacts


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run survey linkage and quality flagging.")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding the five <stream>.csv exports (default: data/raw/captures)",
    )
    parser.add_argument(
        "--registry",
        default=None,
        help="Issued code registry CSV (default: data/registry/registry.csv)",
    )
    parser.add_argument("--config", default=None, help="PipelineConfig JSON file")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Run artifact directory (default: data/clean)",
    )
    parser.add_argument(
        "--cache",
        default=None,
        help="Location cache parquet (default: data/cache/ip_regions.parquet)",
    )
    parser.add_argument(
        "--counter",
        default=None,
        help="Recruitment counter parquet (default: data/state/recruitment_counter.parquet)",
    )
    parser.add_argument(
        "--no-geolocation",
        action="store_true",
        help="Skip external IP lookups (cached regions are still used)",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    verbose = not args.quiet

    config = PipelineConfig.load(args.config) if args.config else PipelineConfig()
    if args.no_geolocation:
        config.geolocation_enabled = False

    # Stage 1: Load inputs
    print("[pipeline] Loading capture streams and registry")
    streams = load_capture_streams(args.data_dir, verbose=verbose)
    registry = load_registry(args.registry)
    print(f"[pipeline] Registry holds {len(registry)} issued codes")

    # Stage 2: Geolocation collaborator (optional)
    geolocator = None
    if config.geolocation_enabled:
        try:
            geolocator = IpinfoGeolocator.from_env(
                config.geolocation_token_env,
                timeout=config.geolocation_timeout,
            )
        except GeolocationUnavailable as exc:
            print(f"[pipeline] WARNING: {exc}; using cached regions only")

    # Stage 3: Link, flag, decide
    result = run_pipeline(
        streams,
        registry,
        config=config,
        geolocator=geolocator,
        cache_path=args.cache,
        verbose=verbose,
    )

    # Stage 4: Persist
    written = write_run_artifacts(result, Path(args.output_dir) if args.output_dir else output_dir())
    update_recruitment_counter(result.flagged_df, path=args.counter, verbose=verbose)

    print(f"\n[pipeline] Run {result.run_id} complete")
    for name, path in written.items():
        print(f"  {name}: {path}")


if __name__ == "__main__":
    main()
