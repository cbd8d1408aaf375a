"""Generate the issued identity code registry for a new study.

Run once, before data collection. Refuses to overwrite an existing registry.

Usage:
    python scripts/generate_registry.py
    python scripts/generate_registry.py --n 500 --seed 7 --out data/registry/pilot.csv
"""

from __future__ import annotations

import argparse
from pathlib import Path

from surveylink.config import registry_csv_path
from surveylink.identity.registry import generate_registry, write_registry
from surveylink.schemas.study import REGISTRY_SIZE


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the identity code registry.")
    parser.add_argument(
        "--n",
        type=int,
        default=REGISTRY_SIZE,
        help=f"Number of code pairs to issue (default: {REGISTRY_SIZE})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--out",
        default=None,
        help="Output CSV (default: data/registry/registry.csv)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    out_path = Path(args.out) if args.out else registry_csv_path()

    print(f"[identity] Generating {args.n} code pairs (seed={args.seed})")
    registry = generate_registry(n=args.n, seed=args.seed)
    write_registry(registry, out_path)


if __name__ == "__main__":
    main()
