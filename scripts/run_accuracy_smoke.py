"""
Accuracy smoke run: sweep a small grid of FFT configurations through the oracle.

Usage:
    python scripts/run_accuracy_smoke.py                      # emulated engine, default grid
    python scripts/run_accuracy_smoke.py --engine vkfft --sizes 64 256 --precision double
    FFT_ORACLE_VERBOSE=1 python scripts/run_accuracy_smoke.py --kinds real_forward

Notes:
- Settings start from the FFT_ORACLE_* environment variables; flags override them.
- If the vkFFT engine is requested but pyvkfft/OpenCL is unusable, a one-line
  warning is printed and the emulated NumPy engine is used instead.
- Exit status is 1 when any configuration fails; skips are not failures.
"""

from __future__ import annotations

import argparse
import itertools
import sys
from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

# Allow running the script from repo root or elsewhere by adding project root to sys.path.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fft_oracle.backend import active_engine_name
from fft_oracle.config import OracleSettings
from fft_oracle.orchestrator import run_transform
from fft_oracle.types import Placement, Precision, TransformConfig, TransformKind


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="FFT accuracy smoke run against the NumPy reference.")
    p.add_argument("--engine", choices=["numpy", "vkfft"], default=None)
    p.add_argument("--sizes", type=int, nargs="+", default=[8, 64, 100], help="1D lengths to test.")
    p.add_argument("--dims", type=int, choices=[1, 2, 3], default=1, help="Rank; each size is repeated per axis.")
    p.add_argument(
        "--kinds",
        nargs="+",
        choices=[k.value for k in TransformKind],
        default=[k.value for k in TransformKind],
    )
    p.add_argument("--precision", choices=[p.value for p in Precision], nargs="+", default=["single"])
    p.add_argument("--placement", choices=[p.value for p in Placement], nargs="+", default=["out_of_place"])
    p.add_argument("--batch", type=int, default=1)
    p.add_argument("--ramgb", type=float, default=None, help="Memory budget in GB (0 = unlimited).")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("-v", "--verbose", action="count", default=None)
    return p.parse_args(argv)


def build_settings(args: argparse.Namespace) -> OracleSettings:
    settings = OracleSettings.from_env()
    overrides = {}
    if args.ramgb is not None:
        overrides["ram_gb"] = args.ramgb
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.verbose is not None:
        overrides["verbose"] = args.verbose
    if args.engine is not None:
        overrides["engine"] = args.engine
    return replace(settings, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = build_settings(args)

    if settings.engine == "vkfft":
        from gpu_vkfft_engine import register_vkfft_engine

        if register_vkfft_engine() is None:
            print("[warn] vkFFT engine unavailable; falling back to the emulated NumPy engine.", file=sys.stderr)
            settings = replace(settings, engine="numpy")

    counts: Counter = Counter()
    grid = itertools.product(args.sizes, args.kinds, args.precision, args.placement)
    for size, kind, precision, placement in grid:
        config = TransformConfig(
            shape=(size,) * args.dims,
            kind=TransformKind(kind),
            precision=Precision(precision),
            batch=args.batch,
            placement=Placement(placement),
        )
        outcome = run_transform(config, settings=settings)
        counts[outcome.state.value] += 1
        label = f"{kind:<16} {precision:<6} {placement:<12} {'x'.join(map(str, config.shape))}"
        print(f"{outcome.state.value:<8} {label}")
        if outcome.failed:
            print(f"         {outcome.reason}")

    print(f"engine: {settings.engine or active_engine_name()}")
    print(", ".join(f"{state}: {counts[state]}" for state in ("passed", "failed", "skipped")))
    return 1 if counts["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
