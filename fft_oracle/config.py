from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import Precision


@dataclass(frozen=True)
class OracleSettings:
    """Run-wide knobs threaded explicitly into the orchestrator."""

    ram_gb: float = 0.0  # host+device budget in GB; <= 0 means unlimited
    verbose: int = 0
    seed: int = 0
    single_epsilon: Optional[float] = None  # None -> float32 machine epsilon
    double_epsilon: Optional[float] = None  # None -> float64 machine epsilon
    engine: Optional[str] = None  # registry name; None -> active engine

    def epsilon(self, precision: Precision) -> float:
        override = self.single_epsilon if precision is Precision.SINGLE else self.double_epsilon
        return precision.epsilon if override is None else float(override)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "OracleSettings":
        env = os.environ if environ is None else environ

        def _opt_float(key: str) -> Optional[float]:
            raw = env.get(key)
            return float(raw) if raw not in (None, "") else None

        return cls(
            ram_gb=float(env.get("FFT_ORACLE_RAMGB", 0) or 0),
            verbose=int(env.get("FFT_ORACLE_VERBOSE", 0) or 0),
            seed=int(env.get("FFT_ORACLE_SEED", 0) or 0),
            single_epsilon=_opt_float("FFT_ORACLE_SINGLE_EPSILON"),
            double_epsilon=_opt_float("FFT_ORACLE_DOUBLE_EPSILON"),
            engine=env.get("FFT_ORACLE_ENGINE") or None,
        )
