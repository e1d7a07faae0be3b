"""Norms, distances and the size-scaled pass/fail bound.

FFT round-off grows roughly with the number of butterfly stages, so the
tolerances scale with log N instead of being fixed:

    linf_cutoff       = eps * reference_linf * ln(N)
    l2_relative_bound = sqrt(log2(N)) * eps

All accumulation happens in float64 regardless of the transform precision.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from .marshal import gather
from .types import ComparisonResult, Layout, NormPair, Precision


def _as_float64(values: np.ndarray) -> np.ndarray:
    if np.iscomplexobj(values):
        return values.astype(np.complex128, copy=False)
    return values.astype(np.float64, copy=False)


def _magnitude(values: np.ndarray) -> np.ndarray:
    if np.iscomplexobj(values):
        return np.hypot(values.real, values.imag)
    return np.abs(values)


def norm(buffers: Sequence[np.ndarray], layout: Layout) -> NormPair:
    mag = _magnitude(_as_float64(gather(buffers, layout)))
    if mag.size == 0:
        return NormPair(l_2=0.0, l_inf=0.0)
    return NormPair(l_2=float(np.sqrt(np.sum(mag * mag))), l_inf=float(np.max(mag)))


def distance(
    buffers_a: Sequence[np.ndarray],
    layout_a: Layout,
    buffers_b: Sequence[np.ndarray],
    layout_b: Layout,
    cutoff: float = math.inf,
) -> ComparisonResult:
    """L2 / L-inf distance between two buffers holding the same logical content.

    Elements whose absolute difference exceeds `cutoff` are reported as
    `(batch, flat_index)` pairs, `flat_index` being row-major within one
    transform instance.
    """
    if layout_a.lengths != layout_b.lengths or layout_a.batch != layout_b.batch:
        raise ValueError(
            f"cannot compare {layout_a.batch}x{layout_a.lengths} "
            f"with {layout_b.batch}x{layout_b.lengths}"
        )
    if layout_a.array_type.is_complex != layout_b.array_type.is_complex:
        raise ValueError(
            f"cannot compare {layout_a.array_type.value} with {layout_b.array_type.value}"
        )
    a = _as_float64(gather(buffers_a, layout_a))
    b = _as_float64(gather(buffers_b, layout_b))
    diff = _magnitude(a - b).reshape(layout_a.batch, -1)
    if diff.size == 0:
        return ComparisonResult(l_2=0.0, l_inf=0.0)
    failing = frozenset((int(bi), int(fi)) for bi, fi in np.argwhere(diff > cutoff))
    return ComparisonResult(
        l_2=float(np.sqrt(np.sum(diff * diff))),
        l_inf=float(np.max(diff)),
        failing_indices=failing,
    )


def linf_cutoff(
    precision: Precision, reference_linf: float, total_length: int, epsilon: Optional[float] = None
) -> float:
    eps = precision.epsilon if epsilon is None else epsilon
    return eps * reference_linf * math.log(total_length)


def l2_relative_bound(precision: Precision, total_length: int, epsilon: Optional[float] = None) -> float:
    eps = precision.epsilon if epsilon is None else epsilon
    return math.sqrt(math.log2(total_length)) * eps


def normalized(value: float, reference: float) -> float:
    """`value / reference`, with a zero reference only matched by a zero value."""
    if reference == 0.0:
        return 0.0 if value == 0.0 else math.inf
    return value / reference


@dataclass(frozen=True)
class Verdict:
    passed: bool
    reason: str = ""
    metrics: dict = field(default_factory=dict)


def evaluate(
    reference_input_norm: NormPair,
    reference_output_norm: NormPair,
    device_norm: NormPair,
    diff: ComparisonResult,
    cutoff: float,
    bound: float,
) -> Verdict:
    """Apply the oracle's pass/fail policy.

    Non-finite norms fail before any threshold is looked at.
    """
    rel_l2 = normalized(diff.l_2, reference_output_norm.l_2)
    rel_linf = normalized(diff.l_inf, reference_output_norm.l_inf)
    metrics = {
        "l_2": diff.l_2,
        "l_inf": diff.l_inf,
        "normalized_l_2": rel_l2,
        "normalized_l_inf": rel_linf,
        "linf_cutoff": cutoff,
        "l2_bound": bound,
        "device_l_2": device_norm.l_2,
        "device_l_inf": device_norm.l_inf,
        "reference_l_2": reference_output_norm.l_2,
        "reference_l_inf": reference_output_norm.l_inf,
        "failing_indices": sorted(diff.failing_indices),
    }
    checked = (
        ("reference input norm", reference_input_norm),
        ("reference output norm", reference_output_norm),
        ("device output norm", device_norm),
    )
    for name, pair in checked:
        if not pair.is_finite():
            return Verdict(False, f"non-finite {name}: l_2={pair.l_2} l_inf={pair.l_inf}", metrics)
    if not diff.l_inf < cutoff:
        return Verdict(
            False,
            f"Linf test failed. Linf: {diff.l_inf:.6g} normalized Linf: {rel_linf:.6g} "
            f"cutoff: {cutoff:.6g}",
            metrics,
        )
    if not rel_l2 < bound:
        return Verdict(
            False,
            f"L2 test failed. L2: {diff.l_2:.6g} normalized L2: {rel_l2:.6g} epsilon: {bound:.6g}",
            metrics,
        )
    return Verdict(True, "", metrics)
