from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

import numpy as np

from .errors import UnsupportedConfiguration
from .layout import LayoutPair, compute_distance, compute_layouts
from .marshal import element_offsets
from .types import ArrayType, Layout, Placement, TransformConfig, TransformKind

_INTERLEAVED_PLANAR = frozenset({ArrayType.COMPLEX_INTERLEAVED, ArrayType.COMPLEX_PLANAR})
_REAL_HERMITIAN_PLANAR = frozenset({ArrayType.REAL, ArrayType.HERMITIAN_PLANAR})


def placement_rejection(
    placement: Placement,
    itype: ArrayType,
    otype: ArrayType,
    istride: Sequence[int],
    ostride: Sequence[int],
    kind: TransformKind,
) -> Optional[str]:
    """Reason an in-place configuration cannot run, or None if it can.

    Strides are the requested (possibly partial) row-major strides; they are
    compared from the fastest axis outwards.
    """
    if placement is not Placement.IN_PLACE:
        return None

    for axis, (si, so) in enumerate(zip(reversed(tuple(istride)), reversed(tuple(ostride)))):
        if si != so:
            return (
                f"in-place transforms require identical strides "
                f"(istride {tuple(istride)} vs ostride {tuple(ostride)}, axis -{axis + 1})"
            )

    if kind.is_real:
        fastest_in = istride[-1] if len(istride) else 1
        fastest_out = ostride[-1] if len(ostride) else 1
        if fastest_in != 1 or fastest_out != 1:
            return (
                f"in-place real/complex transforms require unit fastest stride "
                f"(istride {fastest_in}, ostride {fastest_out})"
            )

    pair = frozenset({itype, otype})
    if pair == _INTERLEAVED_PLANAR:
        return "in-place complex transforms cannot convert between interleaved and planar"
    if pair == _REAL_HERMITIAN_PLANAR:
        return "in-place real/complex transforms cannot use planar hermitian data"
    return None


def _strides_nest(layout: Layout) -> bool:
    span = 0
    for n, s in sorted(zip(layout.lengths, layout.strides), key=lambda pair: pair[1]):
        if n == 1:
            continue
        if s <= span:
            return False
        span += (n - 1) * s
    return True


def _aliases(layout: Layout) -> bool:
    offsets = element_offsets(replace(layout, batch=1, offset=0)).ravel()
    return np.unique(offsets).size != offsets.size


def stride_rejection(layouts: LayoutPair) -> Optional[str]:
    """Reason a layout reaches one element from two indices, or None if it cannot.

    Strides that nest (each larger than everything the smaller ones span) are
    accepted without enumerating offsets.
    """
    for role, layout in (("input", layouts.input), ("output", layouts.output)):
        for axis, (n, s) in enumerate(zip(layout.lengths, layout.strides)):
            if s == 0 and n > 1:
                return f"{role} stride is zero on axis {axis} of length {n}"
        if not _strides_nest(layout) and _aliases(layout):
            return f"{role} strides {layout.strides} alias elements of lengths {layout.lengths}"
    return None


def distance_rejection(layouts: LayoutPair, placement: Placement, kind: TransformKind) -> Optional[str]:
    """Reason caller-supplied distances cannot run, or None if they can."""
    for role, layout in (("input", layouts.input), ("output", layouts.output)):
        if layout.batch > 1 and layout.distance < compute_distance(layout.lengths, layout.strides):
            return f"{role} distance {layout.distance} overlaps consecutive batch members"
    if placement is Placement.IN_PLACE and not kind.is_real:
        if layouts.input.distance != layouts.output.distance and layouts.input.batch > 1:
            return (
                f"in-place transforms require identical distances "
                f"(idist {layouts.input.distance} vs odist {layouts.output.distance})"
            )
    return None


def validate(config: TransformConfig, layouts: Optional[LayoutPair] = None) -> None:
    """Raise UnsupportedConfiguration when `config` must be skipped."""
    reason = placement_rejection(
        config.placement, config.itype, config.otype, config.istride, config.ostride, config.kind
    )
    if reason is None:
        if layouts is None:
            layouts = compute_layouts(config)
        reason = stride_rejection(layouts) or distance_rejection(layouts, config.placement, config.kind)
    if reason is not None:
        raise UnsupportedConfiguration(reason)


def is_supported(config: TransformConfig, layouts: Optional[LayoutPair] = None) -> bool:
    try:
        validate(config, layouts)
    except UnsupportedConfiguration:
        return False
    return True
