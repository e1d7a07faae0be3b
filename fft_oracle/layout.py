"""Stride, distance and length bookkeeping for FFT buffer layouts.

Everything here is row-major (last axis fastest), matching how problems are
described. The axis-reversed order expected by device engines is derived only
through `Layout.engine_view()` / `LayoutPair.engine_view()`.

Requested strides may be partial; they fill the fastest (trailing) axes and the
remaining axes are completed contiguously.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .types import EngineLayout, Layout, Placement, Precision, TransformConfig, TransformKind


def hermitian_length(n: int) -> int:
    return n // 2 + 1


def input_lengths(shape: Sequence[int], kind: TransformKind) -> Tuple[int, ...]:
    lengths = list(shape)
    if kind is TransformKind.REAL_INVERSE:
        lengths[-1] = hermitian_length(lengths[-1])
    return tuple(lengths)


def output_lengths(shape: Sequence[int], kind: TransformKind) -> Tuple[int, ...]:
    lengths = list(shape)
    if kind is TransformKind.REAL_FORWARD:
        lengths[-1] = hermitian_length(lengths[-1])
    return tuple(lengths)


def compute_strides(
    lengths: Sequence[int],
    requested: Sequence[int] = (),
    rc_padding: bool = False,
) -> Tuple[int, ...]:
    """Complete `requested` into a full stride tuple for `lengths`.

    With `rc_padding`, the real side of an in-place real/complex transform is
    padded along the last axis to `2 * (n // 2 + 1)` so the Hermitian side fits
    in the same buffer.
    """
    dim = len(lengths)
    requested = tuple(requested)
    if len(requested) > dim:
        raise ValueError(f"{len(requested)} strides given for a rank-{dim} layout")
    strides: List[int] = [0] * dim
    if requested:
        strides[dim - len(requested):] = requested
        known = len(requested)
    else:
        strides[-1] = 1
        known = 1
    for i in range(dim - known - 1, -1, -1):
        next_length = lengths[i + 1]
        if rc_padding and i == dim - 2:
            next_length = 2 * hermitian_length(next_length)
        strides[i] = strides[i + 1] * next_length
    return tuple(strides)


def compute_distance(lengths: Sequence[int], strides: Sequence[int]) -> int:
    """Smallest batch distance that keeps consecutive instances apart."""
    return max(n * s for n, s in zip(lengths, strides))


@dataclass(frozen=True)
class LayoutPair:
    input: Layout
    output: Layout

    def engine_view(self) -> Tuple[EngineLayout, EngineLayout]:
        return self.input.engine_view(), self.output.engine_view()


def compute_layouts(config: TransformConfig) -> LayoutPair:
    """Resolve input and output layouts for a configuration."""
    kind = config.kind
    in_place = config.placement is Placement.IN_PLACE
    ilengths = input_lengths(config.shape, kind)
    olengths = output_lengths(config.shape, kind)

    istrides = compute_strides(
        ilengths, config.istride, rc_padding=in_place and kind is TransformKind.REAL_FORWARD
    )
    ostrides = compute_strides(
        olengths, config.ostride, rc_padding=in_place and kind is TransformKind.REAL_INVERSE
    )

    idist = compute_distance(ilengths, istrides)
    odist = compute_distance(olengths, ostrides)
    # Real data sharing a buffer with its half spectrum needs twice the
    # Hermitian distance, counted in real elements.
    if in_place and kind is TransformKind.REAL_FORWARD:
        idist = max(idist, 2 * odist)
    elif in_place and kind is TransformKind.REAL_INVERSE:
        odist = max(odist, 2 * idist)

    if config.idist is not None:
        idist = config.idist
    if config.odist is not None:
        odist = config.odist

    return LayoutPair(
        input=Layout(
            lengths=ilengths,
            strides=istrides,
            distance=idist,
            array_type=config.itype,
            batch=config.batch,
            offset=config.ioffset,
        ),
        output=Layout(
            lengths=olengths,
            strides=ostrides,
            distance=odist,
            array_type=config.otype,
            batch=config.batch,
            offset=config.ooffset,
        ),
    )


def contiguous_layout(
    lengths: Sequence[int], array_type, batch: int = 1, offset: int = 0
) -> Layout:
    strides = compute_strides(lengths)
    return Layout(
        lengths=tuple(lengths),
        strides=strides,
        distance=compute_distance(lengths, strides),
        array_type=array_type,
        batch=batch,
        offset=offset,
    )


def buffer_sizes(precision: Precision, layout: Layout, elements: Optional[int] = None) -> List[int]:
    """Byte size of each physical buffer backing `layout`."""
    count = layout.buffer_elements if elements is None else elements
    nbytes = count * layout.array_type.element_bytes(precision)
    return [nbytes] * layout.array_type.buffer_count
