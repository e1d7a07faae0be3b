"""Host staging buffers and layout-to-layout copies.

Buffers are lists of 1-D numpy arrays, one per physical buffer: interleaved
complex data lives in a single complex array, planar data in two real arrays
(real part, imaginary part). Copies only reorder elements; values are never
converted, so marshaling A -> B -> A is bit-exact.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .errors import AllocationFailure
from .types import Layout, Precision

Buffers = List[np.ndarray]


def element_offsets(layout: Layout) -> np.ndarray:
    """Index of every logical element, shaped `(batch, *lengths)`."""
    rank = layout.rank
    offsets = layout.offset + np.arange(layout.batch, dtype=np.int64) * layout.distance
    offsets = offsets.reshape((layout.batch,) + (1,) * rank)
    for axis, (n, s) in enumerate(zip(layout.lengths, layout.strides)):
        shape = [1] * (rank + 1)
        shape[axis + 1] = n
        offsets = offsets + (np.arange(n, dtype=np.int64) * s).reshape(shape)
    return offsets


def allocate_host_buffer(precision: Precision, layout: Layout) -> Buffers:
    dtype = layout.array_type.element_dtype(precision)
    count = layout.buffer_elements
    buffers: Buffers = []
    for idx in range(layout.array_type.buffer_count):
        try:
            buffers.append(np.zeros(count, dtype=dtype))
        except MemoryError as exc:
            raise AllocationFailure(f"host buffer {idx}", count * dtype.itemsize) from exc
    return buffers


def buffers_precision(buffers: Sequence[np.ndarray]) -> Precision:
    return Precision.from_dtype(buffers[0].dtype)


def _check_buffers(buffers: Sequence[np.ndarray], layout: Layout) -> None:
    expected = layout.array_type.buffer_count
    if len(buffers) != expected:
        raise ValueError(
            f"{layout.array_type.value} needs {expected} buffer(s), got {len(buffers)}"
        )
    for buf in buffers:
        if buf.ndim != 1:
            raise ValueError("buffers must be one-dimensional")
        if buf.size <= _last_index(layout):
            raise ValueError(f"buffer of {buf.size} elements is too small for layout")
    if layout.array_type.is_planar:
        if any(np.iscomplexobj(b) for b in buffers):
            raise ValueError("planar buffers must hold real components")
    elif layout.array_type.is_complex != np.iscomplexobj(buffers[0]):
        raise ValueError(f"{layout.array_type.value} buffer has dtype {buffers[0].dtype}")


def _last_index(layout: Layout) -> int:
    return layout.offset + (layout.batch - 1) * layout.distance + layout.extent - 1


def gather(buffers: Sequence[np.ndarray], layout: Layout) -> np.ndarray:
    """Logical values of `layout`, shaped `(batch, *lengths)`."""
    _check_buffers(buffers, layout)
    idx = element_offsets(layout)
    if layout.array_type.is_planar:
        re, im = buffers
        values = np.empty(idx.shape, dtype=np.result_type(re.dtype, np.complex64))
        values.real = re[idx]
        values.imag = im[idx]
        return values
    return buffers[0][idx]


def scatter(values: np.ndarray, buffers: Sequence[np.ndarray], layout: Layout) -> None:
    """Write logical `values` into `buffers` following `layout`."""
    _check_buffers(buffers, layout)
    idx = element_offsets(layout)
    if values.shape != idx.shape:
        raise ValueError(f"values of shape {values.shape} do not match layout {idx.shape}")
    if layout.array_type.is_planar:
        re, im = buffers
        re[idx] = values.real
        im[idx] = values.imag
    else:
        buffers[0][idx] = values


def copy_buffers(
    src: Sequence[np.ndarray],
    src_layout: Layout,
    dst: Sequence[np.ndarray],
    dst_layout: Layout,
) -> None:
    """Repack `src` into `dst`; both layouts must describe the same logical content."""
    if src_layout.lengths != dst_layout.lengths or src_layout.batch != dst_layout.batch:
        raise ValueError(
            f"cannot copy {src_layout.batch}x{src_layout.lengths} into "
            f"{dst_layout.batch}x{dst_layout.lengths}"
        )
    if src_layout.array_type.is_complex != dst_layout.array_type.is_complex:
        raise ValueError(
            f"no element-wise copy from {src_layout.array_type.value} "
            f"to {dst_layout.array_type.value}"
        )
    if buffers_precision(src) is not buffers_precision(dst):
        raise ValueError("copies must not change precision")
    scatter(gather(src, src_layout), dst, dst_layout)


def marshal(
    src: Sequence[np.ndarray], src_layout: Layout, dst_layout: Layout, precision: Precision
) -> Buffers:
    dst = allocate_host_buffer(precision, dst_layout)
    copy_buffers(src, src_layout, dst, dst_layout)
    return dst
