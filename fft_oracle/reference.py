"""CPU reference transforms computed in the background.

The reference is NumPy's FFT evaluated in double precision on input data
rounded to the configuration's precision. Inverse transforms are unnormalised,
matching the device engines.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .errors import AllocationFailure
from .layout import contiguous_layout, input_lengths, output_lengths
from .oracle import norm
from .types import ArrayType, Layout, NormPair, Precision, TransformKind

Buffers = List[np.ndarray]


@dataclass(frozen=True)
class ReferenceResult:
    """Reference data for one configuration; futures resolve independently."""

    input: "Future[Buffers]"
    output: "Future[Buffers]"
    input_norm: "Future[NormPair]"
    output_norm: "Future[NormPair]"
    input_layout: Layout
    output_layout: Layout

    @property
    def input_type(self) -> ArrayType:
        return self.input_layout.array_type

    @property
    def output_type(self) -> ArrayType:
        return self.output_layout.array_type


def reference_layouts(shape: Sequence[int], batch: int, kind: TransformKind) -> Tuple[Layout, Layout]:
    itype, otype = kind.default_array_types()
    return (
        contiguous_layout(input_lengths(shape, kind), itype, batch=batch),
        contiguous_layout(output_lengths(shape, kind), otype, batch=batch),
    )


def generate_input(
    shape: Sequence[int], batch: int, precision: Precision, kind: TransformKind, seed: int = 0
) -> np.ndarray:
    """Random input of shape `(batch, *input_lengths)` in `precision`."""
    rng = np.random.default_rng(seed)
    full = (batch,) + tuple(shape)
    axes = tuple(range(1, len(full)))
    if kind is TransformKind.REAL_FORWARD:
        return rng.uniform(-0.5, 0.5, size=full).astype(precision.real_dtype)
    if kind is TransformKind.REAL_INVERSE:
        # The half spectrum of a real signal is exactly Hermitian.
        signal = rng.uniform(-0.5, 0.5, size=full)
        return np.fft.rfftn(signal, axes=axes).astype(precision.complex_dtype)
    values = rng.uniform(-0.5, 0.5, size=full) + 1j * rng.uniform(-0.5, 0.5, size=full)
    return values.astype(precision.complex_dtype)


def reference_transform(values: np.ndarray, shape: Sequence[int], kind: TransformKind) -> np.ndarray:
    """Transform `(batch, ...)` values over every axis but the first, in float64."""
    axes = tuple(range(1, values.ndim))
    if kind is TransformKind.COMPLEX_FORWARD:
        return np.fft.fftn(values.astype(np.complex128), axes=axes)
    if kind is TransformKind.COMPLEX_INVERSE:
        return np.fft.ifftn(values.astype(np.complex128), axes=axes, norm="forward")
    if kind is TransformKind.REAL_FORWARD:
        return np.fft.rfftn(values.astype(np.float64), axes=axes)
    return np.fft.irfftn(values.astype(np.complex128), s=tuple(shape), axes=axes, norm="forward")


def _flat(values: np.ndarray) -> Buffers:
    return [np.ascontiguousarray(values).reshape(-1)]


def compute_reference(
    shape: Sequence[int],
    batch: int,
    precision: Precision,
    kind: TransformKind,
    *,
    executor: Executor,
    seed: int = 0,
) -> ReferenceResult:
    """Issue the reference computation on `executor` and return its futures."""
    input_layout, output_layout = reference_layouts(shape, batch, kind)
    futures = {name: Future() for name in ("input", "output", "input_norm", "output_norm")}
    for fut in futures.values():
        fut.set_running_or_notify_cancel()

    def _fail(error: BaseException) -> None:
        for fut in futures.values():
            if not fut.done():
                fut.set_exception(error)

    def _run() -> None:
        try:
            values = generate_input(shape, batch, precision, kind, seed=seed)
            ibuf = _flat(values)
            futures["input"].set_result(ibuf)
            obuf = _flat(reference_transform(values, shape, kind))
            futures["output"].set_result(obuf)
            futures["input_norm"].set_result(norm(ibuf, input_layout))
            futures["output_norm"].set_result(norm(obuf, output_layout))
        except MemoryError as exc:
            error = AllocationFailure("reference data")
            error.__cause__ = exc
            _fail(error)
            raise
        except BaseException as exc:
            _fail(exc)
            raise

    executor.submit(_run)
    return ReferenceResult(
        input=futures["input"],
        output=futures["output"],
        input_norm=futures["input_norm"],
        output_norm=futures["output_norm"],
        input_layout=input_layout,
        output_layout=output_layout,
    )
