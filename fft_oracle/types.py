from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple

import numpy as np


class ArrayType(Enum):
    """Physical representation of one buffer role."""

    REAL = "real"
    COMPLEX_INTERLEAVED = "complex_interleaved"
    COMPLEX_PLANAR = "complex_planar"
    HERMITIAN_INTERLEAVED = "hermitian_interleaved"
    HERMITIAN_PLANAR = "hermitian_planar"

    @property
    def is_planar(self) -> bool:
        return self in (ArrayType.COMPLEX_PLANAR, ArrayType.HERMITIAN_PLANAR)

    @property
    def is_complex(self) -> bool:
        return self is not ArrayType.REAL

    @property
    def is_hermitian(self) -> bool:
        return self in (ArrayType.HERMITIAN_INTERLEAVED, ArrayType.HERMITIAN_PLANAR)

    @property
    def buffer_count(self) -> int:
        return 2 if self.is_planar else 1

    def element_dtype(self, precision: "Precision") -> np.dtype:
        """Dtype of one physical buffer's elements."""
        if self.is_complex and not self.is_planar:
            return precision.complex_dtype
        return precision.real_dtype

    def element_bytes(self, precision: "Precision") -> int:
        return self.element_dtype(precision).itemsize


class Placement(Enum):
    IN_PLACE = "in_place"
    OUT_OF_PLACE = "out_of_place"


class Precision(Enum):
    SINGLE = "single"
    DOUBLE = "double"

    @property
    def real_dtype(self) -> np.dtype:
        return np.dtype(np.float32) if self is Precision.SINGLE else np.dtype(np.float64)

    @property
    def complex_dtype(self) -> np.dtype:
        return np.dtype(np.complex64) if self is Precision.SINGLE else np.dtype(np.complex128)

    @property
    def itemsize(self) -> int:
        return self.real_dtype.itemsize

    @property
    def epsilon(self) -> float:
        return float(np.finfo(self.real_dtype).eps)

    @classmethod
    def from_dtype(cls, dtype) -> "Precision":
        dt = np.dtype(dtype)
        if dt in (np.dtype(np.float32), np.dtype(np.complex64)):
            return cls.SINGLE
        if dt in (np.dtype(np.float64), np.dtype(np.complex128)):
            return cls.DOUBLE
        raise ValueError(f"No transform precision for dtype {dt}")


class TransformKind(Enum):
    COMPLEX_FORWARD = "complex_forward"
    COMPLEX_INVERSE = "complex_inverse"
    REAL_FORWARD = "real_forward"
    REAL_INVERSE = "real_inverse"

    @property
    def is_real(self) -> bool:
        return self in (TransformKind.REAL_FORWARD, TransformKind.REAL_INVERSE)

    @property
    def is_forward(self) -> bool:
        return self in (TransformKind.COMPLEX_FORWARD, TransformKind.REAL_FORWARD)

    def default_array_types(self) -> Tuple[ArrayType, ArrayType]:
        if self is TransformKind.REAL_FORWARD:
            return ArrayType.REAL, ArrayType.HERMITIAN_INTERLEAVED
        if self is TransformKind.REAL_INVERSE:
            return ArrayType.HERMITIAN_INTERLEAVED, ArrayType.REAL
        return ArrayType.COMPLEX_INTERLEAVED, ArrayType.COMPLEX_INTERLEAVED

    def accepts(self, itype: ArrayType, otype: ArrayType) -> bool:
        """Whether an (input, output) array-type pair is meaningful for this kind."""
        if self is TransformKind.REAL_FORWARD:
            return itype is ArrayType.REAL and otype.is_hermitian
        if self is TransformKind.REAL_INVERSE:
            return itype.is_hermitian and otype is ArrayType.REAL
        return (
            itype.is_complex
            and otype.is_complex
            and not itype.is_hermitian
            and not otype.is_hermitian
        )


@dataclass(frozen=True)
class NormPair:
    l_2: float
    l_inf: float

    def is_finite(self) -> bool:
        return bool(np.isfinite(self.l_2) and np.isfinite(self.l_inf))


@dataclass(frozen=True)
class ComparisonResult:
    l_2: float
    l_inf: float
    failing_indices: FrozenSet[Tuple[int, int]] = frozenset()


@dataclass(frozen=True)
class EngineLayout:
    """Axis-reversed (fastest axis first) view handed to the device engine."""

    lengths: Tuple[int, ...]
    strides: Tuple[int, ...]
    distance: int
    array_type: ArrayType
    batch: int = 1
    offset: int = 0

    def row_major(self) -> "Layout":
        return Layout(
            lengths=tuple(reversed(self.lengths)),
            strides=tuple(reversed(self.strides)),
            distance=self.distance,
            array_type=self.array_type,
            batch=self.batch,
            offset=self.offset,
        )


@dataclass(frozen=True)
class Layout:
    """Row-major layout descriptor for one buffer role, in element units."""

    lengths: Tuple[int, ...]
    strides: Tuple[int, ...]
    distance: int
    array_type: ArrayType
    batch: int = 1
    offset: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "lengths", tuple(int(n) for n in self.lengths))
        object.__setattr__(self, "strides", tuple(int(s) for s in self.strides))
        if len(self.lengths) != len(self.strides):
            raise ValueError("lengths and strides must have the same rank")
        if not self.lengths:
            raise ValueError("layout must have at least one dimension")
        if any(n <= 0 for n in self.lengths):
            raise ValueError(f"lengths must be positive: {self.lengths}")
        if any(s < 0 for s in self.strides) or self.distance < 0 or self.offset < 0:
            raise ValueError("strides, distance and offset must be non-negative")
        if self.batch <= 0:
            raise ValueError("batch must be positive")

    @property
    def rank(self) -> int:
        return len(self.lengths)

    @property
    def elements_per_instance(self) -> int:
        return int(np.prod(self.lengths))

    @property
    def extent(self) -> int:
        """Number of elements spanned by one instance (last touched index + 1)."""
        return sum((n - 1) * s for n, s in zip(self.lengths, self.strides)) + 1

    @property
    def buffer_elements(self) -> int:
        """Elements each physical buffer must hold for all batch members."""
        last = self.offset + (self.batch - 1) * self.distance + self.extent
        return max(self.offset + self.batch * self.distance, last)

    def engine_view(self) -> EngineLayout:
        return EngineLayout(
            lengths=tuple(reversed(self.lengths)),
            strides=tuple(reversed(self.strides)),
            distance=self.distance,
            array_type=self.array_type,
            batch=self.batch,
            offset=self.offset,
        )


@dataclass(frozen=True)
class TransformConfig:
    """One test configuration; shape and requested strides are row-major."""

    shape: Tuple[int, ...]
    kind: TransformKind = TransformKind.COMPLEX_FORWARD
    precision: Precision = Precision.SINGLE
    batch: int = 1
    placement: Placement = Placement.OUT_OF_PLACE
    itype: Optional[ArrayType] = None
    otype: Optional[ArrayType] = None
    istride: Tuple[int, ...] = field(default_factory=tuple)
    ostride: Tuple[int, ...] = field(default_factory=tuple)
    idist: Optional[int] = None
    odist: Optional[int] = None
    ioffset: int = 0
    ooffset: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", tuple(int(n) for n in self.shape))
        object.__setattr__(self, "istride", tuple(int(s) for s in self.istride or ()))
        object.__setattr__(self, "ostride", tuple(int(s) for s in self.ostride or ()))
        if not self.shape or any(n <= 0 for n in self.shape):
            raise ValueError(f"shape must be a non-empty sequence of positive sizes: {self.shape}")
        if self.batch <= 0:
            raise ValueError("batch must be positive")
        if len(self.istride) > len(self.shape) or len(self.ostride) > len(self.shape):
            raise ValueError("more strides than dimensions")
        default_i, default_o = self.kind.default_array_types()
        if self.itype is None:
            object.__setattr__(self, "itype", default_i)
        if self.otype is None:
            object.__setattr__(self, "otype", default_o)
        if not self.kind.accepts(self.itype, self.otype):
            raise ValueError(
                f"{self.itype.value} -> {self.otype.value} is not valid for {self.kind.value}"
            )

    @property
    def total_length(self) -> int:
        return int(np.prod(self.shape))
