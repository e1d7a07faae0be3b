"""Memory feasibility estimates, evaluated before anything is allocated."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .layout import LayoutPair
from .types import Precision, TransformConfig, TransformKind

GB = 1e9


def value_multiplicity(kind: TransformKind) -> int:
    """Real components per value in the byte accounting.

    Every transform kind has at least one complex side, so values are counted
    as complex throughout. Real transforms are over-counted on their real side.
    """
    return 2


@dataclass(frozen=True)
class MemoryEstimate:
    host_input: int = 0
    host_output: int = 0
    host_input_copy: int = 0
    device_input: int = 0
    device_output: int = 0
    device_work: int = 0

    @property
    def host(self) -> int:
        return self.host_input + self.host_output + self.host_input_copy

    @property
    def device(self) -> int:
        return self.device_input + self.device_output + self.device_work

    @property
    def total(self) -> int:
        return self.host + self.device


def estimate_session_bytes(shape, kind: TransformKind, precision: Precision) -> MemoryEstimate:
    """Estimate before the reference is computed: five contiguous buffers."""
    values = int(np.prod(shape))
    nbytes = values * value_multiplicity(kind) * precision.itemsize
    return MemoryEstimate(
        host_input=nbytes,
        host_output=nbytes,
        host_input_copy=nbytes,
        device_input=nbytes,
        device_output=nbytes,
    )


def estimate_transform_bytes(
    config: TransformConfig, layouts: LayoutPair, work_bytes: int = 0
) -> MemoryEstimate:
    """Estimate for a resolved configuration, honouring the device strides."""
    scale = value_multiplicity(config.kind) * config.precision.itemsize * config.batch
    contiguous = config.total_length * scale
    device_in = int(np.dot(config.shape, layouts.input.strides)) * scale
    device_out = int(np.dot(config.shape, layouts.output.strides)) * scale
    return MemoryEstimate(
        host_input=contiguous,
        host_output=contiguous,
        host_input_copy=contiguous,
        device_input=device_in,
        device_output=device_out,
        device_work=int(work_bytes),
    )


def fits_budget(estimate: MemoryEstimate, ram_gb: float) -> bool:
    """A budget of zero or less means unlimited."""
    if ram_gb <= 0:
        return True
    return estimate.total <= ram_gb * GB


def device_fits(free_bytes: int, input_bytes: int, output_bytes: int, work_bytes: int) -> bool:
    return input_bytes + output_bytes + work_bytes <= free_bytes
