from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from ..marshal import gather, scatter
from ..types import ArrayType, Precision, TransformKind
from .base import DeviceBuffer, DeviceEngine, EngineCapabilities, Plan, Status, plan_layouts

DEFAULT_DEVICE_BYTES = 8 * 1024**3


def _transform(values: np.ndarray, kind: TransformKind, shape: Tuple[int, ...]) -> np.ndarray:
    axes = tuple(range(1, values.ndim))
    if kind is TransformKind.COMPLEX_FORWARD:
        return np.fft.fftn(values.astype(np.complex128), axes=axes)
    if kind is TransformKind.COMPLEX_INVERSE:
        return np.fft.ifftn(values.astype(np.complex128), axes=axes, norm="forward")
    if kind is TransformKind.REAL_FORWARD:
        return np.fft.rfftn(values.astype(np.float64), axes=axes)
    return np.fft.irfftn(values.astype(np.complex128), s=shape, axes=axes, norm="forward")


class NumpyDeviceEngine(DeviceEngine):
    """Device emulation in host memory.

    Device buffers are raw byte arrays reinterpreted per array type, so
    in-place plans alias exactly as they would on hardware. Transforms run in
    float64 and are rounded to the plan's precision on store.
    """

    name = "numpy"

    def __init__(
        self,
        capabilities: Optional[EngineCapabilities] = None,
        *,
        total_bytes: int = DEFAULT_DEVICE_BYTES,
        work_bytes: int = 0,
    ):
        super().__init__(capabilities=capabilities)
        self.total_bytes = int(total_bytes)
        self.work_bytes = int(work_bytes)
        self._allocated = 0
        self._live = set()

    @property
    def live_allocations(self) -> int:
        return len(self._live)

    # ---- memory primitives ----------------------------------------------------
    def memory_info(self) -> Tuple[int, int]:
        self._record("memory_info")
        return self.total_bytes - self._allocated, self.total_bytes

    def allocate(self, nbytes: int) -> Tuple[Status, Optional[DeviceBuffer]]:
        self._record("allocate")
        nbytes = int(nbytes)
        if nbytes < 0 or self._allocated + nbytes > self.total_bytes:
            return Status.OUT_OF_MEMORY, None
        try:
            data = np.zeros(nbytes, dtype=np.uint8)
        except MemoryError:
            return Status.OUT_OF_MEMORY, None
        self._allocated += nbytes
        buffer = DeviceBuffer(nbytes=nbytes, data=data)
        self._live.add(id(buffer))
        return Status.SUCCESS, buffer

    def free(self, buffer: DeviceBuffer) -> Status:
        self._record("free")
        if id(buffer) not in self._live:
            return Status.INVALID_ARG_VALUE
        self._live.discard(id(buffer))
        self._allocated -= buffer.nbytes
        buffer.data = None
        return Status.SUCCESS

    def copy_to_device(self, buffer: DeviceBuffer, host: np.ndarray) -> Status:
        self._record("copy_to_device")
        raw = np.ascontiguousarray(host).view(np.uint8).reshape(-1)
        if buffer.data is None or raw.size > buffer.nbytes:
            return Status.INVALID_ARG_VALUE
        buffer.data[: raw.size] = raw
        return Status.SUCCESS

    def copy_to_host(self, host: np.ndarray, buffer: DeviceBuffer) -> Status:
        self._record("copy_to_host")
        raw = host.view(np.uint8).reshape(-1)
        if buffer.data is None or raw.size > buffer.nbytes:
            return Status.INVALID_ARG_VALUE
        raw[:] = buffer.data[: raw.size]
        return Status.SUCCESS

    # ---- engine hooks ---------------------------------------------------------
    def _build(self, plan: Plan) -> Status:
        plan.work_bytes = self.work_bytes
        return Status.SUCCESS

    def _execute(
        self, plan: Plan, in_buffers: Sequence[DeviceBuffer], out_buffers: Sequence[DeviceBuffer]
    ) -> Status:
        desc = plan.description
        in_layout, out_layout = plan_layouts(plan)
        if len(in_buffers) != desc.itype.buffer_count or len(out_buffers) != desc.otype.buffer_count:
            return Status.INVALID_ARG_VALUE
        try:
            ibufs = [_typed(b, desc.itype, plan.precision) for b in in_buffers]
            obufs = [_typed(b, desc.otype, plan.precision) for b in out_buffers]
            values = gather(ibufs, in_layout)
            shape = tuple(reversed(plan.lengths))
            result = _transform(values, plan.kind, shape)
            dtype = plan.precision.complex_dtype if desc.otype.is_complex else plan.precision.real_dtype
            scatter(result.astype(dtype), obufs, out_layout)
        except (ValueError, IndexError):
            return Status.INVALID_ARG_VALUE
        return Status.SUCCESS


def _typed(buffer: DeviceBuffer, array_type: ArrayType, precision: Precision) -> np.ndarray:
    if buffer is None or buffer.data is None:
        raise ValueError("buffer is not allocated")
    dtype = array_type.element_dtype(precision)
    usable = buffer.nbytes - buffer.nbytes % dtype.itemsize
    return buffer.data[:usable].view(dtype)
