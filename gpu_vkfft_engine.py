"""
Optional device engine backed by VkFFT through pyvkfft's OpenCL bindings.

Design notes:
- Device buffers are raw pyopencl buffers sized by the execution adapter, so the
  oracle's offsets, strides and distances land exactly where they would on any
  other device.
- VkFFT plans are built for contiguous batched data. Arbitrary layouts are
  gathered to (and scattered from) contiguous staging arrays on the host, using
  the same marshaling code the oracle uses for its reference data.
- Plans are unnormalised in both directions (norm=0), matching the reference.
- pyvkfft/OpenCL is probed once in a subprocess so a driver crash cannot take
  down the test process; a missing or crashing binding emits a single warning
  and the engine is simply not registered.
"""

from __future__ import annotations

import os
import warnings
from multiprocessing import Process, Queue
from typing import Optional, Sequence, Tuple

import numpy as np

from fft_oracle.backend.base import (
    DeviceBuffer,
    DeviceEngine,
    EngineCapabilities,
    Plan,
    Status,
    plan_layouts,
)
from fft_oracle.backend.registry import register_engine
from fft_oracle.marshal import gather, scatter
from fft_oracle.types import TransformKind

try:  # Optional dependency; OpenCL wrapper around VkFFT.
    from pyvkfft.opencl import VkFFTApp as OpenCLVkFFTApp  # type: ignore
except Exception:  # pragma: no cover - executed only when pyvkfft is missing
    OpenCLVkFFTApp = None  # type: ignore

try:  # Optional dependency; only needed together with pyvkfft.
    import pyopencl as cl  # type: ignore
    import pyopencl.array as cla  # type: ignore
except Exception:  # pragma: no cover - executed only when pyopencl is missing
    cl = None  # type: ignore
    cla = None  # type: ignore


DEBUG = os.environ.get("FFT_ORACLE_VKFFT_DEBUG", "0") not in ("", "0")


def has_vkfft() -> bool:
    """Return True if pyvkfft's OpenCL backend and pyopencl are importable."""
    return OpenCLVkFFTApp is not None and cl is not None


_warned = False


def _warn_once(msg: str) -> None:
    global _warned
    if not _warned:
        warnings.warn(msg, RuntimeWarning, stacklevel=3)
        _warned = True


def _debug(msg: str) -> None:
    if DEBUG:
        print(f"[vkfft][engine] {msg}")


def _probe_worker(q: Queue) -> None:
    try:
        import numpy as _np
        import pyopencl as _cl
        import pyopencl.array as _cla
        from pyvkfft.opencl import VkFFTApp as _App  # type: ignore

        ctx = _cl.create_some_context(interactive=False)
        queue = _cl.CommandQueue(ctx)
        x = _cla.to_device(queue, _np.ones((8, 8), dtype=_np.complex64))
        app = _App(x.shape, x.dtype, queue=queue, norm=0)
        app.fft(x)
        app.ifft(x)
        q.put(bool(_np.allclose(x.get(), 64.0)))
    except Exception:
        q.put(False)


_pyvkfft_probe_ran = False
_pyvkfft_safe = False


def _probe_pyvkfft_safe(timeout: float = 5.0) -> bool:
    """
    Probe pyvkfft/OpenCL in a subprocess so driver crashes don't take down the
    main process. Returns True only if a tiny unnormalised fft/ifft round trip
    succeeds. The result is cached for the life of the process.
    """
    global _pyvkfft_probe_ran, _pyvkfft_safe
    if _pyvkfft_probe_ran:
        return _pyvkfft_safe
    q: Queue = Queue()
    p = Process(target=_probe_worker, args=(q,), daemon=True)
    p.start()
    p.join(timeout)
    if p.is_alive():
        p.kill()
        _pyvkfft_safe = False
    elif p.exitcode != 0:
        _pyvkfft_safe = False
    else:
        _pyvkfft_safe = not q.empty() and bool(q.get())
    _pyvkfft_probe_ran = True
    _debug(f"probe result: {_pyvkfft_safe}")
    return _pyvkfft_safe


def _select_device(device_index: int):
    platforms = cl.get_platforms()
    devices = [d for p in platforms for d in p.get_devices()]
    if not devices:
        raise RuntimeError("no OpenCL devices available")
    if not 0 <= device_index < len(devices):
        raise RuntimeError(f"OpenCL device index {device_index} out of range ({len(devices)} devices)")
    return devices[device_index]


class VkFFTDeviceEngine(DeviceEngine):
    """Device FFT engine running VkFFT kernels on an OpenCL device."""

    name = "vkfft"

    def __init__(self, device_index: int = 0, *, queue=None):
        if not has_vkfft():
            raise RuntimeError("pyvkfft (OpenCL) and pyopencl are required for VkFFTDeviceEngine")
        if queue is None:
            device = _select_device(device_index)
            ctx = cl.Context([device])
            queue = cl.CommandQueue(ctx)
        self.queue = queue
        self.context = queue.context
        device = queue.device
        capabilities = EngineCapabilities(
            supports_double=bool(getattr(device, "double_fp_config", 0)),
            supports_planar=True,
            supports_inplace=True,
            max_rank=3,
        )
        super().__init__(capabilities=capabilities)
        self.total_bytes = int(device.global_mem_size)
        self._allocated = 0
        _debug(f"using {device.name.strip()} ({self.total_bytes} bytes)")

    # ---- memory primitives ----------------------------------------------------
    def memory_info(self) -> Tuple[int, int]:
        # OpenCL exposes no free-memory query; track what this engine holds.
        self._record("memory_info")
        return self.total_bytes - self._allocated, self.total_bytes

    def allocate(self, nbytes: int) -> Tuple[Status, Optional[DeviceBuffer]]:
        self._record("allocate")
        nbytes = int(nbytes)
        if nbytes < 0:
            return Status.INVALID_ARG_VALUE, None
        # OpenCL rejects zero-sized buffers.
        size = max(nbytes, 1)
        try:
            data = cl.Buffer(self.context, cl.mem_flags.READ_WRITE, size=size)
        except cl.Error as exc:
            _debug(f"allocation of {nbytes} bytes failed: {exc}")
            return Status.OUT_OF_MEMORY, None
        self._allocated += size
        return Status.SUCCESS, DeviceBuffer(nbytes=nbytes, data=data, meta={"allocated": size})

    def free(self, buffer: DeviceBuffer) -> Status:
        self._record("free")
        if buffer.data is None:
            return Status.INVALID_ARG_VALUE
        buffer.data.release()
        buffer.data = None
        self._allocated -= buffer.meta.get("allocated", buffer.nbytes)
        return Status.SUCCESS

    def copy_to_device(self, buffer: DeviceBuffer, host: np.ndarray) -> Status:
        self._record("copy_to_device")
        raw = np.ascontiguousarray(host).view(np.uint8).reshape(-1)
        if buffer.data is None or raw.size > buffer.nbytes:
            return Status.INVALID_ARG_VALUE
        cl.enqueue_copy(self.queue, buffer.data, raw).wait()
        return Status.SUCCESS

    def copy_to_host(self, host: np.ndarray, buffer: DeviceBuffer) -> Status:
        self._record("copy_to_host")
        raw = host.view(np.uint8).reshape(-1)
        if buffer.data is None or raw.size > buffer.nbytes:
            return Status.INVALID_ARG_VALUE
        cl.enqueue_copy(self.queue, raw, buffer.data).wait()
        return Status.SUCCESS

    # ---- engine hooks ---------------------------------------------------------
    def _build(self, plan: Plan) -> Status:
        shape = tuple(reversed(plan.lengths))
        r2c = plan.kind.is_real
        dtype = plan.precision.real_dtype if r2c else plan.precision.complex_dtype
        try:
            plan.state = OpenCLVkFFTApp(
                (plan.batch,) + shape,
                dtype,
                queue=self.queue,
                ndim=len(shape),
                inplace=False,
                norm=0,
                r2c=r2c,
            )
        except Exception as exc:  # pragma: no cover - exercised only when pyvkfft misbehaves
            _warn_once(f"pyvkfft plan creation failed ({exc}).")
            return Status.FAILURE
        plan.work_bytes = 0
        return Status.SUCCESS

    def _download_typed(self, buffer: DeviceBuffer, dtype: np.dtype) -> np.ndarray:
        raw = np.empty(buffer.nbytes - buffer.nbytes % dtype.itemsize, dtype=np.uint8)
        if raw.size:
            cl.enqueue_copy(self.queue, raw, buffer.data).wait()
        return raw.view(dtype)

    def _execute(
        self, plan: Plan, in_buffers: Sequence[DeviceBuffer], out_buffers: Sequence[DeviceBuffer]
    ) -> Status:
        desc = plan.description
        if plan.state is None:
            return Status.INVALID_ARG_VALUE
        if len(in_buffers) != desc.itype.buffer_count or len(out_buffers) != desc.otype.buffer_count:
            return Status.INVALID_ARG_VALUE
        in_layout, out_layout = plan_layouts(plan)
        idtype = desc.itype.element_dtype(plan.precision)
        odtype = desc.otype.element_dtype(plan.precision)
        try:
            staged = gather([self._download_typed(b, idtype) for b in in_buffers], in_layout)
            if plan.kind is TransformKind.REAL_FORWARD:
                staged = staged.astype(plan.precision.real_dtype)
            else:
                staged = staged.astype(plan.precision.complex_dtype)
            src = cla.to_device(self.queue, np.ascontiguousarray(staged))
            out_shape = (plan.batch,) + out_layout.lengths
            out_dtype = plan.precision.complex_dtype if desc.otype.is_complex else plan.precision.real_dtype
            dst = cla.empty(self.queue, out_shape, dtype=out_dtype)
            if plan.kind.is_forward:
                plan.state.fft(src, dst)
            else:
                plan.state.ifft(src, dst)
            result = dst.get()

            # In-place plans alias input and output; read back after the gather.
            targets = [self._download_typed(b, odtype) for b in out_buffers]
            scatter(result, targets, out_layout)
            for buffer, host in zip(out_buffers, targets):
                cl.enqueue_copy(self.queue, buffer.data, host).wait()
        except (ValueError, IndexError) as exc:
            _debug(f"layout rejected during execute: {exc}")
            return Status.INVALID_ARG_VALUE
        except cl.Error as exc:
            _debug(f"OpenCL error during execute: {exc}")
            return Status.FAILURE
        return Status.SUCCESS

    def destroy_plan(self, plan: Plan) -> Status:
        self._record("destroy_plan")
        plan.state = None
        return Status.SUCCESS


def register_vkfft_engine(
    name: str = "vkfft", *, device_index: int = 0, probe: bool = True
) -> Optional[VkFFTDeviceEngine]:
    """Register a `VkFFTDeviceEngine` under `name`, or warn once and return None."""
    if not has_vkfft():
        _warn_once("pyvkfft (OpenCL) not installed; vkFFT engine unavailable.")
        return None
    if probe and not _probe_pyvkfft_safe():
        _warn_once("pyvkfft (OpenCL) probed and crashed; vkFFT engine unavailable.")
        return None
    try:
        engine = VkFFTDeviceEngine(device_index=device_index)
    except (RuntimeError, cl.Error) as exc:
        _warn_once(f"vkFFT engine setup failed ({exc}).")
        return None
    register_engine(name, engine)
    _debug(f"registered engine '{name}'")
    return engine


__all__ = ["VkFFTDeviceEngine", "has_vkfft", "register_vkfft_engine"]
