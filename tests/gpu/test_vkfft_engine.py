"""Tests for the optional pyvkfft/OpenCL device engine.

The accuracy tests only run when pyvkfft + pyopencl are present and at least
one OpenCL device is visible. They route configurations through the same
oracle as the emulated engine, so a pass means VkFFT agrees with the NumPy
reference within the size-scaled bounds.
"""

from __future__ import annotations

import warnings
from types import SimpleNamespace

import pytest

import gpu_vkfft_engine
from fft_oracle.orchestrator import run_transform
from fft_oracle.types import ArrayType, Placement, Precision, TransformConfig, TransformKind


@pytest.fixture(scope="module")
def vkfft_engine():
    try:
        from pyvkfft.opencl import VkFFTApp  # noqa: F401
        import pyopencl as cl  # noqa: F401
    except Exception as exc:  # pragma: no cover - skip path
        pytest.skip(f"pyvkfft/opencl unavailable: {exc}")

    platforms = cl.get_platforms()
    devices = [d for p in platforms for d in p.get_devices()]
    if not devices:
        pytest.skip("No OpenCL devices available for vkFFT engine tests")

    engine = gpu_vkfft_engine.register_vkfft_engine(name="vkfft-test")
    if engine is None:
        pytest.skip("vkFFT engine could not be initialised on this machine")
    return engine


@pytest.mark.parametrize(
    "config",
    [
        TransformConfig(shape=(8,)),
        TransformConfig(shape=(32, 32), kind=TransformKind.COMPLEX_INVERSE, batch=2),
        TransformConfig(shape=(64,), kind=TransformKind.REAL_FORWARD, batch=3),
        TransformConfig(shape=(16, 12), kind=TransformKind.REAL_INVERSE),
        TransformConfig(shape=(16,), istride=(2,), ostride=(3,), batch=2),
        TransformConfig(shape=(16, 16), kind=TransformKind.REAL_FORWARD, placement=Placement.IN_PLACE),
        TransformConfig(shape=(24,), itype=ArrayType.COMPLEX_PLANAR),
    ],
    ids=lambda c: f"{c.kind.value}-{'x'.join(map(str, c.shape))}-{c.placement.value}",
)
def test_vkfft_matches_reference(vkfft_engine, config):
    outcome = run_transform(config, engine=vkfft_engine)
    assert outcome.passed, outcome.describe()


def test_vkfft_double_precision_when_supported(vkfft_engine):
    if not vkfft_engine.capabilities.supports_double:
        pytest.skip("device has no double precision support")
    outcome = run_transform(TransformConfig(shape=(128,), precision=Precision.DOUBLE), engine=vkfft_engine)
    assert outcome.passed, outcome.describe()


def test_missing_bindings_warn_once_and_skip_registration(monkeypatch):
    monkeypatch.setattr(gpu_vkfft_engine, "OpenCLVkFFTApp", None)
    monkeypatch.setattr(gpu_vkfft_engine, "_warned", False)
    assert not gpu_vkfft_engine.has_vkfft()
    with pytest.warns(RuntimeWarning, match="not installed"):
        assert gpu_vkfft_engine.register_vkfft_engine() is None
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert gpu_vkfft_engine.register_vkfft_engine() is None


def test_engine_constructor_requires_bindings(monkeypatch):
    monkeypatch.setattr(gpu_vkfft_engine, "cl", None)
    with pytest.raises(RuntimeError):
        gpu_vkfft_engine.VkFFTDeviceEngine()


def test_crashing_subprocess_check_skips_registration(monkeypatch):
    monkeypatch.setattr(gpu_vkfft_engine, "has_vkfft", lambda: True)
    monkeypatch.setattr(gpu_vkfft_engine, "_probe_pyvkfft_safe", lambda timeout=5.0: False)
    monkeypatch.setattr(gpu_vkfft_engine, "_warned", False)
    with pytest.warns(RuntimeWarning, match="probed and crashed"):
        assert gpu_vkfft_engine.register_vkfft_engine() is None


class _FakeClBuffer:
    def __init__(self, context, flags, size):
        if size <= 0:
            raise ValueError("zero-sized buffer")
        self.size = size
        self.released = False

    def release(self):
        self.released = True


def _host_only_engine(monkeypatch, global_mem_size=1024):
    fake_cl = SimpleNamespace(Buffer=_FakeClBuffer, mem_flags=SimpleNamespace(READ_WRITE=1), Error=RuntimeError)
    monkeypatch.setattr(gpu_vkfft_engine, "cl", fake_cl)
    monkeypatch.setattr(gpu_vkfft_engine, "OpenCLVkFFTApp", object)
    device = SimpleNamespace(global_mem_size=global_mem_size, name=" fake device ", double_fp_config=0)
    queue = SimpleNamespace(context=object(), device=device)
    return gpu_vkfft_engine.VkFFTDeviceEngine(queue=queue)


def test_zero_byte_allocation_accounts_for_the_padded_buffer(monkeypatch):
    engine = _host_only_engine(monkeypatch)
    status, empty = engine.allocate(0)
    assert status.ok and empty.nbytes == 0
    assert empty.data.size == 1
    assert engine.memory_info() == (1023, 1024)
    _, full = engine.allocate(100)
    assert engine.memory_info() == (923, 1024)
    assert engine.free(empty).ok and engine.free(full).ok
    assert engine.memory_info() == (1024, 1024)
    assert engine.free(empty) is gpu_vkfft_engine.Status.INVALID_ARG_VALUE
