import pytest

from fft_oracle.config import OracleSettings
from fft_oracle.layout import compute_layouts
from fft_oracle.memory import (
    MemoryEstimate,
    device_fits,
    estimate_session_bytes,
    estimate_transform_bytes,
    fits_budget,
    value_multiplicity,
)
from fft_oracle.orchestrator import run_transform
from fft_oracle.report import State
from fft_oracle.testing.mock_engines import RecordingEngine
from fft_oracle.types import Placement, Precision, TransformConfig, TransformKind


def test_session_estimate_counts_five_buffers():
    estimate = estimate_session_bytes((1 << 10,), TransformKind.COMPLEX_FORWARD, Precision.DOUBLE)
    per_buffer = (1 << 10) * 2 * 8
    assert estimate.host == 3 * per_buffer
    assert estimate.device == 2 * per_buffer
    assert estimate.total == 5 * per_buffer


@pytest.mark.parametrize("kind", list(TransformKind))
def test_values_counted_as_complex_for_every_kind(kind):
    assert value_multiplicity(kind) == 2


def test_transform_estimate_follows_strides():
    config = TransformConfig(shape=(16,), istride=(2,), ostride=(3,), batch=2)
    estimate = estimate_transform_bytes(config, compute_layouts(config), work_bytes=100)
    scale = 2 * 4 * 2
    assert estimate.host_input == 16 * scale
    assert estimate.device_input == 16 * 2 * scale
    assert estimate.device_output == 16 * 3 * scale
    assert estimate.device_work == 100


def test_zero_budget_is_unlimited():
    huge = MemoryEstimate(host_input=10**15)
    assert fits_budget(huge, 0)
    assert fits_budget(huge, -1)
    assert not fits_budget(huge, 1.0)
    assert fits_budget(MemoryEstimate(host_input=10**9), 1.0)


def test_device_fit():
    assert device_fits(100, 40, 40, 20)
    assert not device_fits(100, 40, 40, 21)


def test_budget_overrun_skips_without_touching_engine():
    engine = RecordingEngine()
    config = TransformConfig(shape=(1 << 20,), precision=Precision.DOUBLE)
    outcome = run_transform(config, engine=engine, settings=OracleSettings(ram_gb=0.001))
    assert outcome.state is State.SKIPPED
    assert "budget" in outcome.reason
    assert engine.calls == []
    assert engine.metrics["calls"] == 0
    assert State.EXECUTING not in outcome.trace


def test_transform_estimate_overrun_also_skips():
    # Sparse strides blow up the device footprint but not the contiguous session estimate.
    engine = RecordingEngine()
    config = TransformConfig(shape=(1 << 12,), istride=(1 << 12,), placement=Placement.OUT_OF_PLACE)
    session = estimate_session_bytes(config.shape, config.kind, config.precision)
    budget = 2 * session.total / 1e9
    outcome = run_transform(config, engine=engine, settings=OracleSettings(ram_gb=budget))
    assert outcome.skipped
    assert engine.calls == []
