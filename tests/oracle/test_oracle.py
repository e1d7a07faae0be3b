import math

import numpy as np
import pytest

from fft_oracle.layout import contiguous_layout
from fft_oracle.oracle import (
    distance,
    evaluate,
    l2_relative_bound,
    linf_cutoff,
    norm,
    normalized,
)
from fft_oracle.types import ArrayType, ComparisonResult, Layout, NormPair, Precision


def test_norm_of_complex_buffer():
    layout = contiguous_layout((2,), ArrayType.COMPLEX_INTERLEAVED)
    pair = norm([np.array([3 + 4j, 0 + 0j], dtype=np.complex64)], layout)
    assert pair.l_inf == pytest.approx(5.0)
    assert pair.l_2 == pytest.approx(5.0)


def test_norm_reads_only_layout_elements():
    layout = Layout(lengths=(2,), strides=(2,), distance=4, array_type=ArrayType.REAL)
    pair = norm([np.array([1.0, 100.0, -2.0, 100.0])], layout)
    assert pair.l_inf == pytest.approx(2.0)
    assert pair.l_2 == pytest.approx(math.sqrt(5.0))


def test_norm_of_planar_buffers():
    layout = contiguous_layout((1,), ArrayType.COMPLEX_PLANAR)
    pair = norm([np.array([3.0], dtype=np.float32), np.array([4.0], dtype=np.float32)], layout)
    assert pair.l_inf == pytest.approx(5.0)


def test_distance_across_layouts_reports_failing_indices():
    a_layout = contiguous_layout((4,), ArrayType.COMPLEX_INTERLEAVED, batch=2)
    b_layout = Layout(
        lengths=(4,), strides=(2,), distance=9, array_type=ArrayType.COMPLEX_INTERLEAVED, batch=2
    )
    a = np.arange(8, dtype=np.complex128)
    b = np.zeros(b_layout.buffer_elements, dtype=np.complex128)
    b[[0, 2, 4, 6, 9, 11, 13, 15]] = a
    b[13] += 0.5
    result = distance([a], a_layout, [b], b_layout, cutoff=0.1)
    assert result.l_inf == pytest.approx(0.5)
    assert result.l_2 == pytest.approx(0.5)
    assert result.failing_indices == frozenset({(1, 2)})


def test_distance_rejects_mismatched_content():
    a = contiguous_layout((4,), ArrayType.REAL)
    b = contiguous_layout((4,), ArrayType.COMPLEX_INTERLEAVED)
    with pytest.raises(ValueError):
        distance([np.zeros(4)], a, [np.zeros(4, dtype=np.complex128)], b)


@pytest.mark.parametrize("precision", list(Precision))
def test_bounds_strictly_increase_with_length(precision):
    lengths = [2, 3, 8, 100, 1 << 10, 1 << 20]
    cutoffs = [linf_cutoff(precision, 1.0, n) for n in lengths]
    bounds = [l2_relative_bound(precision, n) for n in lengths]
    assert all(a < b for a, b in zip(cutoffs, cutoffs[1:]))
    assert all(a < b for a, b in zip(bounds, bounds[1:]))


def test_bounds_use_machine_epsilon():
    eps = float(np.finfo(np.float32).eps)
    assert linf_cutoff(Precision.SINGLE, 2.0, 8) == pytest.approx(eps * 2.0 * math.log(8))
    assert l2_relative_bound(Precision.SINGLE, 8) == pytest.approx(math.sqrt(3) * eps)
    assert l2_relative_bound(Precision.DOUBLE, 8, epsilon=1e-3) == pytest.approx(math.sqrt(3) * 1e-3)


def test_single_point_transform_has_zero_cutoff():
    assert linf_cutoff(Precision.DOUBLE, 1.0, 1) == 0.0
    assert l2_relative_bound(Precision.DOUBLE, 1) == 0.0


def test_normalized_with_zero_reference():
    assert normalized(0.0, 0.0) == 0.0
    assert normalized(1e-30, 0.0) == math.inf
    assert normalized(1.0, 4.0) == 0.25


_REF = NormPair(l_2=10.0, l_inf=4.0)


def test_evaluate_passes_within_bounds():
    diff = ComparisonResult(l_2=1e-8, l_inf=1e-8)
    verdict = evaluate(_REF, _REF, _REF, diff, cutoff=1e-6, bound=1e-6)
    assert verdict.passed
    assert verdict.metrics["normalized_l_2"] == pytest.approx(1e-9)


def test_evaluate_fails_on_linf_first():
    diff = ComparisonResult(l_2=1.0, l_inf=1.0, failing_indices=frozenset({(0, 3)}))
    verdict = evaluate(_REF, _REF, _REF, diff, cutoff=0.5, bound=1e-6)
    assert not verdict.passed
    assert verdict.reason.startswith("Linf test failed")
    assert verdict.metrics["failing_indices"] == [(0, 3)]


def test_evaluate_fails_on_relative_l2():
    diff = ComparisonResult(l_2=1.0, l_inf=1e-3)
    verdict = evaluate(_REF, _REF, _REF, diff, cutoff=1.0, bound=1e-3)
    assert not verdict.passed
    assert verdict.reason.startswith("L2 test failed")


@pytest.mark.parametrize(
    "position, bad",
    [(0, NormPair(math.nan, 1.0)), (1, NormPair(1.0, math.inf)), (2, NormPair(math.nan, math.nan))],
)
def test_evaluate_fails_on_non_finite_norms(position, bad):
    norms = [_REF, _REF, _REF]
    norms[position] = bad
    diff = ComparisonResult(l_2=0.0, l_inf=0.0)
    verdict = evaluate(*norms, diff, cutoff=1.0, bound=1.0)
    assert not verdict.passed
    assert "non-finite" in verdict.reason


def test_evaluate_nan_difference_fails():
    diff = ComparisonResult(l_2=math.nan, l_inf=math.nan)
    verdict = evaluate(_REF, _REF, _REF, diff, cutoff=1.0, bound=1.0)
    assert not verdict.passed
