import itertools

import pytest

from fft_oracle.errors import UnsupportedConfiguration
from fft_oracle.layout import compute_layouts
from fft_oracle.placement import is_supported, placement_rejection, validate
from fft_oracle.types import ArrayType, Placement, TransformConfig, TransformKind


def test_in_place_real_with_non_unit_fastest_stride_skipped():
    # Row-major strides: the fastest axis has stride 2.
    config = TransformConfig(
        shape=(4, 4),
        kind=TransformKind.REAL_FORWARD,
        placement=Placement.IN_PLACE,
        istride=(8, 2),
        ostride=(8, 2),
    )
    with pytest.raises(UnsupportedConfiguration, match="unit fastest stride"):
        validate(config)


def test_in_place_real_with_unit_fastest_stride_accepted():
    config = TransformConfig(
        shape=(4, 4), kind=TransformKind.REAL_FORWARD, placement=Placement.IN_PLACE, istride=(6, 1)
    )
    assert is_supported(config, compute_layouts(config))


def test_in_place_interleaved_to_planar_skipped():
    config = TransformConfig(
        shape=(2, 3),
        placement=Placement.IN_PLACE,
        itype=ArrayType.COMPLEX_INTERLEAVED,
        otype=ArrayType.COMPLEX_PLANAR,
    )
    with pytest.raises(UnsupportedConfiguration, match="interleaved and planar"):
        validate(config)


def test_in_place_real_with_planar_hermitian_skipped():
    config = TransformConfig(
        shape=(8,),
        kind=TransformKind.REAL_INVERSE,
        placement=Placement.IN_PLACE,
        itype=ArrayType.HERMITIAN_PLANAR,
    )
    assert "planar hermitian" in placement_rejection(
        config.placement, config.itype, config.otype, (), (), config.kind
    )


def test_in_place_requires_identical_strides():
    reason = placement_rejection(
        Placement.IN_PLACE,
        ArrayType.COMPLEX_INTERLEAVED,
        ArrayType.COMPLEX_INTERLEAVED,
        (8, 2),
        (8, 1),
        TransformKind.COMPLEX_FORWARD,
    )
    assert reason is not None and "identical strides" in reason


def test_in_place_planar_to_planar_accepted():
    config = TransformConfig(
        shape=(2, 3),
        placement=Placement.IN_PLACE,
        itype=ArrayType.COMPLEX_PLANAR,
        otype=ArrayType.COMPLEX_PLANAR,
    )
    validate(config, compute_layouts(config))


def test_overlapping_batch_distance_skipped():
    config = TransformConfig(shape=(8,), batch=2, idist=4)
    with pytest.raises(UnsupportedConfiguration, match="overlaps"):
        validate(config, compute_layouts(config))


def test_in_place_complex_requires_identical_distances():
    config = TransformConfig(shape=(8,), batch=2, placement=Placement.IN_PLACE, idist=8, odist=10)
    with pytest.raises(UnsupportedConfiguration, match="identical distances"):
        validate(config, compute_layouts(config))


_ALL_TYPES = list(ArrayType)
_STRIDES = [(), (1,), (2,), (8, 1), (8, 2)]


@pytest.mark.parametrize("kind", list(TransformKind))
def test_out_of_place_never_rejected_where_in_place_was(kind):
    for itype, otype, istride, ostride in itertools.product(_ALL_TYPES, _ALL_TYPES, _STRIDES, _STRIDES):
        if not kind.accepts(itype, otype):
            continue
        in_place = placement_rejection(Placement.IN_PLACE, itype, otype, istride, ostride, kind)
        out_of_place = placement_rejection(Placement.OUT_OF_PLACE, itype, otype, istride, ostride, kind)
        if in_place is not None:
            assert out_of_place is None


def test_zero_stride_on_long_axis_skipped():
    config = TransformConfig(shape=(8,), istride=(0,))
    with pytest.raises(UnsupportedConfiguration, match="input stride is zero on axis 0"):
        validate(config, compute_layouts(config))


def test_zero_stride_on_unit_axis_accepted():
    config = TransformConfig(shape=(1, 8), ostride=(0, 1))
    assert is_supported(config, compute_layouts(config))


def test_aliasing_strides_skipped():
    # Offsets 2i + j collide for i, j in range(3).
    config = TransformConfig(shape=(3, 3), istride=(2, 1))
    with pytest.raises(UnsupportedConfiguration, match="alias"):
        validate(config)


def test_interleaved_strides_that_never_collide_accepted():
    # 3i + 2j is unique over a 3x3 grid although neither stride spans the other axis.
    config = TransformConfig(shape=(3, 3), istride=(3, 2))
    assert is_supported(config, compute_layouts(config))
