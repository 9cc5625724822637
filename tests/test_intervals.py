import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from mpitrials.dosefinding.intervals import IntervalPartition, make_intervals, make_partition
from mpitrials.errors import ConfigurationError


def test_make_partition_standard_design():
    pf = make_partition(0.2, 0.05, 0.8)
    np.testing.assert_allclose(
        pf.starts, [0, 0.05, 0.15, 0.25, 0.35, 0.45, 0.55, 0.65, 0.75, 0.8, 0.9]
    )
    assert pf.ends[-1] == 1.0
    assert pf.equivalence_index == 2
    assert pf[2] == pytest.approx((0.15, 0.25))
    assert len(list(pf)) == len(pf) == 11


def test_threshold_is_snapped_to_a_boundary():
    pt = make_partition(0.3, 0.05, 0.62)
    assert 0.62 in [round(float(s), 10) for s in pt.starts]
    assert pt[pt.index_of(0.63)][0] == pytest.approx(0.62)


def test_threshold_below_upper_equivalence_edge():
    p = make_partition(0.3, 0.1, 0.35)
    assert p[p.equivalence_index] == pytest.approx((0.2, 0.35))


def test_negative_equivalence_start_clamps_to_zero():
    p = make_partition(0.02, 0.05, 0.5)
    assert p.equivalence_index == 0
    assert p[0] == pytest.approx((0.0, 0.07))


def test_index_of():
    p = make_partition(0.2, 0.05, 0.8)
    assert p.index_of(0.0) == 0
    assert p.index_of(0.15) == 2
    assert p.index_of(0.2) == 2
    assert p.index_of(0.85) == 9
    assert p.index_of(1.0) == 10


def test_partition_is_hashable_and_comparable():
    assert make_partition(0.2, 0.05, 0.8) == make_partition(0.2, 0.05, 0.8)
    assert hash(make_partition(0.2, 0.05, 0.8)) == hash(make_partition(0.2, 0.05, 0.8))
    assert make_partition(0.2, 0.05, 0.8) != make_partition(0.2, 0.05, 0.7)


def test_partition_to_dataframe():
    df = make_partition(0.2, 0.05, 0.8).to_dataframe()
    assert list(df.columns) == ["Start", "End", "Equivalence"]
    assert df["Equivalence"].sum() == 1


def test_partition_must_start_at_zero():
    with pytest.raises(ConfigurationError):
        IntervalPartition([0.1, 0.2], 0.2, 0.05)
    with pytest.raises(ConfigurationError):
        IntervalPartition([0, 0.3, 0.2], 0.2, 0.05)


def test_make_intervals_returns_both_axes():
    pf, pt = make_intervals(0.3, 0.05, 0.9, 0.2, 0.05, 0.8)
    assert pf.target == 0.3
    assert pt.target == 0.2
    assert pf[pf.equivalence_index] == pytest.approx((0.25, 0.35))


@pytest.mark.parametrize(
    "params",
    [
        (0.2, 1e-6, 0.8, 0.2, 0.05, 0.8),
        (0.2, 0.05, 0.8, 0.2, 1e-6, 0.8),
        (-0.1, 0.05, 0.8, 0.2, 0.05, 0.8),
        (0.2, 0.05, 0.8, -0.2, 0.05, 0.8),
        (0.2, 0.05, 1.1, 0.2, 0.05, 0.8),
        (0.2, 0.05, 0.8, 0.2, 0.05, 1.1),
        (0.5, 0.05, 0.4, 0.2, 0.05, 0.8),
        (0.2, 0.05, 0.8, 0.5, 0.05, 0.4),
    ],
)
def test_make_intervals_validation(params):
    with pytest.raises(ConfigurationError):
        make_intervals(*params)


@settings(max_examples=200)
@given(
    target=st.floats(0.05, 0.9),
    tolerance=st.floats(0.01, 0.2),
    frac=st.floats(0, 1),
)
def test_partition_covers_unit_interval(target, tolerance, frac):
    threshold = target + frac * (1 - target)
    p = make_partition(target, tolerance, threshold)

    assert p.starts[0] == 0
    assert p.ends[-1] == 1
    np.testing.assert_array_equal(p.ends[:-1], p.starts[1:])
    assert np.all(np.diff(p.starts) > 0)
    assert np.isclose(p.starts[p.equivalence_index], max(target - tolerance, 0))
    if threshold < 1:
        assert np.any(np.isclose(p.starts, threshold))
