import json

import numpy as np
import pytest

from mpitrials.dosefinding import DECISIONS, DU, EU, D, E, S
from mpitrials.dosefinding.intervals import make_intervals
from mpitrials.dosefinding.mpi import (
    DecisionTable,
    DecisionTableRegistry,
    MPIDesign,
    change_decision_table_entry,
    make_decision,
    make_decision_table,
    select_highest_probability_region,
)
from mpitrials.errors import (
    ConfigurationError,
    TableNotFoundError,
    UndefinedDecisionError,
)

PARAMS = (0.2, 0.05, 0.8, 0.2, 0.05, 0.8)


@pytest.fixture(scope="module")
def table_3():
    """Decision table for N=3 with adaptive quadrature."""
    return make_decision_table(3, *PARAMS)


@pytest.fixture(scope="module")
def partitions():
    return make_intervals(*PARAMS)


def test_make_decision_is_safety_first(partitions):
    pf, pt = partitions
    assert make_decision(8, 3, pf, pt) == D
    assert make_decision(8, 2, pf, pt) == E
    assert make_decision(2, 2, pf, pt) == S
    assert make_decision(1, 1, pf, pt) == S


def test_weights_shape_and_boundaries(partitions):
    pf, pt = partitions
    post_probs, best_pf, best_pt = select_highest_probability_region(
        1, 1, 6, pf, pt, use_quick_integration=True
    )
    assert post_probs.shape == (len(pf), len(pt))
    assert np.all(post_probs[0, :] == 0)
    assert np.all(post_probs[-1, :] == 0)
    assert np.all(post_probs[:, 0] == 0)
    assert np.all(post_probs[:, -1] == 0)
    assert post_probs[best_pf, best_pt] == post_probs.max()


def test_rectangles_outside_simplex_have_no_weight(partitions):
    pf, pt = partitions
    post_probs, _, _ = select_highest_probability_region(
        2, 2, 6, pf, pt, use_quick_integration=True
    )
    for i in range(len(pf)):
        for j in range(len(pt)):
            if pf[i][1] + pt[j][1] > 1 + 1e-12:
                assert post_probs[i, j] == 0


def test_all_efficacy_selects_lowest_rectangle(partitions):
    pf, pt = partitions
    _, best_pf, best_pt = select_highest_probability_region(0, 0, 3, pf, pt)
    assert (best_pf, best_pt) == (1, 1)


@pytest.mark.parametrize("f, t, n", [(0, 0, 3), (1, 1, 3), (2, 0, 3), (2, 3, 9), (0, 1, 6)])
def test_quick_and_adaptive_integration_agree(partitions, f, t, n):
    pf, pt = partitions
    exact, best_pf, best_pt = select_highest_probability_region(f, t, n, pf, pt)
    quick, quick_pf, quick_pt = select_highest_probability_region(
        f, t, n, pf, pt, use_quick_integration=True
    )
    np.testing.assert_allclose(quick, exact, rtol=1e-6, atol=1e-12)
    assert (quick_pf, quick_pt) == (best_pf, best_pt)


def test_decision_table_for_three_patients(table_3):
    assert table_3.sample_size == 3
    assert table_3.labels.shape == (4, 4)
    assert table_3[0, 3] == DU
    assert table_3[3, 0] in (EU, E)
    assert table_3[3, 0] == EU
    assert table_3[0, 0] == S
    for f in range(4):
        for t in range(4 - f):
            assert table_3.is_populated(f, t)
            assert table_3[f, t] in DECISIONS


def test_unpopulated_cells(table_3):
    assert not table_3.is_populated(2, 2)
    with pytest.raises(UndefinedDecisionError):
        table_3[2, 2]
    with pytest.raises(IndexError):
        table_3[4, 0]


def test_decision_table_is_deterministic(table_3):
    assert make_decision_table(3, *PARAMS) == table_3
    quick_a = make_decision_table(6, *PARAMS, use_quick_integration=True)
    quick_b = make_decision_table(6, *PARAMS, use_quick_integration=True)
    np.testing.assert_array_equal(quick_a.labels, quick_b.labels)


def test_quick_table_matches_adaptive_table(table_3):
    assert make_decision_table(3, *PARAMS, use_quick_integration=True) == table_3


@pytest.mark.parametrize("N", [6, 9])
def test_override_rules(N):
    PF, PF_tolerance, eta, PT, PT_tolerance, zeta = PARAMS
    table = make_decision_table(N, *PARAMS, use_quick_integration=True)
    for f in range(N + 1):
        for t in range(N + 1 - f):
            if t / N > zeta:
                assert table[f, t] == DU
            elif f / N > eta and t / N < PT + PT_tolerance:
                assert table[f, t] == EU
            else:
                assert table[f, t] in (D, S, E)


def test_labels_are_read_only(table_3):
    with pytest.raises(ValueError):
        table_3.labels[0, 0] = DU


@pytest.mark.parametrize(
    "N, params",
    [
        (0, PARAMS),
        (3, (0.2, -0.05, 0.8, 0.2, 0.05, 0.8)),
        (3, (0.2, 0.05, 0.8, 0.2, -0.05, 0.8)),
        (3, (0.2, 0.05, 0.22, 0.2, 0.05, 0.8)),
        (3, (0.2, 0.05, 0.8, 0.2, 0.05, 0.22)),
    ],
)
def test_make_decision_table_validation(N, params):
    with pytest.raises(ConfigurationError):
        make_decision_table(N, *params)


def test_change_decision_table_entry(table_3):
    changed = change_decision_table_entry(table_3, 0, 0, E)
    assert changed[0, 0] == E
    assert table_3[0, 0] == S

    block = change_decision_table_entry(table_3, [0, 1], [0, 1], D)
    for f in (0, 1):
        for t in (0, 1):
            assert block[f, t] == D
    assert block[2, 0] == table_3[2, 0]


def test_change_decision_table_entry_validation(table_3):
    with pytest.raises(ValueError, match="Invalid decision"):
        change_decision_table_entry(table_3, 0, 0, "X")
    with pytest.raises(ValueError):
        change_decision_table_entry(table_3, [1, 2], 2, D)


def test_decision_table_constructor_validation():
    labels = np.full((2, 2), "", dtype="<U2")
    labels[0, 0] = S
    with pytest.raises(ValueError):
        DecisionTable(labels, 2)
    labels[1, 1] = S
    with pytest.raises(ValueError):
        DecisionTable(labels, 1)
    labels[1, 1] = ""
    labels[0, 1] = "Q"
    with pytest.raises(ValueError):
        DecisionTable(labels, 1)


def test_numeric_round_trip(table_3):
    codes = table_3.to_numeric()
    assert codes[0, 3] == -2
    assert np.isnan(codes[3, 3])
    assert DecisionTable.from_numeric(codes) == table_3


def test_table_with_missing_cell():
    codes = np.array([[np.nan, 0], [1, np.nan]])
    table = DecisionTable.from_numeric(codes)
    assert table[1, 0] == E
    with pytest.raises(UndefinedDecisionError):
        table[0, 0]


def test_to_dataframe(table_3):
    df = table_3.to_dataframe()
    assert df.shape == (4, 4)
    assert df.index.name == "Futility"
    assert df.columns.name == "Toxicity"
    assert df.loc[0, 3] == DU
    assert df.loc[3, 3] is None
    assert all(dtype == object for dtype in df.dtypes)
    assert df.isna().sum().sum() == 6


def test_registry(table_3):
    registry = DecisionTableRegistry([table_3])
    assert 3 in registry
    assert 6 not in registry
    assert len(registry) == 1
    assert registry.get(3) is table_3
    with pytest.raises(TableNotFoundError):
        registry.get(6)


def test_registry_json_round_trip(table_3):
    registry = DecisionTableRegistry([table_3])
    s = registry.to_json()
    assert json.loads(s)["3"][0][3] == -2
    restored = DecisionTableRegistry.from_json(s)
    assert restored.sample_sizes() == [3]
    assert restored.get(3) == table_3


def test_design(design):
    assert design.params()["zeta"] == 0.8
    pf, pt = design.intervals()
    assert pf.equivalence_index == 2
    assert pt.equivalence_index == 2
    registry = design.make_registry([3, 6], use_quick_integration=True)
    assert registry.sample_sizes() == [3, 6]
    assert registry.get(6) == design.make_decision_table(6, use_quick_integration=True)
    assert "eta=0.8" in repr(design)


def test_design_validation():
    with pytest.raises(ConfigurationError):
        MPIDesign(0.2, 0.05, 0.2, 0.2, 0.05, 0.8)
    with pytest.raises(ConfigurationError):
        MPIDesign(0.2, 1e-7, 0.8, 0.2, 0.05, 0.8)


def test_no_interior_rectangle_in_simplex():
    pf, pt = make_intervals(0.5, 0.25, 1.0, 0.5, 0.25, 1.0)
    assert len(pf) == 3
    with pytest.raises(ConfigurationError):
        select_highest_probability_region(0, 0, 3, pf, pt, use_quick_integration=True)
    with pytest.raises(ConfigurationError):
        make_decision_table(3, 0.5, 0.25, 1.0, 0.5, 0.25, 1.0)
