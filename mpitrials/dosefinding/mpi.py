""" The modified probability interval (MPI) design.

The futility and toxicity probability axes are partitioned into intervals
(see :mod:`mpitrials.dosefinding.intervals`). Each pair of intervals is a
rectangle, or model, of the (pf, pt) plane. Given the outcomes at a dose,
the model with the highest average trinomial likelihood is selected and its
position relative to the equivalence intervals gives the decision to
de-escalate (D), stay (S) or escalate (E). The safety and futility rules
override these with mandatory de-escalation (DU) and escalation (EU).

Decisions depend only on the counts at a dose, so they are tabulated in
advance for every possible outcome at each sample size.
"""

import json
import logging
from collections import OrderedDict

import numpy as np

from mpitrials.core.math import trinomial_density
from mpitrials.core.numerics import integrate_rectangle, integrate_rectangles_gauss
from mpitrials.dosefinding import (
    D,
    DECISIONS,
    DU,
    E,
    EU,
    S,
    change_dose_info,
    check_futility_rule,
    check_safety_rule,
    setup_doses,
)
from mpitrials.dosefinding.intervals import make_intervals
from mpitrials.errors import (
    ConfigurationError,
    TableNotFoundError,
    UndefinedDecisionError,
)
from mpitrials.utils import Memoize

logger = logging.getLogger(__name__)

# Numeric codes of the decisions when tables are stored as plain matrices
DECISION_CODES = OrderedDict([(DU, -2), (D, -1), (S, 0), (E, 1), (EU, 2)])
_LABELS_BY_CODE = {v: k for k, v in DECISION_CODES.items()}


@Memoize
def _rectangle_grid(pf_partition, pt_partition):
    """Interior rectangles of a pair of partitions that lie in the simplex.

    The first and last interval of each axis are excluded. Rectangles are
    listed in row-major order of (futility index, toxicity index).

    Returns:
        A 4-tuple of futility indices, toxicity indices, futility bounds and
        toxicity bounds, one entry per rectangle with ``pf_high + pt_high <= 1``.
    """
    pf_indices = np.arange(1, len(pf_partition) - 1)
    pt_indices = np.arange(1, len(pt_partition) - 1)
    ii, jj = np.meshgrid(pf_indices, pt_indices, indexing="ij")
    ii, jj = ii.ravel(), jj.ravel()
    pf_bounds = pf_partition.bounds[ii]
    pt_bounds = pt_partition.bounds[jj]
    in_simplex = pf_bounds[:, 1] + pt_bounds[:, 1] <= 1 + 1e-12
    return ii[in_simplex], jj[in_simplex], pf_bounds[in_simplex], pt_bounds[in_simplex]


def select_highest_probability_region(
    futility_count,
    toxicity_count,
    n,
    pf_partition,
    pt_partition,
    use_quick_integration=False,
):
    """Selects the model (rectangle) with the highest posterior weight.

    The weight of a rectangle is the trinomial likelihood of the observed
    counts integrated over the rectangle and divided by its area, i.e. the
    average likelihood under a flat prior on the simplex. Rectangles that
    cross ``pf + pt = 1`` and the boundary intervals of each axis get
    weight 0.

    Args:
        futility_count: The number of futile outcomes at the dose.
        toxicity_count: The number of toxic outcomes at the dose.
        n: The number of patients treated at the dose.
        pf_partition: The futility `IntervalPartition`.
        pt_partition: The toxicity `IntervalPartition`.
        use_quick_integration: If True, use a tensor Gauss-Legendre rule
            that is exact for the polynomial likelihood; otherwise use
            nested adaptive quadrature.

    Returns:
        A 3-tuple ``(post_probs, best_pf, best_pt)`` where `post_probs` is a
        ``len(pf_partition) x len(pt_partition)`` array of weights and
        `best_pf`, `best_pt` are the indices of the largest weight, the
        first in row-major order on ties.

    Raises:
        ConfigurationError: If no interior rectangle lies inside the simplex,
            which only happens for very wide equivalence intervals.
    """
    post_probs = np.zeros((len(pf_partition), len(pt_partition)))
    ii, jj, pf_bounds, pt_bounds = _rectangle_grid(pf_partition, pt_partition)

    def likelihood(pf, pt):
        return trinomial_density(pf, pt, futility_count, toxicity_count, n)

    if not len(ii):
        raise ConfigurationError(
            "No interior rectangle lies inside the simplex; widen the partitions."
        )

    if use_quick_integration:
        n_points = max(n // 2 + 1, 2)
        integrals = integrate_rectangles_gauss(
            likelihood, pf_bounds, pt_bounds, n_points
        )
    else:
        integrals = np.array(
            [
                integrate_rectangle(
                    lambda x, y: float(likelihood(x, y)), pf_lo, pf_hi, pt_lo, pt_hi
                )
                for (pf_lo, pf_hi), (pt_lo, pt_hi) in zip(pf_bounds, pt_bounds)
            ]
        )
    areas = (pf_bounds[:, 1] - pf_bounds[:, 0]) * (pt_bounds[:, 1] - pt_bounds[:, 0])
    post_probs[ii, jj] = integrals / areas

    best_pf, best_pt = np.unravel_index(np.argmax(post_probs), post_probs.shape)
    return post_probs, int(best_pf), int(best_pt)


def select_model_for_dose(
    dose_info, dose, pf_partition, pt_partition, use_quick_integration=False
):
    """Selects the most probable model given the counts at one dose.

    Args:
        dose_info: A `DoseResponseTable`.
        dose: The dose value.
        pf_partition: The futility `IntervalPartition`.
        pt_partition: The toxicity `IntervalPartition`.
        use_quick_integration: See `select_highest_probability_region`.

    Returns:
        See `select_highest_probability_region`.
    """
    i = dose_info.index_of(dose)
    return select_highest_probability_region(
        int(dose_info.futility_counts[i]),
        int(dose_info.toxicity_counts[i]),
        int(dose_info.n[i]),
        pf_partition,
        pt_partition,
        use_quick_integration=use_quick_integration,
    )


def make_decision(best_pf, best_pt, pf_partition, pt_partition):
    """Makes a decision to de-escalate, stay or escalate from the selected model.

    Safety comes first: a model above the toxicity equivalence interval
    means de-escalate. Otherwise a model above the futility equivalence
    interval means escalate, and anything else means stay.

    Args:
        best_pf: Futility interval index of the selected model.
        best_pt: Toxicity interval index of the selected model.
        pf_partition: The futility `IntervalPartition`.
        pt_partition: The toxicity `IntervalPartition`.

    Returns:
        One of "D", "E" or "S".
    """
    if best_pt > pt_partition.equivalence_index:
        return D
    elif best_pf > pf_partition.equivalence_index:
        return E
    else:
        return S


class DecisionTable:
    """The decisions for every outcome at one sample size.

    Rows are futility counts and columns are toxicity counts, both starting
    at 0. Cells with ``futility + toxicity > sample_size`` hold no decision.
    Tables are read-only; `change_decision_table_entry` returns a new table.
    """

    def __init__(self, labels, sample_size):
        """Initializes the DecisionTable.

        Args:
            labels: A ``(sample_size + 1) x (sample_size + 1)`` array of
                decision labels, with "" where there is no decision.
            sample_size: The number of patients at the dose.

        Raises:
            ValueError: If the shape is wrong, a label is unknown, or a cell
                outside ``futility + toxicity <= sample_size`` is populated.
        """
        labels = np.array(labels, dtype="<U2")
        size = sample_size + 1
        if labels.shape != (size, size):
            raise ValueError(f"labels should be a {size}x{size} array.")
        unknown = set(np.unique(labels)) - set(DECISIONS) - {""}
        if unknown:
            raise ValueError(f"Invalid decisions {sorted(unknown)}.")
        f, t = np.indices(labels.shape)
        if np.any(labels[f + t > sample_size] != ""):
            raise ValueError("Cells with futility + toxicity > sample size must be empty.")

        labels.setflags(write=False)
        self._labels = labels
        self.sample_size = sample_size

    @property
    def labels(self):
        return self._labels

    def is_populated(self, futility_count, toxicity_count):
        return self._labels[futility_count, toxicity_count] != ""

    def __getitem__(self, key):
        futility_count, toxicity_count = key
        if not (
            0 <= futility_count <= self.sample_size
            and 0 <= toxicity_count <= self.sample_size
        ):
            raise IndexError(
                f"({futility_count}, {toxicity_count}) is outside the table for N={self.sample_size}."
            )
        label = self._labels[futility_count, toxicity_count]
        if label == "":
            raise UndefinedDecisionError(
                f"No decision for futility={futility_count}, toxicity={toxicity_count} "
                f"in the table for N={self.sample_size}."
            )
        return str(label)

    def __eq__(self, other):
        if not isinstance(other, DecisionTable):
            return NotImplemented
        return self.sample_size == other.sample_size and np.array_equal(
            self._labels, other._labels
        )

    def __repr__(self):
        return f"DecisionTable(sample_size={self.sample_size})"

    def to_numeric(self):
        """The table as a float matrix of decision codes, NaN where empty."""
        codes = np.full(self._labels.shape, np.nan)
        for label, code in DECISION_CODES.items():
            codes[self._labels == label] = code
        return codes

    @classmethod
    def from_numeric(cls, codes):
        """Rebuilds a table from a matrix made by `to_numeric`."""
        codes = np.asarray(codes, dtype=float)
        labels = np.full(codes.shape, "", dtype="<U2")
        for code, label in _LABELS_BY_CODE.items():
            labels[codes == code] = label
        return cls(labels, codes.shape[0] - 1)

    def to_dataframe(self):
        """The table as a pandas DataFrame, futility counts on the rows."""
        import pandas as pd

        df = pd.DataFrame(
            np.where(self._labels == "", None, self._labels),
            dtype=object,
            index=pd.RangeIndex(self.sample_size + 1, name="Futility"),
            columns=pd.RangeIndex(self.sample_size + 1, name="Toxicity"),
        )
        return df


def _check_table_parameters(PF, PF_tolerance, eta, PT, PT_tolerance, zeta):
    if PF_tolerance < 0:
        raise ConfigurationError("PF_tolerance cannot be negative.")
    if PT_tolerance < 0:
        raise ConfigurationError("PT_tolerance cannot be negative.")
    if eta < PF + PF_tolerance:
        raise ConfigurationError("eta cannot be < PF + PF_tolerance.")
    if zeta < PT + PT_tolerance:
        raise ConfigurationError("zeta cannot be < PT + PT_tolerance.")


def make_decision_table(
    N,
    PF,
    PF_tolerance,
    eta,
    PT,
    PT_tolerance,
    zeta,
    use_quick_integration=False,
):
    """Makes the decision table for a dose with `N` patients.

    For every split of `N` patients into futility, efficacy and toxicity:

    * if the toxicity rate exceeds `zeta` the decision is DU;
    * otherwise the most probable model gives D, S or E, which becomes EU
      when the futility rate exceeds `eta` and the toxicity rate is below
      ``PT + PT_tolerance``.

    Args:
        N: Number of patients treated at a dose.
        PF: Target tolerable futility probability.
        PF_tolerance: Half-width of the futility equivalence interval.
        eta: Futility threshold above which the futility rule is invoked.
        PT: Target tolerable toxicity probability.
        PT_tolerance: Half-width of the toxicity equivalence interval.
        zeta: Toxicity threshold above which the safety rule is invoked.
        use_quick_integration: See `select_highest_probability_region`.

    Returns:
        A `DecisionTable`.

    Raises:
        ConfigurationError: If the parameters are invalid.

    Examples:
        >>> table = make_decision_table(3, 0.2, 0.05, 0.8, 0.2, 0.05, 0.8)
        >>> table[0, 3]
        'DU'
        >>> table[3, 0]
        'EU'
    """
    if N <= 0:
        raise ConfigurationError("Invalid sample size.")
    _check_table_parameters(PF, PF_tolerance, eta, PT, PT_tolerance, zeta)
    pf_partition, pt_partition = make_intervals(
        PF, PF_tolerance, eta, PT, PT_tolerance, zeta
    )

    dose = 1
    dose_info = setup_doses([dose])
    labels = np.full((N + 1, N + 1), "", dtype="<U2")
    for f_count in range(N + 1):
        for t_count in range(N + 1 - f_count):
            e_count = N - f_count - t_count
            change_dose_info(dose, dose_info, f_count, e_count, t_count)

            if check_safety_rule(dose, dose_info, zeta):
                labels[f_count, t_count] = DU
            else:
                _, best_pf, best_pt = select_model_for_dose(
                    dose_info,
                    dose,
                    pf_partition,
                    pt_partition,
                    use_quick_integration=use_quick_integration,
                )
                labels[f_count, t_count] = make_decision(
                    best_pf, best_pt, pf_partition, pt_partition
                )
                if (
                    check_futility_rule(dose, dose_info, eta)
                    and dose_info.p_toxicity[0] < PT + PT_tolerance
                ):
                    labels[f_count, t_count] = EU

    logger.info("Made decision table for N=%s", N)
    return DecisionTable(labels, N)


def change_decision_table_entry(
    decision_table, futility_indices, toxicity_indices, new_decision
):
    """Changes entries of a decision table, e.g. to smooth it by hand.

    Every cell in the block ``futility_indices x toxicity_indices`` is set to
    `new_decision`. Change one entry at a time and check the table
    afterwards.

    Args:
        decision_table: A `DecisionTable`.
        futility_indices: A futility count, or a sequence of them.
        toxicity_indices: A toxicity count, or a sequence of them.
        new_decision: One of "DU", "D", "S", "E" or "EU".

    Returns:
        A new `DecisionTable`.

    Raises:
        ValueError: If `new_decision` is not a decision, or a cell has
            ``futility + toxicity > sample_size``.
    """
    if new_decision not in DECISIONS:
        raise ValueError(
            'Invalid decision, please enter one of the following: "DU", "D", "S", "E", or "EU".'
        )

    labels = decision_table.labels.copy()
    for f_count in np.atleast_1d(futility_indices):
        for t_count in np.atleast_1d(toxicity_indices):
            if f_count + t_count > decision_table.sample_size:
                raise ValueError(
                    f"({f_count}, {t_count}) is not a possible outcome with "
                    f"N={decision_table.sample_size}."
                )
            labels[f_count, t_count] = new_decision
    return DecisionTable(labels, decision_table.sample_size)


class DecisionTableRegistry:
    """Decision tables keyed by the sample size at a dose.

    Examples:
        >>> registry = DecisionTableRegistry()
        >>> 3 in registry
        False
    """

    def __init__(self, tables=None):
        self._tables = OrderedDict()
        for table in tables or []:
            self.register(table)

    def register(self, table):
        """Adds a table, replacing any table with the same sample size."""
        self._tables[int(table.sample_size)] = table

    def get(self, sample_size):
        """Gets the table for `sample_size`.

        Raises:
            TableNotFoundError: If no table is registered for `sample_size`.
        """
        try:
            return self._tables[int(sample_size)]
        except KeyError:
            raise TableNotFoundError(
                f"No decision table for sample size {sample_size}."
            ) from None

    def sample_sizes(self):
        return sorted(self._tables.keys())

    def __contains__(self, sample_size):
        return int(sample_size) in self._tables

    def __len__(self):
        return len(self._tables)

    @classmethod
    def build(cls, sample_sizes, design, use_quick_integration=False):
        """Makes and registers a decision table for each sample size.

        Args:
            sample_sizes: The sample sizes at a dose that need a table.
            design: An `MPIDesign`.
            use_quick_integration: See `select_highest_probability_region`.

        Returns:
            A `DecisionTableRegistry`.
        """
        registry = cls()
        for N in sample_sizes:
            logger.debug("Building decision table for N=%s", N)
            registry.register(
                design.make_decision_table(
                    N, use_quick_integration=use_quick_integration
                )
            )
        return registry

    def to_json(self):
        """The registry as a JSON string of numeric matrices keyed by sample size."""
        obj = OrderedDict()
        for sample_size in self.sample_sizes():
            codes = self._tables[sample_size].to_numeric()
            obj[str(sample_size)] = [
                [None if np.isnan(x) else int(x) for x in row] for row in codes
            ]
        return json.dumps(obj)

    @classmethod
    def from_json(cls, s):
        """Rebuilds a registry from a string made by `to_json`."""
        obj = json.loads(s)
        tables = []
        for _, rows in obj.items():
            codes = np.array(
                [[np.nan if x is None else x for x in row] for row in rows],
                dtype=float,
            )
            tables.append(DecisionTable.from_numeric(codes))
        return cls(tables)


class MPIDesign:
    """The six parameters of an MPI design, validated once.

    Examples:
        >>> design = MPIDesign(0.2, 0.05, 0.8, 0.2, 0.05, 0.8)
        >>> pf_partition, pt_partition = design.intervals()
        >>> pf_partition.equivalence_index
        2
    """

    def __init__(self, PF, PF_tolerance, eta, PT, PT_tolerance, zeta):
        """Initializes the MPIDesign.

        Args:
            PF: Target tolerable futility probability.
            PF_tolerance: Half-width of the futility equivalence interval.
            eta: Futility threshold above which the futility rule is invoked.
            PT: Target tolerable toxicity probability.
            PT_tolerance: Half-width of the toxicity equivalence interval.
            zeta: Toxicity threshold above which the safety rule is invoked.

        Raises:
            ConfigurationError: If the parameters are invalid.
        """
        _check_table_parameters(PF, PF_tolerance, eta, PT, PT_tolerance, zeta)
        self.PF = PF
        self.PF_tolerance = PF_tolerance
        self.eta = eta
        self.PT = PT
        self.PT_tolerance = PT_tolerance
        self.zeta = zeta
        self._intervals = make_intervals(PF, PF_tolerance, eta, PT, PT_tolerance, zeta)

    def params(self):
        return OrderedDict(
            [
                ("PF", self.PF),
                ("PF_tolerance", self.PF_tolerance),
                ("eta", self.eta),
                ("PT", self.PT),
                ("PT_tolerance", self.PT_tolerance),
                ("zeta", self.zeta),
            ]
        )

    def intervals(self):
        """The futility and toxicity partitions of this design."""
        return self._intervals

    def make_decision_table(self, N, use_quick_integration=False):
        return make_decision_table(
            N, use_quick_integration=use_quick_integration, **self.params()
        )

    def make_registry(self, sample_sizes, use_quick_integration=False):
        return DecisionTableRegistry.build(
            sample_sizes, self, use_quick_integration=use_quick_integration
        )

    def __repr__(self):
        args = ", ".join(f"{k}={v}" for k, v in self.params().items())
        return f"MPIDesign({args})"
