""" Conducting and simulating MPI trials.

An `MPITrial` is driven one cohort at a time, either by an operator entering
observed outcomes or by `simulate_mpi_trial`, which draws outcomes from true
probabilities. `run_simulation` runs many independent simulated trials and
summarises their operating characteristics; `run_scenarios` does the same
across named scenarios and trial settings.
"""

import logging
import operator
from collections import OrderedDict

import numpy as np

from mpitrials.core.simulation import extract_sim_data, run_sims, sim_parameter_space
from mpitrials.dosefinding import (
    DU,
    EU,
    MIN_SIZE_FOR_CLOSURE,
    D,
    E,
    S,
    adjust_for_futility_rule,
    adjust_for_safety_rule,
    check_futility_rule,
    check_safety_rule,
    check_stopping_rules,
    setup_doses,
    update_table,
)
from mpitrials.dosefinding.mpi import MPIDesign
from mpitrials.dosefinding.utility import MIN_NUM_SAMPLES, estimate_utility
from mpitrials.errors import ConfigurationError, UndefinedDecisionError
from mpitrials.utils import (
    atomic_to_json,
    invoke_map_reduce_on_list,
    iterable_to_json,
    reduce_maps_by_summing,
)

logger = logging.getLogger(__name__)


class MPITrial:
    """A phase I trial conducted with the MPI design.

    Each cohort is treated at the current dose, its outcomes are added to
    the dose's counts, the safety and futility rules may close doses, and
    the decision table for the dose's sample size gives the next move.

    Status codes:

    * ``NOT_STARTED`` (0): no cohort yet;
    * ``RUNNING`` (1): more cohorts can be treated;
    * ``COMPLETED_FULL`` (100): stopped having treated exactly `max_size`
      patients;
    * ``STOPPED_EARLY`` (-1): stopped before reaching `max_size`.

    Examples:
        >>> design = MPIDesign(0.2, 0.05, 0.8, 0.2, 0.05, 0.8)
        >>> tables = design.make_registry([3, 6], use_quick_integration=True)
        >>> trial = MPITrial([1, 2, 3], 2, design, tables, cohort_size=3, max_size=6)
        >>> int(trial.update(0, 3, 0))
        2
        >>> trial.decision()
        'S'
    """

    NOT_STARTED = 0
    RUNNING = 1
    COMPLETED_FULL = 100
    STOPPED_EARLY = -1

    def __init__(
        self,
        dose_levels,
        starting_dose,
        design,
        decision_tables,
        cohort_size=3,
        max_size=24,
    ):
        """Initializes the MPITrial.

        Args:
            dose_levels: The dose values, in any order.
            starting_dose: The dose value of the first cohort.
            design: An `MPIDesign`.
            decision_tables: A `DecisionTableRegistry` holding a table for
                every sample size a dose can reach.
            cohort_size: Number of patients per cohort.
            max_size: Maximum number of patients in the trial.

        Raises:
            ConfigurationError: If `cohort_size` or `max_size` is not
                positive.
            InvalidDoseError: If `starting_dose` is not a dose level.
        """
        if cohort_size <= 0:
            raise ConfigurationError("cohort_size must be positive.")
        if max_size <= 0:
            raise ConfigurationError("max_size must be positive.")

        self.design = design
        self.decision_tables = decision_tables
        self.cohort_size = cohort_size
        self.max_size = max_size
        dose_info = setup_doses(dose_levels)
        self._dose_levels = dose_info.dose_levels
        self._starting_dose = self._dose_levels[dose_info.index_of(starting_dose)]
        self.reset()

    def reset(self):
        """Resets the trial to its initial state."""
        self.dose_info = setup_doses(self._dose_levels)
        self._next_dose = self._starting_dose
        self._size = 0
        self._doses = []
        self._decisions = []
        self._decision = None
        self._closest_lower_dose = None
        self._closest_higher_dose = None
        self._status = self.NOT_STARTED
        if check_stopping_rules(self._next_dose, self.dose_info, 0, self.max_size):
            self._status = self.STOPPED_EARLY

    def status(self):
        return self._status

    def has_more(self):
        """Can more cohorts be treated?"""
        return self._status in (self.NOT_STARTED, self.RUNNING)

    def next_dose(self):
        return self._next_dose

    def size(self):
        """Number of patients treated so far."""
        return self._size

    def decision(self):
        """The latest decision, or None before the first one."""
        return self._decision

    def decisions(self):
        """Decision after each cohort; None where none was taken."""
        return list(self._decisions)

    def doses(self):
        """Dose given to each cohort."""
        return list(self._doses)

    def closest_lower_dose(self):
        """Rank of the closest available dose below the last one, -inf if none."""
        return self._closest_lower_dose

    def closest_higher_dose(self):
        """Rank of the closest available dose above the last one, inf if none."""
        return self._closest_higher_dose

    def patients_per_dose(self):
        return self.dose_info.n.copy()

    def tabulate(self):
        return self.dose_info.tabulate()

    def _lookup_decision(self, dose_index):
        n = int(self.dose_info.n[dose_index])
        futility_count = int(self.dose_info.futility_counts[dose_index])
        toxicity_count = int(self.dose_info.toxicity_counts[dose_index])
        table = self.decision_tables.get(n)
        try:
            return table[futility_count, toxicity_count]
        except UndefinedDecisionError:
            logger.error(
                "Undefined decision at dose %s with N=%s, futility=%s, toxicity=%s",
                self._dose_levels[dose_index],
                n,
                futility_count,
                toxicity_count,
            )
            raise

    def _move(self, dose, decision, closest_lower, closest_higher):
        if decision in (D, DU) and np.isfinite(closest_lower):
            return self._dose_levels[int(closest_lower)]
        elif decision in (E, EU) and np.isfinite(closest_higher):
            return self._dose_levels[int(closest_higher)]
        return dose

    def update(self, futility_count, efficacy_count, toxicity_count):
        """Treats a cohort at the current dose and works out the next dose.

        Args:
            futility_count: Number of patients in the cohort with futility.
            efficacy_count: Number of patients in the cohort with efficacy.
            toxicity_count: Number of patients in the cohort with toxicity.

        Returns:
            The next dose value.

        Raises:
            ValueError: If the trial has stopped or the counts do not add up
                to the cohort size.
            TableNotFoundError: If no decision table exists for the sample
                size reached at the dose.
            UndefinedDecisionError: If the decision table has no entry for
                the observed counts.
        """
        if not self.has_more():
            raise ValueError("The trial has stopped; no more cohorts can be treated.")
        if futility_count + efficacy_count + toxicity_count != self.cohort_size:
            raise ValueError(f"Outcome counts must add up to {self.cohort_size}.")

        dose = self._next_dose
        dose_index = self.dose_info.index_of(dose)
        self._status = self.RUNNING
        self._size += self.cohort_size
        update_table(dose, self.dose_info, futility_count, efficacy_count, toxicity_count)
        self._doses.append(dose)

        safety = check_safety_rule(dose, self.dose_info, self.design.zeta)
        futility = check_futility_rule(dose, self.dose_info, self.design.eta)
        if safety:
            adjust_for_safety_rule(dose, self.dose_info)
        elif futility:
            adjust_for_futility_rule(dose, self.dose_info)

        decision = None
        if self._size < self.max_size:
            if (safety or futility) and self.dose_info.n[dose_index] < MIN_SIZE_FOR_CLOSURE:
                decision = S
            else:
                decision = self._lookup_decision(dose_index)
            self._closest_lower_dose = self.dose_info.closest_lower_available(dose_index)
            self._closest_higher_dose = self.dose_info.closest_higher_available(dose_index)
            self._decision = decision
            dose = self._move(
                dose, decision, self._closest_lower_dose, self._closest_higher_dose
            )
            logger.debug("Decision %s at dose %s; next dose %s", decision, self._doses[-1], dose)
        self._decisions.append(decision)
        self._next_dose = dose

        if check_stopping_rules(
            dose,
            self.dose_info,
            self._size + self.cohort_size,
            self.max_size,
            self._decision,
            self._closest_lower_dose,
            self._closest_higher_dose,
        ):
            if self._size == self.max_size:
                self._status = self.COMPLETED_FULL
            else:
                self._status = self.STOPPED_EARLY
        return self._next_dose

    def select_final_dose(self, filter=0.5, num_samples=10**4, rng=None):
        """Selects the recommended dose. See `select_final_dose`."""
        return select_final_dose(
            self.dose_info,
            self._size,
            self.max_size,
            not self.has_more(),
            self.design,
            filter=filter,
            num_samples=num_samples,
            rng=rng,
        )


def select_final_dose(
    dose_info,
    sample_size,
    max_size,
    stopping_rule,
    design,
    filter=0.5,
    num_samples=10**4,
    rng=None,
):
    """Selects the recommended dose at the end of a trial.

    A trial that stopped before treating `max_size` patients recommends no
    dose. Otherwise, among available doses that treated at least one
    patient and whose rate of futility plus toxicity is at most `filter`,
    the dose with the highest `estimate_utility` is recommended. Ties go to
    the lowest dose.

    Args:
        dose_info: A `DoseResponseTable`.
        sample_size: Number of patients treated in the trial.
        max_size: Maximum number of patients in the trial.
        stopping_rule: True if the trial has stopped.
        design: An `MPIDesign`; its targets and tolerances define the loss.
        filter: Highest acceptable rate of futility plus toxicity.
        num_samples: Monte-Carlo samples per utility estimate.
        rng: A `numpy.random.Generator`.

    Returns:
        The recommended dose value, or None for no selection.
    """
    if stopping_rule and sample_size != max_size:
        return None

    best_dose, best_utility = None, -np.inf
    n = dose_info.n
    for i, dose in enumerate(dose_info.dose_levels):
        if not dose_info.available[i] or n[i] == 0:
            continue
        f = int(dose_info.futility_counts[i])
        e = int(dose_info.efficacy_counts[i])
        t = int(dose_info.toxicity_counts[i])
        if (f + t) / n[i] > filter:
            continue
        utility = estimate_utility(
            f,
            e,
            t,
            num_samples=num_samples,
            futility_target=design.PF,
            futility_tolerance=design.PF_tolerance,
            toxicity_target=design.PT,
            toxicity_tolerance=design.PT_tolerance,
            rng=rng,
        )
        logger.debug("Utility of dose %s is %.4f", dose, utility)
        if utility > best_utility:
            best_dose, best_utility = dose, utility
    return atomic_to_json(best_dose)


def _check_true_probs(true_probs, num_doses):
    true_probs = np.asarray(true_probs, dtype=float)
    if true_probs.shape != (num_doses, 3):
        raise ConfigurationError(
            "true_probs needs one row of (futility, efficacy, toxicity) per dose."
        )
    if np.any(true_probs < 0):
        raise ConfigurationError("True probabilities cannot be negative.")
    if not np.allclose(true_probs.sum(axis=1), 1):
        raise ConfigurationError("Each row of true probabilities must sum to 1.")
    return true_probs


def simulate_mpi_trial(
    true_probs,
    dose_levels,
    starting_dose,
    design,
    decision_tables,
    cohort_size=3,
    max_size=24,
    filter=0.5,
    num_samples=10**4,
    rng=None,
):
    """Simulates one MPI trial.

    Args:
        true_probs: A ``D x 3`` array of true (futility, efficacy, toxicity)
            probabilities, one row per entry of `dose_levels`.
        dose_levels: The dose values.
        starting_dose: The dose value of the first cohort.
        design: An `MPIDesign`.
        decision_tables: A `DecisionTableRegistry`.
        cohort_size: Number of patients per cohort.
        max_size: Maximum number of patients in the trial.
        filter: See `select_final_dose`.
        num_samples: See `select_final_dose`.
        rng: A `numpy.random.Generator` used for the cohorts and the
            utility estimates.

    Returns:
        collections.OrderedDict: A JSON-able report of the trial.
    """
    if rng is None:
        rng = np.random.default_rng()
    true_probs = _check_true_probs(true_probs, len(dose_levels))
    # Rows follow the ascending dose order used by the trial
    true_probs = true_probs[np.argsort(np.asarray(dose_levels), kind="stable")]

    trial = MPITrial(
        dose_levels,
        starting_dose,
        design,
        decision_tables,
        cohort_size=cohort_size,
        max_size=max_size,
    )
    while trial.has_more():
        dose_index = trial.dose_info.index_of(trial.next_dose())
        futility_count, efficacy_count, toxicity_count = rng.multinomial(
            cohort_size, true_probs[dose_index]
        )
        trial.update(futility_count, efficacy_count, toxicity_count)

    report = OrderedDict()
    report["DoseLevels"] = iterable_to_json(trial.dose_info.dose_levels)
    report["StartingDose"] = atomic_to_json(starting_dose)
    report["CohortSize"] = cohort_size
    report["MaxSize"] = max_size
    report["RecommendedDose"] = trial.select_final_dose(
        filter=filter, num_samples=num_samples, rng=rng
    )
    report["TrialStatus"] = atomic_to_json(trial.status())
    report["SampleSize"] = atomic_to_json(trial.size())
    report["StoppedEarly"] = trial.size() < max_size
    report["PatientsPerDose"] = iterable_to_json(trial.patients_per_dose())
    report["Doses"] = iterable_to_json(trial.doses())
    report["Decisions"] = trial.decisions()
    report["FinalAvailability"] = iterable_to_json(trial.dose_info.available)
    return report


def run_simulation(
    true_probs,
    dose_levels,
    starting_dose,
    PF,
    PF_tolerance,
    eta,
    PT,
    PT_tolerance,
    zeta,
    cohort_size=3,
    max_sample_size=24,
    num_trials=1000,
    filter=0.5,
    seed=111,
    decision_tables=None,
    num_samples=10**4,
    use_quick_integration=False,
    return_sims=False,
):
    """Simulates many MPI trials and summarises their operating characteristics.

    Args:
        true_probs: A ``D x 3`` array of true (futility, efficacy, toxicity)
            probabilities, one row per entry of `dose_levels`.
        dose_levels: The dose values.
        starting_dose: The dose value of the first cohort.
        PF: Target tolerable futility probability.
        PF_tolerance: Half-width of the futility equivalence interval.
        eta: Futility threshold above which the futility rule is invoked.
        PT: Target tolerable toxicity probability.
        PT_tolerance: Half-width of the toxicity equivalence interval.
        zeta: Toxicity threshold above which the safety rule is invoked.
        cohort_size: Number of patients per cohort.
        max_sample_size: Maximum number of patients per trial.
        num_trials: Number of trials to simulate.
        filter: See `select_final_dose`.
        seed: Seed of the random generator shared by the whole batch.
        decision_tables: A `DecisionTableRegistry`. If None, tables are
            made for every multiple of `cohort_size` up to
            `max_sample_size`.
        num_samples: Monte-Carlo samples per utility estimate.
        use_quick_integration: Passed on when making decision tables.
        return_sims: If True, the individual trial reports are included
            under "sims".

    Returns:
        collections.OrderedDict: The summary made by `summarise_mpi_sims`.

    Raises:
        ConfigurationError: If a parameter is invalid.
        InvalidDoseError: If `starting_dose` is not a dose level.
    """
    design = MPIDesign(PF, PF_tolerance, eta, PT, PT_tolerance, zeta)
    true_probs = _check_true_probs(true_probs, len(dose_levels))
    if cohort_size <= 0 or max_sample_size <= 0:
        raise ConfigurationError("cohort_size and max_sample_size must be positive.")
    if num_trials <= 0:
        raise ConfigurationError("num_trials must be positive.")
    if num_samples < MIN_NUM_SAMPLES:
        raise ConfigurationError(
            "num_samples too small, estimates may be unstable. Use at least 1000."
        )
    setup_doses(dose_levels).index_of(starting_dose)
    if max_sample_size % cohort_size:
        logger.warning(
            "max_sample_size %s is not a multiple of cohort_size %s; "
            "no trial can reach the maximum sample size.",
            max_sample_size,
            cohort_size,
        )

    if decision_tables is None:
        decision_tables = design.make_registry(
            range(cohort_size, max_sample_size + 1, cohort_size),
            use_quick_integration=use_quick_integration,
        )

    logger.info("Simulating %s MPI trials", num_trials)
    rng = np.random.default_rng(seed)
    sims = run_sims(
        simulate_mpi_trial,
        n1=1,
        n2=num_trials,
        true_probs=true_probs,
        dose_levels=dose_levels,
        starting_dose=starting_dose,
        design=design,
        decision_tables=decision_tables,
        cohort_size=cohort_size,
        max_size=max_sample_size,
        filter=filter,
        num_samples=num_samples,
        rng=rng,
    )

    summary = summarise_mpi_sims(sims, dose_levels, max_sample_size)
    if return_sims:
        summary["sims"] = sims
    return summary


# Report keys that a scenario sweep can vary, with the matching keyword
# arguments of the simulated trial.
SCENARIO_PARAMETERS = OrderedDict(
    [
        ("Scenario", "scenario"),
        ("StartingDose", "starting_dose"),
        ("CohortSize", "cohort_size"),
        ("MaxSize", "max_size"),
    ]
)


def run_scenarios(
    scenarios,
    dose_levels,
    design,
    ps,
    n1=1,
    n2=None,
    filter=0.5,
    seed=111,
    decision_tables=None,
    num_samples=10**4,
    use_quick_integration=False,
    out_file=None,
):
    """Simulates MPI trials across scenarios and trial settings.

    Every combination in `ps` is visited in turn, as in
    `mpitrials.core.simulation.sim_parameter_space`, so each batch of
    ``ps.size()`` trials covers the whole sweep once.

    Args:
        scenarios: Map of scenario name to a ``D x 3`` array of true
            (futility, efficacy, toxicity) probabilities.
        dose_levels: The dose values.
        design: An `MPIDesign`.
        ps: A `mpitrials.utils.ParameterSpace` with values for ``scenario``
            and ``starting_dose``, and optionally ``cohort_size`` (default 3)
            and ``max_size`` (default 24).
        n1: Number of batches.
        n2: Trials per batch. Defaults to the size of `ps`.
        filter: See `select_final_dose`.
        seed: Seed of the random generator shared by all trials.
        decision_tables: A `DecisionTableRegistry`. If None, tables are made
            for every sample size any combination can reach.
        num_samples: Monte-Carlo samples per utility estimate.
        use_quick_integration: Passed on when making decision tables.
        out_file: File that all reports so far are written to after each
            batch.

    Returns:
        list: Trial reports. Each starts with the name of its "Scenario"
            and records its "StartingDose", "CohortSize" and "MaxSize".

    Raises:
        ConfigurationError: If `ps` varies anything else, lacks a scenario
            or starting dose, or names an unknown scenario.
        InvalidDoseError: If a starting dose is not a dose level.
    """
    unknown = set(ps.keys()) - set(SCENARIO_PARAMETERS.values())
    if unknown:
        raise ConfigurationError(f"Cannot vary {sorted(unknown)} across scenarios.")
    for required in ("scenario", "starting_dose"):
        if required not in ps.keys():
            raise ConfigurationError(f"The parameter space needs values for {required}.")
    missing = [name for name in ps["scenario"] if name not in scenarios]
    if missing:
        raise ConfigurationError(f"Unknown scenarios {missing}.")
    if num_samples < MIN_NUM_SAMPLES:
        raise ConfigurationError(
            "num_samples too small, estimates may be unstable. Use at least 1000."
        )
    true_probs = {
        name: _check_true_probs(scenarios[name], len(dose_levels))
        for name in ps["scenario"]
    }
    dose_info = setup_doses(dose_levels)
    for dose in ps["starting_dose"]:
        dose_info.index_of(dose)
    cohort_sizes = ps["cohort_size"] if "cohort_size" in ps.keys() else [3]
    max_sizes = ps["max_size"] if "max_size" in ps.keys() else [24]
    if min(cohort_sizes) <= 0 or min(max_sizes) <= 0:
        raise ConfigurationError("cohort_size and max_size must be positive.")

    if decision_tables is None:
        sample_sizes = sorted(
            {
                n
                for cohort_size in cohort_sizes
                for max_size in max_sizes
                for n in range(cohort_size, max_size + 1, cohort_size)
            }
        )
        decision_tables = design.make_registry(
            sample_sizes, use_quick_integration=use_quick_integration
        )

    rng = np.random.default_rng(seed)

    def sim_func(scenario, starting_dose, cohort_size=3, max_size=24):
        report = simulate_mpi_trial(
            true_probs[scenario],
            dose_levels,
            starting_dose,
            design,
            decision_tables,
            cohort_size=cohort_size,
            max_size=max_size,
            filter=filter,
            num_samples=num_samples,
            rng=rng,
        )
        report["Scenario"] = scenario
        report.move_to_end("Scenario", last=False)
        return report

    logger.info("Simulating MPI trials over %s combinations", int(ps.size()))
    return sim_parameter_space(sim_func, ps, n1=n1, n2=n2, out_file=out_file)


def _patient_share(sim):
    patients = np.asarray(sim["PatientsPerDose"], dtype=float)
    return patients / max(sim["SampleSize"], 1)


def summarise_mpi_sims(sims, dose_levels, max_sample_size):
    """Summarises simulated MPI trials.

    Args:
        sims: Reports made by `simulate_mpi_trial`, e.g. loaded from JSON.
        dose_levels: The dose values.
        max_sample_size: Maximum number of patients per trial.

    Returns:
        collections.OrderedDict: With items

        * ``num_trials``;
        * ``selection_proportions``: dose -> fraction of trials recommending
          it, with key None for trials recommending no dose;
        * ``early_stop_count``: trials that treated fewer than
          `max_sample_size` patients;
        * ``per_dose_patient_share_mean``, ``per_dose_patient_share_min``,
          ``per_dose_patient_share_max``: dose -> mean, min and max fraction
          of a trial's patients treated at the dose.

    Raises:
        ValueError: If `sims` is empty.
    """
    if not sims:
        raise ValueError("No sims to summarise.")

    doses = sorted(dose_levels)
    choices = doses + [None]

    def selections(sim):
        return OrderedDict(
            (choice, int(sim["RecommendedDose"] == choice)) for choice in choices
        )

    function_map = OrderedDict()
    function_map["selections"] = (selections, reduce_maps_by_summing)
    function_map["early_stops"] = (
        lambda sim: int(sim["SampleSize"] < max_sample_size),
        operator.add,
    )
    function_map["share_sum"] = (_patient_share, np.add)
    function_map["share_min"] = (_patient_share, np.minimum)
    function_map["share_max"] = (_patient_share, np.maximum)
    reduced = invoke_map_reduce_on_list(sims, function_map)

    num_trials = len(sims)
    summary = OrderedDict()
    summary["num_trials"] = num_trials
    summary["selection_proportions"] = OrderedDict(
        (choice, count / num_trials) for choice, count in reduced["selections"].items()
    )
    summary["early_stop_count"] = reduced["early_stops"]
    summary["per_dose_patient_share_mean"] = OrderedDict(
        zip(doses, iterable_to_json(reduced["share_sum"] / num_trials))
    )
    summary["per_dose_patient_share_min"] = OrderedDict(
        zip(doses, iterable_to_json(reduced["share_min"]))
    )
    summary["per_dose_patient_share_max"] = OrderedDict(
        zip(doses, iterable_to_json(reduced["share_max"]))
    )
    return summary


def tabulate_mpi_sims(sims, dose_levels, max_sample_size):
    """Summarises simulated MPI trials in a pandas DataFrame.

    Returns:
        pandas.DataFrame: One row per dose with the proportion of trials
            selecting it and the mean, min and max share of patients, plus a
            final "None" row for trials with no selection.
    """
    import pandas as pd

    summary = summarise_mpi_sims(sims, dose_levels, max_sample_size)
    doses = sorted(dose_levels)
    tab_data = OrderedDict()
    tab_data["Selected"] = list(summary["selection_proportions"].values())
    for column, key in [
        ("MeanShare", "per_dose_patient_share_mean"),
        ("MinShare", "per_dose_patient_share_min"),
        ("MaxShare", "per_dose_patient_share_max"),
    ]:
        tab_data[column] = list(summary[key].values()) + [np.nan]
    df = pd.DataFrame(tab_data, index=pd.Index(doses + ["None"], name="Dose"))
    return df


def summarise_mpi_scenarios(sims, ps, dose_levels, return_type="dataframe"):
    """Summarises reports made by `run_scenarios`, one row per combination.

    Args:
        sims: The reports, e.g. loaded from JSON.
        ps: The parameter space the reports were simulated over.
        dose_levels: The dose values.
        return_type: 'dataframe' or 'tuple', as in
            `mpitrials.core.simulation.extract_sim_data`.

    Returns:
        pandas.DataFrame or tuple: Number of trials, mean sample size, early
            stops and the proportion of trials selecting each dose (and
            none), indexed by the report keys of the varied parameters.
    """

    def selected(dose):
        return lambda these_sims, params: sum(
            sim["RecommendedDose"] == dose for sim in these_sims
        ) / len(these_sims)

    func_map = OrderedDict()
    func_map["N"] = lambda these_sims, params: len(these_sims)
    func_map["MeanSampleSize"] = lambda these_sims, params: float(
        np.mean([sim["SampleSize"] for sim in these_sims])
    )
    func_map["EarlyStops"] = lambda these_sims, params: sum(
        sim["StoppedEarly"] for sim in these_sims
    )
    for dose in sorted(dose_levels) + [None]:
        func_map[f"Selected {dose}"] = selected(dose)

    var_map = OrderedDict(
        (key, name) for key, name in SCENARIO_PARAMETERS.items() if name in ps.keys()
    )
    return extract_sim_data(sims, ps, func_map, var_map=var_map, return_type=return_type)
