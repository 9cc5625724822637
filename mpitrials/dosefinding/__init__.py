"""Dose-finding with futility, efficacy and toxicity outcomes.

This module holds the dose-response table that every MPI trial keeps, the
functions that create and mutate it, and the safety, futility and stopping
rules evaluated against it.
"""

__all__ = ["intervals", "mpi", "trial", "utility"]


import logging
from collections import OrderedDict

import numpy as np

from mpitrials.errors import ConfigurationError, DivisionByZeroError, InvalidDoseError

logger = logging.getLogger(__name__)

# Decision labels. DU and EU are the mandatory de-escalation and escalation
# forced by the safety and futility rules.
DU = "DU"
D = "D"
S = "S"
E = "E"
EU = "EU"
DECISIONS = (DU, D, S, E, EU)

# A dose must have been given to at least this many patients before the
# safety or futility rule can close it.
MIN_SIZE_FOR_CLOSURE = 6


class DoseResponseTable:
    """Futility, efficacy and toxicity counts for each dose under study.

    Doses are held in ascending order and addressed internally by rank
    (0 for the lowest dose). Availability only ever changes from True to
    False.

    Examples:
        >>> dose_info = DoseResponseTable([80, 60, 100])
        >>> list(dose_info.dose_levels)
        [60, 80, 100]
        >>> dose_info.index_of(80)
        1
    """

    def __init__(self, doses):
        """Initializes an empty table.

        Args:
            doses: The dose levels. They are sorted ascending.

        Raises:
            ConfigurationError: If `doses` is empty or has duplicates.
        """
        doses = np.sort(np.asarray(doses).ravel())
        if len(doses) == 0:
            raise ConfigurationError("No doses given.")
        if len(np.unique(doses)) != len(doses):
            raise ConfigurationError("Dose levels must be unique.")

        self._dose_levels = doses
        self._dose_levels.setflags(write=False)
        num_doses = len(doses)
        self.available = np.ones(num_doses, dtype=bool)
        self.futility_counts = np.zeros(num_doses, dtype=int)
        self.efficacy_counts = np.zeros(num_doses, dtype=int)
        self.toxicity_counts = np.zeros(num_doses, dtype=int)

    @property
    def dose_levels(self):
        return self._dose_levels

    @property
    def n(self):
        """Number of patients treated at each dose."""
        return self.futility_counts + self.efficacy_counts + self.toxicity_counts

    def _rate(self, counts):
        n = self.n
        return np.where(n > 0, counts / np.maximum(n, 1), 0.0)

    @property
    def p_futility(self):
        return self._rate(self.futility_counts)

    @property
    def p_efficacy(self):
        return self._rate(self.efficacy_counts)

    @property
    def p_toxicity(self):
        return self._rate(self.toxicity_counts)

    def __len__(self):
        return len(self._dose_levels)

    def index_of(self, dose):
        """Gets the rank of a dose value.

        Raises:
            InvalidDoseError: If `dose` is not one of the dose levels.
        """
        matches = np.flatnonzero(self._dose_levels == dose)
        if len(matches) == 0:
            raise InvalidDoseError(
                f"Invalid dose value {dose}. Please enter the dose value and not the index."
            )
        return int(matches[0])

    def closest_lower_available(self, dose_index):
        """Rank of the nearest available dose below `dose_index`, or -inf."""
        lower = np.flatnonzero(self.available[:dose_index])
        return int(lower[-1]) if len(lower) else -np.inf

    def closest_higher_available(self, dose_index):
        """Rank of the nearest available dose above `dose_index`, or inf."""
        higher = np.flatnonzero(self.available[dose_index + 1 :])
        return dose_index + 1 + int(higher[0]) if len(higher) else np.inf

    def close_from(self, dose_index, upwards):
        """Makes a dose and every dose beyond it in one direction unavailable.

        Args:
            dose_index: The rank of the dose that triggered the closure.
            upwards: If True, close the dose and all higher doses; otherwise
                close the dose and all lower doses.
        """
        if upwards:
            self.available[dose_index:] = False
        else:
            self.available[: dose_index + 1] = False

    def copy(self):
        other = DoseResponseTable(self._dose_levels)
        other.available = self.available.copy()
        other.futility_counts = self.futility_counts.copy()
        other.efficacy_counts = self.efficacy_counts.copy()
        other.toxicity_counts = self.toxicity_counts.copy()
        return other

    def tabulate(self):
        """Creates a summary table of the dose-response information.

        Returns:
            A pandas DataFrame with one row per dose.
        """
        import pandas as pd

        tab_data = OrderedDict()
        tab_data["Dose"] = self._dose_levels
        tab_data["Available"] = self.available
        tab_data["N"] = self.n
        tab_data["Futility"] = self.futility_counts
        tab_data["Efficacy"] = self.efficacy_counts
        tab_data["Toxicity"] = self.toxicity_counts
        tab_data["PFutility"] = self.p_futility
        tab_data["PEfficacy"] = self.p_efficacy
        tab_data["PToxicity"] = self.p_toxicity
        return pd.DataFrame(tab_data)


def setup_doses(doses):
    """Sets up an empty dose-response table.

    Args:
        doses: The dose levels, in any order.

    Returns:
        A `DoseResponseTable` with every dose available and no patients.
    """
    return DoseResponseTable(doses)


def _check_counts(futility_count, efficacy_count, toxicity_count):
    if futility_count < 0 or efficacy_count < 0 or toxicity_count < 0:
        raise ValueError("Invalid negative count entered.")


def update_table(dose, dose_info, futility_count, efficacy_count, toxicity_count):
    """Adds the outcomes of a new cohort to the counts of a dose.

    Args:
        dose: The dose value (not its index).
        dose_info: A `DoseResponseTable`.
        futility_count: Number of additional patients with futility.
        efficacy_count: Number of additional patients with efficacy.
        toxicity_count: Number of additional patients with toxicity.

    Returns:
        The updated `dose_info`.

    Raises:
        InvalidDoseError: If `dose` is not in `dose_info`.
    """
    dose_index = dose_info.index_of(dose)
    _check_counts(futility_count, efficacy_count, toxicity_count)
    dose_info.futility_counts[dose_index] += futility_count
    dose_info.efficacy_counts[dose_index] += efficacy_count
    dose_info.toxicity_counts[dose_index] += toxicity_count
    return dose_info


def change_dose_info(dose, dose_info, futility_count, efficacy_count, toxicity_count):
    """Replaces the counts of a dose.

    Useful for fixing entry mistakes, and for building the single-dose
    records that decision tables are made from.

    Args:
        dose: The dose value (not its index).
        dose_info: A `DoseResponseTable`.
        futility_count: New number of patients with futility.
        efficacy_count: New number of patients with efficacy.
        toxicity_count: New number of patients with toxicity.

    Returns:
        The updated `dose_info`.

    Raises:
        InvalidDoseError: If `dose` is not in `dose_info`.
        DivisionByZeroError: If all three counts are zero.
    """
    dose_index = dose_info.index_of(dose)
    _check_counts(futility_count, efficacy_count, toxicity_count)
    if futility_count + efficacy_count + toxicity_count == 0:
        raise DivisionByZeroError("Cannot calculate probabilities -- dividing by 0.")

    dose_info.futility_counts[dose_index] = futility_count
    dose_info.efficacy_counts[dose_index] = efficacy_count
    dose_info.toxicity_counts[dose_index] = toxicity_count
    return dose_info


def check_safety_rule(dose, dose_info, zeta):
    """Does the observed toxicity rate at `dose` exceed `zeta`?"""
    dose_index = dose_info.index_of(dose)
    return bool(dose_info.p_toxicity[dose_index] > zeta)


def check_futility_rule(dose, dose_info, eta):
    """Does the observed futility rate at `dose` exceed `eta`?"""
    dose_index = dose_info.index_of(dose)
    return bool(dose_info.p_futility[dose_index] > eta)


def adjust_for_safety_rule(dose, dose_info, min_size=MIN_SIZE_FOR_CLOSURE):
    """Closes a dose that invoked the safety rule, and all higher doses.

    Nothing is closed while the dose has fewer than `min_size` patients, so
    that it can be explored further first.

    Returns:
        The updated `dose_info`.
    """
    dose_index = dose_info.index_of(dose)
    if dose_info.n[dose_index] >= min_size:
        logger.debug("Safety rule closes dose %s and above", dose)
        dose_info.close_from(dose_index, upwards=True)
    return dose_info


def adjust_for_futility_rule(dose, dose_info, min_size=MIN_SIZE_FOR_CLOSURE):
    """Closes a dose that invoked the futility rule, and all lower doses.

    Nothing is closed while the dose has fewer than `min_size` patients, so
    that it can be explored further first.

    Returns:
        The updated `dose_info`.
    """
    dose_index = dose_info.index_of(dose)
    if dose_info.n[dose_index] >= min_size:
        logger.debug("Futility rule closes dose %s and below", dose)
        dose_info.close_from(dose_index, upwards=False)
    return dose_info


def check_stopping_rules(
    dose,
    dose_info,
    sample_size,
    max_size,
    decision=None,
    closest_lower_dose=None,
    closest_higher_dose=None,
):
    """Checks whether the trial must stop.

    The trial stops when any of the following hold:

    * `sample_size` exceeds `max_size`;
    * no dose is available;
    * the decision is DU and there is no lower dose available;
    * the decision is EU and there is no higher dose available.

    Args:
        dose: The current dose value.
        dose_info: A `DoseResponseTable`.
        sample_size: The sample size to check, across all doses.
        max_size: The maximum sample size of the trial.
        decision: The latest decision, one of `DECISIONS`, or None.
        closest_lower_dose: Rank of the closest available lower dose, -inf
            if there is none, or None if not computed.
        closest_higher_dose: Rank of the closest available higher dose, inf
            if there is none, or None if not computed.

    Returns:
        True if the trial must stop.
    """
    if decision is not None and decision not in DECISIONS:
        raise ValueError(f"Invalid decision {decision!r}.")
    dose_info.index_of(dose)

    cannot_deescalate = (
        decision == DU
        and closest_lower_dose is not None
        and closest_lower_dose == -np.inf
    )
    cannot_escalate = (
        decision == EU
        and closest_higher_dose is not None
        and closest_higher_dose == np.inf
    )
    return bool(
        sample_size > max_size
        or not dose_info.available.any()
        or cannot_deescalate
        or cannot_escalate
    )
