""" Monte-Carlo utility of a dose, used to rank doses at the end of a trial. """

import logging

import numpy as np

from mpitrials.core.math import ploss
from mpitrials.errors import ConfigurationError

logger = logging.getLogger(__name__)

MIN_NUM_SAMPLES = 1000


def estimate_utility(
    futility_count,
    efficacy_count,
    toxicity_count,
    num_samples=10**4,
    futility_target=0.2,
    futility_tolerance=0.05,
    toxicity_target=0.2,
    toxicity_tolerance=0.05,
    rng=None,
):
    """Estimates the expected utility of a dose from its outcome counts.

    Outcome probabilities are drawn from their posterior,
    ``Dirichlet(futility_count + 1, efficacy_count + 1, toxicity_count + 1)``
    under a flat prior, and the utility is

    .. math::
        1 - E[ploss(p_F)] - E[ploss(p_T)]

    where `ploss` is the piecewise-linear loss around each target.

    Args:
        futility_count: Number of patients with futility at the dose.
        efficacy_count: Number of patients with efficacy at the dose.
        toxicity_count: Number of patients with toxicity at the dose.
        num_samples: Number of Monte-Carlo samples; at least 1000.
        futility_target: Target tolerable futility probability.
        futility_tolerance: Half-width of the futility equivalence interval.
        toxicity_target: Target tolerable toxicity probability.
        toxicity_tolerance: Half-width of the toxicity equivalence interval.
        rng: A `numpy.random.Generator`. A fresh unseeded one is used if
            None.

    Returns:
        The utility estimate, a float in [-1, 1].

    Raises:
        ConfigurationError: If `num_samples` is below 1000 or a count is
            negative.

    Examples:
        >>> import numpy as np
        >>> u = estimate_utility(0, 6, 0, rng=np.random.default_rng(1))
        >>> u > 0.5
        True
    """
    if num_samples < MIN_NUM_SAMPLES:
        raise ConfigurationError(
            "num_samples too small, estimates may be unstable. Use at least 1000."
        )
    if futility_count < 0 or efficacy_count < 0 or toxicity_count < 0:
        raise ConfigurationError("Outcome counts cannot be negative.")
    if rng is None:
        rng = np.random.default_rng()

    alpha = [futility_count + 1, efficacy_count + 1, toxicity_count + 1]
    samples = rng.dirichlet(alpha, size=int(num_samples))
    futility_loss = ploss(samples[:, 0], futility_target, futility_tolerance)
    toxicity_loss = ploss(samples[:, 2], toxicity_target, toxicity_tolerance)
    return float(1 - np.mean(futility_loss) - np.mean(toxicity_loss))
