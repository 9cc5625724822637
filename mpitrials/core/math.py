""" Probability functions used by the MPI design. """

import numpy as np
from scipy.special import comb

from mpitrials.errors import ConfigurationError, DomainError


def ploss(value, target, tolerance):
    """Calculates the piecewise-linear loss of a futility or toxicity probability.

    The loss is 0 below ``target - tolerance``, rises linearly from 0 to 1
    across ``[target - tolerance, target + tolerance)`` and is 1 at or above
    ``target + tolerance``.

    Args:
        value: A probability, or an array of probabilities.
        target: The target probability.
        tolerance: Half-width of the equivalence interval around `target`.

    Returns:
        The loss, a float for scalar `value` and an array otherwise.

    Raises:
        ConfigurationError: If `tolerance` is not positive.

    Examples:
        >>> round(ploss(0.18, target=0.2, tolerance=0.05), 10)
        0.3
        >>> ploss(0.3, target=0.2, tolerance=0.05)
        1.0
    """
    if tolerance <= 0:
        raise ConfigurationError("tolerance must be positive.")

    value = np.asarray(value, dtype=float)
    lower = target - tolerance
    upper = target + tolerance
    slope = 1 / (2 * tolerance)
    loss = np.where(
        value >= upper,
        1.0,
        np.where(value >= lower, (value - lower) * slope, 0.0),
    )
    if loss.ndim == 0:
        return float(loss)
    return loss


def binomial_pmf(k, n, p):
    """Calculates the binomial probability mass of `k` successes in `n` trials.

    Args:
        k: The number of successes.
        n: The number of trials.
        p: The success probability, a float or an array.

    Returns:
        The probability mass, with the shape of `p`.
    """
    p = np.asarray(p, dtype=float)
    return comb(n, k) * p**k * (1 - p) ** (n - k)


def trinomial_density(pf, pt, futility_count, toxicity_count, n):
    """Calculates the trinomial probability mass of futility and toxicity counts.

    The trinomial mass of observing `futility_count` futile and
    `toxicity_count` toxic outcomes in `n` patients is factorised as

    .. math::
        Bin(t; n, p_T) \\times Bin(f; n - t, p_F / (1 - p_T))

    Args:
        pf: Futility probability, a float or an array.
        pt: Toxicity probability, a float or an array broadcastable with `pf`.
        futility_count: The number of futile outcomes.
        toxicity_count: The number of toxic outcomes.
        n: The number of patients.

    Returns:
        The probability mass at (`futility_count`, `toxicity_count`).

    Raises:
        DomainError: If `pf` or `pt` lies outside [0, 1].

    Examples:
        >>> round(float(trinomial_density(0.4, 0.1, 4, 1, 10)), 6)
        0.1008
    """
    pf = np.asarray(pf, dtype=float)
    pt = np.asarray(pt, dtype=float)
    if np.any((pf < 0) | (pt < 0) | (pf > 1) | (pt > 1)):
        raise DomainError("pf and pt need to be between 0 and 1.")

    with np.errstate(divide="ignore", invalid="ignore"):
        conditional = np.where(pt < 1, pf / (1 - pt), 0.0)
    # Points on the pf + pt = 1 edge can round just above 1
    conditional = np.clip(conditional, 0.0, 1.0)
    return binomial_pmf(toxicity_count, n, pt) * binomial_pmf(
        futility_count, n - toxicity_count, conditional
    )
