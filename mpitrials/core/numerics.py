"""
Numerical integration routines for the interval-partition models.
"""

import numpy as np
from scipy.integrate import quad


def integrate_rectangle(
    func,
    x_lo,
    x_hi,
    y_lo,
    y_hi,
    *,
    epsabs=0.0,
    epsrel=1e-8,
    limit=50,
):
    """Integrate a function of two variables over a rectangle.

    The double integral is evaluated as nested 1D adaptive quadrature: the
    outer integral runs over `x` in [`x_lo`, `x_hi`] and each evaluation of
    its integrand is an inner integral over `y` in [`y_lo`, `y_hi`].

    Args:
        func (callable): Integrand ``func(x, y)`` taking two floats.
        x_lo (float): Lower bound of the outer variable.
        x_hi (float): Upper bound of the outer variable.
        y_lo (float): Lower bound of the inner variable.
        y_hi (float): Upper bound of the inner variable.
        epsabs (float, optional): Absolute error tolerance passed to
            `scipy.integrate.quad`. Defaults to 0.
        epsrel (float, optional): Relative error tolerance passed to
            `scipy.integrate.quad`. Defaults to 1e-8.
        limit (int, optional): Maximum number of subintervals used by each
            quadrature. Defaults to 50.

    Returns:
        float: The value of the double integral.

    Examples:
        >>> round(integrate_rectangle(lambda x, y: x * y, 0, 1, 0, 2), 10)
        1.0
    """

    def inner(x):
        return quad(
            lambda y: func(x, y),
            y_lo,
            y_hi,
            epsabs=epsabs,
            epsrel=epsrel,
            limit=limit,
        )[0]

    return quad(inner, x_lo, x_hi, epsabs=epsabs, epsrel=epsrel, limit=limit)[0]


def integrate_rectangles_gauss(func, x_bounds, y_bounds, n_points):
    """Integrate a vectorised function over many rectangles at once.

    A tensor-product Gauss-Legendre rule with `n_points` nodes per axis is
    applied to every rectangle. The rule is exact for polynomials of degree
    up to ``2 * n_points - 1`` in each variable.

    Args:
        func (callable): Integrand ``func(x, y)`` accepting broadcastable
            numpy arrays.
        x_bounds (numpy.ndarray): An ``R x 2`` array of (low, high) bounds
            of the first variable, one row per rectangle.
        y_bounds (numpy.ndarray): An ``R x 2`` array of (low, high) bounds
            of the second variable, one row per rectangle.
        n_points (int): Number of quadrature nodes per axis.

    Returns:
        numpy.ndarray: The ``R`` integrals.
    """
    x_bounds = np.atleast_2d(np.asarray(x_bounds, dtype=float))
    y_bounds = np.atleast_2d(np.asarray(y_bounds, dtype=float))
    if len(x_bounds) == 0:
        return np.zeros(0)

    nodes, weights = np.polynomial.legendre.leggauss(n_points)
    x_half = 0.5 * (x_bounds[:, 1] - x_bounds[:, 0])
    x_mid = 0.5 * (x_bounds[:, 1] + x_bounds[:, 0])
    y_half = 0.5 * (y_bounds[:, 1] - y_bounds[:, 0])
    y_mid = 0.5 * (y_bounds[:, 1] + y_bounds[:, 0])

    xs = x_half[:, None] * nodes[None, :] + x_mid[:, None]
    ys = y_half[:, None] * nodes[None, :] + y_mid[:, None]
    vals = func(xs[:, :, None], ys[:, None, :])
    return x_half * y_half * np.einsum("i,j,rij->r", weights, weights, vals)
