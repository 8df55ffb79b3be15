"""Retry :func:`~aberthjax.poly_solver.solve` from perturbed starting points."""

import logging

import jax
import jax.numpy as jnp

from .exceptions import NumericalFailureError
from .poly_solver import DEFAULT_MAX_ITER, DEFAULT_TOL, _as_complex, initial_guesses, solve

logger = logging.getLogger(__name__)


def solve_with_restarts(coeffs, key, n_restarts=3, scale=1e-3, tol=DEFAULT_TOL,
                        max_iter=DEFAULT_MAX_ITER, initial_roots=None):
    """
    Call :func:`solve`; after a :class:`NumericalFailureError` retry up to ``n_restarts``
    times from the starting points plus complex Gaussian noise.

    The noise has standard deviation ``scale`` times the largest starting modulus
    (``scale`` itself if all starting points are zero). Each retry draws fresh noise
    from ``key``. Other errors propagate immediately; the last
    :class:`NumericalFailureError` is re-raised when the retries run out.

    Args:
        coeffs (array_like): coefficients in ascending power.
        key (jax.random.PRNGKey): random key for the perturbations.
        n_restarts (int): number of perturbed retries after the first attempt.
        scale (float): relative size of the perturbation.
        tol, max_iter, initial_roots: passed to :func:`solve`.
    """
    try:
        return solve(coeffs, tol=tol, max_iter=max_iter, initial_roots=initial_roots)
    except NumericalFailureError as err:
        failure = err

    coeffs = _as_complex(coeffs)
    if initial_roots is None:
        start = initial_guesses(coeffs)
    else:
        start = jnp.asarray(initial_roots).astype(coeffs.dtype)
    size = jnp.max(jnp.abs(start))
    sigma = scale * jnp.where(size == 0, 1.0, size)

    for attempt in range(1, n_restarts + 1):
        logger.info("restart %d/%d after: %s", attempt, n_restarts, failure)
        key, subkey = jax.random.split(key)
        noise = jax.random.normal(subkey, start.shape, dtype=start.dtype)
        try:
            return solve(coeffs, tol=tol, max_iter=max_iter, initial_roots=start + sigma * noise)
        except NumericalFailureError as err:
            failure = err

    raise failure
