import logging
from functools import partial
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax, jit, vmap
from jax import custom_jvp

from .exceptions import DegenerateInputError, NumericalFailureError, NotConvergedError

logger = logging.getLogger(__name__)

DEFAULT_TOL = 1e-6
DEFAULT_MAX_ITER = 500

# loop status codes
ITERATING = 0
CONVERGED = 1
NUMERICAL_FAILURE = 2
NOT_CONVERGED = 3


class EAState(NamedTuple):
    roots: jnp.ndarray
    max_correction: jnp.ndarray
    iteration: jnp.ndarray
    status: jnp.ndarray


def _as_complex(x):
    x = jnp.asarray(x)
    if jnp.issubdtype(x.dtype, jnp.complexfloating):
        return x
    if jnp.issubdtype(x.dtype, jnp.floating):
        return x.astype(jnp.promote_types(x.dtype, jnp.complex64))
    return x.astype(jax.dtypes.canonicalize_dtype(jnp.complex128))


def polyval(coeffs, x):
    """
    Evaluate a polynomial with Horner's method.

    Args:
        coeffs (array_like): coefficients in ascending power, ``coeffs[i]`` multiplies x**i.
        x (complex or array_like): evaluation point(s), evaluated elementwise.

    Returns:
        p(x) with the shape of ``x``. A constant polynomial ``[c]`` returns ``c`` exactly.
    """
    coeffs = jnp.asarray(coeffs)
    x = jnp.asarray(x)
    acc = jnp.broadcast_to(coeffs[-1], x.shape).astype(jnp.result_type(coeffs, x))

    def horner(acc, c):
        return acc * x + c, None

    acc, _ = lax.scan(horner, acc, coeffs[:-1][::-1])
    return acc


def polyder(coeffs):
    """Coefficients [c1, 2*c2, ..., n*cn] of the first derivative (ascending power)."""
    coeffs = jnp.asarray(coeffs)
    n = coeffs.shape[-1] - 1
    if n == 0:
        return jnp.zeros_like(coeffs)
    return coeffs[..., 1:] * jnp.arange(1, n + 1)


def initial_guesses(coeffs):
    """
    Starting points for the Ehrlich-Aberth iteration, evenly spaced on a circle.

    The radius is |c_m / c_n|**(1/n) with c_m the lowest-order non-zero coefficient,
    i.e. the geometric mean modulus of the roots when c_0 != 0. The phase offset
    pi/(2n) keeps every point off the real axis, so real polynomials with complex
    roots do not get stuck on the real line.

    Raises DegenerateInputError for degree 0 and, when ``coeffs`` is concrete, for an
    all-zero polynomial or a vanishing leading coefficient. Traced input (under
    ``jit``/``vmap``) is only checked for its degree.
    """
    coeffs = _as_complex(coeffs)
    n = coeffs.shape[-1] - 1
    if n < 1:
        raise DegenerateInputError("a polynomial of degree 0 has no roots to seed")
    if not isinstance(coeffs, jax.core.Tracer):
        _check_nonzero(np.asarray(coeffs))
    first = jnp.argmax(jnp.abs(coeffs) != 0)
    radius = jnp.abs(coeffs[first] / coeffs[-1]) ** (1.0 / n)
    theta = 2.0 * jnp.pi * jnp.arange(n) / n + 0.5 * jnp.pi / n
    return (radius * jnp.exp(1j * theta)).astype(coeffs.dtype)


def EA_step(roots, coeffs, dcoeffs):
    """
    Perform one round of the Ehrlich-Aberth iteration.

    Every correction is computed from the same snapshot ``roots``; the new estimates
    are returned together. Divisions by zero are replaced by a placeholder and flagged
    in ``singular`` instead of producing inf/nan.

    Returns:
        new_roots, corrections, singular (bool per root)
    """
    poly_vals = polyval(coeffs, roots)
    dpoly_vals = polyval(dcoeffs, roots)

    root_diffs = roots[:, None] - roots
    off_diag = ~jnp.eye(roots.shape[-1], dtype=bool)
    valid = off_diag & (root_diffs != 0)
    inv_root_diffs = jnp.where(valid, 1.0 / jnp.where(valid, root_diffs, 1.0), 0.0)
    sum_inv_diffs = jnp.sum(inv_root_diffs, axis=1)
    coincident = jnp.any(off_diag & ~valid, axis=1)

    zero_deriv = dpoly_vals == 0
    newton = poly_vals / jnp.where(zero_deriv, 1.0, dpoly_vals)
    denom = 1.0 - newton * sum_inv_diffs
    corrections = newton / jnp.where(denom == 0, 1.0, denom)

    singular = zero_deriv | coincident | (denom == 0) | ~jnp.isfinite(corrections)
    return roots - corrections, corrections, singular


@partial(jit, static_argnames=("tol", "max_iter"))
def aberth_ehrlich(coeffs, initial_roots, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER):
    """
    Run Ehrlich-Aberth rounds until every correction is within ``tol``, a round
    hits a division by zero, or ``max_iter`` rounds have been done.

    Safe to ``vmap``. Never raises on iteration failures: the outcome is the
    ``status`` field of the returned :class:`EAState`. A failed round is not
    applied, so ``roots`` then holds the estimates it started from.
    """
    coeffs = _as_complex(coeffs)
    roots = jnp.asarray(initial_roots).astype(coeffs.dtype)
    dcoeffs = polyder(coeffs)

    def cond_fun(state):
        return state.status == ITERATING

    def body_fun(state):
        new_roots, corrections, singular = EA_step(state.roots, coeffs, dcoeffs)
        failed = jnp.any(singular)
        max_correction = jnp.where(failed, jnp.inf, jnp.max(jnp.abs(corrections)))
        iteration = state.iteration + 1
        status = jnp.where(
            failed,
            NUMERICAL_FAILURE,
            jnp.where(
                max_correction <= tol,
                CONVERGED,
                jnp.where(iteration >= max_iter, NOT_CONVERGED, ITERATING),
            ),
        )
        return EAState(
            jnp.where(failed, state.roots, new_roots),
            max_correction,
            iteration,
            status.astype(jnp.int32),
        )

    init = EAState(
        roots,
        jnp.array(jnp.inf, dtype=roots.real.dtype),
        jnp.array(0, dtype=jnp.int32),
        jnp.array(ITERATING, dtype=jnp.int32),
    )
    return lax.while_loop(cond_fun, body_fun, init)


@partial(custom_jvp, nondiff_argnums=(2, 3))
def poly_roots_EA(coeffs, initial_roots, tol, max_iter):
    """
    Ehrlich-Aberth roots of a single polynomial (ascending coefficients), differentiable
    with respect to ``coeffs`` through the implicit function theorem.
    """
    return aberth_ehrlich(coeffs, initial_roots, tol=tol, max_iter=max_iter).roots


@poly_roots_EA.defjvp
def poly_roots_EA_jvp(tol, max_iter, primals, tangents):
    coeffs, initial_roots = primals
    dcoeffs, _ = tangents
    roots = poly_roots_EA(coeffs, initial_roots, tol, max_iter)
    # p(z(c); c) = 0  =>  dz = -(sum_i z**i dc_i) / p'(z)
    df_dz = polyval(polyder(coeffs), roots)
    ncoeffs = coeffs.shape[-1]
    powers = jnp.concatenate(
        [jnp.ones_like(roots)[:, None], jnp.broadcast_to(roots[:, None], (roots.shape[0], ncoeffs - 1))],
        axis=1,
    )
    df_da = jnp.cumprod(powers, axis=1)  # df_da[k, i] = roots[k]**i
    dz = -jnp.dot(df_da, dcoeffs) / df_dz
    return roots, dz


def poly_roots_EA_multi(coeffs_matrix, initial_roots_matrix=None, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER):
    """
    Process multiple sets of coefficients (one polynomial per row) with optional initial roots.
    """
    if initial_roots_matrix is None:
        initial_roots_matrix = vmap(initial_guesses)(coeffs_matrix)
    solver = vmap(lambda c, r: poly_roots_EA(c, r, tol, max_iter))
    return solver(coeffs_matrix, initial_roots_matrix)


@partial(jit, static_argnames=("custom_init", "tol", "max_iter"))
def poly_roots(coeffs, custom_init=False, roots_init=None, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER):
    """
    Roots of a stack of polynomials, shape ``(..., n + 1)`` in ascending power.

    Batched, jit-compiled and differentiable. Iteration failures are not reported
    here (the last estimates are returned); use :func:`solve` for checked results.
    Coefficients are traced here, so an all-zero row or a vanishing leading
    coefficient is not detected and yields NaN roots for that row.

    Args:
        coeffs (array_like): coefficients, last axis ascending power.
        custom_init (bool): use ``roots_init`` instead of the circle initialisation.
        roots_init (array_like): starting points, shape ``(..., n)``.
        tol (float): convergence tolerance on the largest correction.
        max_iter (int): iteration cap.

    Returns:
        roots, shape ``coeffs.shape[:-1] + (n,)``.
    """
    coeffs = _as_complex(coeffs)
    ncoeffs = coeffs.shape[-1]
    output_shape = coeffs.shape[:-1] + (ncoeffs - 1,)
    coeffs_flat = coeffs.reshape((-1, ncoeffs))

    if custom_init:
        roots_init = jnp.asarray(roots_init).astype(coeffs.dtype)
        roots_init = roots_init.reshape((coeffs_flat.shape[0], ncoeffs - 1))
        roots = poly_roots_EA_multi(coeffs_flat, roots_init, tol=tol, max_iter=max_iter)
    else:
        roots = poly_roots_EA_multi(coeffs_flat, tol=tol, max_iter=max_iter)

    return roots.reshape(output_shape)


def _check_coeffs(coeffs):
    if coeffs.ndim == 0:
        raise DegenerateInputError("polynomial must have degree >= 1")
    if coeffs.ndim != 1:
        raise ValueError(f"coeffs must be one-dimensional, got shape {coeffs.shape}")
    c = np.asarray(coeffs)
    if c.size < 2:
        raise DegenerateInputError("polynomial must have degree >= 1")
    if not np.all(np.isfinite(c)):
        raise DegenerateInputError("coefficients must be finite")
    _check_nonzero(c)


def _check_nonzero(c):
    if not np.any(c != 0):
        raise DegenerateInputError("all coefficients are zero")
    if c[-1] == 0:
        raise DegenerateInputError(
            "leading coefficient (highest power) is zero; strip it to lower the degree"
        )


def solve(coeffs, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER, initial_roots=None):
    """
    Find all roots of a polynomial with the Ehrlich-Aberth method.

    Args:
        coeffs (array_like): coefficients in ascending power (``coeffs[0]`` is the
            constant term). Real input is promoted to complex.
        tol (float): the iteration stops once every root's correction is <= tol.
        max_iter (int): maximum number of rounds.
        initial_roots (array_like, optional): starting estimates, one per root.
            Defaults to :func:`initial_guesses`.

    Returns:
        jax array of ``len(coeffs) - 1`` complex roots.

    Raises:
        DegenerateInputError: degree < 1, all-zero, non-finite or vanishing leading coefficient.
        NumericalFailureError: zero derivative at an estimate or coincident estimates.
        NotConvergedError: ``max_iter`` rounds without convergence.
    """
    coeffs = _as_complex(coeffs)
    _check_coeffs(coeffs)
    if not tol > 0:
        raise ValueError(f"tol must be positive, got {tol}")
    if int(max_iter) != max_iter or max_iter < 1:
        raise ValueError(f"max_iter must be a positive integer, got {max_iter}")
    if max_iter > np.iinfo(np.int32).max:
        raise ValueError(f"max_iter must not exceed {np.iinfo(np.int32).max}, got {max_iter}")

    degree = coeffs.shape[-1] - 1
    if initial_roots is None:
        start = initial_guesses(coeffs)
    else:
        start = jnp.asarray(initial_roots).astype(coeffs.dtype)
        if start.shape != (degree,):
            raise ValueError(f"initial_roots must have shape ({degree},), got {start.shape}")

    state = aberth_ehrlich(coeffs, start, tol=float(tol), max_iter=int(max_iter))
    status = int(state.status)
    iteration = int(state.iteration)
    max_correction = float(state.max_correction)

    if status == NUMERICAL_FAILURE:
        logger.debug("degree %d: division by zero in round %d", degree, iteration)
        raise NumericalFailureError(
            f"division by zero in round {iteration}: zero derivative or coincident estimates",
            roots=state.roots,
            iteration=iteration,
        )
    if status == NOT_CONVERGED:
        logger.debug("degree %d: no convergence after %d rounds (max correction %.3e)",
                     degree, iteration, max_correction)
        raise NotConvergedError(
            f"not converged after {iteration} rounds: max correction {max_correction:.3e} > tol {tol:.3e}",
            roots=state.roots,
            iteration=iteration,
            max_correction=max_correction,
        )

    logger.debug("degree %d: converged in %d rounds (max correction %.3e)",
                 degree, iteration, max_correction)
    return state.roots
