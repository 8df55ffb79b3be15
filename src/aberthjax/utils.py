__all__ = [
    "match_points",
    "residuals",
]

import jax.numpy as jnp
from jax import jit, lax

from .poly_solver import polyval


@jit
def match_points(a, b):
    """
    Permutation of ``b`` that pairs each point of ``a`` with its nearest point of ``b``.

    Points of ``a`` are visited in order and each one takes the closest point of ``b``
    not already taken, so ``b[idcs]`` is a one-to-one matching with ``a``.
    """
    def pick(taken, ak):
        distances = jnp.where(taken, jnp.inf, jnp.abs(ak - b))
        idx = jnp.argmin(distances)
        return taken.at[idx].set(True), idx

    _, idcs = lax.scan(pick, jnp.zeros(b.shape[-1], dtype=bool), a)
    return idcs


def residuals(coeffs, roots):
    """
    Scaled residual |p(z)| / sum_i |c_i| |z|**i at each root estimate.

    The denominator bounds the size of the terms that cancel in p(z), so the
    result measures backward error and stays meaningful for large roots.
    """
    coeffs = jnp.asarray(coeffs)
    roots = jnp.asarray(roots)
    scale = polyval(jnp.abs(coeffs), jnp.abs(roots))
    value = jnp.abs(polyval(coeffs, roots))
    return jnp.where(scale == 0, 0.0, value / jnp.where(scale == 0, 1.0, scale))
