import jax.numpy as jnp
import numpy as np
import pytest

from aberthjax.exceptions import (
    DegenerateInputError,
    NotConvergedError,
    NumericalFailureError,
    RootFindingError,
)
from aberthjax.poly_solver import NOT_CONVERGED, NUMERICAL_FAILURE, aberth_ehrlich, solve


@pytest.mark.parametrize(
    "coeffs",
    [
        [0.0, 0.0, 0.0],
        [5.0],
        5.0,
        [0.0],
        [],
        [1.0, 2.0, 0.0],
        [1.0, np.nan],
        [np.inf, 1.0],
    ],
)
def test_degenerate_input(coeffs):
    with pytest.raises(DegenerateInputError):
        solve(coeffs)


def test_degenerate_input_is_value_error():
    with pytest.raises(ValueError):
        solve([0.0, 0.0, 0.0])


def test_bad_parameters():
    with pytest.raises(ValueError):
        solve([[1.0, 1.0], [1.0, 1.0]])
    with pytest.raises(ValueError):
        solve([1.0, 0.0, 1.0], tol=0.0)
    with pytest.raises(ValueError):
        solve([1.0, 0.0, 1.0], max_iter=0)
    with pytest.raises(ValueError):
        solve([1.0, 0.0, 1.0], max_iter=2**40)
    with pytest.raises(ValueError):
        solve([1.0, 0.0, 1.0], initial_roots=[1.0j])


def test_coincident_estimates():
    start = [0.5 + 0.5j, 0.5 + 0.5j]
    with pytest.raises(NumericalFailureError) as excinfo:
        solve([1.0, 0.0, 1.0], initial_roots=start)
    err = excinfo.value
    assert isinstance(err, RootFindingError)
    assert err.iteration == 1
    roots = np.asarray(err.roots)
    assert np.all(np.isfinite(roots))
    np.testing.assert_array_equal(roots, np.asarray(start))


def test_zero_derivative_at_estimate():
    # p'(x) = 2x vanishes at the first estimate
    with pytest.raises(NumericalFailureError):
        solve([1.0, 0.0, 1.0], initial_roots=[0.0, 2.0 + 1.0j])


def test_failed_round_is_not_applied():
    start = jnp.array([1.0 + 1.0j, 1.0 + 1.0j, -2.0j])
    state = aberth_ehrlich(jnp.array([-6.0, 11.0, -6.0, 1.0]), start, tol=1e-6, max_iter=50)
    assert int(state.status) == NUMERICAL_FAILURE
    assert int(state.iteration) == 1
    assert np.isinf(float(state.max_correction))
    np.testing.assert_array_equal(np.asarray(state.roots), np.asarray(start))


def test_iteration_cap():
    with pytest.raises(NotConvergedError) as excinfo:
        solve([-6.0, 11.0, -6.0, 1.0], max_iter=1)
    err = excinfo.value
    assert err.iteration == 1
    assert err.max_correction > 1e-6
    assert np.asarray(err.roots).shape == (3,)
    assert np.all(np.isfinite(np.asarray(err.roots)))


def test_iteration_cap_status():
    coeffs = jnp.array([-6.0, 11.0, -6.0, 1.0], dtype=complex)
    state = aberth_ehrlich(coeffs, jnp.array([5.0j, -5.0j, 7.0]), tol=1e-6, max_iter=2)
    assert int(state.status) == NOT_CONVERGED
    assert int(state.iteration) == 2
