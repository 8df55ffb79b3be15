import os, sys

import numpy as np
import pytest


def _gpu_marker_selected() -> bool:
    # Detect if pytest was invoked with a GPU marker selection (e.g., `-m gpu`)
    for i, arg in enumerate(sys.argv):
        if arg == "-m" and i + 1 < len(sys.argv):
            if "gpu" in sys.argv[i + 1]:
                return True
        if arg.startswith("-m="):
            if "gpu" in arg.split("=", 1)[1]:
                return True
    return False

# Default to CPU unless GPU tests are explicitly selected via marker.
if not _gpu_marker_selected():
    os.environ.setdefault("JAX_PLATFORMS", "cpu")

from jax import config
config.update("jax_enable_x64", True)


@pytest.fixture
def poly_from_roots():
    """Ascending coefficients of leading * prod(x - r)."""
    def make(roots, leading=1.0):
        return leading * np.polynomial.polynomial.polyfromroots(np.asarray(roots, dtype=complex))
    return make


@pytest.fixture
def separated_roots():
    """Well separated roots of increasing modulus, n = 1..12."""
    def make(n):
        k = np.arange(n)
        return (1.0 + 0.15 * k) * np.exp(1j * (2.0 * np.pi * k / n + 0.3))
    return make
