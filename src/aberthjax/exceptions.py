"""Exception classes for polynomial root finding."""

__all__ = [
    "RootFindingError",
    "DegenerateInputError",
    "NumericalFailureError",
    "NotConvergedError",
]


class RootFindingError(Exception):
    """Base exception for root finding errors."""

    pass


class DegenerateInputError(RootFindingError, ValueError):
    """Raised when the polynomial has no roots to find (degree < 1, all-zero
    or non-finite coefficients, vanishing leading coefficient)."""

    pass


class NumericalFailureError(RootFindingError):
    """
    Raised when an Aberth-Ehrlich round divides by zero: the derivative
    vanishes at an estimate, two estimates coincide, or a correction is not finite.

    Attributes:
        roots: estimates at the start of the failing round.
        iteration: index (1-based) of the failing round.
    """

    def __init__(self, message, roots=None, iteration=None):
        super().__init__(message)
        self.roots = roots
        self.iteration = iteration


class NotConvergedError(RootFindingError):
    """
    Raised when the iteration cap is reached before every correction is
    within tolerance.

    Attributes:
        roots: best available estimates after the last round.
        iteration: number of rounds performed.
        max_correction: largest correction magnitude of the last round.
    """

    def __init__(self, message, roots=None, iteration=None, max_correction=None):
        super().__init__(message)
        self.roots = roots
        self.iteration = iteration
        self.max_correction = max_correction
