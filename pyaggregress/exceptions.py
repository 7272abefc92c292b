"""
Exception types raised by pyaggregress.
"""

import numpy as np


class StudentTDomainError(ValueError):
    """Student-t distribution requested with degrees of freedom <= 0."""


class StateMismatchError(RuntimeError):
    """
    Transition states that cannot belong to the same fit.

    Raised when merging or decoding states whose coefficient width or
    buffer size disagree. This always indicates a driver bug.
    """


class SingularFitError(np.linalg.LinAlgError):
    """Pseudo-inverse of a cross-product matrix failed or was not finite."""


__all__ = ["StudentTDomainError", "StateMismatchError", "SingularFitError"]
