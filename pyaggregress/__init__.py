"""
pyaggregress: mergeable aggregates for fitting generalized linear models.

Logistic regression (conjugate gradient and IRLS) and linear regression
as transition / merge / finalize steps over row batches, plus the
Student-t distribution function used for significance tests.
"""

__version__ = "1.0.0"

# Main user-facing API
from .lm import lm, LinearModel
from .glm import logregr, LogisticRegression, LogisticRegressionResult

# Aggregate steps (for custom drivers)
from ._core import cg, irls, linear
from ._core.student import student_t_cdf, normal_cdf

from .exceptions import StudentTDomainError, StateMismatchError, SingularFitError

# Backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'lm',
    'LinearModel',
    'logregr',
    'LogisticRegression',
    'LogisticRegressionResult',
    'cg',
    'irls',
    'linear',
    'student_t_cdf',
    'normal_cdf',
    'StudentTDomainError',
    'StateMismatchError',
    'SingularFitError',
    'get_backend',
    'list_available_backends',
]
