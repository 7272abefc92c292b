"""
Core algorithms (backend-agnostic).

Transition, merge and finalize steps for the aggregates, plus the
Student-t distribution function.
"""

from . import cg, irls, linear
from .families import Family, Binomial
from .student import student_t_cdf, normal_cdf

__all__ = [
    "cg",
    "irls",
    "linear",
    "Family",
    "Binomial",
    "student_t_cdf",
    "normal_cdf",
]
