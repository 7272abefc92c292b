"""
Student-t distribution function.

For ν < 200 the CDF is evaluated from the series expansions 26.7.3 and
26.7.4 of Abramowitz and Stegun (1972, p. 948), substituting
sin(θ) = t/sqrt(ν z) with z = 1 + t²/ν::

    A(t|1)  = (2/π) arctan(t/sqrt(ν))

    A(t|ν)  = (2/π) [ arctan(t/sqrt(ν))
                      + t/(sqrt(ν) z) Σ_{i=0}^{(ν-3)/2} (2·4···2i) / (3···(2i+1) zⁱ) ]
              for odd ν > 1

    A(t|ν)  = t/sqrt(ν z) Σ_{i=0}^{(ν-2)/2} (1·3···(2i-1)) / (2·4···2i zⁱ)
              for even ν

where A(t|ν) = Pr[|T| <= t]. The series is linear in ν, so larger ν use
approximations instead:

* 200 <= ν < 1,000,000: Gleason (2000), after Gaver and Kafadar (1984).
* ν >= 1,000,000: the standard normal distribution.

Both approximations satisfy rel_error < 1e-4 or abs_error < 1e-8 in
their range.
"""

import math

import numpy as np
from scipy.special import erf

from ..exceptions import StudentTDomainError


NORMAL_THRESHOLD = 1_000_000
APPROX_THRESHOLD = 200


def normal_cdf(t: float) -> float:
    """Standard normal CDF via the error function."""
    return 0.5 + 0.5 * float(erf(t / math.sqrt(2.0)))


def _student_t_cdf_approx(nu: int, t: float) -> float:
    """Normal approximation of Student-t for 200 <= ν < 1,000,000."""
    g = (nu - 1.5) / ((nu - 1) * (nu - 1))
    z = math.sqrt(math.log1p(t * t / nu) / g)
    if t < 0:
        z = -z
    return normal_cdf(z)


def _student_t_cdf_series(nu: int, t: float) -> float:
    """Exact series for 1 <= ν < 200."""
    z = 1.0 + t * t / nu
    t_by_sqrt_nu = abs(t) / math.sqrt(nu)
    prod = 1.0
    total = 1.0
    
    if nu == 1:
        A = 2.0 / math.pi * math.atan(t_by_sqrt_nu)
    elif nu % 2 == 1:
        for j in range(2, nu - 2, 2):
            prod = prod * j / ((j + 1) * z)
            total += prod
        A = 2.0 / math.pi * (math.atan(t_by_sqrt_nu) + t_by_sqrt_nu / z * total)
    else:
        for j in range(2, nu - 1, 2):
            prod = prod * (j - 1) / (j * z)
            total += prod
        A = t_by_sqrt_nu / math.sqrt(z) * total
    
    # Rounding can push A slightly outside [0, 1]
    A = min(max(A, 0.0), 1.0)
    
    if t < 0:
        return 0.5 * (1.0 - A)
    return 1.0 - 0.5 * (1.0 - A)


def student_t_cdf(nu: int, t: float) -> float:
    """
    Compute Pr[T <= t] for T Student-t distributed with ν degrees of freedom.
    
    Parameters
    ----------
    nu : int
        Degrees of freedom (>= 1)
    t : float
        Argument of the CDF
    
    Returns
    -------
    float
        Probability in [0, 1]
    
    Raises
    ------
    StudentTDomainError
        If nu <= 0
    
    Examples
    --------
    >>> round(student_t_cdf(1, 1.0), 12)
    0.75
    """
    if isinstance(nu, (float, np.floating)) and not float(nu).is_integer():
        raise TypeError(f"Degrees of freedom must be an integer, got {nu!r}")
    nu = int(nu)
    t = float(t)
    
    if nu <= 0:
        raise StudentTDomainError(
            f"Student-t distribution undefined for degree of freedom <= 0 (got {nu})"
        )
    if math.isnan(t):
        return math.nan
    if math.isinf(t):
        return 1.0 if t > 0 else 0.0
    
    if nu >= NORMAL_THRESHOLD:
        return normal_cdf(t)
    if nu >= APPROX_THRESHOLD:
        return _student_t_cdf_approx(nu, t)
    return _student_t_cdf_series(nu, t)


__all__ = ["student_t_cdf", "normal_cdf"]
