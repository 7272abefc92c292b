"""
Linear regression by aggregating sufficient statistics.

Ordinary least squares needs a single pass: the state accumulates XᵗX,
Xᵗy, Σy and Σy², merges like the logistic-regression states, and
finalize solves the normal equations directly.

Flat buffer layout (width w, length 4 + w + w²)::

    0       num_rows
    1       w
    2       y_sum
    3       y_square_sum
    4       Xᵗy     (w)
    4 + w   XᵗX     (w × w, row-major)
"""

import math
from dataclasses import dataclass

import numpy as np

from . import _state
from .student import student_t_cdf
from .._utils import check_array, check_vector


@dataclass(frozen=True, eq=False)
class LinearScratch:
    """Sufficient statistics of one data partition."""
    num_rows: int
    y_sum: float
    y_square_sum: float
    xt_y: np.ndarray
    xt_x: np.ndarray

    @classmethod
    def zeros(cls, width: int) -> "LinearScratch":
        return cls(
            num_rows=0,
            y_sum=0.0,
            y_square_sum=0.0,
            xt_y=_state.zeros(width),
            xt_x=_state.zeros(width, width),
        )

    def __add__(self, other: "LinearScratch") -> "LinearScratch":
        return LinearScratch(
            num_rows=self.num_rows + other.num_rows,
            y_sum=self.y_sum + other.y_sum,
            y_square_sum=self.y_square_sum + other.y_square_sum,
            xt_y=_state.frozen(self.xt_y + other.xt_y),
            xt_x=_state.frozen(self.xt_x + other.xt_x),
        )


@dataclass(frozen=True, eq=False)
class LinearState:
    """Transition state of the linear-regression aggregate."""
    width: int
    scratch: LinearScratch

    @classmethod
    def empty(cls) -> "LinearState":
        return cls(0, LinearScratch.zeros(0))

    @property
    def num_rows(self) -> int:
        return self.scratch.num_rows

    def with_scratch(self, scratch: LinearScratch) -> "LinearState":
        return LinearState(self.width, scratch)

    def check_mergeable(self, other: "LinearState") -> None:
        pass

    @staticmethod
    def size_of(width: int) -> int:
        return 4 + width + width * width

    def buffer_size(self) -> int:
        return self.size_of(self.width)

    def to_array(self) -> np.ndarray:
        """Serialize to the flat buffer layout."""
        s = self.scratch
        return np.concatenate([
            [s.num_rows, self.width, s.y_sum, s.y_square_sum],
            s.xt_y,
            s.xt_x.ravel(),
        ]).astype(np.float64)

    @classmethod
    def from_array(cls, buffer) -> "LinearState":
        """Rebuild a state from its flat buffer."""
        buf, w = _state.decode_header(buffer, 1, cls.size_of)
        if w == 0:
            return cls.empty()
        return cls(w, LinearScratch(
            num_rows=_state.read_count(buf[0], "row count"),
            y_sum=float(buf[2]),
            y_square_sum=float(buf[3]),
            xt_y=_state.frozen(buf[4:4 + w]),
            xt_x=_state.frozen(buf[4 + w:4 + w + w * w].reshape(w, w)),
        ))


@dataclass
class LinearRegressionResult:
    """Results of the linear-regression final step."""
    coef: np.ndarray          # Coefficients
    r2: float                 # Coefficient of determination
    std_err: np.ndarray       # Standard errors
    t_stats: np.ndarray       # t-statistics
    p_values: np.ndarray      # Two-sided p-values
    num_rows: int             # Observations
    df_residual: int          # Residual degrees of freedom
    sigma2: float             # Residual variance


def transition(state: LinearState, y: float, x) -> LinearState:
    """Fold one observation (response ``y``, features ``x``) into the state."""
    x = check_vector(x, name='x')
    y = float(y)
    if not math.isfinite(y):
        raise ValueError("y contains NaN or Inf")

    if state.num_rows == 0:
        state = LinearState(x.shape[0], LinearScratch.zeros(x.shape[0]))
    else:
        _state.check_width(state, x.shape[0])

    s = state.scratch
    return state.with_scratch(LinearScratch(
        num_rows=s.num_rows + 1,
        y_sum=s.y_sum + y,
        y_square_sum=s.y_square_sum + y * y,
        xt_y=_state.frozen(s.xt_y + x * y),
        xt_x=_state.frozen(s.xt_x + np.outer(x, x)),
    ))


def transition_batch(state: LinearState, y, X) -> LinearState:
    """Fold a batch of observations into the state."""
    X = check_array(X)
    y = check_vector(y)
    if y.shape[0] != X.shape[0]:
        raise ValueError(f"y has {y.shape[0]} entries but X has {X.shape[0]} rows")
    if X.shape[0] == 0:
        return state

    if state.num_rows == 0:
        state = LinearState(X.shape[1], LinearScratch.zeros(X.shape[1]))
    else:
        _state.check_width(state, X.shape[1])

    s = state.scratch
    return state.with_scratch(LinearScratch(
        num_rows=s.num_rows + X.shape[0],
        y_sum=s.y_sum + float(np.sum(y)),
        y_square_sum=s.y_square_sum + float(y @ y),
        xt_y=_state.frozen(s.xt_y + X.T @ y),
        xt_x=_state.frozen(s.xt_x + X.T @ X),
    ))


def merge_states(left: LinearState, right: LinearState) -> LinearState:
    """Combine two states over disjoint rows."""
    return _state.merge(left, right)


def finalize(state: LinearState, backend=None) -> LinearRegressionResult:
    """
    Solve the normal equations and compute inference statistics.

    Standard errors use diag(pinv(XᵗX))·σ² with
    σ² = (Σy² - Xᵗy·coef) / (n - w). p-values are two-sided, from the
    Student-t distribution with n - w degrees of freedom. With n <= w
    the inference fields are NaN.

    Parameters
    ----------
    state : LinearState
        Fully merged state
    backend : str or Backend, optional
        Backend for the pseudo-inverse (default: CPU)
    """
    if state.num_rows == 0:
        raise ValueError("Cannot finalize a state that has not seen any rows")

    from .._backends import get_backend
    backend = get_backend(backend if backend is not None else 'cpu')

    s = state.scratch
    n, w = s.num_rows, state.width
    xt_x_pinv = backend.pinv(s.xt_x)
    coef = xt_x_pinv @ s.xt_y

    y_mean_sq = s.y_sum * s.y_sum / n
    sst = s.y_square_sum - y_mean_sq
    ess = float(s.xt_y @ coef) - y_mean_sq
    r2 = ess / sst if sst > 0 else np.nan

    df_residual = n - w
    if df_residual > 0:
        # Clamp rounding noise on perfect fits
        sigma2 = max(s.y_square_sum - float(s.xt_y @ coef), 0.0) / df_residual
        std_err = np.sqrt(np.clip(np.diag(xt_x_pinv), 0.0, None) * sigma2)
        with np.errstate(divide='ignore', invalid='ignore'):
            t_stats = coef / std_err
        p_values = np.array([
            np.nan if np.isnan(t) else 2.0 * (1.0 - student_t_cdf(df_residual, abs(t)))
            for t in t_stats
        ])
    else:
        sigma2 = np.nan
        std_err = np.full(w, np.nan)
        t_stats = np.full(w, np.nan)
        p_values = np.full(w, np.nan)

    return LinearRegressionResult(
        coef=coef,
        r2=r2,
        std_err=std_err,
        t_stats=t_stats,
        p_values=p_values,
        num_rows=n,
        df_residual=df_residual,
        sigma2=sigma2,
    )


__all__ = [
    "LinearState",
    "LinearScratch",
    "LinearRegressionResult",
    "transition",
    "transition_batch",
    "merge_states",
    "finalize",
]
