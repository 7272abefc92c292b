"""
Logistic regression by iteratively-reweighted least squares.

Each pass accumulates the weighted normal equations XᵗAX c = XᵗAz with
weights a_i = σ(x_i c) σ(-x_i c) and working response
z_i = x_i c + σ(-y_i x_i c) y_i / a_i. Finalize solves them through the
pseudo-inverse, so rank-deficient designs still produce the
minimum-norm solution.

Flat buffer layout (width w, length 3 + w² + 2w)::

    0               w
    1               coef            (w)
    1 + w           num_rows
    2 + w           XᵗAz            (w)
    2 + 2w          XᵗAX            (w × w, row-major)
    2 + 2w + w²     log_likelihood
"""

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import _state
from .families import binomial
from ..exceptions import StateMismatchError
from .._utils import check_array, check_vector, label_to_sign, labels_to_signs


@dataclass(frozen=True, eq=False)
class IRLSPersisted:
    """Inter-iteration fields."""
    coef: np.ndarray

    @classmethod
    def zeros(cls, width: int) -> "IRLSPersisted":
        return cls(coef=_state.zeros(width))


@dataclass(frozen=True, eq=False)
class IRLSScratch:
    """Intra-iteration fields."""
    num_rows: int
    xt_az: np.ndarray
    xt_ax: np.ndarray
    log_likelihood: float
    # Rows whose weight hit the floor; not part of the flat buffer
    num_floored: int = 0

    @classmethod
    def zeros(cls, width: int, log_likelihood: float = 0.0) -> "IRLSScratch":
        return cls(
            num_rows=0,
            xt_az=_state.zeros(width),
            xt_ax=_state.zeros(width, width),
            log_likelihood=log_likelihood,
        )

    def __add__(self, other: "IRLSScratch") -> "IRLSScratch":
        return IRLSScratch(
            num_rows=self.num_rows + other.num_rows,
            xt_az=_state.frozen(self.xt_az + other.xt_az),
            xt_ax=_state.frozen(self.xt_ax + other.xt_ax),
            log_likelihood=self.log_likelihood + other.log_likelihood,
            num_floored=self.num_floored + other.num_floored,
        )


@dataclass(frozen=True, eq=False)
class IRLSState:
    """Transition state of the IRLS aggregate."""
    width: int
    persisted: IRLSPersisted
    scratch: IRLSScratch

    @classmethod
    def empty(cls) -> "IRLSState":
        """State that has not seen any rows."""
        return cls.zeros(0)

    @classmethod
    def zeros(cls, width: int) -> "IRLSState":
        return cls(width, IRLSPersisted.zeros(width), IRLSScratch.zeros(width))

    @property
    def num_rows(self) -> int:
        return self.scratch.num_rows

    @property
    def coef(self) -> np.ndarray:
        return self.persisted.coef

    @property
    def log_likelihood(self) -> float:
        return self.scratch.log_likelihood

    def with_scratch(self, scratch: IRLSScratch) -> "IRLSState":
        return IRLSState(self.width, self.persisted, scratch)

    def check_mergeable(self, other: "IRLSState") -> None:
        if not np.array_equal(self.coef, other.coef):
            raise StateMismatchError(
                "Internal error: merging states seeded from different coefficients"
            )

    @staticmethod
    def size_of(width: int) -> int:
        return 3 + width * width + 2 * width

    def buffer_size(self) -> int:
        return self.size_of(self.width)

    def to_array(self) -> np.ndarray:
        """Serialize to the flat buffer layout."""
        s = self.scratch
        return np.concatenate([
            [self.width],
            self.persisted.coef,
            [s.num_rows],
            s.xt_az,
            s.xt_ax.ravel(),
            [s.log_likelihood],
        ]).astype(np.float64)

    @classmethod
    def from_array(cls, buffer) -> "IRLSState":
        """
        Rebuild a state from its flat buffer.

        The floored-row count is not part of the layout, so a decoded
        state starts it at zero and its finalize cannot warn about
        perfect separation for rows accumulated before encoding.
        """
        buf, w = _state.decode_header(buffer, 0, cls.size_of)
        if w == 0:
            return cls.empty()

        scratch = IRLSScratch(
            num_rows=_state.read_count(buf[1 + w], "row count"),
            xt_az=_state.frozen(buf[2 + w:2 + 2 * w]),
            xt_ax=_state.frozen(buf[2 + 2 * w:2 + 2 * w + w * w].reshape(w, w)),
            log_likelihood=float(buf[2 + 2 * w + w * w]),
        )
        return cls(w, IRLSPersisted(coef=_state.frozen(buf[1:1 + w])), scratch)


def _start_pass(state: IRLSState, width: int,
                previous: Optional[IRLSState]) -> IRLSState:
    """Size the state for the first row of a pass."""
    seed = previous if previous is not None else state
    if seed.width == 0:
        return IRLSState.zeros(width)
    _state.check_width(seed, width)
    return IRLSState(width, seed.persisted, IRLSScratch.zeros(width))


def _weights(xc, sign):
    """
    Weights a and products a·z for linear predictors xc.

    a·z = a·xc + σ(-y·xc)·y, so saturated rows (where a sits at the
    floor) contribute a bounded working response instead of dividing
    by a vanishing weight.
    """
    a = binomial.mu_eta(xc)
    az = a * xc + binomial.linkinv(-sign * xc) * sign
    floored = np.abs(xc) > binomial.THRESH
    return a, az, floored


def transition(state: IRLSState, y, x, previous: Optional[IRLSState] = None) -> IRLSState:
    """
    Fold one row into the state.

    Parameters
    ----------
    state : IRLSState
        Current state
    y : bool, {0, 1} or {-1, +1}
        Class label
    x : array-like, shape (p,)
        Feature vector
    previous : IRLSState, optional
        Finalized state of the previous iteration, used on the first row
        of a pass.
    """
    x = check_vector(x, name='x')
    sign = label_to_sign(y)

    if state.num_rows == 0:
        state = _start_pass(state, x.shape[0], previous)
    else:
        _state.check_width(state, x.shape[0])

    s = state.scratch
    xc = float(x @ state.coef)
    a, az, floored = _weights(xc, sign)

    return state.with_scratch(IRLSScratch(
        num_rows=s.num_rows + 1,
        xt_az=_state.frozen(s.xt_az + x * float(az)),
        xt_ax=_state.frozen(s.xt_ax + float(a) * np.outer(x, x)),
        log_likelihood=s.log_likelihood + float(binomial.log_likelihood(xc, sign)),
        num_floored=s.num_floored + int(floored),
    ))


def transition_batch(state: IRLSState, labels, X,
                     previous: Optional[IRLSState] = None) -> IRLSState:
    """Fold a batch of rows into the state (same result as row-by-row)."""
    X = check_array(X)
    signs = labels_to_signs(labels)
    if signs.shape[0] != X.shape[0]:
        raise ValueError(
            f"labels has {signs.shape[0]} entries but X has {X.shape[0]} rows"
        )
    if X.shape[0] == 0:
        return state

    if state.num_rows == 0:
        state = _start_pass(state, X.shape[1], previous)
    else:
        _state.check_width(state, X.shape[1])

    s = state.scratch
    xc = X @ state.coef
    a, az, floored = _weights(xc, signs)

    return state.with_scratch(IRLSScratch(
        num_rows=s.num_rows + X.shape[0],
        xt_az=_state.frozen(s.xt_az + X.T @ az),
        xt_ax=_state.frozen(s.xt_ax + (X * a[:, np.newaxis]).T @ X),
        log_likelihood=s.log_likelihood + float(np.sum(binomial.log_likelihood(xc, signs))),
        num_floored=s.num_floored + int(np.sum(floored)),
    ))


def merge_states(left: IRLSState, right: IRLSState) -> IRLSState:
    """Combine two states seeded from the same coefficients over disjoint rows."""
    return _state.merge(left, right)


def finalize(state: IRLSState, backend=None) -> IRLSState:
    """
    Solve the weighted normal equations for the next coefficients.

    Parameters
    ----------
    state : IRLSState
        Fully merged state of one pass
    backend : str or Backend, optional
        Backend for the pseudo-inverse (default: CPU)

    Returns
    -------
    IRLSState
        State with new coefficients, zeroed accumulators and the closed
        pass's log-likelihood

    Raises
    ------
    ValueError
        If the pass saw no rows
    SingularFitError
        If the pseudo-inverse fails or yields non-finite coefficients
    """
    if state.num_rows == 0:
        raise ValueError("Cannot finalize a state that has not seen any rows")

    from .._backends import get_backend
    backend = get_backend(backend if backend is not None else 'cpu')

    s = state.scratch
    if s.num_rows > 0 and s.num_floored == s.num_rows:
        warnings.warn(
            "All IRLS weights were clamped at the floor; the data may be "
            "perfectly separated",
            RuntimeWarning
        )

    coef = backend.pinv_solve(s.xt_ax, s.xt_az)
    return IRLSState(
        state.width,
        IRLSPersisted(coef=_state.frozen(coef)),
        IRLSScratch.zeros(state.width, log_likelihood=s.log_likelihood),
    )


def distance(left: IRLSState, right: IRLSState) -> float:
    """|log-likelihood(left) - log-likelihood(right)|"""
    return _state.distance(left, right)


def coef(state: IRLSState) -> np.ndarray:
    """Coefficient vector (read-only)."""
    return state.coef


__all__ = [
    "IRLSState",
    "IRLSPersisted",
    "IRLSScratch",
    "transition",
    "transition_batch",
    "merge_states",
    "finalize",
    "distance",
    "coef",
]
