"""
Logistic regression by the conjugate-gradient method.

One mathematical CG iteration needs two passes over the data:

* even passes accumulate the gradient of the log-likelihood; their
  finalize computes the new search direction (Hestenes-Stiefel form of
  Polak-Ribière for an ascent problem),
* odd passes accumulate the curvature dᵀHd along that direction; their
  finalize takes the Newton step along the direction.

Flat buffer layout (width w, length 6 + 4w)::

    0           iteration
    1           w
    2           coef            (w)
    2 + w       direction       (w)
    2 + 2w      gradient        (w)
    2 + 3w      beta
    3 + 3w      num_rows
    4 + 3w      grad_new        (w)
    4 + 4w      dTHd
    5 + 4w      log_likelihood

Fields up to ``beta`` persist across iterations; the rest are reset at
the start of every pass.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import _state
from .families import binomial
from .._utils import check_array, check_vector, label_to_sign, labels_to_signs
from ..exceptions import StateMismatchError

logger = logging.getLogger(__name__)

# Relative norm below which an updated direction counts as collapsed
RESTART_TOL = 1e-10


@dataclass(frozen=True, eq=False)
class CGPersisted:
    """Inter-iteration fields."""
    iteration: int
    coef: np.ndarray
    direction: np.ndarray
    grad: np.ndarray
    beta: float

    @classmethod
    def zeros(cls, width: int) -> "CGPersisted":
        return cls(
            iteration=0,
            coef=_state.zeros(width),
            direction=_state.zeros(width),
            grad=_state.zeros(width),
            beta=0.0,
        )


@dataclass(frozen=True, eq=False)
class CGScratch:
    """Intra-iteration fields."""
    num_rows: int
    grad_new: np.ndarray
    dthd: float
    log_likelihood: float

    @classmethod
    def zeros(cls, width: int, log_likelihood: float = 0.0) -> "CGScratch":
        return cls(
            num_rows=0,
            grad_new=_state.zeros(width),
            dthd=0.0,
            log_likelihood=log_likelihood,
        )

    def __add__(self, other: "CGScratch") -> "CGScratch":
        return CGScratch(
            num_rows=self.num_rows + other.num_rows,
            grad_new=_state.frozen(self.grad_new + other.grad_new),
            dthd=self.dthd + other.dthd,
            log_likelihood=self.log_likelihood + other.log_likelihood,
        )


@dataclass(frozen=True, eq=False)
class CGState:
    """
    Transition state of the conjugate-gradient aggregate.

    ``CGState.empty()`` is the initial value of every pass; a finalized
    state (``num_rows == 0``, width known) may also start a pass and
    carries its coefficients into it.
    """
    width: int
    persisted: CGPersisted
    scratch: CGScratch

    @classmethod
    def empty(cls) -> "CGState":
        """State that has not seen any rows."""
        return cls.zeros(0)

    @classmethod
    def zeros(cls, width: int) -> "CGState":
        return cls(width, CGPersisted.zeros(width), CGScratch.zeros(width))

    @property
    def num_rows(self) -> int:
        return self.scratch.num_rows

    @property
    def iteration(self) -> int:
        return self.persisted.iteration

    @property
    def coef(self) -> np.ndarray:
        return self.persisted.coef

    @property
    def log_likelihood(self) -> float:
        return self.scratch.log_likelihood

    def with_scratch(self, scratch: CGScratch) -> "CGState":
        return CGState(self.width, self.persisted, scratch)

    def check_mergeable(self, other: "CGState") -> None:
        if self.iteration != other.iteration:
            raise StateMismatchError(
                f"Internal error: merging states of iterations "
                f"{self.iteration} and {other.iteration}"
            )

    @staticmethod
    def size_of(width: int) -> int:
        return 6 + 4 * width

    def buffer_size(self) -> int:
        return self.size_of(self.width)

    def to_array(self) -> np.ndarray:
        """Serialize to the flat buffer layout."""
        p, s = self.persisted, self.scratch
        return np.concatenate([
            [p.iteration, self.width],
            p.coef,
            p.direction,
            p.grad,
            [p.beta, s.num_rows],
            s.grad_new,
            [s.dthd, s.log_likelihood],
        ]).astype(np.float64)

    @classmethod
    def from_array(cls, buffer) -> "CGState":
        """Rebuild a state from its flat buffer."""
        buf, w = _state.decode_header(buffer, 1, cls.size_of)
        if w == 0:
            return cls.empty()

        persisted = CGPersisted(
            iteration=_state.read_count(buf[0], "iteration"),
            coef=_state.frozen(buf[2:2 + w]),
            direction=_state.frozen(buf[2 + w:2 + 2 * w]),
            grad=_state.frozen(buf[2 + 2 * w:2 + 3 * w]),
            beta=float(buf[2 + 3 * w]),
        )
        scratch = CGScratch(
            num_rows=_state.read_count(buf[3 + 3 * w], "row count"),
            grad_new=_state.frozen(buf[4 + 3 * w:4 + 4 * w]),
            dthd=float(buf[4 + 4 * w]),
            log_likelihood=float(buf[5 + 4 * w]),
        )
        return cls(w, persisted, scratch)


def _start_pass(state: CGState, width: int,
                previous: Optional[CGState]) -> CGState:
    """Size the state for the first row of a pass."""
    seed = previous if previous is not None else state
    if seed.width == 0:
        return CGState.zeros(width)
    _state.check_width(seed, width)
    return CGState(width, seed.persisted, CGScratch.zeros(width))


def transition(state: CGState, y, x, previous: Optional[CGState] = None) -> CGState:
    """
    Fold one row into the state.

    Parameters
    ----------
    state : CGState
        Current state
    y : bool, {0, 1} or {-1, +1}
        Class label
    x : array-like, shape (p,)
        Feature vector
    previous : CGState, optional
        Finalized state of the previous iteration. Only consulted on the
        first row of a pass.

    Returns
    -------
    CGState
        New state including this row
    """
    x = check_vector(x, name='x')
    sign = label_to_sign(y)

    if state.num_rows == 0:
        state = _start_pass(state, x.shape[0], previous)
    else:
        _state.check_width(state, x.shape[0])

    p, s = state.persisted, state.scratch
    xc = float(x @ p.coef)
    xd = float(x @ p.direction)

    grad_new = s.grad_new
    dthd = s.dthd
    if p.iteration % 2 == 0:
        grad_new = _state.frozen(grad_new + binomial.linkinv(-sign * xc) * sign * x)
    else:
        # 1 - σ(x) = σ(-x)
        dthd = dthd - binomial.linkinv(xc) * binomial.linkinv(-xc) * xd * xd

    return state.with_scratch(CGScratch(
        num_rows=s.num_rows + 1,
        grad_new=grad_new,
        dthd=float(dthd),
        log_likelihood=s.log_likelihood + float(binomial.log_likelihood(xc, sign)),
    ))


def transition_batch(state: CGState, labels, X,
                     previous: Optional[CGState] = None) -> CGState:
    """
    Fold a batch of rows into the state.

    Equivalent to calling :func:`transition` once per row, in any order.

    Parameters
    ----------
    state : CGState
        Current state
    labels : array-like, shape (n,)
        Class labels
    X : array-like, shape (n, p)
        Feature matrix
    previous : CGState, optional
        Finalized state of the previous iteration
    """
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

    p, s = state.persisted, state.scratch
    xc = X @ p.coef

    grad_new = s.grad_new
    dthd = s.dthd
    if p.iteration % 2 == 0:
        grad_new = _state.frozen(grad_new + X.T @ (binomial.linkinv(-signs * xc) * signs))
    else:
        xd = X @ p.direction
        dthd = dthd - float(np.sum(binomial.linkinv(xc) * binomial.linkinv(-xc) * xd * xd))

    return state.with_scratch(CGScratch(
        num_rows=s.num_rows + X.shape[0],
        grad_new=grad_new,
        dthd=float(dthd),
        log_likelihood=s.log_likelihood + float(np.sum(binomial.log_likelihood(xc, signs))),
    ))


def merge_states(left: CGState, right: CGState) -> CGState:
    """Combine two states of the same iteration over disjoint rows."""
    return _state.merge(left, right)


def finalize(state: CGState) -> CGState:
    """
    Advance the optimizer by one pass.

    * iteration 0: direction and gradient are set to the accumulated
      gradient.
    * even iteration: new direction
      ``d = g_new - beta * d`` with ``beta = g_newᵀΔ / dᵀΔ`` and
      ``Δ = g_new - g``.
    * odd iteration: ``coef -= (gᵀd / dᵀHd) * d``.

    The returned state has ``iteration + 1``, zeroed accumulators and
    keeps the closed pass's log-likelihood for :func:`distance`.
    A pass that saw no rows is rejected with ``ValueError``.
    """
    if state.num_rows == 0:
        raise ValueError("Cannot finalize a state that has not seen any rows")

    p, s = state.persisted, state.scratch
    coef, direction, grad, beta = p.coef, p.direction, p.grad, p.beta

    if p.iteration == 0:
        direction = s.grad_new
        grad = s.grad_new
    elif p.iteration % 2 == 0:
        delta = s.grad_new - grad
        denom = float(direction @ delta)
        beta = float(s.grad_new @ delta) / denom if denom != 0.0 else np.nan
        new_direction = None
        if np.isfinite(beta):
            new_direction = s.grad_new - beta * direction

        g_norm = np.linalg.norm(s.grad_new)
        if new_direction is None or np.linalg.norm(new_direction) <= RESTART_TOL * g_norm:
            logger.debug("Restarting CG direction at iteration %d", p.iteration)
            beta = 0.0
            new_direction = s.grad_new
        direction = _state.frozen(new_direction)
        grad = s.grad_new
    else:
        if s.dthd != 0.0:
            coef = _state.frozen(coef - (float(grad @ direction) / s.dthd) * direction)
        elif np.any(direction):
            warnings.warn(
                f"Zero curvature along search direction at iteration "
                f"{p.iteration}; coefficients unchanged",
                RuntimeWarning
            )

    persisted = CGPersisted(
        iteration=p.iteration + 1,
        coef=coef,
        direction=direction,
        grad=grad,
        beta=float(beta),
    )
    return CGState(state.width, persisted,
                   CGScratch.zeros(state.width, log_likelihood=s.log_likelihood))


def distance(left: CGState, right: CGState) -> float:
    """|log-likelihood(left) - log-likelihood(right)|"""
    return _state.distance(left, right)


def coef(state: CGState) -> np.ndarray:
    """Coefficient vector (read-only)."""
    return state.coef


__all__ = [
    "CGState",
    "CGPersisted",
    "CGScratch",
    "transition",
    "transition_batch",
    "merge_states",
    "finalize",
    "distance",
    "coef",
]
