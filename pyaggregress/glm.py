"""
Logistic regression API.

Reference driver for the CG and IRLS aggregates: it plays the role of
the execution engine, scanning the data once per pass, partition by
partition, merging the partial states and finalizing until the
log-likelihood stops changing.
"""

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import List, Union

import numpy as np
import pandas as pd

from ._backends import get_backend
from ._core import cg, irls
from ._utils import check_array, labels_to_signs

logger = logging.getLogger(__name__)

# Passes per optimizer iteration
_METHODS = {
    'cg': (cg, cg.CGState, 2),
    'irls': (irls, irls.IRLSState, 1),
}


@dataclass
class LogisticRegressionResult:
    """Results from logistic regression fitting."""
    coef: np.ndarray          # Coefficients
    log_likelihood: float     # Log-likelihood of the last pass
    iterations: int           # Optimizer iterations
    passes: int               # Passes over the data
    converged: bool           # Converged?
    method: str               # 'cg' or 'irls'
    feature_names: List[str] = field(default_factory=list)
    history: List[float] = field(default_factory=list)   # Log-likelihood per pass

    @property
    def coef_series(self) -> pd.Series:
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coef, index=self.feature_names)


class LogisticRegression:
    """
    Logistic regression fitted by a mergeable aggregate.

    Examples
    --------
    >>> model = LogisticRegression(method='cg', n_partitions=4)
    >>> result = model.fit(X, y)
    >>> result.coef
    """

    def __init__(
        self,
        method: str = 'irls',
        max_iter: int = 50,
        tol: float = 1e-6,
        n_partitions: int = 1,
        add_intercept: bool = False,
        backend: str = 'auto',
    ):
        """
        Parameters
        ----------
        method : str, default='irls'
            Optimizer: 'irls' or 'cg'
        max_iter : int, default=50
            Maximum optimizer iterations (a CG iteration takes two passes)
        tol : float, default=1e-6
            Stop when the log-likelihood changes by less than this over
            one optimizer iteration
        n_partitions : int, default=1
            Number of contiguous row partitions scanned separately and
            merged every pass
        add_intercept : bool, default=False
            Prepend a column of ones to X
        backend : str, default='auto'
            Backend for the IRLS pseudo-inverse: 'auto', 'cpu', 'pytorch'
        """
        method = method.lower()
        if method not in _METHODS:
            raise ValueError(
                f"Unknown method: '{method}'\n"
                f"Valid options: {sorted(_METHODS)}"
            )
        if max_iter < 1:
            raise ValueError("max_iter must be at least 1")
        if tol < 0:
            raise ValueError("tol must be non-negative")
        if n_partitions < 1:
            raise ValueError("n_partitions must be at least 1")

        self.method = method
        self.max_iter = max_iter
        self.tol = tol
        self.n_partitions = n_partitions
        self.add_intercept = add_intercept
        self.backend = get_backend(backend)

    def _finalize(self, engine, state):
        if engine is irls:
            return irls.finalize(state, backend=self.backend)
        return engine.finalize(state)

    def _scan(self, engine, state, partitions):
        """One pass: transition every partition from ``state`` and merge."""
        partials = [
            engine.transition_batch(state, signs, X_part)
            for X_part, signs in partitions
        ]
        return reduce(engine.merge_states, partials)

    def fit(
        self,
        X: Union[np.ndarray, pd.DataFrame],
        y,
    ) -> LogisticRegressionResult:
        """
        Fit logistic regression.

        Parameters
        ----------
        X : ndarray or DataFrame, shape (n, p)
            Design matrix
        y : array-like, shape (n,)
            Labels: bool, {0, 1} or {-1, +1}

        Returns
        -------
        result : LogisticRegressionResult
            Fitted model results
        """
        if isinstance(X, pd.DataFrame):
            names = [str(c) for c in X.columns]
        else:
            names = None
        X = check_array(X)
        signs = labels_to_signs(np.asarray(y).ravel())
        if X.shape[0] != signs.shape[0]:
            raise ValueError(f"X has {X.shape[0]} rows but y has {signs.shape[0]} labels")
        if X.shape[0] == 0:
            raise ValueError("Cannot fit a model to zero rows")

        if names is None:
            names = [f'x{i}' for i in range(X.shape[1])]
        if self.add_intercept:
            X = np.column_stack([np.ones(X.shape[0]), X])
            names = ['Intercept'] + names

        engine, state_type, period = _METHODS[self.method]
        partitions = [
            (X[idx], signs[idx])
            for idx in np.array_split(np.arange(X.shape[0]), self.n_partitions)
            if idx.size > 0
        ]

        state = state_type.empty()
        finalized = []
        history = []
        converged = False

        for pass_no in range(self.max_iter * period):
            state = self._finalize(engine, self._scan(engine, state, partitions))
            finalized.append(state)
            history.append(state.log_likelihood)
            logger.debug(
                "%s pass %d: log-likelihood %.10g",
                self.method, pass_no, state.log_likelihood
            )

            if len(finalized) > period:
                change = engine.distance(finalized[-1], finalized[-1 - period])
                if change < self.tol:
                    converged = True
                    break

            # Keep only what the convergence check needs
            if len(finalized) > period + 1:
                finalized.pop(0)

        passes = pass_no + 1
        if converged:
            logger.info("%s converged after %d passes", self.method, passes)
        else:
            logger.info("%s stopped at the iteration cap (%d passes)", self.method, passes)

        return LogisticRegressionResult(
            coef=np.array(engine.coef(state)),
            log_likelihood=state.log_likelihood,
            iterations=passes // period,
            passes=passes,
            converged=converged,
            method=self.method,
            feature_names=names,
            history=history,
        )


def logregr(X, y, method: str = 'irls', **kwargs) -> LogisticRegressionResult:
    """
    Fit logistic regression (convenience function).

    Parameters
    ----------
    X : ndarray or DataFrame
        Design matrix
    y : array-like
        Binary labels
    method : str
        'irls' or 'cg'
    **kwargs
        Additional arguments passed to LogisticRegression

    Returns
    -------
    LogisticRegressionResult
    """
    return LogisticRegression(method=method, **kwargs).fit(X, y)
