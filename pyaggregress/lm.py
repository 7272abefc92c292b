"""
Linear regression over the mergeable sufficient-statistics aggregate.

Rows are folded into the linear-regression state one partition at a
time and the partial states are merged before the single finalize, so
the same code path serves in-memory data and data arriving in batches.
"""

from functools import reduce
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ._backends import get_backend
from ._core import linear
from ._utils import check_array, check_vector

# R's significance legend
_SIGNIF_LEVELS = [(0.001, '***'), (0.01, '**'), (0.05, '*'), (0.1, '.')]


def _significance(p: float) -> str:
    if np.isnan(p):
        return ''
    for level, stars in _SIGNIF_LEVELS:
        if p < level:
            return stars
    return ''


def _resolve_inputs(y, X, data: Optional[pd.DataFrame]):
    """Turn column names or arrays into (y, y_name, X, X_names)."""
    if isinstance(y, str):
        if data is None:
            raise ValueError(f"Must provide data to look up response '{y}'")
        y_name, y_values = y, data[y].to_numpy()
    else:
        y_name, y_values = 'y', np.asarray(y)

    if isinstance(X, pd.DataFrame):
        X_names, X_values = [str(c) for c in X.columns], X.to_numpy()
    elif isinstance(X, (list, tuple)) and X and all(isinstance(c, str) for c in X):
        if data is None:
            raise ValueError("Must provide data to look up predictor columns")
        X_names, X_values = list(X), data[list(X)].to_numpy()
    else:
        X_values = np.asarray(X)
        if X_values.ndim == 1:
            X_values = X_values.reshape(-1, 1)
        X_names = [f'x{i}' for i in range(X_values.shape[1])]

    return check_vector(y_values, name='y'), y_name, check_array(X_values), X_names


class LinearModel:
    """
    Ordinary least squares fitted through the linear-regression aggregate.

    Examples
    --------
    >>> model = lm(y='sbp_change', X=['treatment', 'age'], data=trial)
    >>> model.coef         # Named coefficients
    >>> model.pvalues      # Two-sided p-values
    >>> model.summary()
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[Sequence[str], np.ndarray, pd.DataFrame],
        data: Optional[pd.DataFrame] = None,
        add_intercept: bool = True,
        n_partitions: int = 1,
        backend: str = 'auto',
    ):
        """
        Parameters
        ----------
        y : str or array
            Response, or its column name in ``data``
        X : list of str, array or DataFrame
            Predictors, or their column names in ``data``
        data : DataFrame, optional
            Source of named columns
        add_intercept : bool
            Prepend an intercept column
        n_partitions : int
            Number of contiguous row partitions aggregated separately
            and then merged
        backend : str
            Backend for the pseudo-inverse: 'auto', 'cpu', 'pytorch'
        """
        if n_partitions < 1:
            raise ValueError("n_partitions must be at least 1")

        self.y_values, self.y_name, self.X_values, self.X_names = _resolve_inputs(y, X, data)
        if self.X_values.shape[0] != self.y_values.shape[0]:
            raise ValueError(
                f"X has {self.X_values.shape[0]} rows but y has {self.y_values.shape[0]} values"
            )

        self.add_intercept = add_intercept
        self.n_obs = self.y_values.shape[0]
        self.var_names = (['Intercept'] if add_intercept else []) + self.X_names
        self.n_coef = len(self.var_names)
        self.backend = get_backend(backend)

        design = self._design(self.X_values)
        chunks = np.array_split(np.arange(self.n_obs), n_partitions)
        self.state = aggregate((self.y_values[idx], design[idx]) for idx in chunks)
        self._unpack(linear.finalize(self.state, backend=self.backend))

    def _design(self, X: np.ndarray) -> np.ndarray:
        if self.add_intercept:
            return np.hstack([np.ones((X.shape[0], 1)), X])
        return X

    def _unpack(self, result: linear.LinearRegressionResult):
        self.result = result
        self.coefficients = result.coef
        self.std_errors = result.std_err
        self.t_values = result.t_stats
        self.pvalues = result.p_values
        self.r_squared = result.r2
        self.df_residual = result.df_residual
        self.sigma = np.sqrt(result.sigma2)

        # Only meaningful around a fitted mean
        if self.add_intercept and self.df_residual > 0:
            scale = (self.n_obs - 1) / self.df_residual
            self.adj_r_squared = 1 - (1 - self.r_squared) * scale
        else:
            self.adj_r_squared = np.nan

    @property
    def coef(self) -> pd.Series:
        """Named coefficients."""
        return pd.Series(self.coefficients, index=self.var_names, name='coef')

    def coef_table(self) -> pd.DataFrame:
        """Estimates, standard errors, t values and p-values by term."""
        return pd.DataFrame(
            {
                'Estimate': self.coefficients,
                'Std. Error': self.std_errors,
                't value': self.t_values,
                'Pr(>|t|)': self.pvalues,
                '': [_significance(p) for p in self.pvalues],
            },
            index=self.var_names,
        )

    def summary(self):
        """Print an R ``summary.lm``-style report."""
        rule = "=" * 80
        table = self.coef_table()
        table['Pr(>|t|)'] = [
            'NA' if np.isnan(p) else ('<.0001' if p < 0.0001 else f"{p:.4f}")
            for p in self.pvalues
        ]

        lines = [
            "",
            rule,
            "LINEAR REGRESSION RESULTS",
            rule,
            f"Response: {self.y_name}    Observations: {self.n_obs}    "
            f"Residual df: {self.df_residual}",
            "",
            table.to_string(float_format=lambda v: f"{v:.4f}"),
            "---",
            "Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1",
            "",
            f"Residual standard error: {self.sigma:.4f} on {self.df_residual} degrees of freedom",
            f"Multiple R-squared: {self.r_squared:.4f},  Adjusted R-squared: {self.adj_r_squared:.4f}",
            f"Backend: {self.backend.name}",
            rule,
        ]
        print("\n".join(lines))

    def predict(self, newdata: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        """
        Predicted response for new rows.

        ``newdata`` is either a DataFrame holding the predictor columns by
        name or an array with the predictor columns in fitting order.
        """
        if isinstance(newdata, pd.DataFrame):
            newdata = newdata[self.X_names].to_numpy()
        return self._design(check_array(newdata)) @ self.coefficients

    def __repr__(self):
        return f"LinearModel(n={self.n_obs}, p={self.n_coef}, R²={self.r_squared:.3f})"


def aggregate(batches: Iterable[Tuple[np.ndarray, np.ndarray]]) -> linear.LinearState:
    """
    Aggregate ``(y, X)`` batches into one linear-regression state.

    Each batch is transitioned from an empty state and the partial
    states are merged, as independent workers would.
    """
    partials = [
        linear.transition_batch(linear.LinearState.empty(), y_batch, X_batch)
        for y_batch, X_batch in batches
    ]
    return reduce(linear.merge_states, partials, linear.LinearState.empty())


def lm(y, X, data=None, **kwargs) -> LinearModel:
    """
    Fit a linear model (convenience wrapper around :class:`LinearModel`).

    Examples
    --------
    >>> model = lm(y='mpg', X=['wt', 'hp'], data=mtcars)
    >>> model.pvalues
    """
    return LinearModel(y=y, X=X, data=data, **kwargs)
