"""
Test the logistic-regression driver.

Both optimizers are run to convergence on small problems and checked
against each other and against the score equations.
"""

import logging

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

from pyaggregress import logregr, LogisticRegression, cg, irls


# Tolerance levels
COEF_TOL = 1e-3       # CG vs IRLS coefficients
SCORE_TOL = 1e-3      # Gradient at the optimum
LL_TOL = 1e-6         # Allowed log-likelihood decrease between passes


@pytest.fixture
def data():
    np.random.seed(42)
    n = 200
    X = np.random.randn(n, 3)
    beta = np.array([0.5, 1.0, -0.8, 0.3])
    y = np.random.rand(n) < expit(beta[0] + X @ beta[1:])
    return X, y


def score(X, y, coef):
    """Gradient of the log-likelihood."""
    signs = np.where(y, 1.0, -1.0)
    return X.T @ (expit(-signs * (X @ coef)) * signs)


class TestSeparableScenario:
    """Two points, x = -1 labelled 0 and x = 1 labelled 1."""

    X = np.array([[-1.0], [1.0]])
    y = np.array([0, 1])

    @pytest.mark.parametrize("method", ['cg', 'irls'])
    def test_converges_to_positive_coefficient(self, method):
        result = logregr(self.X, self.y, method=method, max_iter=50, tol=1e-6)

        assert result.converged
        assert result.iterations <= 50
        assert result.coef[0] > 0
        period = 2 if method == 'cg' else 1
        assert abs(result.history[-1] - result.history[-1 - period]) < 1e-6

    def test_irls_monotone(self):
        result = logregr(self.X, self.y, method='irls')
        assert np.all(np.diff(result.history) >= -LL_TOL)

    def test_cg_monotone_per_iteration(self):
        """CG's log-likelihood changes once per two passes."""
        result = logregr(self.X, self.y, method='cg')
        assert np.all(np.diff(result.history[::2]) >= -LL_TOL)

    def test_first_newton_step(self):
        """From zero, both optimizers step to c = 1 / σ(0) = 2."""
        state = irls.finalize(irls.transition_batch(irls.IRLSState.empty(), self.y, self.X))
        assert state.coef[0] == pytest.approx(2.0, abs=1e-12)

        state = cg.finalize(cg.transition_batch(cg.CGState.empty(), self.y, self.X))
        state = cg.finalize(cg.transition_batch(state, self.y, self.X))
        assert state.coef[0] == pytest.approx(2.0, abs=1e-12)


class TestFit:
    """Fitting random data."""

    def test_cg_matches_irls(self, data):
        X, y = data
        res_irls = logregr(X, y, method='irls', add_intercept=True, tol=1e-10, max_iter=100)
        res_cg = logregr(X, y, method='cg', add_intercept=True, tol=1e-10, max_iter=200)

        assert res_irls.converged and res_cg.converged
        np.testing.assert_allclose(res_cg.coef, res_irls.coef, atol=COEF_TOL)
        assert res_cg.log_likelihood == pytest.approx(res_irls.log_likelihood, abs=1e-6)

    @pytest.mark.parametrize("method", ['cg', 'irls'])
    def test_score_vanishes(self, data, method):
        X, y = data
        result = logregr(X, y, method=method, add_intercept=True, tol=1e-10, max_iter=200)
        design = np.column_stack([np.ones(len(X)), X])
        np.testing.assert_allclose(score(design, y, result.coef), 0.0, atol=SCORE_TOL)

    def test_irls_monotone(self, data):
        X, y = data
        result = logregr(X, y, method='irls', add_intercept=True)
        assert np.all(np.diff(result.history) >= -LL_TOL)

    @pytest.mark.parametrize("method", ['cg', 'irls'])
    def test_partition_invariance(self, data, method):
        X, y = data
        single = logregr(X, y, method=method, n_partitions=1)
        split = logregr(X, y, method=method, n_partitions=7)

        assert single.passes == split.passes
        np.testing.assert_allclose(split.coef, single.coef, rtol=1e-8, atol=1e-10)

    def test_more_partitions_than_rows(self):
        X = np.array([[1.0, -1.0], [1.0, 1.0], [1.0, 0.5]])
        y = [0, 1, 0]
        result = logregr(X, y, method='irls', n_partitions=10, max_iter=5)
        assert result.passes <= 5

    def test_label_encodings(self, data):
        X, y = data
        as_bool = logregr(X, y)
        as_int = logregr(X, y.astype(int))
        as_sign = logregr(X, np.where(y, 1, -1))
        np.testing.assert_allclose(as_int.coef, as_bool.coef, rtol=1e-12)
        np.testing.assert_allclose(as_sign.coef, as_bool.coef, rtol=1e-12)

    def test_duplicated_column(self, data):
        """Rank-deficient designs give the minimum-norm split."""
        X, y = data
        X_dup = np.column_stack([X, X[:, 0]])
        result = logregr(X_dup, y, method='irls', add_intercept=True)
        assert np.all(np.isfinite(result.coef))
        assert result.coef[1] == pytest.approx(result.coef[4], rel=1e-6)

    def test_iteration_cap(self, data):
        X, y = data
        result = logregr(X, y, method='cg', max_iter=1)
        assert not result.converged
        assert result.passes == 2
        assert result.iterations == 1
        assert len(result.history) == 2


class TestResult:
    """Result object and inputs."""

    def test_dataframe_names(self, data):
        X, y = data
        df = pd.DataFrame(X, columns=['age', 'dose', 'weight'])
        result = logregr(df, y, add_intercept=True)

        assert result.feature_names == ['Intercept', 'age', 'dose', 'weight']
        assert isinstance(result.coef_series, pd.Series)
        assert result.coef_series['dose'] == result.coef[2]

    def test_default_names(self, data):
        X, y = data
        result = logregr(X, y)
        assert list(result.coef_series.index) == ['x0', 'x1', 'x2']

    def test_converged_logged(self, data, caplog):
        X, y = data
        with caplog.at_level(logging.INFO, logger="pyaggregress.glm"):
            logregr(X, y, method='irls')
        assert "converged" in caplog.text

    def test_class_interface(self, data):
        X, y = data
        model = LogisticRegression(method='CG', max_iter=30)
        assert model.method == 'cg'
        result = model.fit(X, y)
        assert result.method == 'cg'


class TestValidation:
    """Invalid arguments."""

    def test_invalid_method(self):
        with pytest.raises(ValueError, match="Unknown method"):
            LogisticRegression(method='newton')

    @pytest.mark.parametrize("kwargs", [
        {'max_iter': 0}, {'tol': -1.0}, {'n_partitions': 0}
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            LogisticRegression(**kwargs)

    def test_length_mismatch(self, data):
        X, y = data
        with pytest.raises(ValueError, match="rows"):
            logregr(X, y[:-1])

    def test_zero_rows(self):
        with pytest.raises(ValueError):
            logregr(np.empty((0, 2)), [])

    def test_bad_labels(self, data):
        X, _ = data
        with pytest.raises(ValueError, match="Binary label"):
            logregr(X, np.full(len(X), 2))
