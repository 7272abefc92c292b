"""
Test merging of partial states across all three aggregates.

A fit must not depend on how the rows were split between workers or in
which order the partial states were combined.
"""

import numpy as np
import pytest
from scipy.special import expit

from pyaggregress import cg, irls, linear, StateMismatchError


RTOL = 1e-10
ATOL = 1e-12


@pytest.fixture
def data():
    np.random.seed(42)
    X = np.column_stack([np.ones(90), np.random.randn(90, 3)])
    labels = np.random.rand(90) < expit(X @ np.array([0.2, 1.0, -0.7, 0.4]))
    response = X @ np.array([1.0, 2.0, -1.0, 0.5]) + np.random.randn(90) * 0.3
    return X, labels, response


def logistic_partials(engine, state_type, X, labels, bounds, previous=None):
    parts = []
    for lo, hi in zip(bounds[:-1], bounds[1:]):
        parts.append(engine.transition_batch(state_type.empty(), labels[lo:hi], X[lo:hi],
                                             previous=previous))
    return parts


def linear_partials(X, response, bounds):
    return [
        linear.transition_batch(linear.LinearState.empty(), response[lo:hi], X[lo:hi])
        for lo, hi in zip(bounds[:-1], bounds[1:])
    ]


class TestIdentity:
    """A state with no rows is the merge identity."""

    @pytest.mark.parametrize("engine, state_type", [
        (cg, cg.CGState), (irls, irls.IRLSState), (linear, linear.LinearState)
    ])
    def test_empty_is_identity(self, engine, state_type, data):
        X, labels, response = data
        target = response if engine is linear else labels
        state = engine.transition_batch(state_type.empty(), target, X)

        assert engine.merge_states(state, state_type.empty()) is state
        assert engine.merge_states(state_type.empty(), state) is state

    def test_finalized_state_is_identity(self, data):
        """A finalized state has no rows, so it merges away."""
        X, labels, _ = data
        finalized = irls.finalize(irls.transition_batch(irls.IRLSState.empty(), labels, X))
        state = irls.transition_batch(finalized, labels, X)
        assert irls.merge_states(finalized, state) is state


class TestPartitionInvariance:
    """Any split and merge order gives the same state."""

    SPLITS = [[0, 90], [0, 45, 90], [0, 10, 11, 60, 90], [0, 30, 60, 90]]

    @pytest.mark.parametrize("engine, state_type", [(cg, cg.CGState), (irls, irls.IRLSState)])
    def test_logistic(self, engine, state_type, data):
        X, labels, _ = data
        # Two passes so CG covers both gradient and curvature accumulation
        previous = state_type.empty()
        for _ in range(2):
            results = []
            for bounds in self.SPLITS:
                parts = logistic_partials(engine, state_type, X, labels, bounds, previous)
                left_fold = parts[0]
                for part in parts[1:]:
                    left_fold = engine.merge_states(left_fold, part)
                right_fold = parts[-1]
                for part in reversed(parts[:-1]):
                    right_fold = engine.merge_states(part, right_fold)
                results.extend([left_fold, right_fold])

            reference = results[0]
            for merged in results[1:]:
                assert merged.num_rows == 90
                np.testing.assert_allclose(merged.to_array(), reference.to_array(),
                                           rtol=RTOL, atol=ATOL)
            previous = engine.finalize(reference)

    def test_linear(self, data):
        X, _, response = data
        reference = linear.transition_batch(linear.LinearState.empty(), response, X)
        for bounds in self.SPLITS:
            parts = linear_partials(X, response, bounds)
            merged = parts[0]
            for part in parts[1:]:
                merged = linear.merge_states(merged, part)
            np.testing.assert_allclose(merged.to_array(), reference.to_array(),
                                       rtol=RTOL, atol=ATOL)

    def test_associative(self, data):
        X, labels, _ = data
        a, b, c = logistic_partials(irls, irls.IRLSState, X, labels, [0, 20, 50, 90])
        left = irls.merge_states(irls.merge_states(a, b), c)
        right = irls.merge_states(a, irls.merge_states(b, c))
        np.testing.assert_allclose(left.to_array(), right.to_array(), rtol=RTOL, atol=ATOL)

    def test_commutative(self, data):
        X, labels, _ = data
        a, b = logistic_partials(cg, cg.CGState, X, labels, [0, 33, 90])
        np.testing.assert_allclose(
            cg.merge_states(a, b).to_array(), cg.merge_states(b, a).to_array(),
            rtol=RTOL, atol=ATOL
        )


class TestPersistedFields:
    """Merge never touches the inter-iteration fields."""

    def test_cg_persisted_from_operands(self, data):
        X, labels, _ = data
        previous = cg.finalize(cg.transition_batch(cg.CGState.empty(), labels, X))
        a, b = logistic_partials(cg, cg.CGState, X, labels, [0, 40, 90], previous)
        merged = cg.merge_states(a, b)

        assert merged.iteration == previous.iteration
        np.testing.assert_array_equal(merged.coef, previous.coef)
        np.testing.assert_array_equal(merged.persisted.direction, previous.persisted.direction)
        np.testing.assert_array_equal(merged.persisted.grad, previous.persisted.grad)

    def test_operands_unchanged(self, data):
        X, labels, _ = data
        a, b = logistic_partials(irls, irls.IRLSState, X, labels, [0, 40, 90])
        before = a.to_array().copy()
        irls.merge_states(a, b)
        np.testing.assert_array_equal(a.to_array(), before)


class TestIncompatible:
    """States that cannot come from the same fit."""

    def test_width_mismatch(self):
        a = linear.transition(linear.LinearState.empty(), 1.0, [1.0, 2.0])
        b = linear.transition(linear.LinearState.empty(), 1.0, [1.0, 2.0, 3.0])
        with pytest.raises(StateMismatchError, match="Incompatible"):
            linear.merge_states(a, b)

    def test_type_mismatch(self):
        a = cg.transition(cg.CGState.empty(), 1, [1.0, 2.0])
        b = irls.transition(irls.IRLSState.empty(), 1, [1.0, 2.0])
        with pytest.raises(StateMismatchError):
            cg.merge_states(a, b)
