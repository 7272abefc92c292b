"""
Test input validation helpers.
"""

import numpy as np
import pytest

from pyaggregress._utils import check_array, check_vector, label_to_sign, labels_to_signs


class TestLabels:
    """Binary label encodings."""

    @pytest.mark.parametrize("label, sign", [
        (True, 1.0), (False, -1.0), (np.bool_(True), 1.0),
        (1, 1.0), (0, -1.0), (-1, -1.0), (1.0, 1.0), (0.0, -1.0),
    ])
    def test_scalar(self, label, sign):
        assert label_to_sign(label) == sign

    @pytest.mark.parametrize("label", [2, 0.5, -2.0, np.nan])
    def test_scalar_rejected(self, label):
        with pytest.raises(ValueError, match="Binary label"):
            label_to_sign(label)

    def test_vector_encodings_agree(self):
        expected = np.array([1.0, -1.0, -1.0, 1.0])
        np.testing.assert_array_equal(labels_to_signs([True, False, False, True]), expected)
        np.testing.assert_array_equal(labels_to_signs([1, 0, 0, 1]), expected)
        np.testing.assert_array_equal(labels_to_signs([1, -1, -1, 1]), expected)

    def test_vector_rejected(self):
        with pytest.raises(ValueError, match="Binary label"):
            labels_to_signs([1, 0, 3])

    def test_vector_must_be_flat(self):
        with pytest.raises(ValueError):
            labels_to_signs([[1, 0]])


class TestArrays:
    """Numeric input checks."""

    def test_check_array(self):
        X = check_array([[1, 2], [3, 4]])
        assert X.dtype == np.float64
        with pytest.raises(ValueError, match="2-dimensional"):
            check_array([1.0, 2.0])
        with pytest.raises(ValueError, match="NaN or Inf"):
            check_array([[1.0, np.inf]])

    def test_check_vector(self):
        assert check_vector([1, 2]).dtype == np.float64
        with pytest.raises(ValueError, match="x must be 1-dimensional"):
            check_vector([[1.0]], name='x')
        with pytest.raises(ValueError, match="NaN or Inf"):
            check_vector([np.nan])
