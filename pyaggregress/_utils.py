"""
Utility functions.
"""

import numpy as np


def check_array(X, name='X', dtype=np.float64):
    """Validate array input."""
    X = np.asarray(X, dtype=dtype)
    if X.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or Inf")
    return X


def check_vector(y, name='y', dtype=np.float64):
    """Validate vector input."""
    y = np.asarray(y, dtype=dtype)
    if y.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional")
    if not np.all(np.isfinite(y)):
        raise ValueError(f"{name} contains NaN or Inf")
    return y


def label_to_sign(label) -> float:
    """
    Map a binary class label to ±1.

    Accepts booleans, {0, 1} and {-1, +1}. Anything else is rejected
    rather than guessed.
    """
    if isinstance(label, (bool, np.bool_)):
        return 1.0 if label else -1.0
    value = float(label)
    if value == 1.0:
        return 1.0
    if value == 0.0 or value == -1.0:
        return -1.0
    raise ValueError(f"Binary label must be one of 0/1, -1/+1 or bool, got {label!r}")


def labels_to_signs(labels) -> np.ndarray:
    """Vectorized :func:`label_to_sign`."""
    labels = np.asarray(labels)
    if labels.ndim != 1:
        raise ValueError("labels must be 1-dimensional")
    if labels.dtype == np.bool_:
        return np.where(labels, 1.0, -1.0)
    values = labels.astype(np.float64)
    valid = (values == 1.0) | (values == 0.0) | (values == -1.0)
    if not np.all(valid):
        bad = labels[~valid][0]
        raise ValueError(f"Binary label must be one of 0/1, -1/+1 or bool, got {bad!r}")
    return np.where(values == 1.0, 1.0, -1.0)
