"""
Shared plumbing for transition states.

Every state is an immutable dataclass holding a ``persisted`` group
(inter-iteration fields, written only by finalize) and a ``scratch``
group (intra-iteration fields, written by transition and merge).
Arrays stored in a state are private float64 copies flagged read-only.
"""

from typing import Tuple

import numpy as np

from ..exceptions import StateMismatchError


def frozen(values) -> np.ndarray:
    """Return a read-only float64 copy of ``values``."""
    arr = np.array(values, dtype=np.float64, copy=True)
    arr.setflags(write=False)
    return arr


def zeros(*shape: int) -> np.ndarray:
    """Read-only zero array."""
    arr = np.zeros(shape, dtype=np.float64)
    arr.setflags(write=False)
    return arr


def check_width(state, width: int) -> None:
    """Raise if a row of length ``width`` cannot feed ``state``."""
    if state.width != width:
        raise StateMismatchError(
            f"Row has {width} features but the state was sized for {state.width}"
        )


def merge(left, right):
    """
    Merge two states over disjoint row sets.
    
    A state that has seen no rows is the identity. Otherwise widths must
    agree and the scratch groups are added field-wise; the persisted
    group is taken from ``left``.
    """
    if left.num_rows == 0:
        return right
    if right.num_rows == 0:
        return left
    
    if type(left) is not type(right):
        raise StateMismatchError(
            f"Internal error: cannot merge {type(left).__name__} "
            f"with {type(right).__name__}"
        )
    if left.width != right.width or left.buffer_size() != right.buffer_size():
        raise StateMismatchError("Internal error: Incompatible transition states")
    
    left.check_mergeable(right)
    return left.with_scratch(left.scratch + right.scratch)


def distance(left, right) -> float:
    """Absolute difference in log-likelihood between two states."""
    return abs(float(left.log_likelihood) - float(right.log_likelihood))


def decode_header(buffer, width_index: int, size_of) -> Tuple[np.ndarray, int]:
    """
    Validate a flat buffer and read its coefficient width.
    
    Parameters
    ----------
    buffer : array-like
        Flat numeric buffer
    width_index : int
        Position of the width field in the layout
    size_of : callable
        Maps a width to the expected buffer length
    
    Returns
    -------
    (buffer, width)
        ``width`` is 0 for an all-zero buffer, which decodes as empty.
    """
    buf = np.asarray(buffer, dtype=np.float64)
    if buf.ndim != 1:
        raise StateMismatchError("State buffer must be 1-dimensional")
    if buf.size <= width_index:
        raise StateMismatchError(f"State buffer too short ({buf.size} elements)")
    
    raw_width = buf[width_index]
    if not np.isfinite(raw_width) or raw_width < 0 or raw_width != int(raw_width):
        raise StateMismatchError(f"Invalid coefficient width {raw_width!r}")
    width = int(raw_width)
    
    if width == 0 and not np.any(buf):
        return buf, 0
    
    if buf.size != size_of(width):
        raise StateMismatchError(
            f"State buffer has {buf.size} elements, expected {size_of(width)} "
            f"for width {width}"
        )
    return buf, width


def read_count(value: float, name: str) -> int:
    """Decode a non-negative integer counter stored as a double."""
    if not np.isfinite(value) or value < 0 or value != int(value):
        raise StateMismatchError(f"Invalid {name} {value!r}")
    return int(value)
