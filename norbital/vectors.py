"""
Vector utilities for the N-body orbit simulator.

Positions, velocities and accelerations are plain numpy float64 arrays of
shape (3,). A "point" and a "vector" share the same representation; the
difference of two points is the displacement between them.
"""

import numpy as np
from numpy.typing import NDArray

# Type alias
Vec3 = NDArray[np.float64]  # Shape (3,)


def vec3(values) -> Vec3:
    """
    Coerce a length-3 sequence into a float64 vector.

    Parameters
    ----------
    values : array_like
        Three real components.

    Returns
    -------
    ndarray, shape (3,)
        A new float64 array (never a view of the input).

    Raises
    ------
    ValueError
        If the input does not have exactly three components.

    Examples
    --------
    >>> vec3([1, 2, 3])
    array([1., 2., 3.])
    """
    v = np.array(values, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {v.shape}")
    return v


def zero3() -> Vec3:
    """Return a fresh zero vector."""
    return np.zeros(3, dtype=np.float64)


def frozen(v: Vec3) -> Vec3:
    """Mark an array read-only and return it."""
    v.flags.writeable = False
    return v


def magnitude_squared(v: Vec3) -> float:
    return float(np.dot(v, v))


def magnitude(v: Vec3) -> float:
    return float(np.sqrt(np.dot(v, v)))


def normalize(v: Vec3) -> Vec3:
    """
    Unit vector along v.

    A zero vector has no direction; the result is then NaN in every
    component (0/0), which propagates through later arithmetic.
    """
    with np.errstate(invalid='ignore', divide='ignore'):
        return v / np.sqrt(np.dot(v, v))
