"""
Softened inverse-square force kernel.

The kernel maps the separation between two bodies to the acceleration that
one unit of attracting mass imparts on the body at the near end:

    s(r) = G / (|r|² + softener) * r_hat

Multiplying by the attractor's mass gives the actual acceleration. The
kernel is evaluated once per interacting pair and reused with a sign flip
for the reaction (see norbital.interactions).
"""

import numpy as np

from norbital.constants import Constants
from norbital.vectors import Vec3, magnitude_squared, normalize


def specific_acceleration(separation: Vec3, constants: Constants) -> Vec3:
    """
    Softened specific acceleration for a separation vector.

    Parameters
    ----------
    separation : ndarray, shape (3,)
        Displacement from the acted-upon body to the attractor.
    constants : Constants
        Run-wide G and softener.

    Returns
    -------
    ndarray, shape (3,)
        Acceleration per unit attractor mass, pointing along `separation`.

    Notes
    -----
    The magnitude is G / (|r|² + softener), bounded above by G / softener
    as r → 0. The direction, however, is undefined at r = 0 and the result
    is NaN there; a particle must never be paired with itself.

    Examples
    --------
    >>> c = Constants(G=1.0, softener=0.0001)
    >>> specific_acceleration(np.array([2.0, 0.0, 0.0]), c)
    array([0.24999375, 0.        , 0.        ])
    """
    scale = constants.G / (magnitude_squared(separation) + constants.softener)
    return scale * normalize(separation)
