"""
Pairwise interaction drivers.

For every interacting pair the softened kernel is evaluated once, from the
first particle's side, and the result is shared between both participants:

    s = specific_acceleration(a.separation(b))
    a receives  s * M_b
    b receives -s * M_a

which is Newton's third law expressed as a single kernel evaluation. A
massless participant never exerts force, so a test particle's partner is
left untouched.

Both pair contributions come from `pair_contributions`. Two ways of
delivering them are provided:

- interact_generic (and the named drivers built on it) accumulate straight
  into the particles' accumulators;
- partial_sums writes into a separate (N, 3) scratch buffer while the
  particles are only read. The step loop uses this form, which keeps all
  mutation out of the pairwise pass and lets the pass be split across
  workers.

Pair schedule
-------------
For T test and M massive particles, `interaction_pairs` yields T*M
(test, massive) pairs followed by M(M-1)/2 unordered massive pairs. No pair
appears twice and no particle is paired with itself.
"""

from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np

from norbital.constants import Constants
from norbital.kernel import specific_acceleration
from norbital.particles import Particle, split_by_kind
from norbital.vectors import Vec3

Pair = Tuple[int, int]


def pair_kernel(a: Particle, b: Particle, constants: Constants) -> Vec3:
    """Specific acceleration for the pair, directed from a toward b."""
    return specific_acceleration(a.separation(b), constants)


def pair_contributions(
    a: Particle,
    b: Particle,
    constants: Constants,
) -> Tuple[Optional[Vec3], Optional[Vec3]]:
    """
    Accelerations the pair imparts on each other, from one kernel evaluation.

    Every delivery path (the in-place drivers and the scratch-buffer pass)
    goes through this function.

    Returns
    -------
    to_a, to_b : ndarray, shape (3,), or None
        Contribution to a and to b. None where the source is massless, so
        a test particle never writes into its partner.
    """
    s = pair_kernel(a, b, constants)
    return a.contribution_from(b, s), b.contribution_from(a, -s)


def interact_generic(a: Particle, b: Particle, constants: Constants) -> None:
    """
    Accumulate the mutual pull of two particles into their accumulators.

    Parameters
    ----------
    a, b : Particle
        Distinct particles of either kind.
    constants : Constants
        Run-wide G and softener.

    Raises
    ------
    AccessConflict
        If either accumulator is borrowed elsewhere.

    Examples
    --------
    >>> from norbital.particles import MassiveParticle
    >>> c = Constants(G=1.0, softener=1e-12)
    >>> a = MassiveParticle([0, 0, 0], [0, 0, 0], M=2.0)
    >>> b = MassiveParticle([1, 0, 0], [0, 0, 0], M=1.0)
    >>> interact_generic(a, b, c)
    >>> a.read_acceleration().round(6).tolist(), b.read_acceleration().round(6).tolist()
    ([1.0, 0.0, 0.0], [-2.0, 0.0, 0.0])
    """
    to_a, to_b = pair_contributions(a, b, constants)
    if to_a is not None:
        a.accumulate(to_a)
    if to_b is not None:
        b.accumulate(to_b)


def interact_test_massive(test: Particle, massive: Particle, constants: Constants) -> None:
    """Pull of a massive particle on a test particle; the massive one is unaffected."""
    interact_generic(test, massive, constants)


def interact_massive_massive(a: Particle, b: Particle, constants: Constants) -> None:
    """Mutual pull of two massive particles."""
    interact_generic(a, b, constants)


def interaction_pairs(particles: Sequence[Particle]) -> List[Pair]:
    """
    Index pairs that interact in one step.

    Test/massive pairs come first (in list order), then massive/massive
    pairs with i < j. Test/test pairs never interact.

    Examples
    --------
    >>> from norbital.particles import TestParticle, MassiveParticle
    >>> ps = [MassiveParticle([0, 0, 0], [0, 0, 0], 1.0),
    ...       TestParticle([1, 0, 0], [0, 0, 0]),
    ...       MassiveParticle([2, 0, 0], [0, 0, 0], 1.0)]
    >>> interaction_pairs(ps)
    [(1, 0), (1, 2), (0, 2)]
    """
    tests, massive = split_by_kind(particles)
    pairs = [(t, m) for t in tests for m in massive]
    pairs.extend(combinations(massive, 2))
    return pairs


def partial_sums(
    particles: Sequence[Particle],
    pairs: Sequence[Pair],
    constants: Constants,
) -> np.ndarray:
    """
    Sum the contributions of `pairs` into a fresh scratch buffer.

    Particles are only read; nothing is written to their accumulators.

    Returns
    -------
    ndarray, shape (N, 3)
        Row i is the total acceleration `pairs` impart on particles[i].
    """
    buffer = np.zeros((len(particles), 3), dtype=np.float64)
    for i, j in pairs:
        to_i, to_j = pair_contributions(particles[i], particles[j], constants)
        if to_i is not None:
            buffer[i] += to_i
        if to_j is not None:
            buffer[j] += to_j
    return buffer


def chunk_pairs(pairs: Sequence[Pair], n_chunks: int) -> List[Sequence[Pair]]:
    """Split the schedule into at most n_chunks contiguous, non-empty slices."""
    n_chunks = max(1, min(n_chunks, len(pairs)))
    bounds = np.linspace(0, len(pairs), n_chunks + 1).astype(int)
    return [pairs[lo:hi] for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo]
