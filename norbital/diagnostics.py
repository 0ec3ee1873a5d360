"""Diagnostics module for the N-body orbit simulator.

This module provides functions for monitoring conserved quantities of a
particle system:

- Total kinetic energy: T = Σ (1/2) M_a v_a²
- Softened potential energy: U = -Σ_{a<b} G M_a M_b arctan(√ε / r_ab) / √ε
- Total energy: E = T + U
- Linear momentum: P = Σ M_a v_a
- Angular momentum: L = Σ M_a (r_a × v_a)

Test particles carry no mass and drop out of every sum.

Note that the integrator is a first-order Taylor update, not a symplectic
scheme, so energy drifts slowly (O(dt) per orbit) rather than oscillating.
The drift monitor is the main tool for choosing a timestep.
"""

from typing import Dict, List, Sequence

import numpy as np

from norbital.constants import Constants
from norbital.particles import Particle


def total_kinetic_energy(particles: Sequence[Particle]) -> float:
    """Compute total kinetic energy of the system.

    Formula:
        T = Σ_a (1/2) M_a v_a²

    Examples
    --------
    >>> from norbital.particles import MassiveParticle, TestParticle
    >>> ps = [MassiveParticle([0, 0, 0], [1, 0, 0], M=1.0),
    ...       MassiveParticle([1, 0, 0], [0, 0.5, 0], M=2.0),
    ...       TestParticle([2, 0, 0], [0, 9, 0])]
    >>> total_kinetic_energy(ps)
    0.75
    """
    T = 0.0
    for particle in particles:
        T += particle.kinetic_energy
    return T


def pair_potential(r: float, M_a: float, M_b: float, constants: Constants) -> float:
    """Potential energy of one pair under the softened force law.

    The force G M_a M_b / (r² + ε) is the derivative of

        U(r) = -G M_a M_b arctan(√ε / r) / √ε

    which vanishes as r → ∞, tends to -G M_a M_b / r for r >> √ε and stays
    finite at r = 0 (-π G M_a M_b / (2√ε)).
    """
    eps_root = constants.softening_length
    return -constants.G * M_a * M_b * float(np.arctan2(eps_root, r)) / eps_root


def softened_potential_energy(particles: Sequence[Particle], constants: Constants) -> float:
    """Compute the pair interaction energy of all massive particles.

    Parameters
    ----------
    particles : sequence of Particle
    constants : Constants

    Returns
    -------
    float
        Σ_{a<b} U(r_ab); 0.0 with fewer than two massive particles.
    """
    massive = [p for p in particles if p.mass > 0]
    U = 0.0
    for i, a in enumerate(massive):
        for b in massive[i + 1:]:
            r = float(np.linalg.norm(a.separation(b)))
            U += pair_potential(r, a.mass, b.mass, constants)
    return U


def total_energy(particles: Sequence[Particle], constants: Constants) -> float:
    """Total energy E = T + U."""
    return total_kinetic_energy(particles) + softened_potential_energy(particles, constants)


def total_momentum(particles: Sequence[Particle]) -> np.ndarray:
    """Total linear momentum Σ M_a v_a, shape (3,)."""
    P = np.zeros(3)
    for particle in particles:
        P += particle.mass * particle.velocity
    return P


def angular_momentum(particles: Sequence[Particle]) -> np.ndarray:
    """Compute total angular momentum vector about the origin.

    Formula:
        L = Σ_a M_a (r_a × v_a)

    Central pairwise forces conserve L exactly; the integrator conserves
    it to O(dt).

    Examples
    --------
    >>> from norbital.particles import MassiveParticle
    >>> ps = [MassiveParticle([1, 0, 0], [0, 0.5, 0], M=1.0),
    ...       MassiveParticle([-1, 0, 0], [0, -0.5, 0], M=1.0)]
    >>> angular_momentum(ps)
    array([0., 0., 1.])
    """
    L = np.zeros(3)
    for particle in particles:
        L += particle.mass * np.cross(particle.position, particle.velocity)
    return L


def compute_diagnostics(particles: Sequence[Particle], constants: Constants) -> Dict:
    """
    Snapshot of conserved quantities for the current state.

    Returns
    -------
    diagnostics : dict
        'kinetic_energy', 'potential_energy', 'total_energy' : float
        'total_momentum' : ndarray, shape (3,)
        'angular_momentum' : ndarray, shape (3,)
        'speeds' : ndarray, shape (N,)
        'max_speed' : float
    """
    KE = total_kinetic_energy(particles)
    PE = softened_potential_energy(particles, constants)
    speeds = np.array([p.speed for p in particles], dtype=np.float64)
    return {
        'kinetic_energy': KE,
        'potential_energy': PE,
        'total_energy': KE + PE,
        'total_momentum': total_momentum(particles),
        'angular_momentum': angular_momentum(particles),
        'speeds': speeds,
        'max_speed': float(speeds.max()) if len(speeds) else 0.0,
    }


def energy_drift_monitor(diagnostics: List[Dict]) -> Dict[str, float]:
    """Monitor energy drift over a run.

    Parameters
    ----------
    diagnostics : list of dict
        Per-snapshot diagnostics as returned by integrate_run.

    Returns
    -------
    dict
        - 'E0': initial energy
        - 'Ef': final energy
        - 'dE': absolute drift |Ef - E0|
        - 'dE_rel': relative drift |ΔE|/|E₀| (inf if E0 == 0)
        - 'dE_max': maximum absolute deviation from E₀

    Raises
    ------
    ValueError
        With fewer than two snapshots.
    """
    if len(diagnostics) < 2:
        raise ValueError("Need at least 2 snapshots to compute energy drift")

    energies = np.array([d['total_energy'] for d in diagnostics])
    E0 = energies[0]
    Ef = energies[-1]

    dE = abs(Ef - E0)
    dE_rel = dE / abs(E0) if E0 != 0 else np.inf
    dE_max = np.max(np.abs(energies - E0))

    return {
        'E0': float(E0),
        'Ef': float(Ef),
        'dE': float(dE),
        'dE_rel': float(dE_rel),
        'dE_max': float(dE_max),
    }
