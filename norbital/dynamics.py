"""
Time integration module for the N-body orbit simulator.

A step at fixed interval dt has three phases:

1. Reset every particle's acceleration accumulator to zero
2. Accumulate pairwise contributions:
   - the pairwise pass reads positions and masses only and sums each
     particle's contributions into a scratch buffer (optionally split
     across worker threads, one buffer per worker)
   - the buffer is then applied with one `accumulate` per particle
3. Integrate every particle:
       x' = x + a dt²/2 + v dt
       v' = a dt + v

Phase 1 guarantees nothing carries over between steps, and the pair
schedule from `interaction_pairs` guarantees every interacting pair is
counted exactly once.

The outer loop (`integrate_run`) advances the system in blocks of
`steps_per_output` steps and records a snapshot after each block.
"""

from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from norbital.constants import Constants
from norbital.diagnostics import compute_diagnostics
from norbital.interactions import Pair, chunk_pairs, interaction_pairs, partial_sums
from norbital.particles import Particle
from norbital.timing import Timing


# ============================================================================
# Core integration functions
# ============================================================================

def accumulate_accelerations(
    particles: Sequence[Particle],
    constants: Constants,
    pairs: Optional[Sequence[Pair]] = None,
    executor=None,
    workers: int = 1,
) -> np.ndarray:
    """
    Run the pairwise pass and apply it to the particles' accumulators.

    Parameters
    ----------
    particles : sequence of Particle
        All particles of the system, in a fixed order.
    constants : Constants
        Run-wide G and softener.
    pairs : sequence of (int, int), optional
        Pair schedule; defaults to `interaction_pairs(particles)`.
    executor : concurrent.futures.Executor, optional
        Pool used when workers > 1.
    workers : int
        Number of slices the schedule is split into. Each slice fills its
        own partial-sum buffer; buffers are added together in slice order,
        so a given worker count always yields the same bits.

    Returns
    -------
    ndarray, shape (N, 3)
        The applied per-particle totals (for inspection).

    Raises
    ------
    AccessConflict
        If an accumulator is borrowed while the totals are applied.
    """
    if pairs is None:
        pairs = interaction_pairs(particles)

    if executor is not None and workers > 1 and len(pairs) > 1:
        chunks = chunk_pairs(pairs, workers)
        buffers = list(executor.map(
            lambda chunk: partial_sums(particles, chunk, constants), chunks
        ))
        totals = np.zeros((len(particles), 3), dtype=np.float64)
        for buffer in buffers:
            totals += buffer
    else:
        totals = partial_sums(particles, pairs, constants)

    for particle, total in zip(particles, totals):
        particle.accumulate(total)

    return totals


def step(
    particles: Sequence[Particle],
    constants: Constants,
    dt: float,
    opts: Optional[Dict] = None,
) -> None:
    """
    Advance all particles by one integration interval.

    Parameters
    ----------
    particles : sequence of Particle
        Modified IN-PLACE.
    constants : Constants
    dt : float
        Timestep.
    opts : dict, optional
        'pairs' : precomputed pair schedule
        'executor' : thread pool for the pairwise pass
        'workers' : int, number of pairwise slices (default: 1)

    Examples
    --------
    >>> from norbital.particles import MassiveParticle
    >>> sun = MassiveParticle([0, 0, 0], [0, 0, 0], M=1048.0)
    >>> earth = MassiveParticle([1, 0, 0], [0, 6.283, 0], M=0.003146)
    >>> step([sun, earth], Constants(), 0.001)
    >>> bool(earth.position[0] < 1.0)
    True
    """
    if opts is None:
        opts = {}

    for particle in particles:
        particle.reset_acceleration()

    accumulate_accelerations(
        particles,
        constants,
        pairs=opts.get('pairs'),
        executor=opts.get('executor'),
        workers=opts.get('workers', 1),
    )

    for particle in particles:
        particle.integrate(dt)


def integrate_run(
    particles: Sequence[Particle],
    constants: Constants,
    timing: Timing,
    opts: Optional[Dict] = None,
) -> Tuple[Dict, List[Dict]]:
    """
    Main integration loop: evolve the system for timing.n_steps steps.

    Parameters
    ----------
    particles : sequence of Particle
        Initial state; modified in-place.
    constants : Constants
        Run-wide constants.
    timing : Timing
        Timestep and snapshot schedule.
    opts : dict, optional
        'workers' : int (default: 1)
            Threads used for the pairwise pass.
        'track_max_speed' : bool (default: False)
            Record each particle's largest speed, sampled after every step.
        'verbose' : bool (default: False)
            Print progress updates.
        'progress_every' : int (default: 10)
            Print progress every N snapshots (if verbose=True).

    Returns
    -------
    trajectory : dict
        't' : ndarray, shape (n_saved,)
        'x' : ndarray, shape (n_saved, N, 3)
        'v' : ndarray, shape (n_saved, N, 3)
        'M' : ndarray, shape (N,)
        'names' : list of str
        'kinds' : list of str ('test' or 'massive')
        'max_speed' : ndarray, shape (N,) (only with track_max_speed)

        where n_saved = timing.n_outputs + 1 (includes the initial state).

    diagnostics : list of dict
        One compute_diagnostics() dict per snapshot, plus 'step' and 'time'.

    Notes
    -----
    Snapshot times are computed as k * normalized_output_interval rather
    than accumulated, so they carry no rounding drift.

    Examples
    --------
    >>> from norbital.particles import MassiveParticle, TestParticle
    >>> particles = [
    ...     MassiveParticle([0, 0, 0], [0, 0, 0], M=1048.0, name="Sun"),
    ...     TestParticle([4.0, 0, 0], [0, 7.0, 0], name="Asteroid"),
    ... ]
    >>> timing = Timing(0.001, 0.01, 1.0)
    >>> traj, diags = integrate_run(particles, Constants(), timing)
    >>> traj['x'].shape
    (101, 2, 3)
    """
    if opts is None:
        opts = {}

    workers = int(opts.get('workers', 1))
    track_max_speed = opts.get('track_max_speed', False)
    verbose = opts.get('verbose', False)
    progress_every = max(1, int(opts.get('progress_every', 10)))

    N = len(particles)
    dt = timing.integration_interval
    n_saved = timing.n_outputs + 1

    times = np.zeros(n_saved, dtype=np.float64)
    positions = np.zeros((n_saved, N, 3), dtype=np.float64)
    velocities = np.zeros((n_saved, N, 3), dtype=np.float64)
    masses = np.array([p.mass for p in particles], dtype=np.float64)
    max_speed = np.array([p.speed for p in particles], dtype=np.float64)

    diagnostics = []

    def record(idx: int, n_step: int) -> Dict:
        t = idx * timing.normalized_output_interval
        times[idx] = t
        for i, particle in enumerate(particles):
            positions[idx, i] = particle.position
            velocities[idx, i] = particle.velocity
        diag = compute_diagnostics(particles, constants)
        diag['step'] = n_step
        diag['time'] = t
        diagnostics.append(diag)
        return diag

    diag_initial = record(0, 0)

    if verbose:
        print(f"Starting integration: {timing.n_steps} steps, dt={dt:.6e}")
        print(f"  N particles: {N}")
        print(f"  Snapshots: {n_saved} (every {timing.steps_per_output} steps)")
        print(f"  Workers: {workers}")
        print(f"  Initial energy: {diag_initial['total_energy']:.6e}")
        print()

    pairs = interaction_pairs(particles)
    pool = ThreadPoolExecutor(max_workers=workers) if workers > 1 else nullcontext()

    with pool as executor:
        step_opts = {'pairs': pairs, 'executor': executor, 'workers': workers}
        n_step = 0
        for idx in range(1, n_saved):
            for _ in range(timing.steps_per_output):
                step(particles, constants, dt, step_opts)
                n_step += 1
                if track_max_speed:
                    for i, particle in enumerate(particles):
                        speed = particle.speed
                        if speed > max_speed[i]:
                            max_speed[i] = speed

            diag = record(idx, n_step)

            if verbose and idx % progress_every == 0:
                frac = idx / (n_saved - 1)
                E = diag['total_energy']
                E0 = diag_initial['total_energy']
                dE = (E - E0) / E0 if E0 != 0 else 0.0
                print(f"  Output {idx:8d}/{n_saved - 1} ({frac:6.1%})  "
                      f"t={diag['time']:10.4f}  E={E:+.6e}  ΔE/E={dE:+.2e}")

    if verbose:
        print()
        print("Integration complete!")
        print()

    trajectory = {
        't': times,
        'x': positions,
        'v': velocities,
        'M': masses,
        'names': [p.name for p in particles],
        'kinds': [p.kind for p in particles],
    }
    if track_max_speed:
        trajectory['max_speed'] = max_speed

    return trajectory, diagnostics


# ============================================================================
# Helpers
# ============================================================================

def estimate_orbital_period(
    particles: Sequence[Particle],
    constants: Constants,
    primary_idx: int = 0,
    secondary_idx: int = 1,
) -> float:
    """
    Estimate the orbital period of a two-particle pair.

    Uses the current separation as the orbit radius:

        T = 2π sqrt(r³ / (G (M₁ + M₂)))

    Softening is ignored, so the estimate is slightly short for orbits
    whose radius is comparable to the softening length.

    Raises
    ------
    ValueError
        If fewer than two particles are given or the pair has no mass.
    """
    if len(particles) < 2:
        raise ValueError("Need at least 2 particles for orbital period estimate")

    p1 = particles[primary_idx]
    p2 = particles[secondary_idx]

    r = float(np.linalg.norm(p1.separation(p2)))
    M_total = p1.mass + p2.mass
    if M_total <= 0:
        raise ValueError("Orbital period undefined for two massless particles")

    return float(2.0 * np.pi * np.sqrt(r**3 / (constants.G * M_total)))


def estimate_timestep(
    particles: Sequence[Particle],
    constants: Constants,
    fraction: float = 0.001,
    primary_idx: int = 0,
    secondary_idx: int = 1,
) -> float:
    """
    Suggest a timestep as a fraction of the orbital period.

    The Taylor update is first order, so finer fractions than for a
    symplectic scheme are needed; 1e-3 keeps drift near 1% per orbit.
    """
    return fraction * estimate_orbital_period(particles, constants, primary_idx, secondary_idx)


def reference_pair(particles: Sequence[Particle]) -> Optional[Tuple[int, int]]:
    """
    Pick the pair whose orbit sets the time scale of the run.

    The primary is the heaviest particle and the secondary is the particle
    nearest to it. Returns None without a massive particle or when every
    other particle sits on top of the primary.

    Examples
    --------
    >>> from norbital.particles import MassiveParticle, TestParticle
    >>> reference_pair([TestParticle([4, 0, 0], [0, 0, 0]),
    ...                 MassiveParticle([0, 0, 0], [0, 0, 0], M=1048.0),
    ...                 MassiveParticle([1, 0, 0], [0, 0, 0], M=0.003)])
    (1, 2)
    """
    if not particles:
        return None
    masses = [p.mass for p in particles]
    primary = int(np.argmax(masses))
    if masses[primary] <= 0:
        return None

    best = None
    best_r = np.inf
    for j, p in enumerate(particles):
        if j == primary:
            continue
        r = float(np.linalg.norm(particles[primary].separation(p)))
        if 0.0 < r < best_r:
            best, best_r = j, r
    if best is None:
        return None
    return primary, best
