"""Visualization module for the N-body orbit simulator.

This module provides plotting functions for finished runs:
- Orbit plot (x-y projection of every particle's path)
- Relative energy drift over time

Design principles:
- Consistent colors per particle across plots
- Test particles drawn dashed, massive particles solid
- Initial positions marked with circles, final positions with squares
"""

from typing import Dict, List
from pathlib import Path

import numpy as np

# Import matplotlib with proper backend handling
try:
    import matplotlib
    import matplotlib.pyplot as plt
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

COLORS = ['orange', 'blue', 'red', 'green', 'purple', 'brown', 'pink', 'gray']


def _check_matplotlib():
    """Raise ImportError if matplotlib is not installed."""
    if not HAS_MATPLOTLIB:
        raise ImportError(
            "matplotlib is required for visualization. "
            "Install with: pip install matplotlib"
        )


def plot_orbits(
    trajectory: Dict[str, np.ndarray],
    output_path: str,
    dpi: int = 150
) -> None:
    """Plot the x-y projection of every particle's trajectory.

    Parameters
    ----------
    trajectory : dict
        Trajectory from integrate_run(). Uses 'x', 'names' and 'kinds'.
    output_path : str
        Output file path (e.g., "output/orbits.png").
    dpi : int, optional
        Output resolution (default: 150).

    Examples
    --------
    Typical use after a run::

        trajectory, diagnostics = integrate_run(particles, constants, timing)
        plot_orbits(trajectory, "output/orbits.png")
    """
    _check_matplotlib()

    x = trajectory['x']  # Shape: (n_saved, N, 3)
    _, n_particles, _ = x.shape
    names: List[str] = trajectory.get('names') or [f"Particle {i}" for i in range(n_particles)]
    kinds: List[str] = trajectory.get('kinds') or ['massive'] * n_particles

    fig, ax = plt.subplots(figsize=(8, 8))

    for i in range(n_particles):
        color = COLORS[i % len(COLORS)]
        linestyle = '--' if kinds[i] == 'test' else '-'
        ax.plot(x[:, i, 0], x[:, i, 1], color=color, linestyle=linestyle,
                linewidth=1.2, label=names[i] or f"Particle {i}", alpha=0.8)
        ax.scatter(x[0, i, 0], x[0, i, 1], color=color, marker='o', s=40,
                   edgecolors='black', linewidth=0.8)
        ax.scatter(x[-1, i, 0], x[-1, i, 1], color=color, marker='s', s=40,
                   edgecolors='black', linewidth=0.8)

    ax.set_xlabel('x [AU]', fontsize=12)
    ax.set_ylabel('y [AU]', fontsize=12)
    ax.set_title('Orbits (x-y projection)', fontsize=14, fontweight='bold')
    ax.set_aspect('equal', adjustable='datalim')
    ax.legend(loc='best', fontsize=9)
    ax.grid(True, alpha=0.3)

    _save(fig, output_path, dpi)
    print(f"Saved orbit plot to {output_path}")


def plot_energy(
    diagnostics: List[Dict],
    output_path: str,
    dpi: int = 150
) -> None:
    """Plot relative energy drift (E - E0)/|E0| against time."""
    _check_matplotlib()

    times = np.array([d['time'] for d in diagnostics])
    energies = np.array([d['total_energy'] for d in diagnostics])
    E0 = energies[0]
    scale = abs(E0) if E0 != 0 else 1.0

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(times, (energies - E0) / scale, color='blue', linewidth=1.2)
    ax.axhline(0.0, color='black', linewidth=0.8, alpha=0.5)
    ax.set_xlabel('Time [yr]', fontsize=12)
    ax.set_ylabel('ΔE / |E₀|', fontsize=12)
    ax.set_title('Energy drift', fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)

    _save(fig, output_path, dpi)
    print(f"Saved energy plot to {output_path}")


def _save(fig, output_path: str, dpi: int) -> None:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)


def use_headless_backend() -> None:
    """Switch matplotlib to the non-interactive Agg backend."""
    _check_matplotlib()
    matplotlib.use('Agg')
