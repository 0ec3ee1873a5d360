#!/usr/bin/env python3
"""
Main command-line interface for the N-body orbit simulator.

This script runs a simulation described by a YAML configuration. It handles:
- Configuration loading and validation
- Simulation execution with progress reporting
- CSV snapshot and JSON diagnostics output
- Optional orbit and energy plots
- Keyboard interrupt handling

Usage:
    python -m norbital.run config.yaml
    python -m norbital.run config.yaml --output-dir results --verbose
    python -m norbital.run config.yaml --validate-only
    python -m norbital.run --create-example solar_system.yaml
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Dict, List, Any, Optional

import numpy as np

from norbital.io_cfg import (
    load_config,
    validate_config,
    create_example_config,
    save_snapshots_csv,
    save_diagnostics_json,
)
from norbital.dynamics import (
    integrate_run,
    estimate_orbital_period,
    estimate_timestep,
    reference_pair,
)
from norbital.diagnostics import energy_drift_monitor


# ============================================================================
# Main simulation runner
# ============================================================================

def run_simulation(
    config: Dict[str, Any],
    verbose: bool = False,
    workers: int = 1,
) -> Dict[str, Any]:
    """
    Run the simulation described by a loaded configuration.

    Parameters
    ----------
    config : dict
        Loaded and validated configuration. Its particles end up in the
        final state.
    verbose : bool
        Enable verbose progress output
    workers : int
        Threads used for the pairwise pass

    Returns
    -------
    results : dict
        - 'trajectory': trajectory data from integrate_run
        - 'diagnostics': diagnostics list from integrate_run
        - 'summary': summary statistics dict
    """
    constants = config['constants']
    timing = config['timing']

    # Particles are advanced in place
    particles = config['particles']

    pair = reference_pair(particles)
    T_orbit = estimate_orbital_period(particles, constants, *pair) if pair else None

    print(f"Integration Interval: {timing.integration_interval!r}")
    print(f"Input Output Interval: {timing.output_interval!r}")
    print(f"Input Total Time: {timing.total_time!r}")
    print(f"Calculated Output Interval: {timing.normalized_output_interval!r}")
    print(f"Calculated Total Time: {timing.normalized_total_time!r}")

    if verbose:
        print()
        print("=" * 80)
        print("N-BODY ORBIT SIMULATOR")
        print("=" * 80)
        print()
        print(constants)
        print()
        print(f"Particles ({len(particles)}):")
        for p in particles:
            print(f"  {p.name:12s}: kind={p.kind:8s} M={p.mass:.6e}")
        print()
        print("Integration parameters:")
        print(f"  Timestep dt:        {timing.integration_interval:.6e}")
        print(f"  Total steps:        {timing.n_steps:,}")
        print(f"  Snapshots every:    {timing.steps_per_output} steps")
        if T_orbit is not None:
            primary, secondary = pair
            n_orbits = timing.normalized_total_time / T_orbit
            dt_hint = estimate_timestep(particles, constants, 0.001, primary, secondary)
            print(f"  Est. orbital period: {T_orbit:.3e}  ({n_orbits:.1f} orbits of "
                  f"{particles[secondary].name} about {particles[primary].name})")
            print(f"  Suggested dt:       {dt_hint:.3e}")
        print()

    opts = {
        'workers': workers,
        'verbose': verbose,
        'progress_every': max(1, timing.n_outputs // 100),
        'track_max_speed': True,
    }

    t_start = time.perf_counter()
    trajectory, diagnostics = integrate_run(particles, constants, timing, opts)
    elapsed = time.perf_counter() - t_start

    summary = compute_summary(trajectory, diagnostics, timing, elapsed, T_orbit)

    return {
        'trajectory': trajectory,
        'diagnostics': diagnostics,
        'summary': summary,
    }


def compute_summary(
    trajectory: Dict,
    diagnostics: List[Dict],
    timing,
    elapsed_time: float,
    T_orbit: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Compute summary statistics from simulation results.

    Returns
    -------
    summary : dict
        - timing: wall time, steps/sec
        - integration: steps, dt, total time, snapshots, estimated period
        - energy: drift monitor output (None for a single snapshot)
        - momentum: initial/final |P| and drift
        - max_speed: per-particle maximum speed (if tracked)
    """
    n_steps = timing.n_steps
    p_initial = diagnostics[0]['total_momentum']
    p_final = diagnostics[-1]['total_momentum']

    energy = energy_drift_monitor(diagnostics) if len(diagnostics) > 1 else None

    summary = {
        'timing': {
            'elapsed_seconds': elapsed_time,
            'steps_per_second': n_steps / elapsed_time if elapsed_time > 0 else 0.0,
        },
        'integration': {
            'n_steps': n_steps,
            'dt': timing.integration_interval,
            'total_time': float(trajectory['t'][-1]),
            'n_snapshots': len(trajectory['t']),
            'orbital_period': T_orbit,
            'n_orbits': float(trajectory['t'][-1]) / T_orbit if T_orbit else None,
        },
        'energy': energy,
        'momentum': {
            'initial_magnitude': float(np.linalg.norm(p_initial)),
            'final_magnitude': float(np.linalg.norm(p_final)),
            'drift_magnitude': float(np.linalg.norm(p_final - p_initial)),
        },
        'max_speed': (
            dict(zip(trajectory['names'], trajectory['max_speed'].tolist()))
            if 'max_speed' in trajectory else None
        ),
    }
    return summary


def print_summary(summary: Dict[str, Any], verbose: bool = False) -> None:
    """Print human-readable simulation summary."""
    print()
    print("=" * 80)
    print("SIMULATION SUMMARY")
    print("=" * 80)
    print()

    t = summary['timing']
    print(f"The program runtime was: {t['elapsed_seconds']:.3f} s")
    print(f"  Speed:              {t['steps_per_second']:.1f} steps/second")
    print()

    i = summary['integration']
    print(f"Integration:")
    print(f"  Total steps:        {i['n_steps']:,}")
    print(f"  Timestep dt:        {i['dt']:.6e}")
    print(f"  Total time:         {i['total_time']:.6e}")
    print(f"  Snapshots:          {i['n_snapshots']}")
    if i['orbital_period'] is not None:
        print(f"  Orbital period:     {i['orbital_period']:.6e}  ({i['n_orbits']:.2f} orbits)")
    print()

    e = summary['energy']
    if e is not None:
        print(f"Energy:")
        print(f"  Initial energy:     {e['E0']:+.10e}")
        print(f"  Final energy:       {e['Ef']:+.10e}")
        print(f"  Relative drift:     {e['dE_rel']:.6e}")

        if e['dE_rel'] < 1e-5:
            quality = "EXCELLENT"
        elif e['dE_rel'] < 1e-3:
            quality = "GOOD"
        elif e['dE_rel'] < 1e-2:
            quality = "ACCEPTABLE"
        else:
            quality = "POOR (check timestep)"
        print(f"  Quality:            {quality}")
        print()

    if verbose:
        m = summary['momentum']
        print(f"Momentum conservation:")
        print(f"  Initial |p|:        {m['initial_magnitude']:.6e}")
        print(f"  Final |p|:          {m['final_magnitude']:.6e}")
        print(f"  Drift |Δp|:         {m['drift_magnitude']:.6e}")
        print()

        if summary['max_speed'] is not None:
            print(f"Maximum speeds:")
            for name, speed in summary['max_speed'].items():
                print(f"  {name:12s}: {speed:.6e}")
            print()


def sample_indices(n_snapshots: int, max_rows: int) -> List[int]:
    """Evenly spaced snapshot indices, always including the first and last."""
    if n_snapshots <= max_rows:
        return list(range(n_snapshots))
    picks = np.linspace(0, n_snapshots - 1, max(2, max_rows)).round().astype(int)
    return sorted(set(picks.tolist()))


def print_trajectory_table(trajectory: Dict, max_rows: int = 20) -> None:
    """
    Print a per-particle sample of the trajectory.

    Particles are listed in snapshot-file order (test particles, then
    massive ones). Each block shows up to max_rows evenly spaced snapshots
    with position, distance from the origin and speed.
    """
    times = trajectory['t']
    positions = trajectory['x']
    velocities = trajectory['v']
    masses = trajectory['M']
    kinds = trajectory['kinds']
    names = trajectory['names']
    rows = sample_indices(len(times), max_rows)

    print()
    print("=" * 80)
    print("TRAJECTORY SAMPLE")
    print("=" * 80)

    order = ([j for j, k in enumerate(kinds) if k == 'test']
             + [j for j, k in enumerate(kinds) if k == 'massive'])
    for j in order:
        label = names[j] or f"particle_{j}"
        if kinds[j] == 'test':
            print(f"\n{label} (test particle)")
        else:
            print(f"\n{label} (massive, M={masses[j]:.6e})")
        print(f"  {'t':>12s}  {'x':>14s}  {'y':>14s}  {'z':>14s}  {'|r|':>12s}  {'|v|':>12s}")

        r = np.linalg.norm(positions[rows, j], axis=1)
        speed = np.linalg.norm(velocities[rows, j], axis=1)
        for k, i in enumerate(rows):
            x = positions[i, j]
            print(f"  {times[i]:12.6e}  {x[0]:+14.6e}  {x[1]:+14.6e}  {x[2]:+14.6e}  "
                  f"{r[k]:12.6e}  {speed[k]:12.6e}")

    print()


def save_outputs(
    config: Dict[str, Any],
    results: Dict[str, Any],
    output_dir: Path,
    plot: bool = False,
    verbose: bool = False,
) -> List[Path]:
    """
    Save simulation outputs (CSV, JSON, plots).

    Returns
    -------
    list of Path
        Files written.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    trajectory = results['trajectory']
    diagnostics = results['diagnostics']
    outputs = config['outputs']
    written = []

    if outputs['write_csv']:
        csv_path = output_dir / outputs['csv_name']
        if verbose:
            print(f"Saving snapshots to {csv_path}...")
        save_snapshots_csv(str(csv_path), trajectory)
        written.append(csv_path)

    diag_dict = {
        'times': trajectory['t'],
        'total_energy': [d['total_energy'] for d in diagnostics],
        'kinetic_energy': [d['kinetic_energy'] for d in diagnostics],
        'potential_energy': [d['potential_energy'] for d in diagnostics],
        'max_speed': [d['max_speed'] for d in diagnostics],
        'summary': results['summary'],
    }
    json_path = output_dir / "diagnostics.json"
    if verbose:
        print(f"Saving diagnostics to {json_path}...")
    save_diagnostics_json(str(json_path), diag_dict)
    written.append(json_path)

    plots = set(outputs.get('plots', []))
    if plot:
        plots.update({'orbits', 'energy'})
    if plots & {'orbits', 'energy'}:
        from norbital import viz
        viz.use_headless_backend()
        if 'orbits' in plots:
            path = output_dir / "orbits.png"
            viz.plot_orbits(trajectory, str(path))
            written.append(path)
        if 'energy' in plots:
            path = output_dir / "energy.png"
            viz.plot_energy(diagnostics, str(path))
            written.append(path)

    print()
    print(f"✓ Outputs saved to: {output_dir.absolute()}")
    for path in written:
        print(f"  - {path.name}")
    print()

    return written


# ============================================================================
# Command-line interface
# ============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='norbital.run',
        description=(
            'N-body orbit simulator: integrate softened Newtonian gravity for '
            'massive bodies and massless test particles.'
        ),
        epilog=(
            'Examples:\n'
            '  python -m norbital.run --create-example solar_system.yaml\n'
            '  python -m norbital.run solar_system.yaml --output-dir results --verbose\n'
            '  python -m norbital.run solar_system.yaml --validate-only\n'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        'config',
        type=str,
        nargs='?',
        help='Path to YAML configuration file',
    )
    parser.add_argument(
        '--create-example',
        type=str,
        metavar='PATH',
        help='Write an example configuration to PATH and exit',
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default='output',
        help='Output directory for results (default: output/)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (progress, diagnostics, etc.)',
    )
    parser.add_argument(
        '--validate-only',
        action='store_true',
        help='Validate configuration and exit (no simulation)',
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=1,
        help='Threads for the pairwise force pass (default: 1)',
    )
    parser.add_argument(
        '--plot',
        action='store_true',
        help='Write orbit and energy plots',
    )
    parser.add_argument(
        '--no-table',
        action='store_true',
        help='Skip trajectory table output',
    )
    parser.add_argument(
        '--table-rows',
        type=int,
        default=20,
        help='Number of rows in trajectory table (default: 20)',
    )

    return parser


def main(argv=None):
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.create_example:
        create_example_config(args.create_example)
        return 0

    if args.config is None:
        parser.print_usage(sys.stderr)
        print("ERROR: a configuration file is required", file=sys.stderr)
        return 1

    if args.workers < 1:
        print(f"ERROR: --workers must be at least 1, got {args.workers}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir)

    # 1) Load configuration
    try:
        if args.verbose:
            print(f"Loading configuration from: {args.config}")
            print()
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"ERROR: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    # 2) Validate configuration
    is_valid, warnings_list = validate_config(config)

    if warnings_list:
        print("⚠️  Configuration warnings/errors:")
        for w in warnings_list:
            print(f"    - {w}")
        print()

    if not is_valid:
        print("❌ Configuration is INVALID. Please fix errors above.", file=sys.stderr)
        return 1

    if args.validate_only:
        print("✓ Configuration validated successfully. Exiting (--validate-only mode).")
        return 0

    # 3) Run simulation
    try:
        results = run_simulation(config, verbose=args.verbose, workers=args.workers)
    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user. Exiting without saving.")
        return 130
    except Exception as e:
        print(f"\nERROR: Simulation failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    # 4) Print summary
    print_summary(results['summary'], verbose=args.verbose)

    # 5) Print trajectory table
    if not args.no_table:
        print_trajectory_table(results['trajectory'], max_rows=args.table_rows)

    # 6) Save outputs
    try:
        save_outputs(config, results, output_dir, plot=args.plot, verbose=args.verbose)
    except OSError as e:
        print(f"ERROR: Failed to save outputs: {e}", file=sys.stderr)
        return 1

    print("=" * 80)
    print("✓ Simulation complete!")
    print("=" * 80)
    print()

    return 0


if __name__ == '__main__':
    sys.exit(main())
