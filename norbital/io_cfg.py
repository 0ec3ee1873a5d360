"""Configuration and I/O module for the N-body orbit simulator.

This module provides:
- YAML configuration loading and validation
- Example config generation
- CSV output (and read-back) of trajectory snapshots
- JSON output for diagnostics

Snapshot CSV layout, one row per output tick after a header row:

    Time,,[x,y,z,vx,vy,vz,]*test,[m,x,y,z,vx,vy,vz,]*massive

Test particles come first, then massive particles, each group in the order
of the configuration. Every particle block ends with an empty separator
field.
"""

from typing import Dict, List, Tuple, Any
import json
from pathlib import Path
import warnings

import numpy as np
import yaml

from norbital.constants import Constants, G_JUPITER_AU_YEAR, DEFAULT_SOFTENER
from norbital.particles import MassiveParticle, Particle, TestParticle
from norbital.timing import Timing

_TEST_KINDS = {'test', 'testparticle', 'test_particle'}
_MASSIVE_KINDS = {'massive', 'massiveparticle', 'massive_particle'}


def particle_from_config(index: int, particle_cfg: Dict[str, Any]) -> Particle:
    """Build one particle from its configuration mapping.

    Raises
    ------
    KeyError
        If 'kind', 'x', 'v' (or 'M' for a massive particle) is missing.
    ValueError
        If a value has the wrong shape or range, or the kind is unknown.
    """
    name = str(particle_cfg.get('name', f"particle_{index}"))
    try:
        kind = str(particle_cfg['kind']).strip().lower()
        x = particle_cfg['x']
        v = particle_cfg['v']
        if kind in _TEST_KINDS:
            if float(particle_cfg.get('M', 0.0)) != 0.0:
                warnings.warn(
                    f"Particle {index} ('{name}') is a test particle; its mass "
                    f"{particle_cfg['M']} is ignored",
                    UserWarning
                )
            return TestParticle(x, v, name=name)
        if kind in _MASSIVE_KINDS:
            return MassiveParticle(x, v, M=float(particle_cfg['M']), name=name)
    except KeyError as e:
        raise KeyError(f"Particle {index} ('{name}') missing required field {e}")
    except (ValueError, TypeError) as e:
        raise ValueError(f"Particle {index} ('{name}'): {e}")

    raise ValueError(
        f"Particle {index} ('{name}'): unknown kind {particle_cfg['kind']!r}, "
        f"expected 'test' or 'massive'"
    )


def load_config(yaml_path: str) -> Dict[str, Any]:
    """Load and parse YAML configuration file.

    Parameters
    ----------
    yaml_path : str
        Path to YAML configuration file.

    Returns
    -------
    dict
        Configuration dictionary with keys:
        - 'constants': Constants instance (G, softener)
        - 'timing': Timing instance
        - 'particles': list of TestParticle / MassiveParticle in file order
        - 'outputs': dict of output options (write_csv, csv_name, plots)

    Raises
    ------
    FileNotFoundError
        If yaml_path does not exist.
    yaml.YAMLError
        If YAML parsing fails.
    KeyError
        If required sections or fields are missing.
    ValueError
        If values are invalid (non-positive intervals, bad vectors, etc.).

    Notes
    -----
    The 'constants' section is optional and defaults to the Jupiter mass -
    AU - year system with softener 0.01. 'timing' and 'particles' are
    required.

    Examples
    --------
    Typical use::

        config = load_config("solar_system.yaml")
        config['timing'].n_steps      # 100000
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with open(yaml_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Empty or invalid YAML file: {yaml_path}")

    # Parse constants
    constants_cfg = raw_config.get('constants') or {}
    constants = Constants(
        G=float(constants_cfg.get('G', G_JUPITER_AU_YEAR)),
        softener=float(constants_cfg.get('softener', DEFAULT_SOFTENER)),
    )

    # Parse timing
    if 'timing' not in raw_config:
        raise KeyError("Configuration missing required section 'timing'")

    timing_cfg = raw_config['timing']
    try:
        timing = Timing(
            integration_interval=float(timing_cfg['integration_interval']),
            output_interval=float(timing_cfg['output_interval']),
            total_time=float(timing_cfg['total_time']),
        )
    except KeyError as e:
        raise KeyError(f"Section 'timing' missing required field {e}")

    # Parse particles
    if 'particles' not in raw_config:
        raise KeyError("Configuration missing required section 'particles'")

    particles_cfg = raw_config['particles']
    if not isinstance(particles_cfg, list) or len(particles_cfg) == 0:
        raise ValueError("Configuration 'particles' must be a non-empty list")

    particles = [
        particle_from_config(i, particle_cfg)
        for i, particle_cfg in enumerate(particles_cfg)
    ]

    # Parse output options
    outputs_cfg = raw_config.get('outputs') or {}
    outputs = {
        'write_csv': bool(outputs_cfg.get('write_csv', True)),
        'csv_name': str(outputs_cfg.get('csv_name', 'data.csv')),
        'plots': list(outputs_cfg.get('plots', [])),
    }

    return {
        'constants': constants,
        'timing': timing,
        'particles': particles,
        'outputs': outputs,
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate configuration for physical consistency and numerical stability.

    Parameters
    ----------
    config : dict
        Configuration dictionary from load_config().

    Returns
    -------
    is_valid : bool
        True if configuration passes all checks (may still have warnings).
    warnings_list : list of str
        Messages about problems (errors and warnings).

    Notes
    -----
    **Checks performed**:

    1. Interacting particles must not start at the same position (the force
       direction is undefined there).
    2. Particle names should be unique (they label CSV columns and plots).
    3. Without any massive particle every particle moves in a straight line.
    4. Timestep: dt < 0.01 * estimated period of the tightest pair.
    5. Known plot names.
    """
    warnings_list = []
    is_valid = True

    try:
        constants = config['constants']
        timing = config['timing']
        particles = config['particles']
        outputs = config['outputs']
    except KeyError as e:
        return False, [f"Missing required config section: {e}"]

    if len(particles) < 1:
        return False, ["Configuration must have at least one particle"]

    names = [p.name for p in particles]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        warnings_list.append(f"Duplicate particle names: {', '.join(duplicates)}")

    massive = [p for p in particles if p.mass > 0]
    if not massive:
        warnings_list.append(
            "No massive particles: every particle will move in a straight line"
        )

    min_period = None
    for i, a in enumerate(particles):
        for b in particles[i + 1:]:
            if a.mass == 0 and b.mass == 0:
                continue
            r = float(np.linalg.norm(a.separation(b)))
            if r == 0.0:
                is_valid = False
                warnings_list.append(
                    f"Particles '{a.name}' and '{b.name}' start at the same position; "
                    f"the force direction is undefined"
                )
                continue
            period = 2.0 * np.pi * np.sqrt(r**3 / (constants.G * (a.mass + b.mass)))
            if min_period is None or period < min_period:
                min_period = period

    if min_period is not None and timing.integration_interval > 0.01 * min_period:
        warnings_list.append(
            f"Timestep dt = {timing.integration_interval:.3e} is large compared to "
            f"the shortest estimated orbital period T ~ {min_period:.3e}. "
            f"Consider dt < {0.01 * min_period:.3e} for accuracy."
        )

    unknown_plots = [p for p in outputs.get('plots', []) if p not in ('orbits', 'energy')]
    if unknown_plots:
        warnings_list.append(f"Unknown plots ignored: {', '.join(map(str, unknown_plots))}")

    return is_valid, warnings_list


def create_example_config(output_path: str) -> None:
    """Generate example YAML configuration file.

    Writes the inner Solar System in Jupiter mass - AU - year units: the Sun
    at rest, Mercury, Venus and Earth on near-circular orbits, and a test
    asteroid at 4 AU.

    Examples
    --------
    Typical use::

        create_example_config("solar_system.yaml")
        len(load_config("solar_system.yaml")['particles'])   # 5
    """
    constants = Constants()
    dt = 0.001
    output_interval = 0.01
    total_time = 100.0

    yaml_content = f"""# N-body orbit simulator configuration
# Inner Solar System example
#
# Units: masses in Jupiter masses, lengths in AU, times in years.

# ============================================================================
# Constants
# ============================================================================
constants:
  # Gravitational constant [AU^3 / (M_J yr^2)]
  G: {constants.G!r}

  # Softening term added to r^2 in the force law [AU^2]
  # Bounds the force as bodies approach each other.
  softener: {constants.softener!r}

# ============================================================================
# Timing
# ============================================================================
timing:
  # Exact timestep [yr]
  integration_interval: {dt!r}

  # Snapshot cadence [yr], rounded down to a multiple of the timestep
  output_interval: {output_interval!r}

  # Run length [yr], rounded down to a multiple of the output interval
  total_time: {total_time!r}

# ============================================================================
# Particles
# ============================================================================
# kind: massive (exerts and feels gravity, needs M) or test (massless tracer)
particles:
  - name: Sun
    kind: massive
    M: 1048.0
    x: [0.0, 0.0, 0.0]
    v: [0.0, 0.0, 0.0]

  - name: Mercury
    kind: massive
    M: 0.0001739
    x: [0.4, 0.0, 0.0]
    v: [0.0, 10.020, 0.0]

  - name: Venus
    kind: massive
    M: 0.002564
    x: [0.723, 0.0, 0.0]
    v: [0.0, 7.388, 0.0]

  - name: Earth
    kind: massive
    M: 0.003146
    x: [1.0, 0.0, 0.0]
    v: [0.0, 6.283, 0.0]

  - name: Asteroid
    kind: test
    x: [4.0, 0.0, 0.0]
    v: [0.0, 7.0, 0.0]

# ============================================================================
# Outputs
# ============================================================================
outputs:
  # Write one CSV row per snapshot
  write_csv: true
  csv_name: data.csv

  # Available plots: orbits, energy
  plots:
    - orbits
"""

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        f.write(yaml_content)

    timing = Timing(dt, output_interval, total_time)
    print(f"Example configuration written to: {output_path}")
    print(f"  G = {constants.G:.6e}, softener = {constants.softener:.3e}")
    print(f"  {timing.n_steps} steps, {timing.n_outputs + 1} snapshots")


def snapshot_header(kinds: List[str]) -> List[str]:
    """Header fields for the snapshot CSV."""
    fields = ["Time", ""]
    for kind in kinds:
        if kind == 'test':
            fields.extend(["x", "y", "z", "vx", "vy", "vz", ""])
    for kind in kinds:
        if kind == 'massive':
            fields.extend(["m", "x", "y", "z", "vx", "vy", "vz", ""])
    return fields


def save_snapshots_csv(filepath: str, trajectory: Dict[str, Any]) -> None:
    """Save trajectory snapshots to CSV file.

    Parameters
    ----------
    filepath : str
        Output CSV file path.
    trajectory : dict
        Trajectory from integrate_run(); uses 't', 'x', 'v', 'M' and 'kinds'.

    Notes
    -----
    Floats are written with repr(), the shortest string that round-trips
    to the same double.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    times = trajectory['t']
    positions = trajectory['x']
    velocities = trajectory['v']
    masses = trajectory['M']
    kinds = trajectory['kinds']

    tests = [i for i, k in enumerate(kinds) if k == 'test']
    massive = [i for i, k in enumerate(kinds) if k == 'massive']

    with open(filepath, 'w') as f:
        f.write(",".join(snapshot_header(kinds)) + "\n")

        for n, t in enumerate(times):
            fields = [repr(float(t)), ""]
            for i in tests:
                fields.extend(repr(float(c)) for c in positions[n, i])
                fields.extend(repr(float(c)) for c in velocities[n, i])
                fields.append("")
            for i in massive:
                fields.append(repr(float(masses[i])))
                fields.extend(repr(float(c)) for c in positions[n, i])
                fields.extend(repr(float(c)) for c in velocities[n, i])
                fields.append("")
            f.write(",".join(fields) + "\n")

    print(f"Saved {len(times)} snapshots ({len(tests)} test, "
          f"{len(massive)} massive particles) to {filepath}")


def load_snapshots_csv(filepath: str) -> Dict[str, np.ndarray]:
    """Read a snapshot CSV written by save_snapshots_csv.

    Returns
    -------
    dict
        't' : ndarray, shape (n,)
        'test' : ndarray, shape (n, T, 6) with columns x, y, z, vx, vy, vz
        'massive' : ndarray, shape (n, M, 7) with columns m, x, y, z, vx, vy, vz

    Raises
    ------
    ValueError
        If the header or a row does not match the snapshot layout.
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        lines = [line.rstrip("\n") for line in f if line.strip()]

    if not lines:
        raise ValueError(f"Empty snapshot file: {filepath}")

    header = lines[0].split(",")
    if header[0] != "Time":
        raise ValueError(f"Not a snapshot file (header starts with {header[0]!r})")
    n_massive = header.count("m")
    n_test = header.count("x") - n_massive
    width = 1 + 6 * n_test + 7 * n_massive

    rows = []
    for lineno, line in enumerate(lines[1:], start=2):
        values = [float(field) for field in line.split(",") if field != ""]
        if len(values) != width:
            raise ValueError(
                f"{filepath}:{lineno}: expected {width} values, got {len(values)}"
            )
        rows.append(values)

    data = np.array(rows, dtype=np.float64).reshape(len(rows), width)
    split = 1 + 6 * n_test
    return {
        't': data[:, 0],
        'test': data[:, 1:split].reshape(len(rows), n_test, 6),
        'massive': data[:, split:].reshape(len(rows), n_massive, 7),
    }


def save_diagnostics_json(filepath: str, diagnostics: Dict[str, Any]) -> None:
    """Save diagnostics data to JSON file.

    Arrays and numpy scalars are converted to plain lists and numbers.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    def convert_to_json_serializable(obj):
        """Recursively convert numpy arrays to lists."""
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, dict):
            return {key: convert_to_json_serializable(val) for key, val in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_to_json_serializable(item) for item in obj]
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, (np.integer, np.floating)):
            return obj.item()
        else:
            return obj

    serializable_diagnostics = convert_to_json_serializable(diagnostics)

    with open(filepath, 'w') as f:
        json.dump(serializable_diagnostics, f, indent=2)

    print(f"Saved diagnostics to {filepath} ({len(diagnostics)} top-level keys)")
