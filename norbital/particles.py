"""Particle types for the N-body orbit simulator.

Two kinds of particle share one capability set:

- TestParticle: a massless tracer. It feels the pull of massive particles
  but exerts none.
- MassiveParticle: a body with positive mass. It wraps a TestParticle (its
  "centre") for the kinematic state and adds the mass, so it both feels and
  exerts gravity.

Every particle carries an acceleration accumulator. During a step the
pairwise drivers add contributions into it, then `integrate(dt)` consumes it
exactly once and leaves it at zero.

Accumulator access is checked. A shared borrow (reading) and an exclusive
borrow (accumulating, integrating) may never overlap on the same particle;
an overlapping access raises AccessConflict instead of silently
interleaving writes. This is an ordering bug in the caller and is never
retried.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Optional
import threading

import numpy as np

from norbital.vectors import Vec3, vec3, zero3, frozen, magnitude_squared


class AccessConflict(RuntimeError):
    """Overlapping access to a particle's acceleration accumulator."""


class _Accumulator:
    """Running sum of acceleration contributions with a checked borrow flag.

    The lock only protects the borrow bookkeeping and is never held while
    the caller works on the value, so no access ever blocks: a conflicting
    access fails immediately.
    """

    __slots__ = ('_value', '_lock', '_readers', '_writer')

    def __init__(self):
        self._value = zero3()
        self._lock = threading.Lock()
        self._readers = 0
        self._writer = False

    @contextmanager
    def shared(self):
        with self._lock:
            if self._writer:
                raise AccessConflict("acceleration is being modified")
            self._readers += 1
        try:
            yield self._value
        finally:
            with self._lock:
                self._readers -= 1

    @contextmanager
    def exclusive(self):
        with self._lock:
            if self._writer:
                raise AccessConflict("acceleration is already being modified")
            if self._readers:
                raise AccessConflict(
                    f"acceleration is being read ({self._readers} outstanding)"
                )
            self._writer = True
        try:
            yield self._value
        finally:
            with self._lock:
                self._writer = False


class Particle(ABC):
    """Capability shared by test and massive particles.

    Subclasses provide mass, position, velocity, the accumulator and
    `integrate`; separation and interaction bookkeeping are common.
    """

    name: str

    @property
    @abstractmethod
    def mass(self) -> float:
        """Fixed mass (0 for a test particle)."""

    @property
    @abstractmethod
    def position(self) -> Vec3:
        """Current position (read-only array)."""

    @property
    @abstractmethod
    def velocity(self) -> Vec3:
        """Current velocity (read-only array)."""

    @property
    @abstractmethod
    def _acceleration(self) -> _Accumulator:
        ...

    @abstractmethod
    def integrate(self, dt: float) -> None:
        """Advance position and velocity by dt using the accumulated acceleration."""

    # ------------------------------------------------------------------
    # Accumulator access
    # ------------------------------------------------------------------

    def borrow_acceleration(self):
        """Shared borrow of the accumulator as a context manager.

        While the borrow is held, `accumulate` and `integrate` on this
        particle raise AccessConflict.

        Examples
        --------
        >>> p = TestParticle([0, 0, 0], [0, 0, 0])
        >>> with p.borrow_acceleration() as a:  # doctest: +IGNORE_EXCEPTION_DETAIL
        ...     p.accumulate([1.0, 0.0, 0.0])
        Traceback (most recent call last):
        ...
        norbital.particles.AccessConflict: acceleration is being read (1 outstanding)
        """
        return self._acceleration.shared()

    def read_acceleration(self) -> Vec3:
        """Return a copy of the accumulated acceleration."""
        with self._acceleration.shared() as a:
            return a.copy()

    def accumulate(self, contribution) -> None:
        """Add one contribution into the accumulator."""
        with self._acceleration.exclusive() as a:
            a += contribution

    def reset_acceleration(self) -> None:
        """Set the accumulator back to zero."""
        with self._acceleration.exclusive() as a:
            a.fill(0.0)

    # ------------------------------------------------------------------
    # Pairwise helpers
    # ------------------------------------------------------------------

    def separation(self, other: 'Particle') -> Vec3:
        """Displacement from this particle to `other`."""
        return other.position - self.position

    def contribution_from(self, other: 'Particle', specific_acceleration: Vec3) -> Optional[Vec3]:
        """Actual acceleration on this particle from `other`.

        Translates a specific acceleration (per unit attractor mass) into
        the acceleration `other` imparts, i.e. scales it by other's mass.
        A massless `other` exerts nothing and gives None.
        """
        if other.mass == 0.0:
            return None
        return specific_acceleration * other.mass

    def apply_interaction(self, other: 'Particle', specific_acceleration: Vec3) -> None:
        """Accumulate the acceleration that `other` imparts on this particle.

        A massless `other` contributes nothing and the accumulator is not
        touched at all.
        """
        contribution = self.contribution_from(other, specific_acceleration)
        if contribution is not None:
            self.accumulate(contribution)

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def speed(self) -> float:
        return float(np.sqrt(magnitude_squared(self.velocity)))

    @property
    def kinetic_energy(self) -> float:
        """Kinetic energy (1/2) m v²; zero for a test particle."""
        return 0.5 * self.mass * magnitude_squared(self.velocity)

    @property
    def kind(self) -> str:
        return 'massive' if self.mass > 0 else 'test'

    def __str__(self) -> str:
        x = self.position
        v = self.velocity
        label = f" '{self.name}'" if self.name else ""
        lines = [f"{type(self).__name__}{label}: M={self.mass:.3e}"]
        lines.append(f"  x = [{x[0]:.3e}, {x[1]:.3e}, {x[2]:.3e}]")
        lines.append(f"  v = [{v[0]:.3e}, {v[1]:.3e}, {v[2]:.3e}]")
        return "\n".join(lines)


class TestParticle(Particle):
    """Massless tracer particle.

    Parameters
    ----------
    x : array_like
        Initial position, three components.
    v : array_like
        Initial velocity, three components.
    name : str, optional
        Label used in reports and output files.

    Examples
    --------
    >>> asteroid = TestParticle([4.0, 0.0, 0.0], [0.0, 7.0, 0.0], name="Asteroid")
    >>> asteroid.mass
    0.0
    >>> asteroid.separation(TestParticle([1.0, 0.0, 0.0], [0, 0, 0]))
    array([-3.,  0.,  0.])
    """

    # Keep pytest from collecting this class as a test case.
    __test__ = False

    def __init__(self, x, v, name: str = ""):
        self.name = name
        self._x = frozen(vec3(x))
        self._v = frozen(vec3(v))
        self._acc = _Accumulator()

    @property
    def mass(self) -> float:
        return 0.0

    @property
    def position(self) -> Vec3:
        return self._x

    @property
    def velocity(self) -> Vec3:
        return self._v

    @property
    def _acceleration(self) -> _Accumulator:
        return self._acc

    def integrate(self, dt: float) -> None:
        """Advance the kinematic state by one interval.

        Uses the accumulated acceleration a, read once:

            x' = x + a dt²/2 + v dt
            v' = a dt + v

        The accumulator is zero afterwards, ready for the next step.

        Raises
        ------
        AccessConflict
            If the accumulator is borrowed elsewhere.
        """
        with self._acc.exclusive() as a:
            x_new = self._x + (a * (dt * dt / 2.0) + self._v * dt)
            v_new = a * dt + self._v
            a.fill(0.0)
        self._x = frozen(x_new)
        self._v = frozen(v_new)

    def __repr__(self) -> str:
        return (f"TestParticle(x={self._x.tolist()!r}, v={self._v.tolist()!r}, "
                f"name={self.name!r})")


class MassiveParticle(Particle):
    """Particle with positive mass, wrapping a TestParticle centre.

    Parameters
    ----------
    x : array_like
        Initial position.
    v : array_like
        Initial velocity.
    M : float
        Mass, must be positive.
    name : str, optional
        Label used in reports and output files.

    Examples
    --------
    >>> sun = MassiveParticle([0, 0, 0], [0, 0, 0], M=1048.0, name="Sun")
    >>> earth = MassiveParticle.from_test(
    ...     TestParticle([1.0, 0, 0], [0, 6.283, 0], name="Earth"), M=0.003146)
    >>> earth.name, earth.mass
    ('Earth', 0.003146)
    """

    def __init__(self, x, v, M: float, name: str = ""):
        self._init(TestParticle(x, v, name=name), M)

    @classmethod
    def from_test(cls, centre: TestParticle, M: float) -> 'MassiveParticle':
        """Give an existing test particle a mass; the state is taken over, not copied."""
        particle = cls.__new__(cls)
        particle._init(centre, M)
        return particle

    def _init(self, centre: TestParticle, M: float) -> None:
        M = float(M)
        if not M > 0:
            raise ValueError(f"Mass M must be positive, got {M}")
        self._mass = M
        self.centre = centre

    @property
    def name(self) -> str:
        return self.centre.name

    @name.setter
    def name(self, value: str) -> None:
        self.centre.name = value

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def position(self) -> Vec3:
        return self.centre.position

    @property
    def velocity(self) -> Vec3:
        return self.centre.velocity

    @property
    def _acceleration(self) -> _Accumulator:
        return self.centre._acceleration

    def integrate(self, dt: float) -> None:
        self.centre.integrate(dt)

    def __repr__(self) -> str:
        return (f"MassiveParticle(x={self.position.tolist()!r}, "
                f"v={self.velocity.tolist()!r}, M={self._mass!r}, name={self.name!r})")


def split_by_kind(particles):
    """Return (test_indices, massive_indices) preserving list order."""
    tests = [i for i, p in enumerate(particles) if p.mass == 0.0]
    massive = [i for i, p in enumerate(particles) if p.mass != 0.0]
    return tests, massive
