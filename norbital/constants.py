"""Run-wide physical constants for the N-body orbit simulator.

The simulator works in a fixed unit system: masses in Jupiter masses,
lengths in astronomical units and times in years. In these units the
gravitational constant is G ≈ 0.03769 AU³/(M_J·yr²), so a Sun of
~1048 Jupiter masses gives GM ≈ 4π² and a 1 AU circular orbit has a
period of one year.

The force law is softened:

    a = G M / (r² + softener) * r_hat

The softener bounds the force as two bodies approach coincidence. Its
square root is the length scale below which the force stops growing.
"""

from dataclasses import dataclass
import numpy as np

# Jupiter mass - AU - year
G_JUPITER_AU_YEAR = 0.0376915586937436
DEFAULT_SOFTENER = 0.01


@dataclass(frozen=True)
class Constants:
    """Immutable set of run-wide constants threaded through the engine.

    Attributes
    ----------
    G : float
        Gravitational constant in the chosen mass/length/time units.
    softener : float
        Positive term added to the squared separation in the force-law
        denominator [length²].

    Examples
    --------
    >>> constants = Constants()
    >>> print(constants)
    Constants(G=3.769e-02, softener=1.000e-02)
      softening length = 1.000e-01
    >>> round(constants.G * 1048.0 / (4 * np.pi**2), 3)
    1.001
    """

    G: float = G_JUPITER_AU_YEAR
    softener: float = DEFAULT_SOFTENER

    def __post_init__(self):
        """Validate constants."""
        if not self.G > 0:
            raise ValueError(f"Gravitational constant G must be positive, got {self.G}")
        if not self.softener > 0:
            raise ValueError(f"Softener must be positive, got {self.softener}")

    @property
    def softening_length(self) -> float:
        """Length scale sqrt(softener) at which softening dominates."""
        return float(np.sqrt(self.softener))

    def __str__(self) -> str:
        lines = [f"Constants(G={self.G:.3e}, softener={self.softener:.3e})"]
        lines.append(f"  softening length = {self.softening_length:.3e}")
        return "\n".join(lines)
