"""Run timing: integration interval, snapshot cadence and run length.

The integration interval is exact. The output interval is rounded down to a
whole number of integration steps, and the total time is rounded down to a
whole number of (rounded) output intervals, so every snapshot lands on a
step boundary and the run length is known before it starts:

    n_steps = n_outputs * steps_per_output
"""

from dataclasses import dataclass
import math

# Relative slack when flooring ratios such as 0.3 / 0.1 = 2.9999999999999996
_FLOOR_TOLERANCE = 1e-9


def _floor_ratio(numerator: float, denominator: float) -> int:
    return int(math.floor(numerator / denominator * (1.0 + _FLOOR_TOLERANCE)))


@dataclass(frozen=True)
class Timing:
    """Timestep and output schedule for one run.

    Attributes
    ----------
    integration_interval : float
        Fixed timestep dt, must be positive.
    output_interval : float
        Requested snapshot cadence, at least one timestep.
    total_time : float
        Requested run duration, at least one output interval.

    Examples
    --------
    >>> t = Timing(integration_interval=0.001, output_interval=0.0105, total_time=1.0)
    >>> t.steps_per_output, t.normalized_output_interval
    (10, 0.01)
    >>> t.n_outputs, t.n_steps
    (100, 1000)
    """

    integration_interval: float
    output_interval: float
    total_time: float

    def __post_init__(self):
        """Validate intervals."""
        if not self.integration_interval > 0:
            raise ValueError(
                f"integration_interval must be positive, got {self.integration_interval}"
            )
        if _floor_ratio(self.output_interval, self.integration_interval) < 1:
            raise ValueError(
                f"output_interval ({self.output_interval}) must be at least "
                f"integration_interval ({self.integration_interval})"
            )
        if _floor_ratio(self.total_time, self.normalized_output_interval) < 1:
            raise ValueError(
                f"total_time ({self.total_time}) must be at least the normalized "
                f"output_interval ({self.normalized_output_interval})"
            )

    @property
    def dt(self) -> float:
        return self.integration_interval

    @property
    def steps_per_output(self) -> int:
        """Whole integration steps between snapshots."""
        return _floor_ratio(self.output_interval, self.integration_interval)

    @property
    def normalized_output_interval(self) -> float:
        return self.steps_per_output * self.integration_interval

    @property
    def n_outputs(self) -> int:
        """Snapshots after the initial one."""
        return _floor_ratio(self.total_time, self.normalized_output_interval)

    @property
    def normalized_total_time(self) -> float:
        return self.n_outputs * self.normalized_output_interval

    @property
    def n_steps(self) -> int:
        return self.n_outputs * self.steps_per_output

    def __str__(self) -> str:
        lines = [
            f"Timing(dt={self.integration_interval:.3e}, "
            f"output_interval={self.output_interval:.3e}, total_time={self.total_time:.3e})"
        ]
        lines.append(
            f"  normalized: output_interval={self.normalized_output_interval:.6e} "
            f"({self.steps_per_output} steps), total_time={self.normalized_total_time:.6e} "
            f"({self.n_outputs} outputs, {self.n_steps} steps)"
        )
        return "\n".join(lines)
