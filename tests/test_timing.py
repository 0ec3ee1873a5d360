"""
Tests for timing normalization.
"""

import pytest

from norbital.timing import Timing


class TestTiming:
    """Tests for the Timing record."""

    def test_exact_multiples(self):
        t = Timing(integration_interval=0.001, output_interval=0.01, total_time=1.0)
        assert t.steps_per_output == 10
        assert t.n_outputs == 100
        assert t.n_steps == 1000
        assert t.dt == 0.001

    def test_output_interval_floored(self):
        t = Timing(integration_interval=0.1, output_interval=0.35, total_time=10.0)
        assert t.steps_per_output == 3
        assert t.normalized_output_interval == pytest.approx(0.3)

    def test_total_time_floored(self):
        t = Timing(integration_interval=0.1, output_interval=0.3, total_time=1.0)
        assert t.n_outputs == 3
        assert t.normalized_total_time == pytest.approx(0.9)
        assert t.n_steps == 9

    def test_rounding_noise_does_not_drop_a_step(self):
        """0.3 / 0.1 evaluates to 2.9999999999999996 in floating point."""
        t = Timing(integration_interval=0.1, output_interval=0.3, total_time=0.3)
        assert t.steps_per_output == 3
        assert t.n_outputs == 1

    def test_steps_consistency(self):
        t = Timing(integration_interval=0.0001, output_interval=0.00537, total_time=12.0)
        assert t.n_steps == t.n_outputs * t.steps_per_output
        assert t.normalized_total_time <= 12.0

    @pytest.mark.parametrize("dt", [0.0, -0.001])
    def test_rejects_non_positive_dt(self, dt):
        with pytest.raises(ValueError):
            Timing(dt, 0.01, 1.0)

    def test_rejects_output_shorter_than_step(self):
        with pytest.raises(ValueError):
            Timing(0.01, 0.005, 1.0)

    def test_rejects_total_shorter_than_output(self):
        with pytest.raises(ValueError):
            Timing(0.001, 0.01, 0.005)

    def test_str_mentions_normalized_values(self):
        text = str(Timing(0.001, 0.0105, 1.0))
        assert "normalized" in text
        assert "1000 steps" in text
