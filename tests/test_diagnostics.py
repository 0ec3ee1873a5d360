"""
Tests for conserved-quantity diagnostics.
"""

import numpy as np
import pytest

from norbital.constants import Constants
from norbital.diagnostics import (
    angular_momentum,
    compute_diagnostics,
    energy_drift_monitor,
    pair_potential,
    softened_potential_energy,
    total_energy,
    total_kinetic_energy,
    total_momentum,
)
from norbital.particles import MassiveParticle, TestParticle


class TestEnergy:
    """Tests for kinetic and potential energy."""

    def test_kinetic_ignores_test_particles(self):
        ps = [
            MassiveParticle([0, 0, 0], [1, 0, 0], M=1.0),
            MassiveParticle([1, 0, 0], [0, 0.5, 0], M=2.0),
            TestParticle([2, 0, 0], [0, 9, 0]),
        ]
        assert total_kinetic_energy(ps) == pytest.approx(0.75)

    def test_pair_potential_far_field(self):
        """Reduces to -G M_a M_b / r well outside the softening length."""
        c = Constants(G=1.0, softener=1e-8)
        assert pair_potential(10.0, 2.0, 3.0, c) == pytest.approx(-0.6, rel=1e-6)

    def test_pair_potential_finite_at_zero(self):
        c = Constants(G=1.0, softener=0.01)
        U0 = pair_potential(0.0, 1.0, 1.0, c)
        assert np.isfinite(U0)
        assert U0 == pytest.approx(-np.pi / (2 * 0.1))

    def test_potential_gradient_matches_force(self):
        """-dU/dr equals the softened force magnitude."""
        c = Constants(G=1.3, softener=0.04)
        r, h = 0.7, 1e-6
        dU = (pair_potential(r + h, 2.0, 5.0, c) - pair_potential(r - h, 2.0, 5.0, c)) / (2 * h)
        assert dU == pytest.approx(1.3 * 2.0 * 5.0 / (r**2 + 0.04), rel=1e-6)

    def test_potential_ignores_test_particles(self):
        c = Constants()
        ps = [
            MassiveParticle([0, 0, 0], [0, 0, 0], M=1.0),
            TestParticle([1, 0, 0], [0, 0, 0]),
        ]
        assert softened_potential_energy(ps, c) == 0.0

    def test_total_is_sum(self):
        c = Constants()
        ps = [
            MassiveParticle([0, 0, 0], [0, 0.1, 0], M=1.0),
            MassiveParticle([1, 0, 0], [0, -0.1, 0], M=1.0),
        ]
        assert total_energy(ps, c) == pytest.approx(
            total_kinetic_energy(ps) + softened_potential_energy(ps, c)
        )


class TestMomentum:
    """Tests for linear and angular momentum."""

    def test_total_momentum(self):
        ps = [
            MassiveParticle([0, 0, 0], [1, 0, 0], M=2.0),
            MassiveParticle([1, 0, 0], [0, 3, 0], M=1.0),
            TestParticle([0, 0, 0], [100, 100, 100]),
        ]
        assert np.allclose(total_momentum(ps), [2.0, 3.0, 0.0])

    def test_angular_momentum(self):
        ps = [
            MassiveParticle([1, 0, 0], [0, 0.5, 0], M=1.0),
            MassiveParticle([-1, 0, 0], [0, -0.5, 0], M=1.0),
        ]
        assert np.allclose(angular_momentum(ps), [0.0, 0.0, 1.0])


class TestComputeDiagnostics:
    """Tests for compute_diagnostics and the drift monitor."""

    def test_keys(self):
        ps = [
            MassiveParticle([0, 0, 0], [0, 0, 0], M=1.0),
            TestParticle([1, 0, 0], [0, 2, 0]),
        ]
        d = compute_diagnostics(ps, Constants())
        for key in ['kinetic_energy', 'potential_energy', 'total_energy',
                    'total_momentum', 'angular_momentum', 'speeds', 'max_speed']:
            assert key in d
        assert d['max_speed'] == pytest.approx(2.0)
        assert d['speeds'].shape == (2,)

    def test_drift_monitor(self):
        diags = [{'total_energy': -2.0}, {'total_energy': -2.1}, {'total_energy': -1.98}]
        drift = energy_drift_monitor(diags)
        assert drift['E0'] == -2.0
        assert drift['Ef'] == -1.98
        assert drift['dE'] == pytest.approx(0.02)
        assert drift['dE_rel'] == pytest.approx(0.01)
        assert drift['dE_max'] == pytest.approx(0.1)

    def test_drift_monitor_needs_two(self):
        with pytest.raises(ValueError):
            energy_drift_monitor([{'total_energy': 1.0}])
