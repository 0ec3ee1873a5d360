"""
Tests for the softened force kernel and vector helpers.

Validates:
1. Direction along the separation
2. Magnitude G / (r² + softener)
3. Antisymmetry under swapping the pair
4. Bounded magnitude near coincidence
"""

import numpy as np
import pytest

from norbital.constants import Constants, G_JUPITER_AU_YEAR, DEFAULT_SOFTENER
from norbital.kernel import specific_acceleration
from norbital.vectors import vec3, normalize, magnitude, frozen


class TestSpecificAcceleration:
    """Tests for specific_acceleration."""

    def test_parallel_to_separation(self):
        """Result points along the separation vector."""
        c = Constants()
        r = np.array([1.0, 2.0, -2.0])

        s = specific_acceleration(r, c)

        assert np.allclose(np.cross(s, r), 0.0)
        assert np.dot(s, r) > 0

    def test_magnitude_formula(self):
        """|s| = G / (|r|² + softener)."""
        c = Constants(G=2.0, softener=0.5)
        r = np.array([3.0, 4.0, 0.0])

        s = specific_acceleration(r, c)

        assert np.isclose(magnitude(s), 2.0 / (25.0 + 0.5))

    def test_antisymmetric(self):
        """Swapping the pair flips the sign."""
        c = Constants()
        r = np.array([0.3, -1.2, 0.7])

        assert np.allclose(specific_acceleration(-r, c), -specific_acceleration(r, c))

    def test_bounded_near_coincidence(self):
        """Magnitude never exceeds G / softener."""
        c = Constants(G=1.0, softener=0.01)
        for d in [1e-1, 1e-3, 1e-6, 1e-9]:
            s = specific_acceleration(np.array([d, 0.0, 0.0]), c)
            assert magnitude(s) <= 1.0 / 0.01

    def test_zero_separation_is_nan(self):
        """Coincident points have no direction."""
        s = specific_acceleration(np.zeros(3), Constants())
        assert np.all(np.isnan(s))

    def test_inverse_square_far_field(self):
        """Far from softening scale the kernel reduces to G / r²."""
        c = Constants(G=1.0, softener=1e-8)
        s = specific_acceleration(np.array([0.0, 0.0, 10.0]), c)
        assert np.isclose(s[2], 0.01, rtol=1e-8)


class TestConstants:
    """Tests for the Constants record."""

    def test_defaults(self):
        c = Constants()
        assert c.G == G_JUPITER_AU_YEAR
        assert c.softener == DEFAULT_SOFTENER
        assert np.isclose(c.softening_length, 0.1)

    @pytest.mark.parametrize("G,softener", [(0.0, 0.01), (-1.0, 0.01), (1.0, 0.0), (1.0, -0.1)])
    def test_rejects_non_positive(self, G, softener):
        with pytest.raises(ValueError):
            Constants(G=G, softener=softener)

    def test_immutable(self):
        c = Constants()
        with pytest.raises(AttributeError):
            c.G = 1.0


class TestVectors:
    """Tests for vector helpers."""

    def test_vec3_copies(self):
        src = [1, 2, 3]
        v = vec3(src)
        assert v.dtype == np.float64
        assert np.array_equal(v, [1.0, 2.0, 3.0])

    def test_vec3_rejects_wrong_shape(self):
        with pytest.raises(ValueError):
            vec3([1.0, 2.0])

    def test_normalize_unit_length(self):
        assert np.isclose(magnitude(normalize(np.array([3.0, 0.0, 4.0]))), 1.0)

    def test_frozen_is_read_only(self):
        v = frozen(vec3([1, 2, 3]))
        with pytest.raises(ValueError):
            v[0] = 5.0
