"""
Tests for the pairwise interaction drivers and the pair schedule.
"""

import numpy as np
import pytest

from norbital.constants import Constants
from norbital.interactions import (
    chunk_pairs,
    interact_generic,
    interact_massive_massive,
    interact_test_massive,
    interaction_pairs,
    pair_contributions,
    partial_sums,
)
from norbital.kernel import specific_acceleration
from norbital.particles import MassiveParticle, TestParticle


def make_system(n_test=3, n_massive=4, seed=0):
    rng = np.random.default_rng(seed)
    particles = []
    for i in range(n_massive):
        particles.append(MassiveParticle(rng.normal(size=3) * 3, rng.normal(size=3),
                                         M=float(rng.uniform(0.5, 2.0)), name=f"m{i}"))
    for i in range(n_test):
        particles.append(TestParticle(rng.normal(size=3) * 3, rng.normal(size=3), name=f"t{i}"))
    return particles


class TestDrivers:
    """Tests for the accumulate-in-place drivers."""

    def test_equal_masses_antiparallel(self):
        """Equal masses receive equal and opposite contributions."""
        c = Constants()
        a = MassiveParticle([0, 0, 0], [0, 0, 0], M=1.0)
        b = MassiveParticle([1, 1, 0], [0, 0, 0], M=1.0)

        interact_massive_massive(a, b, c)

        acc_a = a.read_acceleration()
        acc_b = b.read_acceleration()
        assert np.allclose(acc_a, -acc_b)
        assert np.dot(acc_a, b.position - a.position) > 0

    def test_momentum_balance(self):
        """M_a a_a + M_b a_b = 0 for unequal masses."""
        c = Constants()
        a = MassiveParticle([0, 0, 0], [0, 0, 0], M=1047.57)
        b = MassiveParticle([5.0, 0.2, -0.1], [0, 0, 0], M=0.3)

        interact_generic(a, b, c)

        total = a.mass * a.read_acceleration() + b.mass * b.read_acceleration()
        assert np.allclose(total, 0.0, atol=1e-14)

    def test_contribution_values(self):
        c = Constants(G=1.0, softener=0.25)
        a = MassiveParticle([0, 0, 0], [0, 0, 0], M=2.0)
        b = MassiveParticle([0, 0, 1], [0, 0, 0], M=3.0)

        interact_generic(a, b, c)

        s = 1.0 / (1.0 + 0.25)
        assert np.allclose(a.read_acceleration(), [0, 0, 3.0 * s])
        assert np.allclose(b.read_acceleration(), [0, 0, -2.0 * s])

    def test_test_particle_leaves_massive_untouched(self):
        c = Constants()
        t = TestParticle([2, 0, 0], [0, 0, 0])
        m = MassiveParticle([0, 0, 0], [0, 0, 0], M=5.0)

        interact_test_massive(t, m, c)

        assert np.array_equal(m.read_acceleration(), np.zeros(3))
        expected = specific_acceleration(t.separation(m), c) * 5.0
        assert np.allclose(t.read_acceleration(), expected)

    def test_coincident_test_particle_does_not_poison_massive(self):
        """A test particle on top of a massive one leaves the massive accumulator finite."""
        c = Constants()
        t = TestParticle([1, 1, 1], [0, 0, 0])
        m = MassiveParticle([1, 1, 1], [0, 0, 0], M=1.0)

        interact_test_massive(t, m, c)

        assert np.array_equal(m.read_acceleration(), np.zeros(3))


class TestPairContributions:
    """Tests for the shared per-pair computation."""

    def test_reaction_pair(self):
        c = Constants(G=1.0, softener=0.25)
        a = MassiveParticle([0, 0, 0], [0, 0, 0], M=2.0)
        b = MassiveParticle([0, 1, 0], [0, 0, 0], M=3.0)

        to_a, to_b = pair_contributions(a, b, c)

        s = 1.0 / 1.25
        assert np.allclose(to_a, [0, 3.0 * s, 0])
        assert np.allclose(to_b, [0, -2.0 * s, 0])

    def test_massless_source_gives_none(self):
        t = TestParticle([1, 0, 0], [0, 0, 0])
        m = MassiveParticle([0, 0, 0], [0, 0, 0], M=4.0)

        to_t, to_m = pair_contributions(t, m, Constants())

        assert to_m is None
        assert np.all(np.isfinite(to_t))

    def test_drivers_and_buffer_share_it(self, monkeypatch):
        """interact_generic and partial_sums both evaluate pairs through pair_contributions."""
        from norbital import interactions

        calls = []
        original = interactions.pair_contributions

        def counting(a, b, constants):
            calls.append((a, b))
            return original(a, b, constants)

        monkeypatch.setattr(interactions, 'pair_contributions', counting)
        c = Constants()
        ps = make_system(2, 3)
        pairs = interaction_pairs(ps)

        interactions.partial_sums(ps, pairs, c)
        assert len(calls) == len(pairs)

        interactions.interact_massive_massive(ps[0], ps[1], c)
        interactions.interact_test_massive(ps[3], ps[0], c)
        assert len(calls) == len(pairs) + 2


class TestPairSchedule:
    """Tests for interaction_pairs."""

    @pytest.mark.parametrize("n_test,n_massive", [(0, 1), (0, 5), (3, 0), (2, 3), (5, 5)])
    def test_counts(self, n_test, n_massive):
        ps = make_system(n_test, n_massive)
        pairs = interaction_pairs(ps)
        assert len(pairs) == n_test * n_massive + n_massive * (n_massive - 1) // 2

    def test_no_duplicates_or_self_pairs(self):
        ps = make_system(4, 5)
        pairs = interaction_pairs(ps)
        unordered = {frozenset(p) for p in pairs}
        assert len(unordered) == len(pairs)
        assert all(i != j for i, j in pairs)

    def test_test_pairs_first(self):
        ps = make_system(2, 3)
        pairs = interaction_pairs(ps)
        n_tm = 2 * 3
        for i, j in pairs[:n_tm]:
            assert ps[i].mass == 0.0 and ps[j].mass > 0.0
        for i, j in pairs[n_tm:]:
            assert ps[i].mass > 0.0 and ps[j].mass > 0.0
            assert i < j

    def test_no_test_test_pairs(self):
        ps = make_system(4, 0)
        assert interaction_pairs(ps) == []


class TestPartialSums:
    """Tests for the scratch-buffer pass."""

    def test_matches_in_place_drivers(self):
        c = Constants()
        ps = make_system(3, 4)
        pairs = interaction_pairs(ps)

        buffer = partial_sums(ps, pairs, c)
        for i, j in pairs:
            interact_generic(ps[i], ps[j], c)

        for k, p in enumerate(ps):
            assert np.allclose(buffer[k], p.read_acceleration(), rtol=1e-12, atol=0.0)

    def test_does_not_touch_accumulators(self):
        c = Constants()
        ps = make_system(2, 3)
        partial_sums(ps, interaction_pairs(ps), c)
        for p in ps:
            assert np.array_equal(p.read_acceleration(), np.zeros(3))

    def test_chunks_sum_to_whole(self):
        c = Constants()
        ps = make_system(3, 5)
        pairs = interaction_pairs(ps)

        whole = partial_sums(ps, pairs, c)
        pieces = sum(partial_sums(ps, chunk, c) for chunk in chunk_pairs(pairs, 4))

        assert np.allclose(whole, pieces, rtol=1e-12, atol=1e-15)


class TestChunkPairs:
    """Tests for chunk_pairs."""

    def test_covers_schedule_in_order(self):
        pairs = [(i, i + 1) for i in range(10)]
        chunks = chunk_pairs(pairs, 3)
        assert len(chunks) == 3
        assert [p for chunk in chunks for p in chunk] == pairs

    def test_never_more_chunks_than_pairs(self):
        pairs = [(0, 1), (0, 2)]
        chunks = chunk_pairs(pairs, 8)
        assert len(chunks) == 2
        assert all(len(chunk) > 0 for chunk in chunks)
