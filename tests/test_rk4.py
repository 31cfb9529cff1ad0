"""
Tests for the RK4 integrator.

Validates:
- Free motion and single-body stability
- Mirror symmetry of an equal-mass pair
- Energy conservation on a circular binary
- Orientation update from angular velocity
- Stage evaluations see only the tick-start state (batch commit)
"""

import numpy as np
import pytest

from nbody_sim.bodies import BodyStore, rotation
from nbody_sim.core.energy_diagnostics import EnergyDiagnostics
from nbody_sim.core.interfaces import GravitySolver
from nbody_sim.gravity import NewtonianGravity
from nbody_sim.integration import RK4Integrator


def circular_binary():
    """Equal masses at separation 2 on a circular orbit (G = 1, period 4π)."""
    store = BodyStore()
    store.add_body([1.0, 0.0, 0.0], velocity=[0.0, 0.5, 0.0], mass=1.0)
    store.add_body([-1.0, 0.0, 0.0], velocity=[0.0, -0.5, 0.0], mass=1.0)
    return store


class TestRK4Step:

    def test_single_stationary_body(self):
        store = BodyStore()
        store.add_body([1.0, 2.0, 3.0], mass=10.0)
        integrator = RK4Integrator(NewtonianGravity(G=1.0))

        for _ in range(10):
            integrator.step(store, 0.1)

        np.testing.assert_array_equal(store.positions, [[1.0, 2.0, 3.0]])
        np.testing.assert_array_equal(store.velocities, [[0.0, 0.0, 0.0]])

    def test_free_motion_is_linear(self):
        store = BodyStore()
        store.add_body([0.0, 0.0, 0.0], velocity=[1.0, -2.0, 0.5])
        RK4Integrator(NewtonianGravity(G=1.0)).step(store, 0.25)
        np.testing.assert_allclose(store.positions, [[0.25, -0.5, 0.125]])

    def test_symmetric_pair_falls_together(self):
        store = BodyStore()
        store.add_body([1.0, 0.0, 0.0], mass=1.0)
        store.add_body([-1.0, 0.0, 0.0], mass=1.0)
        RK4Integrator(NewtonianGravity(G=1.0)).step(store, 0.01)

        x = store.positions
        assert x[0, 0] < 1.0
        assert x[0, 0] == -x[1, 0]
        np.testing.assert_array_equal(x[:, 1:], 0.0)
        assert store.velocities[0, 0] == -store.velocities[1, 0]
        # a = G m / (2d)² = 0.25 at t = 0
        np.testing.assert_allclose(1.0 - x[0, 0], 0.5 * 0.25 * 0.01**2, rtol=1e-3)

    def test_circular_orbit_conserves_energy(self):
        store = circular_binary()
        gravity = NewtonianGravity(G=1.0)
        integrator = RK4Integrator(gravity)
        diagnostics = EnergyDiagnostics()

        E0 = diagnostics.compute(store, gravity)['E_total']
        for _ in range(1000):
            integrator.step(store, 0.01)
        E1 = diagnostics.compute(store, gravity)['E_total']

        assert abs((E1 - E0) / E0) < 1e-7
        separation = np.linalg.norm(store.positions[0] - store.positions[1])
        np.testing.assert_allclose(separation, 2.0, rtol=1e-6)
        # Center of mass stays at the origin
        np.testing.assert_allclose(store.center_of_mass(), 0.0, atol=1e-12)

    def test_full_period_returns_to_start(self):
        store = circular_binary()
        integrator = RK4Integrator(NewtonianGravity(G=1.0))
        n = 1000
        dt = 4.0 * np.pi / n
        for _ in range(n):
            integrator.step(store, dt)
        np.testing.assert_allclose(store.positions, [[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]], atol=1e-6)

    def test_orientation_follows_angular_velocity(self):
        store = BodyStore()
        store.add_body([0.0, 0.0, 0.0], angular_velocity=[0.0, 0.0, np.pi / 2])
        integrator = RK4Integrator(NewtonianGravity(G=1.0))

        integrator.step(store, 0.5)
        integrator.step(store, 0.5)

        q = store.orientations[0]
        np.testing.assert_allclose(np.linalg.norm(q), 1.0)
        np.testing.assert_allclose(rotation.rotate(q, [1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)

    def test_invalid_dt(self):
        integrator = RK4Integrator(NewtonianGravity(G=1.0))
        store = circular_binary()
        for dt in (0.0, -0.1, np.nan, np.inf):
            with pytest.raises(ValueError):
                integrator.step(store, dt)

    def test_empty_store_is_noop(self):
        store = BodyStore()
        RK4Integrator().step(store, 0.1)
        assert store.n_bodies == 0


class _RecordingGravity(GravitySolver):
    """Newtonian gravity that records the store contents at every evaluation."""

    def __init__(self, store):
        self.store = store
        self.inner = NewtonianGravity(G=1.0)
        self.seen = []

    def compute_acceleration(self, positions, masses):
        self.seen.append(self.store.positions.copy())
        return self.inner.compute_acceleration(positions, masses)

    def compute_potential(self, positions, masses):
        return self.inner.compute_potential(positions, masses)


class TestBatchCommit:

    def test_store_untouched_until_tick_completes(self):
        store = circular_binary()
        start = store.positions.copy()
        gravity = _RecordingGravity(store)

        RK4Integrator(gravity).step(store, 0.1)

        assert len(gravity.seen) == len(RK4Integrator.STAGES)
        for snapshot in gravity.seen:
            np.testing.assert_array_equal(snapshot, start)
        assert not np.array_equal(store.positions, start)

    def test_integrate_does_not_touch_store(self):
        store = circular_binary()
        start = store.positions.copy()
        x, v = RK4Integrator(NewtonianGravity(G=1.0)).integrate(
            store.positions, store.velocities, store.masses, 0.1
        )
        np.testing.assert_array_equal(store.positions, start)
        assert x.shape == v.shape == (2, 3)

    def test_stage_weights(self):
        weights = [w for w, _ in RK4Integrator.STAGES]
        offsets = [c for _, c in RK4Integrator.STAGES]
        assert sum(weights) == pytest.approx(1.0)
        assert offsets == [0.0, 0.5, 0.5, 1.0]
