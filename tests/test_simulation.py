"""
Tests for the simulation orchestrator and its configuration.

Validates:
- SimulationConfig Pydantic validation
- Fixed-tick stepping, clock-driven advance and pause
- Octree rebuilt over every tick's snapshot
- Malformed bodies and non-finite state are fatal
- Energy tracking and snapshot cadence
"""

import warnings

import numpy as np
import pytest
from pydantic import ValidationError

from nbody_sim.bodies import BodyStore
from nbody_sim.core import EnergyDiagnostics, Simulation, SimulationConfig
from nbody_sim.core.errors import DegenerateGeometryError, MalformedInputError
from nbody_sim.core.interfaces import GravitySolver
from nbody_sim.gravity import G_SI, NewtonianGravity
from nbody_sim.integration import RK4Integrator
from nbody_sim.io import read_snapshot
from nbody_sim.spatial import Octree


def binary():
    store = BodyStore()
    store.add_body([1.0, 0.0, 0.0], velocity=[0.0, 0.5, 0.0], mass=1.0, name="a")
    store.add_body([-1.0, 0.0, 0.0], velocity=[0.0, -0.5, 0.0], mass=1.0, name="b")
    return store


@pytest.fixture
def config(tmp_path):
    return SimulationConfig(
        G=1.0,
        dt=0.25,
        t_end=1.0,
        output_dir=str(tmp_path / "run"),
        verbose=False,
    )


class TestSimulationConfigValidation:
    """Pydantic validation rules for SimulationConfig."""

    def test_defaults(self):
        config = SimulationConfig()
        assert config.G == G_SI
        assert config.dt == 0.015625
        assert config.build_index is True
        assert config.index_origin == (-1.0, -1.0, -1.0)
        assert config.index_size == 2.0
        assert config.coincident_policy == "merge"
        assert config.snapshot_interval is None

    def test_coincident_policy_validation(self):
        assert SimulationConfig(coincident_policy="raise").coincident_policy == "raise"
        with pytest.raises(ValueError, match="coincident_policy must be one of"):
            SimulationConfig(coincident_policy="ignore")

    def test_validate_assignment(self):
        config = SimulationConfig()
        with pytest.raises(ValidationError):
            config.coincident_policy = "ignore"
        with pytest.raises(ValidationError):
            config.dt = -1.0

    def test_time_range(self):
        with pytest.raises(ValueError, match="must be greater than t_start"):
            SimulationConfig(t_start=2.0, t_end=1.0)

    def test_tick_longer_than_run_warns(self):
        with pytest.warns(UserWarning, match="longer than the run"):
            SimulationConfig(dt=2.0, t_end=1.0)

    def test_non_positive_values(self):
        for field in ("G", "dt", "index_size", "energy_tolerance", "snapshot_interval"):
            with pytest.raises(ValidationError):
                SimulationConfig(**{field: 0.0})

    def test_index_bounds(self):
        with pytest.raises(ValidationError):
            SimulationConfig(index_max_depth=0)
        with pytest.raises(ValidationError):
            SimulationConfig(index_origin=(0.0, float("nan"), 0.0))

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(bh_mass=1.0)


class TestStepping:

    def test_step_advances_one_tick(self, config):
        sim = Simulation(binary(), config=config)
        start = sim.bodies.positions.copy()

        sim.step()

        assert sim.state.tick == 1
        assert sim.state.time == 0.25
        assert not np.array_equal(sim.bodies.positions, start)

    def test_run_until_end(self, config):
        sim = Simulation(binary(), config=config)
        state = sim.run()
        assert state.tick == 4
        assert state.time == pytest.approx(1.0)

    def test_run_fixed_ticks(self, config):
        sim = Simulation(binary(), config=config)
        sim.run(n_ticks=7)
        assert sim.state.tick == 7
        assert sim.state.time == pytest.approx(1.75)

    def test_trajectory_independent_of_frame_cadence(self, config):
        """The same tick count gives bit-identical state however frames arrive."""
        stepped = Simulation(binary(), config=config)
        for _ in range(4):
            stepped.step()

        framed = Simulation(binary(), config=config)
        for frame_time in (0.125, 0.3125, 0.0625, 0.5):
            framed.advance(frame_time)

        assert framed.state.tick == 4
        np.testing.assert_array_equal(framed.bodies.positions, stepped.bodies.positions)
        np.testing.assert_array_equal(framed.bodies.velocities, stepped.bodies.velocities)

    def test_paused_advance(self, config):
        sim = Simulation(binary(), config=config)
        start = sim.bodies.positions.copy()
        assert sim.advance(1.0, paused=True) == 0
        assert sim.state.tick == 0
        np.testing.assert_array_equal(sim.bodies.positions, start)
        assert sim.advance(0.5) == 2

    def test_gravity_constant_synced_from_config(self, config):
        solver = NewtonianGravity(G=5.0)
        sim = Simulation(binary(), gravity_solver=solver, config=config)
        assert solver.G == 1.0
        assert sim.integrator.gravity_solver is solver

    def test_injected_integrator_shares_solver_with_diagnostics(self, config):
        solver = NewtonianGravity(G=5.0)
        sim = Simulation(binary(), integrator=RK4Integrator(solver), config=config)

        assert sim.gravity_solver is solver
        assert solver.G == 1.0
        assert sim.compute_energies()['potential'] == pytest.approx(-0.5)


class TestIndexRebuild:

    def test_index_covers_every_body(self, config):
        store = binary()
        store.add_body([10.0, -7.0, 3.0], mass=0.5)
        sim = Simulation(store, config=config)

        for _ in range(3):
            sim.step()
            assert isinstance(sim.index, Octree)
            assert sim.index.n_bodies == 3
            assert sim.index.total_mass() == pytest.approx(2.5)
            for p in sim.bodies.positions:
                assert sim.index.contains(p)

    def test_index_com_matches_bodies(self, config):
        sim = Simulation(binary(), config=config)
        sim.step()
        np.testing.assert_allclose(
            sim.index.com.center(), sim.bodies.center_of_mass(), atol=1e-12
        )

    def test_index_disabled(self, config):
        config.build_index = False
        sim = Simulation(binary(), config=config)
        sim.step()
        assert sim.index is None

    def test_coincident_bodies_merge(self, config):
        store = BodyStore()
        store.add_body([0.5, 0.5, 0.5])
        store.add_body([0.5, 0.5, 0.5])
        with pytest.warns(RuntimeWarning, match="cannot be separated"):
            sim = Simulation(store, config=config)
        assert sim.index.n_bodies == 2

    def test_coincident_bodies_raise(self, config):
        config.coincident_policy = "raise"
        store = BodyStore()
        store.add_body([0.5, 0.5, 0.5])
        store.add_body([0.5, 0.5, 0.5])
        with pytest.raises(DegenerateGeometryError):
            Simulation(store, config=config)


class _NaNGravity(GravitySolver):

    def compute_acceleration(self, positions, masses):
        return np.full_like(positions, np.nan)

    def compute_potential(self, positions, masses):
        return np.zeros(len(positions))


class TestMalformedState:

    def test_malformed_bodies_rejected_up_front(self, config):
        store = binary()
        store.masses[0] = -1.0
        with pytest.raises(MalformedInputError):
            Simulation(store, config=config)

    def test_non_finite_tick_is_fatal(self, config):
        sim = Simulation(binary(), gravity_solver=_NaNGravity(), config=config)
        with pytest.raises(MalformedInputError, match="non-finite"):
            sim.step()
        assert sim.state.tick == 0


class TestEnergy:

    def test_binary_conserves_energy(self, config):
        config.dt = 0.01
        config.log_interval = 10
        sim = Simulation(binary(), config=config)

        with warnings.catch_warnings():
            warnings.simplefilter("error", RuntimeWarning)
            sim.run()

        assert sim.check_energy_conservation()
        assert abs(sim.energy_drift()) < 1e-8
        # Two equal masses at separation 2: E = 2 (1/2)(0.25) - 1/2
        assert sim.state.initial_energy == pytest.approx(-0.25)
        assert len(sim.diagnostics.history) == 12

    def test_drift_outside_tolerance_warns(self, config):
        sim = Simulation(binary(), config=config)
        sim.compute_energies()
        sim.state.total_energy = sim.state.initial_energy * 1.5
        with pytest.warns(RuntimeWarning, match="Energy drift"):
            assert not sim.check_energy_conservation()

    def test_diagnostics(self):
        store = binary()
        diagnostics = EnergyDiagnostics()
        d = diagnostics.compute(store, NewtonianGravity(G=1.0))

        assert d['E_kinetic'] == pytest.approx(0.25)
        assert d['E_potential'] == pytest.approx(-0.5)
        np.testing.assert_allclose(d['linear_momentum'], 0.0)
        np.testing.assert_allclose(d['angular_momentum'], [0.0, 0.0, 1.0])

        diagnostics.append_to_history(0.0, d)
        diagnostics.append_to_history(1.0, dict(d, E_total=d['E_total'] * 1.1))
        assert diagnostics.energy_conservation_metric() == pytest.approx(0.1)
        series = diagnostics.get_time_series('E_total')
        np.testing.assert_array_equal(series['time'], [0.0, 1.0])
        with pytest.raises(ValueError):
            diagnostics.get_time_series('entropy')

    def test_single_body_has_no_potential(self):
        store = BodyStore()
        store.add_body([1.0, 0.0, 0.0])
        assert EnergyDiagnostics().compute_potential_energy(store, NewtonianGravity(G=1.0)) == 0.0


class TestSnapshots:

    def test_snapshot_cadence(self, config, tmp_path):
        config.snapshot_interval = 0.5
        sim = Simulation(binary(), config=config)
        sim.run()

        files = sorted((tmp_path / "run").glob("snapshot_*.h5"))
        assert [f.name for f in files] == [
            "snapshot_0000.h5", "snapshot_0001.h5", "snapshot_0002.h5",
        ]

        data = read_snapshot(str(files[-1]))
        assert data['time'] == pytest.approx(1.0)
        assert data['n_bodies'] == 2
        np.testing.assert_array_equal(data['bodies']['positions'], sim.bodies.positions)
        assert data['metadata']['names'] == ["a", "b"]
        assert data['metadata']['tick'] == 4

    def test_no_snapshots_by_default(self, config, tmp_path):
        Simulation(binary(), config=config).run()
        assert not (tmp_path / "run").exists()
