"""
Simulation orchestrator for the N-body engine.

This module implements the Simulation class that drives the fixed-tick loop:
each tick the integrator advances the whole body store from one snapshot and
commits in a single batch, after which the spatial index is rebuilt from
scratch over the new positions.

Design:
- Simulation orchestrates pluggable components (GravitySolver, TimeIntegrator)
- Each component is swappable via dependency injection
- Pause and frame cadence belong to the caller and are passed in explicitly
"""

from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field
import math
import time as time_module
import warnings
from pathlib import Path
import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from nbody_sim.bodies import BodyStore
from nbody_sim.core.clock import DEFAULT_TICK, FixedTimestepClock
from nbody_sim.core.energy_diagnostics import EnergyDiagnostics
from nbody_sim.core.errors import MalformedInputError
from nbody_sim.core.interfaces import GravitySolver, TimeIntegrator
from nbody_sim.gravity import G_SI, NewtonianGravity
from nbody_sim.integration import RK4Integrator
from nbody_sim.spatial import COINCIDENT_POLICIES, DEFAULT_MAX_DEPTH, Octree


class SimulationConfig(BaseModel):
    """
    Configuration for an N-body run with Pydantic validation.

    Attributes
    ----------
    G : float
        Gravitational constant.
    dt : float
        Fixed tick duration; independent of any frame rate.
    build_index : bool
        Rebuild the octree over the body snapshot after every tick.
    index_origin, index_size :
        Initial root region of the octree (it grows to cover every body).
    index_max_depth : int
        Subdivision levels within which two bodies must separate.
    coincident_policy : str
        "merge" or "raise" for bodies the octree cannot separate.
    """

    # Physics
    G: float = Field(default=G_SI, gt=0.0, description="Gravitational constant")

    # Time evolution
    t_start: float = Field(default=0.0, ge=0.0, description="Start time")
    t_end: float = Field(default=10.0, gt=0.0, description="End time")
    dt: float = Field(default=DEFAULT_TICK, gt=0.0, description="Fixed tick duration")
    max_ticks_per_advance: int = Field(
        default=8,
        ge=1,
        description="Maximum ticks released per frame before backlog is dropped"
    )

    # Spatial index
    build_index: bool = Field(default=True, description="Rebuild the octree every tick")
    index_origin: Tuple[float, float, float] = Field(
        default=(-1.0, -1.0, -1.0),
        description="Minimum corner of the initial octree root"
    )
    index_size: float = Field(default=2.0, gt=0.0, description="Edge length of the initial octree root")
    index_max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=1,
        le=512,
        description="Subdivision levels within which bodies must separate"
    )
    coincident_policy: str = Field(
        default="merge",
        description="Octree policy for inseparable bodies: 'merge' or 'raise'"
    )

    # I/O
    output_dir: str = Field(default="outputs/default_run", description="Output directory path")
    snapshot_interval: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Snapshot output interval in simulated time (None disables snapshots)"
    )
    log_interval: int = Field(default=100, ge=1, description="Ticks between progress log lines")

    # Energy tracking
    energy_tolerance: float = Field(
        default=0.01,
        gt=0.0,
        description="Fractional energy drift tolerance"
    )

    # Misc
    verbose: bool = Field(default=True, description="Enable verbose logging")

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Raise error on unknown fields
    )

    @field_validator('coincident_policy')
    @classmethod
    def validate_coincident_policy(cls, v: str) -> str:
        """Validate octree coincident-body policy."""
        if v not in COINCIDENT_POLICIES:
            raise ValueError(f"coincident_policy must be one of {list(COINCIDENT_POLICIES)}, got '{v}'")
        return v

    @field_validator('index_origin')
    @classmethod
    def validate_index_origin(cls, v: Tuple[float, float, float]) -> Tuple[float, float, float]:
        """Octree origin must be finite."""
        if not all(math.isfinite(c) for c in v):
            raise ValueError(f"index_origin must be finite, got {v}")
        return v

    @model_validator(mode='after')
    def validate_configuration_consistency(self):
        """
        Cross-field validation.

        1. t_end > t_start
        2. A tick longer than the whole run is almost certainly a unit mistake
        """
        if self.t_end <= self.t_start:
            raise ValueError(f"t_end ({self.t_end}) must be greater than t_start ({self.t_start})")

        if self.dt > self.t_end - self.t_start:
            warnings.warn(
                f"Tick dt={self.dt} is longer than the run ({self.t_end - self.t_start}); "
                "at most one tick will be taken."
            )

        return self


@dataclass
class SimulationState:
    """
    Current state of the simulation.
    """
    time: float = 0.0
    tick: int = 0

    # Energy tracking
    kinetic_energy: float = 0.0
    potential_energy: float = 0.0
    total_energy: float = 0.0
    initial_energy: Optional[float] = None

    # Timing diagnostics
    timing_integration: float = 0.0
    timing_index: float = 0.0
    timing_io: float = 0.0
    timing_total: float = 0.0

    wall_time_start: float = field(default_factory=time_module.time)
    wall_time_elapsed: float = 0.0

    # Snapshots
    last_snapshot_time: float = 0.0
    snapshot_count: int = 0


class Simulation:
    """
    Main simulation orchestrator.

    Usage:
        >>> from nbody_sim.bodies import BodyStore
        >>>
        >>> bodies = BodyStore()
        >>> bodies.add_body([1.0, 0.0, 0.0], mass=1.0)
        >>> bodies.add_body([-1.0, 0.0, 0.0], mass=1.0)
        >>> config = SimulationConfig(G=1.0, dt=0.01, t_end=1.0, verbose=False)
        >>> sim = Simulation(bodies, config=config)
        >>> sim.run()

    The external scheduler may instead call ``advance(frame_time, paused)``
    once per rendered frame, or ``step()`` directly for one tick.
    """

    def __init__(
        self,
        bodies: BodyStore,
        gravity_solver: Optional[GravitySolver] = None,
        integrator: Optional[TimeIntegrator] = None,
        config: Optional[SimulationConfig] = None,
    ):
        """
        Initialize simulation.

        Parameters
        ----------
        bodies : BodyStore
            Initial body configuration. Validated up front.
        gravity_solver : GravitySolver, optional
            Defaults to the integrator's own solver if it has one, otherwise
            ``NewtonianGravity(G=config.G)``.
        integrator : TimeIntegrator, optional
            Defaults to ``RK4Integrator`` over ``gravity_solver``.
        config : SimulationConfig, optional
            Simulation configuration. If None, uses defaults.

        Raises
        ------
        MalformedInputError
            If any body has non-positive mass or non-finite state.
        """
        self.config = config or SimulationConfig()
        self.state = SimulationState()
        self.bodies = bodies
        if gravity_solver is None:
            # Diagnostics must see the same solver the integrator uses
            gravity_solver = getattr(integrator, 'gravity_solver', None)
        self.gravity_solver = gravity_solver or NewtonianGravity(G=self.config.G)
        self.integrator = integrator or RK4Integrator(self.gravity_solver)
        self.diagnostics = EnergyDiagnostics()
        self.clock = FixedTimestepClock(
            dt=self.config.dt,
            max_ticks_per_advance=self.config.max_ticks_per_advance,
        )
        self.index: Optional[Octree] = None
        self.output_dir = Path(self.config.output_dir)

        self._configure_gravity_solver()

        # Malformed bodies are fatal before the first tick
        self.bodies.validate()

        self.state.time = self.config.t_start
        self.state.last_snapshot_time = self.config.t_start

        if self.config.build_index:
            self.rebuild_index()

        if self.config.verbose:
            self._log("Initialized N-body simulation")
            self._log(f"  Bodies: {self.bodies.n_bodies}")
            self._log(f"  Tick: dt={self.config.dt:.6g}")
            self._log(f"  Integrator: {self.integrator!r}")

    def _configure_gravity_solver(self) -> None:
        """Synchronize config G with the gravity solver."""
        solver = self.gravity_solver
        if hasattr(solver, 'G') and not np.isclose(float(solver.G), self.config.G, rtol=1e-12, atol=0.0):
            self._log(
                f"Gravity solver G={float(solver.G):.6e} differs from config; "
                f"using config G={self.config.G:.6e}"
            )
            solver.G = self.config.G

    def _log(self, message: str):
        """Log message if verbose."""
        if self.config.verbose:
            print(f"[{self.state.time:.4f}] {message}")

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def step(self) -> None:
        """
        Advance the simulation by exactly one fixed tick.

        Raises
        ------
        MalformedInputError
            If the tick produced non-finite positions or velocities.
        """
        t0_step = time_module.time()

        t0_integrate = time_module.time()
        self.integrator.step(self.bodies, self.config.dt)
        self.state.timing_integration = time_module.time() - t0_integrate

        if not (np.all(np.isfinite(self.bodies.positions)) and np.all(np.isfinite(self.bodies.velocities))):
            self._log(f"ERROR: Non-finite body state after tick {self.state.tick + 1}")
            raise MalformedInputError(
                f"Body state became non-finite during tick {self.state.tick + 1}"
            )

        self.state.tick += 1
        self.state.time = self.config.t_start + self.state.tick * self.config.dt

        if self.config.build_index:
            self.rebuild_index()

        self.state.timing_total = time_module.time() - t0_step

    def advance(self, frame_time: float, paused: bool = False) -> int:
        """
        Run every fixed tick that ``frame_time`` of elapsed time makes due.

        Returns the number of ticks taken (0 while paused).
        """
        due = self.clock.advance(frame_time, paused=paused)
        for _ in range(due):
            self.step()
        return due

    def rebuild_index(self) -> Octree:
        """Build a fresh octree over the current body snapshot."""
        t0 = time_module.time()
        self.index = Octree.build(
            self.bodies,
            self.config.index_origin,
            self.config.index_size,
            max_depth=self.config.index_max_depth,
            coincident=self.config.coincident_policy,
        )
        self.state.timing_index = time_module.time() - t0
        return self.index

    # ------------------------------------------------------------------
    # Diagnostics and output
    # ------------------------------------------------------------------

    def compute_energies(self) -> Dict[str, float]:
        """
        Compute kinetic, potential and total energies.

        Returns
        -------
        energies : Dict[str, float]
            Dictionary with 'kinetic', 'potential', 'total' energies.
        """
        d = self.diagnostics.compute(self.bodies, self.gravity_solver)
        self.diagnostics.append_to_history(self.state.time, d)

        self.state.kinetic_energy = d['E_kinetic']
        self.state.potential_energy = d['E_potential']
        self.state.total_energy = d['E_total']
        if self.state.initial_energy is None:
            self.state.initial_energy = d['E_total']

        return {
            'kinetic': d['E_kinetic'],
            'potential': d['E_potential'],
            'total': d['E_total'],
        }

    def energy_drift(self) -> float:
        """Relative drift of total energy since the first measurement."""
        if self.state.initial_energy is None or self.state.initial_energy == 0:
            return 0.0
        return (self.state.total_energy - self.state.initial_energy) / abs(self.state.initial_energy)

    def check_energy_conservation(self) -> bool:
        """
        Check if energy is conserved within tolerance.

        Returns
        -------
        conserved : bool
            True if energy drift is within tolerance.
        """
        drift = abs(self.energy_drift())
        if drift > self.config.energy_tolerance:
            self._log(f"WARNING: Energy drift {drift:.2%} exceeds tolerance {self.config.energy_tolerance:.2%}")
            warnings.warn(
                f"Energy drift {drift:.2%} exceeds tolerance {self.config.energy_tolerance:.2%}; "
                "consider a shorter tick",
                RuntimeWarning,
            )
            return False
        return True

    def write_snapshot(self) -> Path:
        """
        Write current body state to an HDF5 snapshot.
        """
        from nbody_sim.io import write_snapshot

        t0 = time_module.time()
        filename = self.output_dir / f"snapshot_{self.state.snapshot_count:04d}.h5"

        metadata = {
            'time': self.state.time,
            'tick': self.state.tick,
            'dt': self.config.dt,
            'G': self.config.G,
            'kinetic_energy': self.state.kinetic_energy,
            'potential_energy': self.state.potential_energy,
            'total_energy': self.state.total_energy,
            'names': list(self.bodies.names),
        }

        write_snapshot(str(filename), self.bodies.as_dict(), self.state.time, metadata)

        self.state.last_snapshot_time = self.state.time
        self.state.snapshot_count += 1
        self.state.timing_io = time_module.time() - t0

        if self.config.verbose:
            self._log(f"Snapshot {self.state.snapshot_count} -> {filename.name}")
        return filename

    def _snapshot_due(self) -> bool:
        interval = self.config.snapshot_interval
        if interval is None:
            return False
        # Half a tick of slack absorbs float error in tick-aligned intervals
        return self.state.time - self.state.last_snapshot_time >= interval - 0.5 * self.config.dt

    def run(self, n_ticks: Optional[int] = None) -> SimulationState:
        """
        Run the simulation from the current time to t_end, or for ``n_ticks``.
        """
        self._log("=" * 60)
        self._log("Starting simulation")
        self._log("=" * 60)

        if n_ticks is None:
            remaining = (self.config.t_end - self.state.time) / self.config.dt
            n_ticks = max(0, int(math.ceil(remaining - 1e-9)))

        energies = self.compute_energies()
        self._log(f"Initial energy: {energies['total']:.6e}")

        if self.config.snapshot_interval is not None:
            self.write_snapshot()

        for _ in range(n_ticks):
            self.step()

            # Periodic logging
            if self.state.tick % self.config.log_interval == 0:
                self.compute_energies()
                self._log(
                    f"Tick {self.state.tick:7d}  "
                    f"t={self.state.time:.4f}  "
                    f"E_tot={self.state.total_energy:.6e}  "
                    f"ΔE/E={self.energy_drift():.2e}"
                )
                self.check_energy_conservation()

            if self._snapshot_due():
                self.write_snapshot()

        self.compute_energies()
        if self.config.snapshot_interval is not None and self.state.last_snapshot_time != self.state.time:
            self.write_snapshot()

        # Summary
        self.state.wall_time_elapsed = time_module.time() - self.state.wall_time_start
        self._log("=" * 60)
        self._log("Simulation complete")
        self._log(f"  Ticks: {self.state.tick}")
        self._log(f"  Final time: {self.state.time:.4f}")
        self._log(f"  Wall time: {self.state.wall_time_elapsed:.2f} s")
        self._log(f"  Energy drift: {self.energy_drift():.2e}")
        self._log(f"  Snapshots: {self.state.snapshot_count}")
        self._log("=" * 60)

        return self.state
