"""
Core module: interfaces, errors, simulation orchestrator, and utilities.
"""

from nbody_sim.core.interfaces import (
    GravitySolver,
    TimeIntegrator,
    SpatialIndex,
)
from nbody_sim.core.errors import MalformedInputError, DegenerateGeometryError
from nbody_sim.core.clock import DEFAULT_TICK, FixedTimestepClock
from nbody_sim.core.energy_diagnostics import EnergyDiagnostics
# simulation pulls in bodies/gravity/spatial, which need the modules above
from nbody_sim.core.simulation import (
    Simulation,
    SimulationConfig,
    SimulationState,
)

__all__ = [
    "GravitySolver",
    "TimeIntegrator",
    "SpatialIndex",
    "MalformedInputError",
    "DegenerateGeometryError",
    "DEFAULT_TICK",
    "FixedTimestepClock",
    "EnergyDiagnostics",
    "Simulation",
    "SimulationConfig",
    "SimulationState",
]
