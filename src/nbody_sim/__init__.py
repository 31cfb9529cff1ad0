"""
nbody-sim: fixed-tick N-body gravity engine.

A small Python framework that advances a set of gravitating rigid bodies with
a fourth-order Runge-Kutta integrator on a fixed tick, and indexes them each
tick in a Barnes-Hut style octree carrying per-node centers of mass.
"""

__version__ = "0.1.0"
__author__ = "nbody-sim Dev Team"

# Core imports for convenience
from nbody_sim.core.interfaces import (
    GravitySolver,
    TimeIntegrator,
    SpatialIndex,
)
from nbody_sim.core.errors import MalformedInputError, DegenerateGeometryError

__all__ = [
    "GravitySolver",
    "TimeIntegrator",
    "SpatialIndex",
    "MalformedInputError",
    "DegenerateGeometryError",
]
