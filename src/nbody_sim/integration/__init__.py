"""
Integration module: fixed-step time integrators.
"""

from .rk4 import RK4Integrator

__all__ = [
    "RK4Integrator",
]
