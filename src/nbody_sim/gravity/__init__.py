"""
Gravity module: Newtonian gravity solver.
"""

from .newtonian import G_SI, NewtonianGravity

__all__ = [
    "NewtonianGravity",
    "G_SI",
]
