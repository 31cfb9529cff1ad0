"""
Center-of-mass accumulator for octree aggregation.

A ``CenterOfMass`` stores the mass-weighted position sum and total mass of a
set of point masses. Merging is commutative and associative, so the aggregate
held by an octree branch does not depend on insertion order, and the zero
accumulator is a valid neutral element.
"""

from typing import Optional
import numpy as np

from ..core.interfaces import NDArrayFloat


class CenterOfMass:
    """
    Mergeable aggregate of point masses.

    Attributes
    ----------
    weighted_sum : NDArrayFloat, shape (3,)
        Σ m_i x_i over every merged point.
    total_mass : float
        Σ m_i over every merged point.
    """

    __slots__ = ("weighted_sum", "total_mass")

    def __init__(self, weighted_sum: Optional[NDArrayFloat] = None, total_mass: float = 0.0):
        if weighted_sum is None:
            self.weighted_sum = np.zeros(3, dtype=np.float64)
        else:
            self.weighted_sum = np.array(weighted_sum, dtype=np.float64).reshape(3)
        self.total_mass = float(total_mass)

    @classmethod
    def zero(cls) -> "CenterOfMass":
        return cls()

    @classmethod
    def from_point(cls, position: NDArrayFloat, mass: float) -> "CenterOfMass":
        com = cls()
        com.merge(position, mass)
        return com

    def merge(self, position: NDArrayFloat, mass: float) -> None:
        """Add one more point's contribution in place."""
        self.weighted_sum = self.weighted_sum + float(mass) * np.asarray(position, dtype=np.float64)
        self.total_mass += float(mass)

    def combine(self, other: "CenterOfMass") -> None:
        """Merge another accumulator into this one in place."""
        self.weighted_sum = self.weighted_sum + other.weighted_sum
        self.total_mass += other.total_mass

    def center(self) -> Optional[NDArrayFloat]:
        """Center of mass, or None for the empty aggregate."""
        if self.total_mass == 0.0:
            return None
        return self.weighted_sum / self.total_mass

    @property
    def is_zero(self) -> bool:
        return self.total_mass == 0.0 and not np.any(self.weighted_sum)

    def copy(self) -> "CenterOfMass":
        return CenterOfMass(self.weighted_sum.copy(), self.total_mass)

    def isclose(self, other: "CenterOfMass", rtol: float = 1e-9, atol: float = 1e-12) -> bool:
        """Approximate equality, for comparing aggregates built in different orders."""
        return bool(
            np.isclose(self.total_mass, other.total_mass, rtol=rtol, atol=atol)
            and np.allclose(self.weighted_sum, other.weighted_sum, rtol=rtol, atol=atol)
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, CenterOfMass):
            return NotImplemented
        return self.total_mass == other.total_mass and bool(
            np.array_equal(self.weighted_sum, other.weighted_sum)
        )

    __hash__ = None

    def __repr__(self) -> str:
        s = self.weighted_sum
        return f"CenterOfMass(sum=({s[0]:g}, {s[1]:g}, {s[2]:g}), mass={self.total_mass:g})"
