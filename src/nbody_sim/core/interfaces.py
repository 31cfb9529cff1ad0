"""
Abstract base classes defining interfaces for pluggable N-body modules.

This module establishes the contract that the force evaluator, the time
integrator and the spatial index must implement, so that the direct pairwise
solver can later be swapped for a tree-walking one without touching the
integrator or the simulation orchestrator.
"""

from abc import ABC, abstractmethod
from typing import Any, Hashable, Iterator, Optional, Tuple
import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float64]


class GravitySolver(ABC):
    """
    Abstract base class for gravity solvers.

    Implementations: NewtonianGravity (direct pairwise summation).
    """

    @abstractmethod
    def compute_acceleration(
        self,
        positions: NDArrayFloat,
        masses: NDArrayFloat,
    ) -> NDArrayFloat:
        """
        Compute gravitational acceleration on all bodies.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Body positions.
        masses : NDArrayFloat, shape (N,)
            Body masses.

        Returns
        -------
        accel : NDArrayFloat, shape (N, 3)
            Gravitational acceleration on each body.
        """
        pass

    @abstractmethod
    def compute_potential(
        self,
        positions: NDArrayFloat,
        masses: NDArrayFloat,
    ) -> NDArrayFloat:
        """
        Compute gravitational potential at each body.

        Returns
        -------
        potential : NDArrayFloat, shape (N,)
            Potential per unit mass at each body.
        """
        pass


class TimeIntegrator(ABC):
    """
    Abstract base class for fixed-step time integration schemes.

    Implementations: RK4Integrator.
    """

    @abstractmethod
    def step(self, bodies: Any, dt: float, **kwargs) -> None:
        """
        Advance every body by one fixed tick.

        Parameters
        ----------
        bodies : BodyStore
            Body collection to evolve. Committed in a single batch.
        dt : float
            Fixed tick duration.
        """
        pass

    def reset(self) -> None:
        """Reset any integrator state (stateless integrators do nothing)."""


class SpatialIndex(ABC):
    """
    Abstract base class for spatial indices over point masses.

    Implementations: Octree.
    """

    @abstractmethod
    def insert(self, handle: Hashable, position: NDArrayFloat, mass: float) -> None:
        """Index one body at ``position`` with ``mass``."""
        pass

    @abstractmethod
    def contains(self, point: NDArrayFloat) -> bool:
        """Half-open membership test of ``point`` in the indexed region."""
        pass

    @abstractmethod
    def walk(self) -> Iterator[Tuple[int, Any]]:
        """Depth-first traversal yielding ``(depth, node)`` pairs."""
        pass

    @property
    @abstractmethod
    def n_bodies(self) -> int:
        """Number of body handles held by the index."""
        pass

    def total_mass(self) -> Optional[float]:
        """Aggregate mass of everything indexed, if the index tracks it."""
        return None
