"""
Body store for gravitational N-body simulations.

This module implements the BodyStore class: a flat, order-stable collection of
point masses (position, velocity, mass, angular velocity, orientation) plus the
display-only attributes the loader supplies (name, radius). Bodies are referred
to by opaque integer handles that are never reused, so a handle kept by a
spatial index after its body was removed simply stops resolving.

The integrator reads the store through its array attributes and writes back
through ``commit`` only, replacing every body's state in one batch.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import numpy as np

from ..core.errors import MalformedInputError
from ..core.interfaces import NDArrayFloat
from . import rotation


class BodyStore:
    """
    Container for body state arrays.

    Attributes
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Cartesian positions.
    velocities : NDArrayFloat, shape (N, 3)
        Velocities.
    masses : NDArrayFloat, shape (N,)
        Masses (> 0).
    angular_velocities : NDArrayFloat, shape (N, 3)
        Angular velocity as a scaled axis (rad per unit time).
    orientations : NDArrayFloat, shape (N, 4)
        Unit quaternions (x, y, z, w).
    names : list of str
        Display names.
    radii : NDArrayFloat, shape (N,)
        Display radii; not used by the physics.
    """

    def __init__(self):
        self.positions = np.zeros((0, 3), dtype=np.float64)
        self.velocities = np.zeros((0, 3), dtype=np.float64)
        self.masses = np.zeros(0, dtype=np.float64)
        self.angular_velocities = np.zeros((0, 3), dtype=np.float64)
        self.orientations = np.zeros((0, 4), dtype=np.float64)
        self.radii = np.zeros(0, dtype=np.float64)
        self.names: List[str] = []

        self._handles: List[int] = []
        self._index: Dict[int, int] = {}
        self._next_handle = 0

    @classmethod
    def from_arrays(
        cls,
        positions: NDArrayFloat,
        velocities: Optional[NDArrayFloat] = None,
        masses: Optional[NDArrayFloat] = None,
        angular_velocities: Optional[NDArrayFloat] = None,
        names: Optional[Sequence[str]] = None,
        radii: Optional[NDArrayFloat] = None,
    ) -> "BodyStore":
        """
        Build a store from per-body arrays.

        Missing arrays take the loader defaults: zero velocity, unit mass,
        zero angular velocity, name "Unnamed", radius 1.
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        n = len(positions)
        velocities = np.zeros((n, 3)) if velocities is None else np.asarray(velocities, dtype=np.float64).reshape(n, 3)
        masses = np.ones(n) if masses is None else np.asarray(masses, dtype=np.float64).reshape(n)
        angular = np.zeros((n, 3)) if angular_velocities is None else np.asarray(angular_velocities, dtype=np.float64).reshape(n, 3)
        names = ["Unnamed"] * n if names is None else list(names)
        radii = np.ones(n) if radii is None else np.asarray(radii, dtype=np.float64).reshape(n)

        store = cls()
        for i in range(n):
            store.add_body(
                positions[i],
                velocity=velocities[i],
                mass=masses[i],
                angular_velocity=angular[i],
                name=names[i],
                radius=radii[i],
            )
        return store

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @property
    def n_bodies(self) -> int:
        return len(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, handle) -> bool:
        return handle in self._index

    @property
    def handles(self) -> Tuple[int, ...]:
        """Live handles in store order."""
        return tuple(self._handles)

    def index_of(self, handle: int) -> int:
        """Row of ``handle`` in the state arrays. Raises KeyError if stale."""
        return self._index[handle]

    def add_body(
        self,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        velocity: Sequence[float] = (0.0, 0.0, 0.0),
        mass: float = 1.0,
        angular_velocity: Sequence[float] = (0.0, 0.0, 0.0),
        name: str = "Unnamed",
        radius: float = 1.0,
        orientation: Optional[Sequence[float]] = None,
    ) -> int:
        """
        Append a body and return its handle.

        Raises
        ------
        MalformedInputError
            If the mass or radius is not finite and positive, or any vector
            is not a finite 3-vector.
        """
        position = _vec(position, 3, f"position of body '{name}'")
        velocity = _vec(velocity, 3, f"velocity of body '{name}'")
        angular_velocity = _vec(angular_velocity, 3, f"angular velocity of body '{name}'")
        if orientation is None:
            orientation = rotation.IDENTITY
        orientation = rotation.normalize(_vec(orientation, 4, f"orientation of body '{name}'"))
        mass = float(mass)
        if not np.isfinite(mass) or mass <= 0.0:
            raise MalformedInputError(f"mass of body '{name}' must be finite and positive, got {mass}")
        radius = float(radius)
        if not np.isfinite(radius) or radius <= 0.0:
            raise MalformedInputError(f"radius of body '{name}' must be finite and positive, got {radius}")

        handle = self._next_handle
        self._next_handle += 1
        self._index[handle] = len(self._handles)
        self._handles.append(handle)

        self.positions = np.vstack([self.positions, position])
        self.velocities = np.vstack([self.velocities, velocity])
        self.masses = np.append(self.masses, mass)
        self.angular_velocities = np.vstack([self.angular_velocities, angular_velocity])
        self.orientations = np.vstack([self.orientations, orientation])
        self.radii = np.append(self.radii, radius)
        self.names.append(str(name))
        return handle

    def remove_body(self, handle: int) -> None:
        """Remove a body; the remaining bodies keep their relative order."""
        row = self._index.pop(handle)
        del self._handles[row]
        self.positions = np.delete(self.positions, row, axis=0)
        self.velocities = np.delete(self.velocities, row, axis=0)
        self.masses = np.delete(self.masses, row)
        self.angular_velocities = np.delete(self.angular_velocities, row, axis=0)
        self.orientations = np.delete(self.orientations, row, axis=0)
        self.radii = np.delete(self.radii, row)
        del self.names[row]
        self._index = {h: i for i, h in enumerate(self._handles)}

    def lookup(self, handle: int) -> Optional[Tuple[NDArrayFloat, float]]:
        """Live ``(position, mass)`` snapshot, or None for a stale handle."""
        row = self._index.get(handle)
        if row is None:
            return None
        return self.positions[row].copy(), float(self.masses[row])

    # ------------------------------------------------------------------
    # Integrator access
    # ------------------------------------------------------------------

    def commit(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        orientations: Optional[NDArrayFloat] = None,
    ) -> None:
        """Replace the state of every body at once."""
        n = self.n_bodies
        positions = np.asarray(positions, dtype=np.float64)
        velocities = np.asarray(velocities, dtype=np.float64)
        if positions.shape != (n, 3) or velocities.shape != (n, 3):
            raise ValueError(
                f"commit expects ({n}, 3) arrays, got {positions.shape} and {velocities.shape}"
            )
        if orientations is not None:
            orientations = np.asarray(orientations, dtype=np.float64)
            if orientations.shape != (n, 4):
                raise ValueError(f"commit expects ({n}, 4) orientations, got {orientations.shape}")
            self.orientations = orientations
        self.positions = positions
        self.velocities = velocities

    def validate(self) -> None:
        """
        Check every body is physically meaningful.

        Raises
        ------
        MalformedInputError
            On non-positive or non-finite mass, or any non-finite position,
            velocity or angular velocity component.
        """
        bad_mass = ~np.isfinite(self.masses) | (self.masses <= 0.0)
        if np.any(bad_mass):
            names = [self.names[i] for i in np.flatnonzero(bad_mass)]
            raise MalformedInputError(f"Bodies with non-positive or non-finite mass: {names}")
        for label, array in (
            ("position", self.positions),
            ("velocity", self.velocities),
            ("angular velocity", self.angular_velocities),
        ):
            bad = ~np.all(np.isfinite(array), axis=1)
            if np.any(bad):
                names = [self.names[i] for i in np.flatnonzero(bad)]
                raise MalformedInputError(f"Bodies with non-finite {label}: {names}")

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def total_mass(self) -> float:
        return float(np.sum(self.masses))

    def center_of_mass(self) -> NDArrayFloat:
        """Mass-weighted mean position (zeros for an empty store)."""
        total_mass = self.total_mass()
        if total_mass == 0:
            return np.zeros(3, dtype=np.float64)
        return np.sum(self.masses[:, np.newaxis] * self.positions, axis=0) / total_mass

    def kinetic_energy(self) -> float:
        """Σ (1/2) m v²."""
        v_squared = np.sum(self.velocities**2, axis=1)
        return float(0.5 * np.sum(self.masses * v_squared))

    def as_dict(self) -> Dict[str, NDArrayFloat]:
        """Arrays keyed by name, for snapshot output."""
        return {
            'handles': np.array(self._handles, dtype=np.int64),
            'positions': self.positions,
            'velocities': self.velocities,
            'masses': self.masses,
            'angular_velocities': self.angular_velocities,
            'orientations': self.orientations,
            'radii': self.radii,
        }

    def __iter__(self) -> Iterator[int]:
        return iter(self.handles)

    def __repr__(self) -> str:
        return f"BodyStore(n_bodies={self.n_bodies}, total_mass={self.total_mass():.3e})"


def _vec(value, n: int, label: str) -> NDArrayFloat:
    vec = np.array(value, dtype=np.float64).reshape(-1)
    if vec.shape != (n,):
        raise MalformedInputError(f"{label} must have {n} components, got {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise MalformedInputError(f"{label} must be finite, got {vec}")
    return vec
