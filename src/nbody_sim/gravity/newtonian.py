"""
Newtonian gravity solver for point masses.

This module provides direct O(N²) gravitational force calculation:

    a_i = G ∑_{j≠i} m_j (r_j - r_i) / |r_j - r_i|³

Pairs with zero separation (including each body's self-term) contribute
nothing, which removes the singularity structurally instead of by softening.
Tree-based acceleration (Barnes-Hut over ``nbody_sim.spatial.Octree``) is a
planned optimization.
"""

import numpy as np

from ..core.interfaces import GravitySolver, NDArrayFloat

G_SI = 6.6743e-11  # m³ kg⁻¹ s⁻²


class NewtonianGravity(GravitySolver):
    """
    Newtonian gravity solver using direct body-body summation.

    Parameters
    ----------
    G : float, optional
        Gravitational constant (default SI value 6.6743e-11).

    Notes
    -----
    Gravitational potential per unit mass:
        φ_i = -∑_{j≠i} G m_j / |r_j - r_i|

    Memory use is O(N²) from the separation tensor, which is fine for the
    handful to few thousand bodies this solver targets.
    """

    def __init__(self, G: float = G_SI):
        self.G = float(G)

    @staticmethod
    def _separations(positions: NDArrayFloat):
        """Pairwise r_ij = r_j - r_i and |r_ij|², shapes (N, N, 3) and (N, N)."""
        r_ij = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
        r2 = np.sum(r_ij**2, axis=2)
        return r_ij, r2

    def compute_acceleration(
        self,
        positions: NDArrayFloat,
        masses: NDArrayFloat,
    ) -> NDArrayFloat:
        """
        Compute Newtonian gravitational acceleration on all bodies.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Body positions [x, y, z].
        masses : NDArrayFloat, shape (N,)
            Body masses.

        Returns
        -------
        accel : NDArrayFloat, shape (N, 3)
            Gravitational acceleration on each body [ax, ay, az].
        """
        positions = np.asarray(positions, dtype=np.float64)
        masses = np.asarray(masses, dtype=np.float64)

        r_ij, r2 = self._separations(positions)

        # 1 / |r_ij|³ with coincident pairs (and the diagonal) masked to zero
        coincident = r2 <= 0.0
        r2_safe = np.where(coincident, 1.0, r2)
        inv_r3 = np.where(coincident, 0.0, r2_safe**(-1.5))

        masses_inv_r3 = (masses[np.newaxis, :] * inv_r3)[:, :, np.newaxis]
        return self.G * np.sum(masses_inv_r3 * r_ij, axis=1)

    def compute_potential(
        self,
        positions: NDArrayFloat,
        masses: NDArrayFloat,
    ) -> NDArrayFloat:
        """
        Compute Newtonian gravitational potential at each body.

        Coincident pairs are skipped, as in ``compute_acceleration``.
        """
        positions = np.asarray(positions, dtype=np.float64)
        masses = np.asarray(masses, dtype=np.float64)

        _, r2 = self._separations(positions)
        coincident = r2 <= 0.0
        inv_r = np.where(coincident, 0.0, 1.0 / np.sqrt(np.where(coincident, 1.0, r2)))

        return -self.G * np.sum(masses[np.newaxis, :] * inv_r, axis=1)

    def __repr__(self) -> str:
        """String representation of solver."""
        return f"NewtonianGravity(G={self.G})"
