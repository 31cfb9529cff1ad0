"""
Energy and conserved-quantity diagnostics for N-body simulations.

A closed gravitating system conserves total energy, linear momentum and
angular momentum; tracking their drift over a run is the standard check on
the integrator and the chosen tick length.

Usage:
    >>> diagnostics = EnergyDiagnostics()
    >>> energy_dict = diagnostics.compute(bodies, gravity_solver)
    >>> print(f"Total energy: {energy_dict['E_total']:.3e}")
"""

from typing import Any, Dict, List, Optional
import numpy as np

from .interfaces import GravitySolver


class EnergyDiagnostics:
    """
    Energy and conserved-quantity diagnostics with a time-series history.

    Attributes
    ----------
    history : List[Dict[str, Any]]
        Time-series of diagnostic snapshots.
    E_initial : Optional[float]
        Total energy of the first snapshot recorded (for drift tracking).
    """

    def __init__(self):
        self.history: List[Dict[str, Any]] = []
        self.E_initial: Optional[float] = None

    def compute(self, bodies: Any, gravity_solver: GravitySolver) -> Dict[str, Any]:
        """
        Compute all diagnostics for the current state of ``bodies``.

        Returns
        -------
        diagnostics : Dict[str, Any]
            'E_kinetic', 'E_potential', 'E_total' plus the entries of
            ``compute_global_quantities``.
        """
        E_kin = self.compute_kinetic_energy(bodies)
        E_pot = self.compute_potential_energy(bodies, gravity_solver)
        diagnostics = {
            'E_kinetic': E_kin,
            'E_potential': E_pot,
            'E_total': E_kin + E_pot,
        }
        diagnostics.update(self.compute_global_quantities(bodies))
        return diagnostics

    def compute_kinetic_energy(self, bodies: Any) -> float:
        """Σ (1/2) m v²."""
        v_squared = np.sum(bodies.velocities**2, axis=1)
        return float(0.5 * np.sum(bodies.masses * v_squared))

    def compute_potential_energy(self, bodies: Any, gravity_solver: GravitySolver) -> float:
        """
        Total gravitational potential energy.

        E_pot = (1/2) Σ m_i φ_i, the factor 1/2 removing double-counted pairs.
        """
        if bodies.n_bodies < 2:
            return 0.0
        phi = gravity_solver.compute_potential(bodies.positions, bodies.masses)
        return float(0.5 * np.sum(bodies.masses * phi))

    def compute_global_quantities(self, bodies: Any) -> Dict[str, Any]:
        """
        Compute global conserved quantities.

        Returns
        -------
        quantities : Dict[str, Any]
            - 'total_mass': Total mass
            - 'linear_momentum': Linear momentum vector [3]
            - 'angular_momentum': Angular momentum vector [3]
            - 'center_of_mass': Center of mass position [3]
        """
        masses = bodies.masses
        positions = bodies.positions
        velocities = bodies.velocities

        total_mass = float(np.sum(masses))
        linear_momentum = np.sum(masses[:, np.newaxis] * velocities, axis=0)
        if total_mass > 0:
            com = np.sum(masses[:, np.newaxis] * positions, axis=0) / total_mass
        else:
            com = np.zeros(3)

        # Angular momentum L = Σ m (r × v)
        angular_momentum = np.sum(
            masses[:, np.newaxis] * np.cross(positions, velocities),
            axis=0
        ) if len(masses) else np.zeros(3)

        return {
            'total_mass': total_mass,
            'linear_momentum': linear_momentum,
            'angular_momentum': angular_momentum,
            'center_of_mass': com,
        }

    def append_to_history(self, time: float, diagnostics: Dict[str, Any]) -> None:
        """Append a diagnostics snapshot; the first one fixes ``E_initial``."""
        if self.E_initial is None:
            self.E_initial = diagnostics['E_total']
        self.history.append({'time': time, **diagnostics})

    def get_time_series(self, quantity: str) -> Dict[str, np.ndarray]:
        """
        Extract time-series of a specific quantity.

        Raises
        ------
        ValueError
            If quantity not found in history or history is empty.
        """
        if not self.history:
            raise ValueError("No diagnostic history available")

        if quantity not in self.history[0]:
            available = list(self.history[0].keys())
            raise ValueError(f"Quantity '{quantity}' not found. Available: {available}")

        times = np.array([snap['time'] for snap in self.history])
        values = np.array([snap[quantity] for snap in self.history])

        return {'time': times, quantity: values}

    def energy_conservation_metric(self) -> float:
        """
        Maximum |ΔE/E₀| over the recorded history.

        Returns 0.0 if history is empty or E_initial is zero.
        """
        if not self.history or self.E_initial is None or self.E_initial == 0:
            return 0.0

        E_values = np.array([snap['E_total'] for snap in self.history])
        relative_error = np.abs(E_values - self.E_initial) / abs(self.E_initial)
        return float(np.max(relative_error))

    def __repr__(self) -> str:
        return f"EnergyDiagnostics(snapshots={len(self.history)})"
