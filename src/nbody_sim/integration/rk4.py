"""
Classical fourth-order Runge-Kutta integrator for N-body gravity.

State per body is y = (x, v) with derivative f(y) = (v, a(x)). One fixed tick
evaluates four stages over the whole body set at once, each from a trial
state offset from the tick-start state by the previous stage's derivative:

    k1 = f(y0)
    k2 = f(y0 + dt/2 k1)
    k3 = f(y0 + dt/2 k2)
    k4 = f(y0 + dt   k3)
    y1 = y0 + dt/6 (k1 + 2 k2 + 2 k3 + k4)

The weighted sum is accumulated stage by stage and committed to the body
store in a single batch, so no body's state changes until every stage of the
tick is complete. Orientation is advanced separately by the scaled-axis
rotation ``angular_velocity * dt``; it is not part of the RK4 state.

References
----------
- Press et al. (2007), Numerical Recipes, 3rd ed., §17.1
"""

from typing import Any, Optional, Tuple
import numpy as np

from ..bodies import rotation
from ..core.interfaces import GravitySolver, NDArrayFloat, TimeIntegrator
from ..gravity.newtonian import NewtonianGravity


class RK4Integrator(TimeIntegrator):
    """
    Fixed-step RK4 integrator.

    Parameters
    ----------
    gravity_solver : GravitySolver, optional
        Acceleration law; defaults to direct-summation ``NewtonianGravity``.

    Attributes
    ----------
    STAGES : tuple of (weight, k_coefficient)
        Per-stage weight and trial-state offset, both as fractions of dt.
    """

    STAGES = (
        (1.0 / 6.0, 0.0),
        (1.0 / 3.0, 0.5),
        (1.0 / 3.0, 0.5),
        (1.0 / 6.0, 1.0),
    )

    def __init__(self, gravity_solver: Optional[GravitySolver] = None):
        self.gravity_solver = gravity_solver if gravity_solver is not None else NewtonianGravity()

    def derivatives(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        masses: NDArrayFloat,
    ) -> Tuple[NDArrayFloat, NDArrayFloat]:
        """One stage evaluation: (dx/dt, dv/dt) = (v, a(x)) for every body."""
        return velocities, self.gravity_solver.compute_acceleration(positions, masses)

    def integrate(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        masses: NDArrayFloat,
        dt: float,
    ) -> Tuple[NDArrayFloat, NDArrayFloat]:
        """
        Advance raw state arrays by one tick without touching any store.

        Returns
        -------
        positions, velocities : NDArrayFloat, shape (N, 3)
            State at t + dt.
        """
        x0 = np.asarray(positions, dtype=np.float64)
        v0 = np.asarray(velocities, dtype=np.float64)
        masses = np.asarray(masses, dtype=np.float64)

        k_x = np.zeros_like(x0)
        k_v = np.zeros_like(v0)
        sum_x = np.zeros_like(x0)
        sum_v = np.zeros_like(v0)

        for weight, k_coefficient in self.STAGES:
            trial_x = x0 + (k_coefficient * dt) * k_x
            trial_v = v0 + (k_coefficient * dt) * k_v
            k_x, k_v = self.derivatives(trial_x, trial_v, masses)
            sum_x += (weight * dt) * k_x
            sum_v += (weight * dt) * k_v

        return x0 + sum_x, v0 + sum_v

    def step(self, bodies: Any, dt: float, **kwargs) -> None:
        """
        Advance every body in ``bodies`` by one fixed tick.

        Parameters
        ----------
        bodies : BodyStore
            Read once at the start of the tick, committed once at the end.
        dt : float
            Tick duration (finite, > 0).
        """
        dt = float(dt)
        if not np.isfinite(dt) or dt <= 0.0:
            raise ValueError(f"dt must be finite and positive, got {dt}")
        if bodies.n_bodies == 0:
            return

        positions, velocities = self.integrate(
            bodies.positions, bodies.velocities, bodies.masses, dt
        )
        orientations = rotation.normalize(rotation.multiply(
            bodies.orientations,
            rotation.from_scaled_axis(dt * bodies.angular_velocities),
        ))
        bodies.commit(positions, velocities, orientations)

    def __repr__(self) -> str:
        return f"RK4Integrator(gravity_solver={self.gravity_solver!r})"
