"""
Fixed-timestep clock decoupling simulation ticks from frame cadence.

The caller reports how much wall (or scaled) time passed since its last
frame; the clock accumulates it and says how many fixed ticks are now due.
Trajectories therefore depend only on the tick count, never on how unevenly
frames arrive. Pause state is passed in on every call, so there is no global
"paused" flag to consult.
"""

from dataclasses import dataclass
import math
import warnings

DEFAULT_TICK = 0.015625  # 64 Hz


@dataclass
class FixedTimestepClock:
    """
    Accumulator for fixed ticks.

    Attributes
    ----------
    dt : float
        Fixed tick duration.
    max_ticks_per_advance : int
        Upper bound on ticks released by one ``advance`` call. Backlog past
        the bound is dropped so a slow frame cannot snowball.
    accumulator : float
        Time carried over that has not yet filled a whole tick.
    elapsed : float
        Simulated time released as ticks so far.
    ticks : int
        Ticks released so far.
    dropped_ticks : int
        Ticks discarded by the backlog bound.
    """

    dt: float = DEFAULT_TICK
    max_ticks_per_advance: int = 8
    accumulator: float = 0.0
    elapsed: float = 0.0
    ticks: int = 0
    dropped_ticks: int = 0

    def __post_init__(self):
        if not math.isfinite(self.dt) or self.dt <= 0.0:
            raise ValueError(f"dt must be finite and positive, got {self.dt}")
        if self.max_ticks_per_advance < 1:
            raise ValueError(
                f"max_ticks_per_advance must be at least 1, got {self.max_ticks_per_advance}"
            )

    def advance(self, frame_time: float, paused: bool = False) -> int:
        """
        Account for ``frame_time`` and return the number of ticks due.

        While paused nothing accumulates and no ticks are released.
        """
        if frame_time < 0.0 or not math.isfinite(frame_time):
            raise ValueError(f"frame_time must be finite and non-negative, got {frame_time}")
        if paused:
            return 0

        self.accumulator += frame_time
        due = int(self.accumulator // self.dt)
        self.accumulator -= due * self.dt

        if due > self.max_ticks_per_advance:
            dropped = due - self.max_ticks_per_advance
            self.dropped_ticks += dropped
            warnings.warn(
                f"Simulation fell {dropped} ticks behind; dropping backlog",
                RuntimeWarning,
                stacklevel=2,
            )
            due = self.max_ticks_per_advance

        self.ticks += due
        self.elapsed = self.ticks * self.dt
        return due

    @property
    def alpha(self) -> float:
        """Fraction of a tick currently accumulated (for render interpolation)."""
        return self.accumulator / self.dt

    def reset(self) -> None:
        self.accumulator = 0.0
        self.elapsed = 0.0
        self.ticks = 0
        self.dropped_ticks = 0
