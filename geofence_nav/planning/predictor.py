"""
Trajectory Predictor
====================
Forward Euler rollout of the agent under the potential field, used for the
look-ahead path and the "entering field" early warning.

Per step:
    a = clamp_length(F(x), 0, max_accel)
    v = (v + a * dt) * damping
    x = x + v * dt
"""

from __future__ import annotations

import numpy as np
from typing import Iterable, Iterator, Optional

from .potential import PotentialForceModel


def clamp_length(vector: np.ndarray, max_length: float) -> np.ndarray:
    """Scale a vector down so its norm does not exceed max_length."""
    norm = np.linalg.norm(vector)
    if norm > max_length and norm > 0.0:
        return vector * (max_length / norm)
    return vector


class TrajectoryRollout:
    """
    Lazy, finite, restartable sequence of predicted positions.

    Each iteration recomputes the rollout from the stored initial state, so
    the object can be iterated any number of times with the same result.
    The initial position itself is not part of the sequence.
    """

    def __init__(
        self,
        model: PotentialForceModel,
        position: np.ndarray,
        velocity: np.ndarray,
        steps: int,
        dt: float,
        damping: float,
        max_accel: float,
    ):
        self.model = model
        self.position = np.array(position, dtype=np.float64)
        self.velocity = np.array(velocity, dtype=np.float64)
        self.steps = int(steps)
        self.dt = float(dt)
        self.damping = float(damping)
        self.max_accel = float(max_accel)

    def __len__(self) -> int:
        return self.steps

    def __iter__(self) -> Iterator[np.ndarray]:
        x = self.position.copy()
        v = self.velocity.copy()
        for _ in range(self.steps):
            a = clamp_length(self.model.force(x), self.max_accel)
            v = (v + a * self.dt) * self.damping
            x = x + v * self.dt
            yield x.copy()

    def to_array(self) -> np.ndarray:
        """Materialise the rollout as an (steps, 3) array."""
        points = list(self)
        if not points:
            return np.zeros((0, 3))
        return np.stack(points)


class TrajectoryPredictor:
    """
    Look-ahead rollouts and the early-warning test.

    Early warning fires at a position only if all three hold:
        1. sampled distance < warning_fraction * r0
        2. |force| > warning_min_force
        3. the position is not inside an active landing funnel
    so weak far-field repulsion and legitimate landing approaches stay quiet.

    Args:
        model: Potential force model (its readiness gates every warning)
        steps: Look-ahead steps
        dt: Step size (s)
        damping: Per-step velocity multiplier
        max_accel: Clamp on the force acceleration
        warning_fraction: Distance threshold as a fraction of r0
        warning_min_force: Force magnitude threshold
    """

    def __init__(
        self,
        model: PotentialForceModel,
        steps: int = 45,
        dt: float = 1.0 / 60.0,
        damping: float = 0.95,
        max_accel: float = 40.0,
        warning_fraction: float = 0.5,
        warning_min_force: float = 1.0,
    ):
        self.model = model
        self.steps = steps
        self.dt = dt
        self.damping = damping
        self.max_accel = max_accel
        self.warning_fraction = warning_fraction
        self.warning_min_force = warning_min_force

    @classmethod
    def from_config(cls, model: PotentialForceModel, config) -> 'TrajectoryPredictor':
        return cls(
            model,
            steps=config.prediction_steps,
            dt=config.prediction_dt,
            damping=config.damping,
            max_accel=config.max_accel,
            warning_fraction=config.warning_fraction,
            warning_min_force=config.warning_min_force,
        )

    def rollout(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        steps: Optional[int] = None,
    ) -> TrajectoryRollout:
        return TrajectoryRollout(
            self.model,
            position,
            velocity,
            steps=self.steps if steps is None else steps,
            dt=self.dt,
            damping=self.damping,
            max_accel=self.max_accel,
        )

    def warns_at(self, point: np.ndarray) -> bool:
        """Early-warning test for a single position."""
        sampler = self.model.sampler
        if sampler is None:
            return False
        if self.model.in_landing_funnel(point):
            return False
        distance = sampler.sample_distance(point)
        if distance >= self.warning_fraction * sampler.influence_radius:
            return False
        return self.model.force_magnitude(point) > self.warning_min_force

    def early_warning(self, proposed: np.ndarray, predicted: Iterable[np.ndarray]) -> bool:
        """True if the proposed next position or any predicted one warns."""
        if not self.model.ready:
            return False
        if self.warns_at(proposed):
            return True
        return any(self.warns_at(p) for p in predicted)
