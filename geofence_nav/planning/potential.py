"""
Potential Force Model
=====================
Repulsive artificial-potential-field acceleration derived from the sampled
distance field, with a smooth landing funnel above authorised pads.

Magnitude (inverse-square repulsion inside the influence radius r0):

    s   = 1/(D+eps) - 1/r0
    mag = min(eta * s / (D+eps)^2, Fmax)          for D < r0, else 0

Direction is the unit field gradient, pointing from the obstacle into free
space. The magnitude is scaled by a gate in [0, 1]:

    gate = 1 - smoothstep(0, h_gate, dy) * smoothstep(0, r_p, r_p - r)

taken as the minimum over landable roofs whose footprint contains the point.
Inside the funnel window (dy in [-floor, h_gate] over a landable roof) the
force is exactly zero.
"""

from __future__ import annotations

import numpy as np
from typing import Optional

from ..environment.config import WorldConfig
from ..environment.obstacles import Obstacle, ObstacleRegistry
from ..field.sampler import FieldSampler


def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """Hermite step: 0 below edge0, 1 above edge1, C1-continuous in between."""
    if edge1 == edge0:
        return 0.0 if x < edge0 else 1.0
    t = min(max((x - edge0) / (edge1 - edge0), 0.0), 1.0)
    return t * t * (3.0 - 2.0 * t)


class PotentialForceModel:
    """
    Bounded repulsive acceleration with landing-funnel suppression.

    The model is inert until a sampler is attached: before the distance
    field is ready every query returns a zero vector.

    Args:
        config: World configuration (r0, gain, Fmax, funnel parameters)
        obstacles: Registry providing the landable roofs
        sampler: Field sampler, or None while the field is not ready
    """

    def __init__(
        self,
        config: WorldConfig,
        obstacles: ObstacleRegistry,
        sampler: Optional[FieldSampler] = None,
    ):
        self.config = config
        self.obstacles = obstacles
        self.sampler = sampler

        self.r0 = config.influence_radius
        self.eta = config.gain
        self.f_max = config.max_force
        self.eps = config.distance_epsilon
        self.h_gate = config.funnel_height
        self.funnel_floor = config.funnel_floor

    @property
    def ready(self) -> bool:
        return self.sampler is not None

    def attach(self, sampler: Optional[FieldSampler]):
        self.sampler = sampler

    # -------------------------------------------------------------------------
    # Landing funnel
    # -------------------------------------------------------------------------

    def pad_radius(self, obs: Obstacle) -> float:
        return self.config.pad_radius_fraction * float(min(obs.half_extents[0], obs.half_extents[2]))

    def in_landing_funnel(self, point: np.ndarray) -> bool:
        """True over a landable roof within [-floor, h_gate] of its surface."""
        p = np.asarray(point, dtype=np.float64)
        for obs in self.obstacles.landable:
            if not obs.footprint_contains(p):
                continue
            dy = p[1] - obs.roof_height
            if -self.funnel_floor <= dy <= self.h_gate:
                return True
        return False

    def gate(self, point: np.ndarray) -> float:
        """Smallest funnel gate among landable roofs under the point (1 if none)."""
        p = np.asarray(point, dtype=np.float64)
        gate = 1.0
        for obs in self.obstacles.landable:
            if not obs.footprint_contains(p):
                continue
            dy = p[1] - obs.roof_height
            rp = self.pad_radius(obs)
            r = obs.horizontal_distance(p)
            g = 1.0 - smoothstep(0.0, self.h_gate, dy) * smoothstep(0.0, rp, rp - r)
            gate = min(gate, g)
        return gate

    # -------------------------------------------------------------------------
    # Repulsion
    # -------------------------------------------------------------------------

    def magnitude(self, distance: float) -> float:
        """Saturated inverse-square repulsion for a sampled distance."""
        if distance >= self.r0:
            return 0.0
        d = max(distance, 0.0) + self.eps
        s = 1.0 / d - 1.0 / self.r0
        if s <= 0.0:
            return 0.0
        return min(self.eta * s / (d * d), self.f_max)

    def force(self, point: np.ndarray) -> np.ndarray:
        """
        Repulsive acceleration at a world position.

        Returns:
            Force vector, shape (3,); zero when the field is not ready, over
            an active landing funnel, beyond r0, or where the gradient is
            degenerate.
        """
        if self.sampler is None:
            return np.zeros(3)
        p = np.asarray(point, dtype=np.float64)

        if self.in_landing_funnel(p):
            return np.zeros(3)

        distance = self.sampler.sample_distance(p)
        mag = self.magnitude(distance)
        if mag == 0.0:
            return np.zeros(3)

        direction = self.sampler.sample_direction(p)
        if not direction.any():
            return np.zeros(3)

        return direction * (mag * self.gate(p))

    def force_magnitude(self, point: np.ndarray) -> float:
        return float(np.linalg.norm(self.force(point)))

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(r0={self.r0}, eta={self.eta}, "
                f"f_max={self.f_max}, ready={self.ready})")
