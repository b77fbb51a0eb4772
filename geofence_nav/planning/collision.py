"""
Collision Resolver
==================
Hard AABB penetration check and push-out.

This runs after the soft potential field and is authoritative: a proposed
position inside any obstacle is moved just outside one of its faces (plus a
small margin) and the velocity component along that axis is zeroed.

Faces are tried from the shallowest penetration up. A face is only used if
the pushed position is inside the flight envelope and not inside another
box, so overlapping colliders and the ground cannot trap the agent. When no
face is free the caller's fallback position (the last resolved one) is
restored with zero velocity.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..environment.obstacles import Obstacle, ObstacleRegistry


Envelope = Tuple[np.ndarray, np.ndarray]


@dataclass
class CollisionResult:
    """
    Outcome of one resolution.

    Attributes:
        position: Resolved position, shape (3,)
        velocity: Velocity with blocked components zeroed, shape (3,)
        collided: Whether any obstacle was penetrated
        hits: (obstacle index, axis) per push-out performed
        fell_back: No free face was found and the fallback position was used
    """
    position: np.ndarray
    velocity: np.ndarray
    collided: bool = False
    hits: List[Tuple[int, int]] = field(default_factory=list)
    fell_back: bool = False


def envelope_limits(
    horizontal_bounds: Tuple[float, float, float, float],
    floor: float,
    ceiling: float,
) -> Envelope:
    """(lo, hi) corners of the flight envelope."""
    x_min, x_max, z_min, z_max = horizontal_bounds
    return np.array([x_min, floor, z_min]), np.array([x_max, ceiling, z_max])


class CollisionResolver:
    """
    Stateless push-out against the current obstacle set.

    Args:
        obstacles: Collider boxes (usually the registry inflated by the
            geogrid buffer)
        epsilon: Margin placed between the resolved position and the face
        max_passes: Resolution passes over all boxes
        envelope: Optional (lo, hi) flight envelope; faces outside it are
            never used
    """

    def __init__(
        self,
        obstacles: ObstacleRegistry,
        epsilon: float = 0.01,
        max_passes: int = 4,
        envelope: Optional[Envelope] = None,
    ):
        if epsilon < 0.0:
            raise ValueError(f"epsilon must be non-negative, got {epsilon}")
        self.obstacles = obstacles
        self.epsilon = float(epsilon)
        self.max_passes = max(1, int(max_passes))
        self.envelope = None
        if envelope is not None:
            lo, hi = envelope
            self.envelope = (np.asarray(lo, dtype=np.float64), np.asarray(hi, dtype=np.float64))

    def penetrating(self, position: np.ndarray) -> List[int]:
        """Indices of obstacles strictly containing the position."""
        return [i for i, obs in enumerate(self.obstacles) if obs.contains(position, strict=True)]

    def _is_free(self, position: np.ndarray, skip: int) -> bool:
        if self.envelope is not None:
            lo, hi = self.envelope
            if np.any(position < lo) or np.any(position > hi):
                return False
        return not any(
            obs.contains(position, strict=True)
            for j, obs in enumerate(self.obstacles) if j != skip
        )

    def _exits(self, obs: Obstacle, pos: np.ndarray) -> List[Tuple[int, float]]:
        """(axis, direction) of all six faces, shallowest penetration first."""
        offset = pos - obs.center
        candidates = []
        for axis in range(3):
            near = 1.0 if offset[axis] >= 0.0 else -1.0
            depth = obs.half_extents[axis] - abs(offset[axis])
            candidates.append((depth, axis, 0, near))
            candidates.append((depth + 2.0 * abs(offset[axis]), axis, 1, -near))
        candidates.sort(key=lambda c: (c[0], c[1], c[2]))
        return [(axis, direction) for _, axis, _, direction in candidates]

    def resolve(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        fallback: Optional[np.ndarray] = None,
    ) -> CollisionResult:
        """
        Push a proposed position out of every obstacle it penetrates.

        Args:
            position: Proposed next position, shape (3,)
            velocity: Current velocity, shape (3,)
            fallback: Known free position restored if no face is free

        Returns:
            CollisionResult with copies of the adjusted vectors
        """
        pos = np.array(position, dtype=np.float64)
        vel = np.array(velocity, dtype=np.float64)
        hits: List[Tuple[int, int]] = []
        stuck = False

        for _ in range(self.max_passes):
            moved = False
            for i, obs in enumerate(self.obstacles):
                if not obs.contains(pos, strict=True):
                    continue
                for axis, direction in self._exits(obs, pos):
                    trial = pos.copy()
                    trial[axis] = obs.center[axis] + direction * (obs.half_extents[axis] + self.epsilon)
                    if self._is_free(trial, skip=i):
                        pos = trial
                        vel[axis] = 0.0
                        hits.append((i, axis))
                        moved = True
                        break
                else:
                    stuck = True
                    break
            if stuck or not moved:
                break

        if stuck or self.penetrating(pos):
            if fallback is None:
                return CollisionResult(position=pos, velocity=vel, collided=True, hits=hits)
            return CollisionResult(
                position=np.array(fallback, dtype=np.float64),
                velocity=np.zeros(3),
                collided=True,
                hits=hits,
                fell_back=True,
            )
        return CollisionResult(position=pos, velocity=vel, collided=bool(hits), hits=hits)


def clamp_to_envelope(
    position: np.ndarray,
    velocity: np.ndarray,
    horizontal_bounds: Tuple[float, float, float, float],
    floor: float,
    ceiling: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Keep the agent inside the flight envelope, zeroing velocity that pushes
    against a limit.
    """
    lo, hi = envelope_limits(horizontal_bounds, floor, ceiling)
    pos = np.clip(position, lo, hi)
    vel = np.array(velocity, dtype=np.float64)
    vel[(pos <= lo) & (vel < 0.0)] = 0.0
    vel[(pos >= hi) & (vel > 0.0)] = 0.0
    return pos, vel
