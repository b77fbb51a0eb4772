"""
World Configuration
===================
Tunable parameters of the avoidance engine.

Groups:
    - Grid: world bounds and voxel size of the distance field
    - Potential field: influence radius r0, gain, saturation, landing funnel
    - Agent: control response, damping, speed limits, flight envelope
    - Prediction: look-ahead horizon and early-warning thresholds
    - Occupancy: 2D restricted-zone raster used for the outline overlay
"""

from __future__ import annotations

import math
import numpy as np
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple


@dataclass
class WorldConfig:
    """
    Configuration for the navigation world.

    Attributes:
        x_min, x_max, y_min, y_max, z_min, z_max: Grid bounds (m)
        cell_size: Voxel edge length of the distance field (m)
        influence_radius: r0, fill value and clamp ceiling of the field (m)
        ceiling: Altitude of the implicit ceiling obstacle (defaults to y_max)
        gain: eta, repulsion gain
        max_force: Fmax, saturation of the repulsive acceleration
        distance_epsilon: Offset preventing division by zero at D = 0
        gradient_epsilon: Gradients shorter than this are treated as no force
        funnel_height: h_gate, height of the landing funnel above the roof (m)
        funnel_floor: How far below the roof the funnel override reaches (m)
        pad_radius_fraction: Pad radius as a fraction of the smaller half footprint
        collision_epsilon: Margin added when pushing out of an obstacle (m)
        collider_buffer: Geogrid buffer added around obstacles for hard collision (m)
        dt: Tick interval (s)
        acceleration: Control acceleration at full stick (m/s^2)
        vertical_speed: Climb/descent rate at full stick (m/s)
        yaw_rate: Turn rate at full stick (rad/s)
        damping: Per-tick velocity multiplier in (0, 1]
        max_speed: Agent speed limit (m/s)
        max_accel: Clamp on the force-model acceleration in prediction (m/s^2)
        flight_floor / flight_ceiling: Allowed altitude envelope (m)
        flight_extent: Half-width of the horizontal flight envelope (m), defaults to the grid bounds
        prediction_steps: Number of look-ahead Euler steps
        prediction_dt: Step of the look-ahead rollout (s), defaults to dt
        warning_fraction: Early warning when D < warning_fraction * r0
        warning_min_force: ... and |force| exceeds this magnitude
        occupancy_cell_size: Cell size of the 2D restricted-zone raster (m)
        occupancy_buffer: Horizontal dilation buffer of the raster (m)
        vertical_clearance: Clearance above dilated roofs (m)
        build_workers: Worker threads used by the distance field build
    """
    # Grid
    x_min: float = -200.0
    x_max: float = 200.0
    y_min: float = 0.0
    y_max: float = 90.0
    z_min: float = -200.0
    z_max: float = 200.0
    cell_size: float = 2.0
    influence_radius: float = 20.0
    ceiling: Optional[float] = None

    # Potential field
    gain: float = 400.0
    max_force: float = 40.0
    distance_epsilon: float = 0.5
    gradient_epsilon: float = 1e-6
    funnel_height: float = 8.0
    funnel_floor: float = 0.5
    pad_radius_fraction: float = 0.8

    # Hard collision
    collision_epsilon: float = 0.01
    collider_buffer: float = 0.0

    # Agent
    dt: float = 1.0 / 60.0
    acceleration: float = 60.0
    vertical_speed: float = 12.0
    yaw_rate: float = 1.8
    damping: float = 0.95
    max_speed: float = 30.0
    max_accel: float = 40.0
    flight_floor: float = 2.0
    flight_ceiling: float = 80.0
    flight_extent: Optional[float] = None

    # Prediction / early warning
    prediction_steps: int = 45
    prediction_dt: Optional[float] = None
    warning_fraction: float = 0.5
    warning_min_force: float = 1.0

    # Occupancy raster
    occupancy_cell_size: float = 2.0
    occupancy_buffer: float = 5.0
    vertical_clearance: float = 5.0

    # Build
    build_workers: int = 1

    def __post_init__(self):
        for lo, hi in (('x_min', 'x_max'), ('y_min', 'y_max'), ('z_min', 'z_max')):
            if getattr(self, hi) <= getattr(self, lo):
                raise ValueError(f"{hi} must exceed {lo}")
        positive = (
            'cell_size', 'influence_radius', 'gain', 'max_force', 'distance_epsilon',
            'gradient_epsilon', 'funnel_height', 'pad_radius_fraction', 'dt',
            'max_speed', 'max_accel', 'occupancy_cell_size',
        )
        for name in positive:
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        non_negative = (
            'funnel_floor', 'collision_epsilon', 'collider_buffer', 'acceleration',
            'vertical_speed', 'yaw_rate', 'warning_min_force', 'occupancy_buffer',
            'vertical_clearance',
        )
        for name in non_negative:
            if getattr(self, name) < 0.0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if not 0.0 < self.damping <= 1.0:
            raise ValueError(f"damping must lie in (0, 1], got {self.damping}")
        if not 0.0 < self.warning_fraction <= 1.0:
            raise ValueError(f"warning_fraction must lie in (0, 1], got {self.warning_fraction}")
        if self.flight_ceiling <= self.flight_floor:
            raise ValueError("flight_ceiling must exceed flight_floor")
        if self.prediction_steps < 0:
            raise ValueError("prediction_steps must be non-negative")
        if self.flight_extent is not None and self.flight_extent <= 0.0:
            raise ValueError(f"flight_extent must be positive, got {self.flight_extent}")
        if self.build_workers < 1:
            raise ValueError("build_workers must be at least 1")
        if self.ceiling is None:
            self.ceiling = self.y_max
        if self.prediction_dt is None:
            self.prediction_dt = self.dt

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    @classmethod
    def city_default(cls) -> 'WorldConfig':
        """Bounds matching the generated city, with a 5 m geogrid buffer around colliders."""
        return cls(collider_buffer=5.0, flight_extent=180.0)

    @classmethod
    def small(cls) -> 'WorldConfig':
        """Compact world around the origin, cheap enough for tests."""
        return cls(
            x_min=-40.0, x_max=40.0,
            y_min=-20.0, y_max=40.0,
            z_min=-40.0, z_max=40.0,
            cell_size=1.0,
            flight_floor=-20.0, flight_ceiling=40.0,
        )

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    @property
    def grid_origin(self) -> np.ndarray:
        return np.array([self.x_min, self.y_min, self.z_min], dtype=np.float64)

    @property
    def grid_shape(self) -> Tuple[int, int, int]:
        """Voxel counts (nx, ny, nz) covering the bounds."""
        return (
            int(math.ceil((self.x_max - self.x_min) / self.cell_size)),
            int(math.ceil((self.y_max - self.y_min) / self.cell_size)),
            int(math.ceil((self.z_max - self.z_min) / self.cell_size)),
        )

    @property
    def horizontal_bounds(self) -> Tuple[float, float, float, float]:
        return self.x_min, self.x_max, self.z_min, self.z_max

    @property
    def flight_bounds(self) -> Tuple[float, float, float, float]:
        """Horizontal flight envelope (x_min, x_max, z_min, z_max)."""
        if self.flight_extent is None:
            return self.horizontal_bounds
        e = self.flight_extent
        return -e, e, -e, e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
