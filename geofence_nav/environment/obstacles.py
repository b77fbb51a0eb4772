"""
Obstacle Registry
=================
Axis-aligned obstacle volumes (buildings) and the immutable registry that
every other component reads from.

Coordinates are right-handed with Y pointing up:
    - X / Z span the ground plane
    - Y is altitude

Obstacles are produced once per session by a scene generator
(see `generate_city`) and never mutated afterwards.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from collections import abc
from typing import Iterable, Iterator, List, Optional, Tuple


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True, eq=False)
class Obstacle:
    """
    Axis-aligned box obstacle.

    Attributes:
        center: Box centre (x, y, z), shape (3,)
        half_extents: Half sizes along each axis, shape (3,), strictly positive
        landable: Whether a landing funnel is opened above the roof
        roof_height: Altitude of the landing surface; defaults to the top face
    """
    center: np.ndarray
    half_extents: np.ndarray
    landable: bool = False
    roof_height: Optional[float] = None

    def __post_init__(self):
        center = np.array(self.center, dtype=np.float64).reshape(-1)
        half = np.array(self.half_extents, dtype=np.float64).reshape(-1)
        if center.shape != (3,) or half.shape != (3,):
            raise ValueError(
                f"Obstacle center and half_extents must be 3-vectors, "
                f"got {center.shape} and {half.shape}"
            )
        if not np.all(np.isfinite(center)) or not np.all(np.isfinite(half)):
            raise ValueError("Obstacle geometry must be finite")
        if np.any(half <= 0.0):
            raise ValueError(f"Obstacle half_extents must be strictly positive, got {half}")

        center.flags.writeable = False
        half.flags.writeable = False
        # frozen dataclass: bypass __setattr__ for the normalised arrays
        object.__setattr__(self, 'center', center)
        object.__setattr__(self, 'half_extents', half)
        object.__setattr__(self, 'landable', bool(self.landable))

        roof = self.roof_height
        if roof is None:
            roof = float(center[1] + half[1])
        object.__setattr__(self, 'roof_height', float(roof))

    @property
    def min_corner(self) -> np.ndarray:
        return self.center - self.half_extents

    @property
    def max_corner(self) -> np.ndarray:
        return self.center + self.half_extents

    def contains(self, point: np.ndarray, strict: bool = True) -> bool:
        """Check whether a point lies inside the box."""
        offset = np.abs(np.asarray(point, dtype=np.float64) - self.center)
        if strict:
            return bool(np.all(offset < self.half_extents))
        return bool(np.all(offset <= self.half_extents))

    def footprint_contains(self, point: np.ndarray) -> bool:
        """Check whether the horizontal (X/Z) projection of a point lies on the roof."""
        p = np.asarray(point, dtype=np.float64)
        return (abs(p[0] - self.center[0]) <= self.half_extents[0] and
                abs(p[2] - self.center[2]) <= self.half_extents[2])

    def horizontal_distance(self, point: np.ndarray) -> float:
        """Horizontal distance from a point to the obstacle centre axis."""
        p = np.asarray(point, dtype=np.float64)
        return float(np.hypot(p[0] - self.center[0], p[2] - self.center[2]))

    def distance(self, point: np.ndarray) -> float:
        """Euclidean distance from a point to the box surface (0 inside)."""
        offset = np.abs(np.asarray(point, dtype=np.float64) - self.center) - self.half_extents
        return float(np.linalg.norm(np.maximum(offset, 0.0)))

    def cast_down(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """
        Vertical ray cast from above onto the box.

        Args:
            xs: X coordinates of the rays
            zs: Z coordinates of the rays (same shape as xs)

        Returns:
            Hit altitude per ray (the top face), NaN where the ray misses
        """
        hit = ((np.abs(xs - self.center[0]) <= self.half_extents[0]) &
               (np.abs(zs - self.center[2]) <= self.half_extents[2]))
        return np.where(hit, self.max_corner[1], np.nan)

    def inflated(self, buffer: float, keep_roof: bool = False) -> 'Obstacle':
        """
        Copy of the obstacle grown by `buffer` on every face.

        With `keep_roof` the top face stays where it is, so a landing pad
        remains reachable through its collider.
        """
        if buffer == 0.0:
            return self
        center = self.center.copy()
        half = self.half_extents + buffer
        if keep_roof:
            half[1] = self.half_extents[1] + buffer / 2.0
            center[1] = self.center[1] - buffer / 2.0
        return Obstacle(
            center=center,
            half_extents=half,
            landable=self.landable,
            roof_height=self.roof_height,
        )


# =============================================================================
# REGISTRY
# =============================================================================

class ObstacleRegistry(abc.Sequence):
    """
    Immutable, validated list of obstacles.

    Geometry is validated when the registry is built so that a bad obstacle
    fails loudly here instead of corrupting the distance field later.

    Example:
        >>> registry = ObstacleRegistry([
        ...     Obstacle(center=[0, 10, 0], half_extents=[5, 10, 5], landable=True),
        ... ])
        >>> len(registry.landable)
        1
    """

    def __init__(self, obstacles: Iterable[Obstacle] = ()):
        items = []
        for i, obs in enumerate(obstacles):
            if not isinstance(obs, Obstacle):
                raise ValueError(f"Entry {i} is not an Obstacle: {obs!r}")
            items.append(obs)
        self._obstacles: Tuple[Obstacle, ...] = tuple(items)
        self._landable: Tuple[Obstacle, ...] = tuple(o for o in items if o.landable)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> 'ObstacleRegistry':
        """
        Build a registry from plain dictionaries.

        Each record needs 'center' and 'half_extents'; 'landable' and
        'roof_height' are optional.
        """
        return cls(
            Obstacle(
                center=r['center'],
                half_extents=r['half_extents'],
                landable=r.get('landable', False),
                roof_height=r.get('roof_height'),
            )
            for r in records
        )

    def __getitem__(self, index):
        return self._obstacles[index]

    def __len__(self) -> int:
        return len(self._obstacles)

    def __iter__(self) -> Iterator[Obstacle]:
        return iter(self._obstacles)

    @property
    def landable(self) -> Tuple[Obstacle, ...]:
        return self._landable

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounds enclosing every obstacle."""
        if not self._obstacles:
            return np.zeros(3), np.zeros(3)
        lo = np.min([o.min_corner for o in self._obstacles], axis=0)
        hi = np.max([o.max_corner for o in self._obstacles], axis=0)
        return lo, hi

    def inflated(self, buffer: float, keep_landable_roofs: bool = False) -> 'ObstacleRegistry':
        """
        Registry whose boxes are grown by a geogrid safety buffer.

        With `keep_landable_roofs` landable boxes are not raised, so their
        pads can still be touched down on.
        """
        if buffer < 0.0:
            raise ValueError(f"buffer must be non-negative, got {buffer}")
        return ObstacleRegistry(
            o.inflated(buffer, keep_roof=keep_landable_roofs and o.landable)
            for o in self._obstacles
        )

    def to_records(self) -> List[dict]:
        """Convert to plain dictionaries for serialization."""
        return [
            {
                'center': o.center.tolist(),
                'half_extents': o.half_extents.tolist(),
                'landable': o.landable,
                'roof_height': o.roof_height,
            }
            for o in self._obstacles
        ]

    def __repr__(self) -> str:
        return f"ObstacleRegistry(n={len(self)}, landable={len(self._landable)})"


# =============================================================================
# CITY GENERATOR
# =============================================================================

@dataclass
class BuildingType:
    """Building footprint (full width along X, depth along Z) in meters."""
    width: float
    depth: float


@dataclass
class CityConfig:
    """
    Configuration for the procedural city scene.

    Attributes:
        block_range: Blocks span [-block_range, block_range] on both axes
        plaza_radius: Blocks with |bx|, |bz| <= plaza_radius are left empty
        block_spacing: Distance between block centres (m)
        min_buildings / max_buildings: Buildings per block (inclusive)
        building_types: Footprints drawn uniformly per building
        min_height / max_height: Building height range (m)
        offset_jitter: Max offset of a building from its block centre (m)
        landable_probability: Chance that a roof is an authorised pad
        seed: Random seed for reproducibility
    """
    block_range: int = 3
    plaza_radius: int = 1
    block_spacing: float = 60.0
    min_buildings: int = 2
    max_buildings: int = 4
    building_types: List[BuildingType] = field(default_factory=lambda: [
        BuildingType(15.0, 15.0),
        BuildingType(20.0, 20.0),
        BuildingType(12.0, 25.0),
    ])
    min_height: float = 15.0
    max_height: float = 65.0
    offset_jitter: float = 15.0
    landable_probability: float = 0.3
    seed: Optional[int] = 42

    def __post_init__(self):
        if self.min_buildings < 0 or self.max_buildings < self.min_buildings:
            raise ValueError("Invalid buildings-per-block range")
        if self.min_height <= 0.0 or self.max_height < self.min_height:
            raise ValueError("Invalid building height range")
        if not 0.0 <= self.landable_probability <= 1.0:
            raise ValueError("landable_probability must lie in [0, 1]")
        if not self.building_types:
            raise ValueError("At least one building type is required")


def generate_city(config: Optional[CityConfig] = None) -> ObstacleRegistry:
    """
    Generate a city of box buildings on a block lattice.

    All randomness comes from a `numpy.random.Generator` seeded with
    `config.seed`, so the same seed always yields the same registry.

    Args:
        config: City layout parameters (defaults to `CityConfig()`)

    Returns:
        ObstacleRegistry of ground-standing buildings
    """
    config = config or CityConfig()
    rng = np.random.default_rng(config.seed)

    obstacles = []
    r = config.block_range
    for bx in range(-r, r + 1):
        for bz in range(-r, r + 1):
            if abs(bx) <= config.plaza_radius and abs(bz) <= config.plaza_radius:
                continue

            block_x = bx * config.block_spacing
            block_z = bz * config.block_spacing
            n_buildings = int(rng.integers(config.min_buildings, config.max_buildings + 1))

            for _ in range(n_buildings):
                btype = config.building_types[int(rng.integers(len(config.building_types)))]
                height = rng.uniform(config.min_height, config.max_height)
                offset = rng.uniform(-config.offset_jitter, config.offset_jitter, size=2)
                landable = bool(rng.random() < config.landable_probability)

                obstacles.append(Obstacle(
                    center=[block_x + offset[0], height / 2.0, block_z + offset[1]],
                    half_extents=[btype.width / 2.0, height / 2.0, btype.depth / 2.0],
                    landable=landable,
                    roof_height=height,
                ))

    return ObstacleRegistry(obstacles)
