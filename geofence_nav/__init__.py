"""
geofence_nav
============
Geofence avoidance engine for a drone flying through an urban scene.

- environment: obstacles, city generator, configuration
- field: voxel distance field, sampler, 2D occupancy raster
- planning: potential force model, collision resolver, trajectory predictor
- simulation: NavigationWorld and the per-tick update
"""

from .environment import (
    Obstacle,
    ObstacleRegistry,
    CityConfig,
    generate_city,
    WorldConfig,
)
from .field import (
    VoxelGrid,
    DistanceFieldBuilder,
    FieldBuildTask,
    FieldSampler,
    OccupancyGrid,
    OccupancyRasterizer,
)
from .planning import (
    PotentialForceModel,
    CollisionResolver,
    TrajectoryPredictor,
)
from .simulation import (
    AgentState,
    ControlInput,
    TickResult,
    NavigationWorld,
    step_world,
)

__version__ = "0.1.0"

__all__ = [
    'Obstacle',
    'ObstacleRegistry',
    'CityConfig',
    'generate_city',
    'WorldConfig',
    'VoxelGrid',
    'DistanceFieldBuilder',
    'FieldBuildTask',
    'FieldSampler',
    'OccupancyGrid',
    'OccupancyRasterizer',
    'PotentialForceModel',
    'CollisionResolver',
    'TrajectoryPredictor',
    'AgentState',
    'ControlInput',
    'TickResult',
    'NavigationWorld',
    'step_world',
]
