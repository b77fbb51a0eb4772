"""
Field Module
============
Voxel distance field, its sampler, and the 2D occupancy raster.
"""

from .voxel_grid import VoxelGrid

from .distance_field import (
    BuildReport,
    DistanceFieldBuilder,
    FieldBuildTask,
)

from .sampler import FieldSampler

from .occupancy import (
    OccupancyGrid,
    OccupancyRasterizer,
    dilate,
    boundary_edges,
    chain_edges,
)

__all__ = [
    'VoxelGrid',
    'BuildReport',
    'DistanceFieldBuilder',
    'FieldBuildTask',
    'FieldSampler',
    'OccupancyGrid',
    'OccupancyRasterizer',
    'dilate',
    'boundary_edges',
    'chain_edges',
]
