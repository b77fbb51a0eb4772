"""
Environment Module
==================
Obstacle registry, procedural city generator and world configuration.
"""

from .obstacles import (
    Obstacle,
    ObstacleRegistry,
    BuildingType,
    CityConfig,
    generate_city,
)

from .config import WorldConfig

__all__ = [
    'Obstacle',
    'ObstacleRegistry',
    'BuildingType',
    'CityConfig',
    'generate_city',
    'WorldConfig',
]
