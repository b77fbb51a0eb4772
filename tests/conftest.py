"""Pytest configuration and fixtures for geofence_nav tests."""

import numpy as np
import pytest

from geofence_nav.environment import Obstacle, ObstacleRegistry, WorldConfig
from geofence_nav.field import DistanceFieldBuilder, FieldSampler
from geofence_nav.planning import PotentialForceModel


@pytest.fixture
def config():
    """Compact world: bounds [-40, 40] x [-20, 40] x [-40, 40], 1 m voxels, r0 = 20."""
    return WorldConfig.small()


@pytest.fixture
def box():
    """Single obstacle centred at the origin with half extents (5, 10, 5)."""
    return Obstacle(center=[0.0, 0.0, 0.0], half_extents=[5.0, 10.0, 5.0])


@pytest.fixture
def landing_box():
    """Same volume as `box`, landable with its pad surface at y = 20."""
    return Obstacle(center=[0.0, 0.0, 0.0], half_extents=[5.0, 10.0, 5.0],
                    landable=True, roof_height=20.0)


@pytest.fixture
def registry(box):
    return ObstacleRegistry([box])


@pytest.fixture
def grid(config, registry):
    return DistanceFieldBuilder(config).build(registry)


@pytest.fixture
def sampler(config, grid):
    return FieldSampler(grid, config.gradient_epsilon)


@pytest.fixture
def force_model(config, registry, sampler):
    return PotentialForceModel(config, registry, sampler)


@pytest.fixture
def rng():
    return np.random.default_rng(42)
