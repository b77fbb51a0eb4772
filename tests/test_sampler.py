"""Tests for trilinear sampling and gradient estimation."""

import numpy as np
import pytest

from geofence_nav.field import FieldSampler, VoxelGrid


def test_sample_at_voxel_centre_matches_voxel(sampler, grid):
    centre = grid.voxel_center(48, 20, 40)
    assert sampler.sample_distance(centre) == pytest.approx(grid[48, 20, 40])


def test_sample_between_centres_interpolates(sampler):
    # x = 10 lies halfway between centres 9.5 (4.5) and 10.5 (5.5)
    assert sampler.sample_distance([10.0, 0.0, 0.0]) == pytest.approx(5.0)
    assert sampler.sample_distance([9.75, 0.0, 0.0]) == pytest.approx(4.75)


def test_outside_grid_reads_r0(sampler, config):
    assert sampler.sample_distance([100.0, 0.0, 0.0]) == config.influence_radius
    assert sampler.sample_distance([0.0, -50.0, 0.0]) == config.influence_radius
    assert sampler.sample_distance([np.nan, 0.0, 0.0]) == config.influence_radius


def test_border_half_cell_is_clamped(sampler, grid):
    # inside the bounds but outside the outermost centre along x
    assert sampler.sample_distance([-39.9, 0.5, 0.5]) == pytest.approx(grid[0, 20, 40])


def test_gradient_points_away_from_face(sampler):
    grad = sampler.sample_gradient([10.0, 0.0, 0.0])
    np.testing.assert_allclose(grad, [1.0, 0.0, 0.0], atol=1e-6)

    grad = sampler.sample_gradient([0.0, 15.0, -10.0])
    assert grad[1] > 0.0
    assert grad[2] < 0.0


def test_gradient_is_raw_not_unit():
    grid = VoxelGrid(origin=[0, 0, 0], cell_size=1.0, shape=(5, 1, 1), influence_radius=10.0)
    for ix in range(5):
        grid[ix, 0, 0] = 2.0 * ix
    sampler = FieldSampler(grid.freeze())
    grad = sampler.sample_gradient([2.5, 0.5, 0.5])
    assert grad[0] == pytest.approx(2.0)


def test_degenerate_gradient_at_obstacle_centre(sampler):
    grad = sampler.sample_gradient([0.0, 0.0, 0.0])
    assert np.linalg.norm(grad) < sampler.gradient_epsilon
    assert not sampler.sample_direction([0.0, 0.0, 0.0]).any()


def test_direction_is_unit(sampler):
    direction = sampler.sample_direction([9.0, 3.0, 8.0])
    assert np.linalg.norm(direction) == pytest.approx(1.0)


def test_sample_many(sampler):
    values = sampler.sample_many([[10.0, 0.0, 0.0], [100.0, 0.0, 0.0]])
    np.testing.assert_allclose(values, [5.0, 20.0])
