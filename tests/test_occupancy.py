"""Tests for the 2D occupancy raster, dilation and boundary extraction."""

import numpy as np
import pytest

from geofence_nav.environment import Obstacle, ObstacleRegistry
from geofence_nav.field import OccupancyRasterizer, boundary_edges, chain_edges, dilate


@pytest.fixture
def rasterizer():
    return OccupancyRasterizer(bounds=(-20.0, 20.0, -20.0, 20.0), cell_size=1.0, buffer=2.0)


class TestRasterize:

    def test_footprint_cells_occupied(self, rasterizer, registry):
        occ = rasterizer.rasterize(registry)
        assert occ.shape == (40, 40)
        # centres -4.5 .. 4.5 on both axes
        assert occ.occupied.sum() == 100
        assert occ.occupied[15:25, 15:25].all()
        assert occ.height_map[20, 20] == pytest.approx(10.0)

    def test_highest_surface_wins(self, rasterizer):
        registry = ObstacleRegistry([
            Obstacle(center=[0, 5, 0], half_extents=[3, 5, 3]),
            Obstacle(center=[0, 15, 0], half_extents=[1, 15, 1]),
        ])
        height_map, occupied = rasterizer.cast(registry)
        assert height_map[20, 20] == pytest.approx(30.0)
        assert height_map[22, 22] == pytest.approx(10.0)
        assert not np.isfinite(height_map[0, 0])
        assert not occupied[0, 0]

    def test_dilation_adds_buffer(self, rasterizer, registry):
        occ = rasterizer.rasterize(registry)
        assert occ.buffer_cells == 2
        assert occ.dilated.sum() == 14 * 14
        assert occ.dilated[occ.occupied].all()
        assert occ.height_map[13, 20] == pytest.approx(10.0)
        assert occ.height_map[12, 20] == -np.inf

    def test_restricted_zone_query(self, rasterizer, registry):
        occ = rasterizer.rasterize(registry)
        assert occ.is_restricted([6.0, 12.0, 0.0])
        assert not occ.is_restricted([6.0, 16.0, 0.0])
        assert not occ.is_restricted([9.0, 0.0, 0.0])
        assert not occ.is_restricted([100.0, 0.0, 0.0])


class TestDilate:

    def test_zero_radius_is_identity(self, rng):
        mask = rng.random((12, 9)) > 0.7
        heights = rng.uniform(0, 50, size=mask.shape)
        dilated, grown = dilate(mask, heights, 0)
        assert np.array_equal(dilated, mask)
        again, grown_again = dilate(dilated, grown, 0)
        assert np.array_equal(again, dilated)
        assert np.array_equal(grown_again, grown)

    def test_monotonic_in_radius(self, rng):
        mask = rng.random((30, 30)) > 0.95
        heights = np.full(mask.shape, 10.0)
        small, _ = dilate(mask, heights, 1)
        large, _ = dilate(mask, heights, 3)
        assert np.all(large[small])
        assert large.sum() >= small.sum()

    def test_chebyshev_square(self):
        mask = np.zeros((9, 9), dtype=bool)
        mask[4, 4] = True
        dilated, _ = dilate(mask, np.ones((9, 9)), 2)
        assert dilated[2:7, 2:7].all()
        assert dilated.sum() == 25

    def test_max_height_is_order_independent(self):
        mask = np.zeros((7, 1), dtype=bool)
        heights = np.zeros((7, 1))
        mask[2, 0], heights[2, 0] = True, 5.0
        mask[4, 0], heights[4, 0] = True, 9.0
        dilated, grown = dilate(mask, heights, 1)
        assert grown[3, 0] == 9.0
        assert grown[1, 0] == 5.0

        flipped, grown_flipped = dilate(mask[::-1], heights[::-1], 1)
        assert np.array_equal(flipped[::-1], dilated)
        assert np.array_equal(grown_flipped[::-1], grown)

    def test_occupied_height_never_lowered(self):
        mask = np.array([[True, True]])
        heights = np.array([[20.0, 5.0]])
        _, grown = dilate(mask, heights, 1)
        assert grown[0, 0] == 20.0
        assert grown[0, 1] == 20.0

    def test_negative_radius_rejected(self):
        with pytest.raises(ValueError):
            dilate(np.zeros((2, 2), dtype=bool), np.zeros((2, 2)), -1)


class TestBoundary:

    def test_single_cell_outline(self):
        mask = np.zeros((3, 3), dtype=bool)
        mask[1, 1] = True
        edges = boundary_edges(mask, origin=np.array([0.0, 0.0]), cell_size=2.0)
        assert len(edges) == 4
        assert ((2.0, 2.0), (2.0, 4.0)) in edges
        assert ((4.0, 2.0), (4.0, 4.0)) in edges
        assert ((2.0, 2.0), (4.0, 2.0)) in edges

        polylines = chain_edges(edges)
        assert len(polylines) == 1
        loop = polylines[0]
        assert loop.shape == (5, 2)
        np.testing.assert_allclose(loop[0], loop[-1])

    def test_edge_iff_exactly_one_side_restricted(self, rng):
        mask = rng.random((15, 15)) > 0.6
        edges = boundary_edges(mask, origin=np.array([0.0, 0.0]), cell_size=1.0)
        expected = (mask[:-1, :] != mask[1:, :]).sum() + (mask[:, :-1] != mask[:, 1:]).sum()
        assert len(edges) == expected

    def test_border_cells_produce_no_edge(self):
        mask = np.ones((4, 4), dtype=bool)
        assert boundary_edges(mask, origin=np.zeros(2), cell_size=1.0) == []

    def test_obstacle_outline_is_closed(self, rasterizer, registry):
        occ = rasterizer.rasterize(registry)
        polylines = occ.boundary_polylines()
        assert len(polylines) == 1
        # 14 x 14 cell square: perimeter of 56 unit edges
        assert len(polylines[0]) == 57
        np.testing.assert_allclose(polylines[0][0], polylines[0][-1])
