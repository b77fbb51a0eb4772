"""
Field Sampler
=============
Continuous reads of the voxel distance field.

- sample_distance: trilinear interpolation of the 8 surrounding voxel centres
- sample_gradient: central finite difference with a one-cell step

Points outside the grid read as r0 ("no influence") instead of failing.
"""

from __future__ import annotations

import numpy as np

from .voxel_grid import VoxelGrid


class FieldSampler:
    """
    Read-only sampler over a frozen VoxelGrid.

    Args:
        grid: Distance field to sample
        gradient_epsilon: Gradients shorter than this are reported as degenerate
    """

    def __init__(self, grid: VoxelGrid, gradient_epsilon: float = 1e-6):
        self.grid = grid
        self.gradient_epsilon = gradient_epsilon
        self._volume = grid.volume
        self._upper = np.array(grid.shape, dtype=np.float64) - 1.0

    @property
    def influence_radius(self) -> float:
        return self.grid.influence_radius

    def sample_distance(self, point: np.ndarray) -> float:
        """
        Interpolated distance to the nearest obstacle at a world position.

        Args:
            point: World position (x, y, z)

        Returns:
            Distance in [0, r0]; r0 outside the grid
        """
        p = np.asarray(point, dtype=np.float64)
        if not np.all(np.isfinite(p)) or not self.grid.contains_point(p):
            return self.grid.influence_radius

        # voxel centres sit on integer grid coordinates; the half cell at
        # each border is clamped onto the outermost centres
        g = np.clip(self.grid.to_grid_coords(p), 0.0, self._upper)
        i0 = np.minimum(np.floor(g).astype(int), np.maximum(self._upper.astype(int) - 1, 0))
        t = g - i0
        i1 = np.minimum(i0 + 1, self._upper.astype(int))

        (x0, y0, z0), (x1, y1, z1) = i0, i1
        tx, ty, tz = t
        v = self._volume

        # volume is indexed [y, z, x]
        c00 = v[y0, z0, x0] * (1 - tx) + v[y0, z0, x1] * tx
        c01 = v[y0, z1, x0] * (1 - tx) + v[y0, z1, x1] * tx
        c10 = v[y1, z0, x0] * (1 - tx) + v[y1, z0, x1] * tx
        c11 = v[y1, z1, x0] * (1 - tx) + v[y1, z1, x1] * tx
        c0 = c00 * (1 - tz) + c01 * tz
        c1 = c10 * (1 - tz) + c11 * tz
        return float(c0 * (1 - ty) + c1 * ty)

    def sample_gradient(self, point: np.ndarray) -> np.ndarray:
        """
        Central-difference gradient of the distance field.

        The step along each axis is one cell size; both endpoints go through
        `sample_distance`, so steps leaving the grid read r0.

        Returns:
            Raw (non-unit) gradient, shape (3,)
        """
        p = np.asarray(point, dtype=np.float64)
        h = self.grid.cell_size
        grad = np.zeros(3)
        for axis in range(3):
            step = np.zeros(3)
            step[axis] = h
            grad[axis] = (self.sample_distance(p + step) - self.sample_distance(p - step)) / (2.0 * h)
        return grad

    def sample_direction(self, point: np.ndarray) -> np.ndarray:
        """
        Unit gradient pointing away from the nearest obstacle.

        Returns a zero vector when the gradient is degenerate (e.g. at an
        obstacle's centre or deep in a flat region).
        """
        grad = self.sample_gradient(point)
        norm = np.linalg.norm(grad)
        if norm < self.gradient_epsilon:
            return np.zeros(3)
        return grad / norm

    def sample_many(self, points: np.ndarray) -> np.ndarray:
        """Distances for an (N, 3) array of points, e.g. a trajectory overlay."""
        pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return np.array([self.sample_distance(p) for p in pts])
