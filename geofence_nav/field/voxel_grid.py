"""
Voxel Grid
==========
Dense 3D scalar buffer holding the clamped distance field.

Memory layout:
    values[(iy * nz + iz) * nx + ix]

i.e. a C-ordered array of shape (ny, nz, nx). The wrapper keeps that
linearisation and checks every index it is handed.
"""

from __future__ import annotations

import numpy as np
from typing import Tuple


class VoxelGrid:
    """
    Indexable voxel buffer with world <-> grid conversions.

    Voxel (ix, iy, iz) is centred at `origin + (i + 0.5) * cell_size`.

    Attributes:
        origin: World position of the grid's minimum corner, shape (3,)
        cell_size: Voxel edge length
        shape: (nx, ny, nz)
        influence_radius: r0, fill value and clamp ceiling of every voxel
    """

    def __init__(
        self,
        origin: np.ndarray,
        cell_size: float,
        shape: Tuple[int, int, int],
        influence_radius: float,
    ):
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        if influence_radius <= 0.0:
            raise ValueError(f"influence_radius must be positive, got {influence_radius}")
        nx, ny, nz = (int(n) for n in shape)
        if min(nx, ny, nz) < 1:
            raise ValueError(f"Grid dimensions must be >= 1, got {shape}")

        self.origin = np.asarray(origin, dtype=np.float64).reshape(3).copy()
        self.cell_size = float(cell_size)
        self.shape = (nx, ny, nz)
        self.influence_radius = float(influence_radius)
        self._data = np.full((ny, nz, nx), self.influence_radius, dtype=np.float32)
        self._frozen = False

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    @property
    def nx(self) -> int:
        return self.shape[0]

    @property
    def ny(self) -> int:
        return self.shape[1]

    @property
    def nz(self) -> int:
        return self.shape[2]

    @property
    def size(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def extent(self) -> np.ndarray:
        """World position of the grid's maximum corner."""
        return self.origin + np.array(self.shape, dtype=np.float64) * self.cell_size

    @property
    def values(self) -> np.ndarray:
        """Flat view of the buffer in (iy*nz + iz)*nx + ix order."""
        return self._data.reshape(-1)

    @property
    def volume(self) -> np.ndarray:
        """Array view of shape (ny, nz, nx)."""
        return self._data

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> 'VoxelGrid':
        """Mark the buffer read-only; sampling may start after this."""
        self._data.flags.writeable = False
        self._frozen = True
        return self

    def _check(self, ix: int, iy: int, iz: int):
        if not (0 <= ix < self.nx and 0 <= iy < self.ny and 0 <= iz < self.nz):
            raise IndexError(f"Voxel index ({ix}, {iy}, {iz}) outside grid {self.shape}")

    def linear_index(self, ix: int, iy: int, iz: int) -> int:
        self._check(ix, iy, iz)
        return (iy * self.nz + iz) * self.nx + ix

    def __getitem__(self, index: Tuple[int, int, int]) -> float:
        ix, iy, iz = index
        self._check(ix, iy, iz)
        return float(self._data[iy, iz, ix])

    def __setitem__(self, index: Tuple[int, int, int], value: float):
        if self._frozen:
            raise ValueError("VoxelGrid is frozen")
        ix, iy, iz = index
        self._check(ix, iy, iz)
        self._data[iy, iz, ix] = min(max(float(value), 0.0), self.influence_radius)

    # -------------------------------------------------------------------------
    # Coordinates
    # -------------------------------------------------------------------------

    def axis_centers(self, axis: int) -> np.ndarray:
        """World coordinates of voxel centres along one axis (0=x, 1=y, 2=z)."""
        n = self.shape[axis]
        return self.origin[axis] + (np.arange(n, dtype=np.float64) + 0.5) * self.cell_size

    def voxel_center(self, ix: int, iy: int, iz: int) -> np.ndarray:
        self._check(ix, iy, iz)
        return self.origin + (np.array([ix, iy, iz], dtype=np.float64) + 0.5) * self.cell_size

    def to_grid_coords(self, point: np.ndarray) -> np.ndarray:
        """Fractional grid coordinates; voxel centres land on integers."""
        return (np.asarray(point, dtype=np.float64) - self.origin) / self.cell_size - 0.5

    def contains_point(self, point: np.ndarray) -> bool:
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(p >= self.origin) and np.all(p <= self.extent))

    def index_range(self, axis: int, lo: float, hi: float) -> Tuple[int, int]:
        """
        Half-open index range of voxels whose centres lie in [lo, hi].

        Returns an empty range (i0 >= i1) when the interval misses the grid.
        """
        n = self.shape[axis]
        o = self.origin[axis]
        i0 = int(np.ceil((lo - o) / self.cell_size - 0.5))
        i1 = int(np.floor((hi - o) / self.cell_size - 0.5)) + 1
        return max(i0, 0), min(i1, n)

    def copy(self) -> 'VoxelGrid':
        """Writable deep copy."""
        grid = VoxelGrid(self.origin, self.cell_size, self.shape, self.influence_radius)
        grid._data[...] = self._data
        return grid

    def __repr__(self) -> str:
        return (f"VoxelGrid(shape={self.shape}, cell_size={self.cell_size}, "
                f"r0={self.influence_radius}, frozen={self._frozen})")
