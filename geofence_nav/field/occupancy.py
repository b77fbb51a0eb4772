"""
Occupancy Rasterizer
====================
2D restricted-zone raster of the city, used for the map outline overlay.

Pipeline:
    1. Vertical ray cast per cell centre -> height map + occupied mask
    2. Chebyshev dilation by ceil(buffer / cell) cells, carrying the max
       height of the contributing occupied cells
    3. Boundary edges between dilated / free neighbours, chained into
       polylines
"""

from __future__ import annotations

import math
import numpy as np
from dataclasses import dataclass
from scipy import ndimage
from typing import Dict, Iterable, List, Optional, Tuple

from ..environment.obstacles import ObstacleRegistry


Point2 = Tuple[float, float]
Edge = Tuple[Point2, Point2]


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class OccupancyGrid:
    """
    Ground raster of restricted airspace.

    Arrays are indexed [i, j] with i along X and j along Z. Unoccupied
    cells hold a height of -inf.

    Attributes:
        origin: (x, z) of the raster's minimum corner
        cell_size: Cell edge length (m)
        shape: (nx, nz)
        height_map: Highest surface per cell, shape (nx, nz)
        occupied: Cells hit by a vertical ray, shape (nx, nz)
        dilated: Occupied cells grown by the horizontal buffer, shape (nx, nz)
        buffer: Horizontal buffer distance (m)
        vertical_clearance: Clearance above roofs (m)
    """
    origin: np.ndarray
    cell_size: float
    shape: Tuple[int, int]
    height_map: np.ndarray
    occupied: np.ndarray
    dilated: np.ndarray
    buffer: float
    vertical_clearance: float

    @property
    def buffer_cells(self) -> int:
        return buffer_radius_cells(self.buffer, self.cell_size)

    def cell_center(self, i: int, j: int) -> Point2:
        return (float(self.origin[0] + (i + 0.5) * self.cell_size),
                float(self.origin[1] + (j + 0.5) * self.cell_size))

    def cell_of(self, x: float, z: float) -> Optional[Tuple[int, int]]:
        """Cell containing a ground position, or None outside the raster."""
        i = int(math.floor((x - self.origin[0]) / self.cell_size))
        j = int(math.floor((z - self.origin[1]) / self.cell_size))
        if 0 <= i < self.shape[0] and 0 <= j < self.shape[1]:
            return i, j
        return None

    def is_restricted(self, point: np.ndarray) -> bool:
        """
        True if a 3D point lies inside the buffered zone: over a dilated cell
        and below its roof plus the vertical clearance.
        """
        cell = self.cell_of(point[0], point[2])
        if cell is None or not self.dilated[cell]:
            return False
        return bool(point[1] < self.height_map[cell] + self.vertical_clearance)

    def boundary_edges(self) -> List[Edge]:
        return boundary_edges(self.dilated, self.origin, self.cell_size)

    def boundary_polylines(self) -> List[np.ndarray]:
        return chain_edges(self.boundary_edges())


# =============================================================================
# RASTERIZATION
# =============================================================================

def buffer_radius_cells(buffer: float, cell_size: float) -> int:
    if buffer < 0.0:
        raise ValueError(f"buffer must be non-negative, got {buffer}")
    return int(math.ceil(buffer / cell_size))


def dilate(
    occupied: np.ndarray,
    height_map: np.ndarray,
    radius_cells: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Chebyshev dilation of an occupancy mask with max-height propagation.

    Every cell within `radius_cells` (square neighbourhood) of an occupied
    cell becomes restricted and takes the maximum height of the occupied
    cells covering it. The max filter makes the result independent of the
    order in which occupied cells are visited.

    Args:
        occupied: Boolean mask, shape (nx, nz)
        height_map: Heights, shape (nx, nz); only occupied cells contribute
        radius_cells: Dilation radius in cells (0 returns the mask unchanged)

    Returns:
        (dilated mask, dilated height map)
    """
    if radius_cells < 0:
        raise ValueError(f"radius_cells must be non-negative, got {radius_cells}")
    occupied = np.asarray(occupied, dtype=bool)
    heights = np.where(occupied, height_map, -np.inf)
    if radius_cells == 0:
        return occupied.copy(), heights

    size = 2 * radius_cells + 1
    footprint = np.ones((size, size), dtype=bool)
    dilated = ndimage.binary_dilation(occupied, structure=footprint)
    grown = ndimage.maximum_filter(heights, footprint=footprint, mode='constant', cval=-np.inf)
    return dilated, np.where(dilated, grown, -np.inf)


class OccupancyRasterizer:
    """
    Projects obstacles onto a ground grid.

    Args:
        bounds: (x_min, x_max, z_min, z_max) of the raster
        cell_size: Cell edge length (m)
        buffer: Horizontal dilation distance (m)
        vertical_clearance: Clearance above roofs (m)
    """

    def __init__(
        self,
        bounds: Tuple[float, float, float, float],
        cell_size: float = 2.0,
        buffer: float = 5.0,
        vertical_clearance: float = 5.0,
    ):
        x_min, x_max, z_min, z_max = bounds
        if x_max <= x_min or z_max <= z_min:
            raise ValueError(f"Invalid raster bounds {bounds}")
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.origin = np.array([x_min, z_min], dtype=np.float64)
        self.cell_size = float(cell_size)
        self.shape = (int(math.ceil((x_max - x_min) / cell_size)),
                      int(math.ceil((z_max - z_min) / cell_size)))
        self.buffer = float(buffer)
        self.vertical_clearance = float(vertical_clearance)

    @classmethod
    def from_config(cls, config) -> 'OccupancyRasterizer':
        return cls(
            bounds=config.horizontal_bounds,
            cell_size=config.occupancy_cell_size,
            buffer=config.occupancy_buffer,
            vertical_clearance=config.vertical_clearance,
        )

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Meshgrid of cell-centre coordinates, each of shape (nx, nz)."""
        xs = self.origin[0] + (np.arange(self.shape[0]) + 0.5) * self.cell_size
        zs = self.origin[1] + (np.arange(self.shape[1]) + 0.5) * self.cell_size
        return np.meshgrid(xs, zs, indexing='ij')

    def cast(self, surfaces: Iterable) -> Tuple[np.ndarray, np.ndarray]:
        """
        Drop a ray onto every surface at each cell centre.

        Args:
            surfaces: Objects exposing `cast_down(xs, zs)` that return hit
                heights with NaN for misses (e.g. Obstacle)

        Returns:
            (height_map with -inf for misses, occupied mask)
        """
        X, Z = self.cell_centers()
        height_map = np.full(self.shape, -np.inf)
        for surface in surfaces:
            hits = surface.cast_down(X, Z)
            height_map = np.fmax(height_map, hits)
        occupied = np.isfinite(height_map)
        return height_map, occupied

    def rasterize(self, obstacles: ObstacleRegistry) -> OccupancyGrid:
        """Cast and dilate; returns the complete occupancy grid."""
        height_map, occupied = self.cast(obstacles)
        dilated, grown = dilate(occupied, height_map, buffer_radius_cells(self.buffer, self.cell_size))
        return OccupancyGrid(
            origin=self.origin.copy(),
            cell_size=self.cell_size,
            shape=self.shape,
            height_map=grown,
            occupied=occupied,
            dilated=dilated,
            buffer=self.buffer,
            vertical_clearance=self.vertical_clearance,
        )


# =============================================================================
# BOUNDARY EXTRACTION
# =============================================================================

def boundary_edges(mask: np.ndarray, origin: np.ndarray, cell_size: float) -> List[Edge]:
    """
    Cell faces separating a restricted cell from a free neighbour.

    Only pairs of cells inside the raster are considered; the raster border
    itself never produces an edge.

    Returns:
        List of ((x0, z0), (x1, z1)) segments in world coordinates
    """
    mask = np.asarray(mask, dtype=bool)
    ox, oz = float(origin[0]), float(origin[1])
    edges: List[Edge] = []

    # neighbours along X share the face x = ox + (i + 1) * cell
    ii, jj = np.nonzero(mask[:-1, :] != mask[1:, :])
    for i, j in zip(ii, jj):
        x = ox + (i + 1) * cell_size
        edges.append(((x, oz + j * cell_size), (x, oz + (j + 1) * cell_size)))

    # neighbours along Z share the face z = oz + (j + 1) * cell
    ii, jj = np.nonzero(mask[:, :-1] != mask[:, 1:])
    for i, j in zip(ii, jj):
        z = oz + (j + 1) * cell_size
        edges.append(((ox + i * cell_size, z), (ox + (i + 1) * cell_size, z)))

    return [((float(a[0]), float(a[1])), (float(b[0]), float(b[1]))) for a, b in edges]


def chain_edges(edges: List[Edge], decimals: int = 6) -> List[np.ndarray]:
    """
    Join unit boundary segments into polylines.

    Segments are linked greedily through shared endpoints. Closed outlines
    repeat their first vertex at the end.

    Returns:
        List of (K, 2) arrays of (x, z) vertices
    """
    def key(p: Point2) -> Tuple[float, float]:
        return (round(p[0], decimals), round(p[1], decimals))

    adjacency: Dict[Tuple[float, float], List[int]] = {}
    for idx, (a, b) in enumerate(edges):
        adjacency.setdefault(key(a), []).append(idx)
        adjacency.setdefault(key(b), []).append(idx)

    used = [False] * len(edges)
    polylines = []

    def walk(start_key, path):
        current = start_key
        while True:
            nxt = None
            for idx in adjacency[current]:
                if not used[idx]:
                    nxt = idx
                    break
            if nxt is None:
                return
            used[nxt] = True
            a, b = edges[nxt]
            other = key(b) if key(a) == current else key(a)
            path.append(other)
            current = other

    # open chains first: start from endpoints of odd degree
    starts = [k for k, idxs in adjacency.items() if len(idxs) % 2 == 1]
    for k in starts + list(adjacency.keys()):
        if all(used[i] for i in adjacency[k]):
            continue
        path = [k]
        walk(k, path)
        if len(path) > 1:
            polylines.append(np.array(path, dtype=np.float64))

    return polylines
