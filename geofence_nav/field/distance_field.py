"""
Distance Field Builder
======================
Builds the clamped, unsigned distance-to-nearest-obstacle field over a
voxel grid, plus the deferred build task that owns the "field ready" flag.

Per obstacle only the voxel sub-range inside `AABB ± r0` is visited, so the
cost scales with obstacle volume instead of grid volume:

    D(v) = min(r0, min_k dist(center(v), AABB_k), max(0, ceiling - y(v)))

The build can be split across worker threads by Y slabs. Slabs write
disjoint parts of the buffer and only read the immutable registry.
"""

from __future__ import annotations

import threading
import time
import warnings
import numpy as np
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from tqdm import tqdm

from .voxel_grid import VoxelGrid
from ..environment.config import WorldConfig
from ..environment.obstacles import Obstacle, ObstacleRegistry


# =============================================================================
# BUILD REPORT
# =============================================================================

@dataclass
class BuildReport:
    """
    Timing and size summary of one field build.

    Attributes:
        total_ms: Wall time of the build in milliseconds
        n_obstacles: Obstacles rasterised into the field
        n_voxels: Total voxels in the grid
        voxels_visited: Voxel updates performed (sum of sub-range sizes)
        workers: Worker threads used
        breakdown: Per-phase timings in milliseconds
    """
    total_ms: float
    n_obstacles: int
    n_voxels: int
    voxels_visited: int
    workers: int = 1
    breakdown: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_ms': self.total_ms,
            'n_obstacles': self.n_obstacles,
            'n_voxels': self.n_voxels,
            'voxels_visited': self.voxels_visited,
            'workers': self.workers,
            **{f'{k}_ms': v for k, v in self.breakdown.items()},
        }


# =============================================================================
# BUILDER
# =============================================================================

class DistanceFieldBuilder:
    """
    Rasterises an obstacle registry into a clamped distance field.

    Example:
        >>> builder = DistanceFieldBuilder(WorldConfig.small())
        >>> grid = builder.build(registry)
        >>> grid.frozen
        True
    """

    def __init__(self, config: WorldConfig):
        self.config = config
        self.last_report: Optional[BuildReport] = None

    def allocate(self) -> VoxelGrid:
        """Empty grid filled with r0 (no influence)."""
        return VoxelGrid(
            origin=self.config.grid_origin,
            cell_size=self.config.cell_size,
            shape=self.config.grid_shape,
            influence_radius=self.config.influence_radius,
        )

    def build(
        self,
        obstacles: ObstacleRegistry,
        show_progress: bool = False,
        workers: Optional[int] = None,
    ) -> VoxelGrid:
        """
        Build a fresh, frozen distance field.

        Rebuilding from the same registry always yields an identical buffer.

        Args:
            obstacles: Registry to rasterise
            show_progress: Display a tqdm bar over obstacles
            workers: Thread count (defaults to config.build_workers)

        Returns:
            Frozen VoxelGrid
        """
        workers = workers or self.config.build_workers
        t_start = time.perf_counter()

        grid = self.allocate()
        t_alloc = time.perf_counter()

        slabs = self._split_slabs(grid.ny, workers)
        if len(slabs) == 1:
            visited = self._fill_slab(grid, obstacles, slabs[0], show_progress)
        else:
            with ThreadPoolExecutor(max_workers=len(slabs)) as pool:
                futures = [
                    pool.submit(self._fill_slab, grid, obstacles, slab, False)
                    for slab in slabs
                ]
                visited = sum(f.result() for f in futures)
        t_obstacles = time.perf_counter()

        self._apply_ceiling(grid)
        grid.freeze()
        t_end = time.perf_counter()

        self.last_report = BuildReport(
            total_ms=(t_end - t_start) * 1000,
            n_obstacles=len(obstacles),
            n_voxels=grid.size,
            voxels_visited=visited,
            workers=len(slabs),
            breakdown={
                'allocate': (t_alloc - t_start) * 1000,
                'obstacles': (t_obstacles - t_alloc) * 1000,
                'ceiling': (t_end - t_obstacles) * 1000,
            },
        )
        return grid

    @staticmethod
    def _split_slabs(ny: int, workers: int) -> List[Tuple[int, int]]:
        n = max(1, min(workers, ny))
        edges = np.linspace(0, ny, n + 1).round().astype(int)
        return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]

    def _fill_slab(
        self,
        grid: VoxelGrid,
        obstacles: ObstacleRegistry,
        slab: Tuple[int, int],
        show_progress: bool,
    ) -> int:
        """Write the obstacle distances for voxel rows iy in [slab[0], slab[1])."""
        iterator = tqdm(obstacles, desc="Building distance field") if show_progress else obstacles
        visited = 0
        for obs in iterator:
            visited += self._stamp_obstacle(grid, obs, slab)
        return visited

    def _stamp_obstacle(self, grid: VoxelGrid, obs: Obstacle, slab: Tuple[int, int]) -> int:
        """Lower voxels inside AABB ± r0 to their distance from the box."""
        r0 = grid.influence_radius
        lo = obs.min_corner - r0
        hi = obs.max_corner + r0

        ix0, ix1 = grid.index_range(0, lo[0], hi[0])
        iy0, iy1 = grid.index_range(1, lo[1], hi[1])
        iz0, iz1 = grid.index_range(2, lo[2], hi[2])
        iy0, iy1 = max(iy0, slab[0]), min(iy1, slab[1])
        if ix0 >= ix1 or iy0 >= iy1 or iz0 >= iz1:
            return 0

        # per-axis excess beyond the box faces, broadcast to (y, z, x)
        ex = np.maximum(np.abs(grid.axis_centers(0)[ix0:ix1] - obs.center[0]) - obs.half_extents[0], 0.0)
        ey = np.maximum(np.abs(grid.axis_centers(1)[iy0:iy1] - obs.center[1]) - obs.half_extents[1], 0.0)
        ez = np.maximum(np.abs(grid.axis_centers(2)[iz0:iz1] - obs.center[2]) - obs.half_extents[2], 0.0)
        dist = np.sqrt(
            ey[:, None, None] ** 2 + ez[None, :, None] ** 2 + ex[None, None, :] ** 2
        )

        block = grid.volume[iy0:iy1, iz0:iz1, ix0:ix1]
        np.minimum(block, np.minimum(dist, r0).astype(block.dtype), out=block)
        return block.size

    def _apply_ceiling(self, grid: VoxelGrid):
        """Treat the plane y = ceiling as an implicit obstacle."""
        ys = grid.axis_centers(1)
        ceiling_dist = np.maximum(self.config.ceiling - ys, 0.0)
        rows = np.nonzero(ceiling_dist < grid.influence_radius)[0]
        for iy in rows:
            row = grid.volume[iy]
            np.minimum(row, np.float32(ceiling_dist[iy]), out=row)


# =============================================================================
# DEFERRED BUILD TASK
# =============================================================================

class FieldBuildTask:
    """
    Owns the distance field and its readiness contract.

    The build is heavy compared to one frame, so it is scheduled on a
    background thread after the scene is first presented. Until it
    completes `ready` is False and every consumer treats the field as
    absent (zero force, no early warning).

    On failure the previously published grid is left untouched, `ready`
    stays False and the exception is kept in `error`.

    Example:
        >>> task = FieldBuildTask(builder)
        >>> task.schedule(registry)
        >>> task.wait()
        >>> task.ready
        True
    """

    def __init__(
        self,
        builder: DistanceFieldBuilder,
        executor: Optional[ThreadPoolExecutor] = None,
        on_ready: Optional[Callable[[VoxelGrid], None]] = None,
    ):
        self.builder = builder
        self.on_ready = on_ready
        self._executor = executor
        self._owns_executor = executor is None
        self._lock = threading.Lock()
        self._grid: Optional[VoxelGrid] = None
        self._ready = False
        self._error: Optional[BaseException] = None
        self._future: Optional[Future] = None
        self._generation = 0

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._ready

    @property
    def grid(self) -> Optional[VoxelGrid]:
        """Last successfully built grid, or None if the field is not ready."""
        with self._lock:
            return self._grid if self._ready else None

    @property
    def last_grid(self) -> Optional[VoxelGrid]:
        """Last successfully built grid regardless of readiness."""
        with self._lock:
            return self._grid

    @property
    def error(self) -> Optional[BaseException]:
        with self._lock:
            return self._error

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def schedule(self, obstacles: ObstacleRegistry) -> Future:
        """
        Start a full rebuild in the background.

        Any previous field is marked not ready immediately; results of an
        older, superseded build are discarded when they arrive. The result is
        published before the returned future completes.
        """
        with self._lock:
            generation = self._begin()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="field-build")
            future = self._executor.submit(self._run, obstacles, generation)
            self._future = future
        return future

    def build_now(self, obstacles: ObstacleRegistry) -> bool:
        """Synchronous build on the calling thread. Returns readiness."""
        with self._lock:
            generation = self._begin()
        try:
            self._run(obstacles, generation)
        except Exception:
            # recorded in self.error and warned about by _run
            return False
        return self.ready

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the pending build finishes. Returns readiness."""
        with self._lock:
            future = self._future
        if future is not None:
            # build failures are recorded in self.error, not re-raised here
            future.exception(timeout=timeout)
        return self.ready

    def invalidate(self):
        """Mark the field stale; any build in flight is discarded on arrival."""
        with self._lock:
            self._begin()

    def _begin(self) -> int:
        self._generation += 1
        self._ready = False
        self._error = None
        return self._generation

    def _run(self, obstacles: ObstacleRegistry, generation: int) -> VoxelGrid:
        try:
            grid = self.builder.build(obstacles)
        except Exception as e:
            with self._lock:
                current = generation == self._generation
                if current:
                    self._error = e
                    self._ready = False
            if current:
                warnings.warn(
                    f"Distance field build failed: {e!r}. "
                    f"Soft avoidance disabled; hard collision remains active.",
                    RuntimeWarning,
                )
            raise

        with self._lock:
            current = generation == self._generation
            if current:
                self._grid = grid
                self._ready = True
        if current and self.on_ready is not None:
            self.on_ready(grid)
        return grid

    def shutdown(self, wait: bool = True):
        with self._lock:
            executor = self._executor if self._owns_executor else None
            self._executor = None if self._owns_executor else self._executor
        if executor is not None:
            executor.shutdown(wait=wait)
