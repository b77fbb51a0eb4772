"""
Navigation World
================
Owned state of one avoidance session and the per-tick update.

    ┌──────────────┐   ┌──────────────────┐   ┌────────────────────┐
    │ ControlInput │──▶│ velocity + force │──▶│ flight envelope    │
    └──────────────┘   │ (PotentialForce) │   │ + CollisionResolver│
                       └──────────────────┘   └─────────┬──────────┘
                                                        ▼
                                              ┌────────────────────┐
                                              │ TrajectoryPredictor│
                                              │ (path + warning)   │
                                              └────────────────────┘

The distance field is built by a deferred background task. Until it is
ready the force model and early warning are inert and only the hard
collision resolver protects the agent.
"""

from __future__ import annotations

import math
import numpy as np
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..environment.config import WorldConfig
from ..environment.obstacles import ObstacleRegistry
from ..field.distance_field import DistanceFieldBuilder, FieldBuildTask
from ..field.occupancy import OccupancyGrid, OccupancyRasterizer
from ..field.sampler import FieldSampler
from ..field.voxel_grid import VoxelGrid
from ..planning.collision import CollisionResolver, clamp_to_envelope, envelope_limits
from ..planning.potential import PotentialForceModel
from ..planning.predictor import TrajectoryPredictor, clamp_length


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class AgentState:
    """
    Mutable drone state, updated once per tick.

    Attributes:
        position: World position (x, y, z)
        velocity: Velocity (m/s)
        yaw: Heading about +Y (rad); 0 faces -Z
    """
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 10.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw: float = 0.0

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64).reshape(3)
        self.velocity = np.array(self.velocity, dtype=np.float64).reshape(3)
        self.yaw = float(self.yaw)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def copy(self) -> 'AgentState':
        return AgentState(self.position.copy(), self.velocity.copy(), self.yaw)


@dataclass
class ControlInput:
    """
    Normalised pilot intent; every channel is clipped to [-1, 1].

    Attributes:
        forward: +1 flies along the heading
        right: +1 strafes right
        up: +1 climbs
        yaw_rate: +1 turns left (counter-clockwise seen from above)
    """
    forward: float = 0.0
    right: float = 0.0
    up: float = 0.0
    yaw_rate: float = 0.0

    def __post_init__(self):
        self.forward = float(np.clip(self.forward, -1.0, 1.0))
        self.right = float(np.clip(self.right, -1.0, 1.0))
        self.up = float(np.clip(self.up, -1.0, 1.0))
        self.yaw_rate = float(np.clip(self.yaw_rate, -1.0, 1.0))

    @classmethod
    def hover(cls) -> 'ControlInput':
        return cls()


@dataclass
class TickResult:
    """
    Per-tick output for rendering and HUD collaborators.

    Attributes:
        position, velocity, yaw: Agent state after the tick
        collision: Hard collision resolver pushed the agent out this tick
        early_warning: Proposed or predicted position is entering the field
        field_ready: Distance field available
        force: Repulsive acceleration applied this tick
        trajectory: Predicted positions, shape (steps, 3)
    """
    position: np.ndarray
    velocity: np.ndarray
    yaw: float
    collision: bool
    early_warning: bool
    field_ready: bool
    force: np.ndarray
    trajectory: np.ndarray

    @property
    def warning(self) -> bool:
        return self.collision or self.early_warning

    def to_dict(self) -> Dict[str, Any]:
        """Flat record for telemetry tables."""
        return {
            'x': float(self.position[0]),
            'y': float(self.position[1]),
            'z': float(self.position[2]),
            'vx': float(self.velocity[0]),
            'vy': float(self.velocity[1]),
            'vz': float(self.velocity[2]),
            'speed': float(np.linalg.norm(self.velocity)),
            'yaw_deg': math.degrees(self.yaw) % 360.0,
            'force': float(np.linalg.norm(self.force)),
            'collision': self.collision,
            'early_warning': self.early_warning,
            'warning': self.warning,
            'field_ready': self.field_ready,
        }


# =============================================================================
# WORLD
# =============================================================================

class NavigationWorld:
    """
    Everything one avoidance session owns: obstacles, fields, agent.

    Example:
        >>> world = NavigationWorld(WorldConfig.city_default(), generate_city())
        >>> world.start_field_build()      # after the first frame is shown
        >>> result = world.step(ControlInput(forward=1.0))
    """

    def __init__(
        self,
        config: WorldConfig,
        obstacles: ObstacleRegistry,
        agent: Optional[AgentState] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.config = config
        self.agent = agent or AgentState()
        self.builder = DistanceFieldBuilder(config)
        self.field_task = FieldBuildTask(self.builder, executor=executor)
        self.rasterizer = OccupancyRasterizer.from_config(config)
        self._sampler: Optional[FieldSampler] = None
        self._set_obstacles(obstacles)

    def _set_obstacles(self, obstacles: ObstacleRegistry):
        cfg = self.config
        self.obstacles = obstacles
        self.colliders = obstacles.inflated(cfg.collider_buffer, keep_landable_roofs=True)
        self.force_model = PotentialForceModel(cfg, obstacles)
        self.resolver = CollisionResolver(
            self.colliders,
            epsilon=cfg.collision_epsilon,
            envelope=envelope_limits(cfg.flight_bounds, cfg.flight_floor, cfg.flight_ceiling),
        )
        self.predictor = TrajectoryPredictor.from_config(self.force_model, self.config)
        self.occupancy: OccupancyGrid = self.rasterizer.rasterize(obstacles)
        self._sampler = None

    # -------------------------------------------------------------------------
    # Field lifecycle
    # -------------------------------------------------------------------------

    @property
    def field_ready(self) -> bool:
        return self.field_task.ready

    @property
    def grid(self) -> Optional[VoxelGrid]:
        return self.field_task.grid

    def start_field_build(self) -> Future:
        """Schedule the distance field build in the background."""
        return self.field_task.schedule(self.obstacles)

    def build_field_now(self) -> bool:
        """Build on the calling thread (scripts and tests)."""
        ready = self.field_task.build_now(self.obstacles)
        self.sync_field()
        return ready

    def replace_obstacles(self, obstacles: ObstacleRegistry, rebuild: bool = True) -> Optional[Future]:
        """
        Swap the obstacle set. The old field is stale from this point on;
        the grid is rebuilt from scratch, never patched.
        """
        self._set_obstacles(obstacles)
        if rebuild:
            return self.field_task.schedule(obstacles)
        self.field_task.invalidate()
        return None

    def sync_field(self) -> Optional[FieldSampler]:
        """Attach the latest ready grid to the force model (None while not ready)."""
        grid = self.field_task.grid
        if grid is None:
            self._sampler = None
        elif self._sampler is None or self._sampler.grid is not grid:
            self._sampler = FieldSampler(grid, self.config.gradient_epsilon)
        self.force_model.attach(self._sampler)
        return self._sampler

    def sample(self, point: np.ndarray) -> Optional[Tuple[float, np.ndarray]]:
        """Distance and gradient at a point for overlays; None if not ready."""
        sampler = self.sync_field()
        if sampler is None:
            return None
        return sampler.sample_distance(point), sampler.sample_gradient(point)

    def step(self, control: ControlInput, dt: Optional[float] = None) -> TickResult:
        return step_world(self, control, dt)

    def shutdown(self):
        self.field_task.shutdown()


# =============================================================================
# TICK UPDATE
# =============================================================================

def heading_intent(control: ControlInput, yaw: float) -> np.ndarray:
    """
    Horizontal unit-bounded intent rotated by the heading.

    At yaw 0 forward is -Z and right is +X.
    """
    local = np.array([control.right, -control.forward])
    norm = np.linalg.norm(local)
    if norm > 1.0:
        local = local / norm
    c, s = math.cos(yaw), math.sin(yaw)
    # rotation about +Y
    x = local[0] * c + local[1] * s
    z = -local[0] * s + local[1] * c
    return np.array([x, 0.0, z])


def step_world(world: NavigationWorld, control: ControlInput, dt: Optional[float] = None) -> TickResult:
    """
    Advance the world by one tick.

    Order: yaw and control integration, repulsive force, damping and speed
    limit, flight envelope, hard collision, look-ahead and early warning.
    """
    cfg = world.config
    dt = cfg.dt if dt is None else dt
    agent = world.agent
    world.sync_field()

    agent.yaw += control.yaw_rate * cfg.yaw_rate * dt

    velocity = agent.velocity + heading_intent(control, agent.yaw) * cfg.acceleration * dt
    force = clamp_length(world.force_model.force(agent.position), cfg.max_accel)
    velocity = (velocity + force * dt) * cfg.damping
    velocity = clamp_length(velocity, cfg.max_speed)

    climb = np.array([0.0, control.up * cfg.vertical_speed * dt, 0.0])
    proposed = agent.position + velocity * dt + climb

    # envelope first: the resolver only pushes out through faces inside it
    proposed, velocity = clamp_to_envelope(
        proposed,
        velocity,
        cfg.flight_bounds,
        cfg.flight_floor,
        cfg.flight_ceiling,
    )
    resolved = world.resolver.resolve(proposed, velocity, fallback=agent.position)
    position, velocity = resolved.position, resolved.velocity

    agent.position = position
    agent.velocity = velocity

    trajectory = world.predictor.rollout(position, velocity).to_array()
    early = world.predictor.early_warning(proposed, trajectory)

    return TickResult(
        position=position.copy(),
        velocity=velocity.copy(),
        yaw=agent.yaw,
        collision=resolved.collided,
        early_warning=early,
        field_ready=world.force_model.ready,
        force=force,
        trajectory=trajectory,
    )
