"""
Planning Module
===============
Potential force model, hard collision resolver and trajectory predictor.
"""

from .potential import (
    PotentialForceModel,
    smoothstep,
)

from .collision import (
    CollisionResolver,
    CollisionResult,
    clamp_to_envelope,
    envelope_limits,
)

from .predictor import (
    TrajectoryPredictor,
    TrajectoryRollout,
    clamp_length,
)

__all__ = [
    'PotentialForceModel',
    'smoothstep',
    'CollisionResolver',
    'CollisionResult',
    'clamp_to_envelope',
    'envelope_limits',
    'TrajectoryPredictor',
    'TrajectoryRollout',
    'clamp_length',
]
