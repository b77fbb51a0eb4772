"""
Simulation Module
=================
Owned world state and the per-tick update loop.
"""

from .world import (
    AgentState,
    ControlInput,
    TickResult,
    NavigationWorld,
    heading_intent,
    step_world,
)

__all__ = [
    'AgentState',
    'ControlInput',
    'TickResult',
    'NavigationWorld',
    'heading_intent',
    'step_world',
]
