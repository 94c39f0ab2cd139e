"""
Core components of the neuro-forage system.

- network: the evolvable two-stream brain
- agent: the Forager - a body around the brain
- perception: ray hits to network inputs
"""

from .network import ForagerNetwork, NetworkConfig, ShapeMismatch, LengthMismatch
from .agent import Forager, ForagerState, MetabolismConfig, MovementConfig
from .perception import VisionConfig, encode_vision

__all__ = [
    "ForagerNetwork",
    "NetworkConfig",
    "ShapeMismatch",
    "LengthMismatch",
    "Forager",
    "ForagerState",
    "MetabolismConfig",
    "MovementConfig",
    "VisionConfig",
    "encode_vision",
]
