"""
Worlds for foragers to live and die in.

- base: the seams the controller and driver depend on
- meadow: a small 2D reference world
"""

from .base import PopulationManager, Simulation
from .meadow import Meadow, MeadowConfig, Plant, PlantKind, Pond

__all__ = [
    "PopulationManager",
    "Simulation",
    "Meadow",
    "MeadowConfig",
    "Plant",
    "PlantKind",
    "Pond",
]
