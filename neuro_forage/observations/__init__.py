"""
Observation tools: see what evolution is doing.
"""

from .visualize import FitnessPlotter

__all__ = ["FitnessPlotter"]
