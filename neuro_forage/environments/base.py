"""
environments/base.py

The narrow seams between evolution and the world it runs in.

The controller only needs to place foragers and clear them away.
The driver only needs to advance the world and hear about deaths.
Everything else (vision, feeding, drinking) stays behind these seams.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional
import numpy as np

if TYPE_CHECKING:
    from neuro_forage.core.agent import Forager
    from neuro_forage.services.queue import DeathQueue


class PopulationManager(ABC):
    """Spawn placement and cohort lifetime, as seen by the controller."""

    @abstractmethod
    def find_spawn_position(self, placed: List[np.ndarray]) -> Optional[np.ndarray]:
        """
        A valid position for a new forager, or None after bounded retries.

        None is recoverable: the caller skips the slot.
        """
        pass

    @abstractmethod
    def spawn_forager(
        self,
        position: np.ndarray,
        genome: Optional[np.ndarray] = None,
    ) -> Forager:
        """Create a forager at position. genome=None keeps the random init."""
        pass

    @abstractmethod
    def clear_foragers(self) -> None:
        """Remove the evolving cohort. Manually controlled foragers stay."""
        pass


class Simulation(PopulationManager):
    """A world the driver can tick."""

    @abstractmethod
    def step(self, delta_time: float, deaths: DeathQueue) -> None:
        """
        Advance the world by delta_time (already time-scaled).

        Deaths of evolving foragers are pushed onto `deaths`, never
        delivered directly.
        """
        pass
