"""
neuro_forage/services/queue.py

Death notices, queued during a tick and delivered after it.

The world may discover deaths while it is still stepping foragers.
Delivering them straight to the controller could end the epoch (and
respawn everyone) halfway through a tick, so deaths are queued and the
driver drains the queue once the tick is done, in arrival order.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Any, List
import logging
import time

import numpy as np

from neuro_forage.evolution.fitness import CauseOfDeath

logger = logging.getLogger(__name__)


@dataclass
class DeathNotice:
    """
    A forager has died.

    Carries everything the controller needs; nothing refers back to
    the forager itself.
    """
    forager_id: str
    fitness: float
    genome: np.ndarray
    cause: CauseOfDeath
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forager_id": self.forager_id,
            "fitness": self.fitness,
            "cause": self.cause.value,
            "created_at": self.created_at,
        }


class DeathQueue:
    """FIFO of death notices. Single consumer: the driver's main tick."""

    def __init__(self):
        self._notices: Deque[DeathNotice] = deque()

    def push(self, notice: DeathNotice) -> None:
        self._notices.append(notice)

    def pop(self) -> DeathNotice | None:
        if not self._notices:
            return None
        return self._notices.popleft()

    def drain(self, handler: Callable[[DeathNotice], Any]) -> int:
        """
        Hand every queued notice to handler, oldest first.

        Notices pushed by the handler itself are delivered in the same drain.
        Returns the number delivered.
        """
        delivered = 0
        while self._notices:
            handler(self._notices.popleft())
            delivered += 1
        return delivered

    def clear(self) -> List[DeathNotice]:
        dropped = list(self._notices)
        self._notices.clear()
        if dropped:
            logger.warning(f"Dropped {len(dropped)} undelivered death notices")
        return dropped

    def __len__(self) -> int:
        return len(self._notices)
