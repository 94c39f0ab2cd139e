"""
neuro_forage/services/runner.py

The driver loop: the only clock in the system.

Each tick:
1. Split the tick into world steps by the time multiplier
2. Step the world (perceive, think, act, metabolize)
3. Drain queued deaths into the controller, in order, after each step

Speeding the run up means more steps per tick, never a bigger step.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .controller import ControllerState, EvolutionController
from .queue import DeathQueue

if TYPE_CHECKING:
    from neuro_forage.environments.base import Simulation

logger = logging.getLogger(__name__)


@dataclass
class RunnerConfig:
    """Configuration for the tick driver."""
    tick_delta: float = 0.02        # Seconds of simulated time per tick (before scaling)
    time_scale: float = 1.0         # World steps per tick; a fraction adds one short step
    max_ticks: int | None = None    # Safety stop; None runs until the last epoch ends
    log_interval: int = 5000        # Ticks between progress lines (0 = never)

    def validate(self) -> None:
        if self.tick_delta <= 0.0:
            raise ValueError(f"tick_delta must be > 0, got {self.tick_delta}")
        if self.time_scale <= 0.0:
            raise ValueError(f"time_scale must be > 0, got {self.time_scale}")


class SimulationRunner:
    """
    Ticks a world and feeds its deaths to a controller.

    Single-threaded. Deaths are serialized through a DeathQueue so an
    epoch can only end between world steps, never inside one.
    """

    def __init__(
        self,
        world: Simulation,
        controller: EvolutionController,
        config: RunnerConfig | None = None,
    ):
        self.config = config or RunnerConfig()
        self.config.validate()
        self.world = world
        self.controller = controller
        self.deaths = DeathQueue()

        self.ticks = 0
        self.simulated_time = 0.0

    def substeps(self, delta_time: float) -> list[float]:
        """
        Split one scaled tick into world steps.

        A multiplier of n runs n steps of delta_time, then one shorter
        step for any fractional remainder. Time scale 2 is therefore
        exactly two ticks at time scale 1.
        """
        whole = int(self.config.time_scale)
        fraction = self.config.time_scale - whole
        steps = [delta_time] * whole
        if fraction > 0.0:
            steps.append(delta_time * fraction)
        return steps

    def tick(self, delta_time: float | None = None) -> int:
        """
        Advance one tick.

        Args:
            delta_time: Unscaled seconds (default: config.tick_delta)

        Returns:
            Number of deaths delivered to the controller
        """
        if delta_time is None:
            delta_time = self.config.tick_delta

        delivered = 0
        for step in self.substeps(delta_time):
            if self.controller.finished:
                break
            self.world.step(step, self.deaths)
            delivered += self.deaths.drain(self.controller.handle_notice)
            self.simulated_time += step

        self.ticks += 1

        if self.config.log_interval and self.ticks % self.config.log_interval == 0:
            status = self.controller.get_status()
            logger.info(
                f"Tick {self.ticks}: epoch {status['epoch'] + 1}, "
                f"{status['deaths_this_epoch']}/{status['epoch_population']} dead"
            )

        return delivered

    def run(self) -> dict[str, Any]:
        """
        Run until the controller terminates (or max_ticks is reached).

        Returns:
            Final statistics
        """
        if self.controller.state == ControllerState.IDLE:
            self.controller.start()

        start = time.time()
        while not self.controller.finished:
            if self.config.max_ticks is not None and self.ticks >= self.config.max_ticks:
                logger.warning(
                    f"Stopping after {self.ticks} ticks with "
                    f"{self.controller.epoch}/{self.controller.config.epochs} epochs done"
                )
                break
            self.tick()

        best_genome, best_fitness = self.controller.get_best()
        return {
            "completed": self.controller.finished,
            "total_epochs": self.controller.epoch,
            "total_ticks": self.ticks,
            "simulated_time": self.simulated_time,
            "wall_time": time.time() - start,
            "best_fitness": best_fitness,
            "best_genome_length": None if best_genome is None else len(best_genome),
            "history": [s.to_dict() for s in self.controller.history],
        }
