"""
neuro_forage/services/controller.py

Evolution controller service.

The controller manages the generational loop:
1. Spawns a cohort, each forager bound to a genome
2. Collects death notices as the cohort dies off
3. When the last one dies: ranks, persists, breeds
4. Starts the next epoch immediately, or stops

State machine:
    IDLE -> EPOCH_RUNNING -> EPOCH_ENDING -> (EPOCH_RUNNING | TERMINATED)

Epoch transitions happen synchronously inside on_death. There is no
scheduler and no thread; the driver's tick is the only clock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

from neuro_forage.evolution.algorithms import EvolutionConfig, GenerationalPolicy
from neuro_forage.evolution.fitness import (
    CauseOfDeath,
    DeathRecord,
    EpochSummary,
    rank_records,
    summarize_epoch,
)
from neuro_forage.evolution.genome import MutationConfig, as_genome
from neuro_forage.evolution.selection import SELECTION_STRATEGIES

from .persistence import GenomeStore, PersistenceConfig
from .queue import DeathNotice

if TYPE_CHECKING:
    from neuro_forage.environments.base import PopulationManager

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    IDLE = "idle"
    EPOCH_RUNNING = "epoch_running"
    EPOCH_ENDING = "epoch_ending"
    TERMINATED = "terminated"


class EpochOverflowError(RuntimeError):
    """A death arrived that no live epoch slot can account for."""


class SpawnExhaustedError(RuntimeError):
    """Not a single forager of an epoch could be placed."""


@dataclass
class ControllerConfig:
    """Configuration for the evolution controller."""
    # Run length
    epochs: int = 10
    creatures_per_epoch: int = 20

    # Mutation
    mutation_rate: float = 0.05
    mutation_strength: float = 0.1
    genome_clamp: float = 3.0

    # Selection
    selection: str = "tournament"  # One of SELECTION_STRATEGIES
    tournament_size: int = 3
    elite_fraction: float = 0.02
    mutated_elite_fraction: float = 0.05

    # Persistence
    load_first_epoch_from_save: bool = False
    save_path: str | None = "SavedWeights.csv"  # None disables saving
    load_path: str = "SavedWeights.csv"
    save_history: bool = False

    # Random seed
    seed: int | None = 42

    def evolution_config(self) -> EvolutionConfig:
        return EvolutionConfig(
            elite_fraction=self.elite_fraction,
            mutated_elite_fraction=self.mutated_elite_fraction,
            tournament_size=self.tournament_size,
            selection=self.selection,
            mutation=MutationConfig(
                rate=self.mutation_rate,
                strength=self.mutation_strength,
                clamp=self.genome_clamp,
            ),
        )

    def persistence_config(self) -> PersistenceConfig:
        return PersistenceConfig(
            save_path=self.save_path or "SavedWeights.csv",
            load_path=self.load_path,
            save_history=self.save_history,
        )

    def validate(self) -> None:
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if self.creatures_per_epoch < 1:
            raise ValueError(
                f"creatures_per_epoch must be >= 1, got {self.creatures_per_epoch}"
            )
        if self.selection not in SELECTION_STRATEGIES:
            raise ValueError(f"Unknown selection strategy: {self.selection}")
        self.evolution_config().validate()


class EvolutionController:
    """
    Controller for generational, survival-driven neuroevolution.

    Owns every piece of run state: the epoch counter, the current
    epoch's death records and the ranked last generation.
    """

    def __init__(
        self,
        config: ControllerConfig,
        population: PopulationManager,
        store: GenomeStore | None = None,
        genome_length: int | None = None,
    ):
        config.validate()
        self.config = config
        self.population = population
        self.genome_length = genome_length

        # Initialize RNG
        self.rng = np.random.default_rng(config.seed)

        self.policy = GenerationalPolicy(config.evolution_config())
        self.store = store or GenomeStore(config.persistence_config())

        # State tracking
        self.state = ControllerState.IDLE
        self.epoch = 0
        self.epoch_population = 0
        self.skipped_spawns = 0
        self.deaths_this_epoch = 0
        self.deaths_by_cause: dict[CauseOfDeath, int] = {c: 0 for c in CauseOfDeath}
        self.current_records: list[DeathRecord] = []
        self.last_generation: list[DeathRecord] = []
        self.seed_pool: list[np.ndarray] = []
        self.history: list[EpochSummary] = []

        self.start_time: float | None = None
        self._epoch_start_time: float | None = None

        logger.info(
            f"Controller initialized: {config.epochs} epochs of "
            f"{config.creatures_per_epoch} foragers, selection: "
            f"{self.policy.selection.describe()}"
        )

    # ==================== Lifecycle ====================

    @property
    def finished(self) -> bool:
        return self.state == ControllerState.TERMINATED

    def start(self) -> None:
        """Leave IDLE: optionally seed from disk, then spawn epoch zero."""
        if self.state != ControllerState.IDLE:
            raise RuntimeError(f"Controller already started (state={self.state.value})")

        if self.config.load_first_epoch_from_save:
            if self.store.exists(self.config.load_path):
                self.load_seed_pool(self.config.load_path)
            else:
                logger.warning(
                    f"No saved genomes at {self.config.load_path}; "
                    f"starting from random networks"
                )

        self.start_time = time.time()
        self.start_epoch()

    def load_seed_pool(self, path: str | None = None) -> int:
        """
        Load a persisted generation to seed epoch zero.

        Any malformed line aborts the load and leaves the pool untouched.
        """
        genomes = self.store.load_generation(path, expected_length=self.genome_length)
        self.seed_pool = genomes
        return len(genomes)

    def start_epoch(self) -> None:
        """Reset per-epoch state and spawn the cohort."""
        self.state = ControllerState.EPOCH_RUNNING
        self.deaths_this_epoch = 0
        self.deaths_by_cause = {c: 0 for c in CauseOfDeath}
        self.current_records = []
        self.skipped_spawns = 0
        self._epoch_start_time = time.time()

        self.population.clear_foragers()

        size = self.config.creatures_per_epoch
        pool = self.seed_pool if not self.last_generation else []
        placed: list[np.ndarray] = []

        for _ in range(size):
            position = self.population.find_spawn_position(placed)
            if position is None:
                self.skipped_spawns += 1
                logger.warning("Could not find valid spawn position for forager")
                continue

            # Slots are numbered by successful spawns so elites are never skipped
            genome = self.policy.genome_for_slot(
                len(placed), size, self.last_generation, self.rng, pool
            )
            self.population.spawn_forager(position, genome)
            placed.append(position)

        self.epoch_population = len(placed)
        if self.epoch_population == 0:
            raise SpawnExhaustedError(
                f"Epoch {self.epoch}: no spawn position found for any of {size} slots"
            )

        logger.info(
            f"Epoch {self.epoch + 1}/{self.config.epochs} started with "
            f"{self.epoch_population} foragers"
            + (f" ({self.skipped_spawns} skipped)" if self.skipped_spawns else "")
        )

    def on_death(
        self,
        fitness: float,
        genome: np.ndarray,
        cause: CauseOfDeath | str = CauseOfDeath.OTHER,
    ) -> EpochSummary | None:
        """
        Record one death. Ends the epoch when it was the last one.

        Returns the epoch summary if this death ended an epoch.

        Raises:
            EpochOverflowError: If no epoch is running or every member of
                the current epoch has already reported
        """
        if self.state != ControllerState.EPOCH_RUNNING:
            raise EpochOverflowError(
                f"Death reported while controller is {self.state.value}"
            )
        if self.deaths_this_epoch >= self.epoch_population:
            raise EpochOverflowError(
                f"Epoch {self.epoch} already has {self.deaths_this_epoch} deaths "
                f"of {self.epoch_population}"
            )

        cause = CauseOfDeath(cause)
        self.current_records.append(
            DeathRecord(fitness=float(fitness), genome=as_genome(genome), cause=cause)
        )
        self.deaths_this_epoch += 1
        self.deaths_by_cause[cause] += 1

        if self.deaths_this_epoch == self.epoch_population:
            return self.end_epoch()
        return None

    def handle_notice(self, notice: DeathNotice) -> EpochSummary | None:
        """Queue consumer: unpack a death notice into on_death."""
        return self.on_death(notice.fitness, notice.genome, notice.cause)

    def end_epoch(self) -> EpochSummary:
        """Rank, persist, promote; then start the next epoch or terminate."""
        self.state = ControllerState.EPOCH_ENDING

        duration = time.time() - (self._epoch_start_time or time.time())
        summary = summarize_epoch(
            self.epoch,
            self.current_records,
            skipped_spawns=self.skipped_spawns,
            duration=duration,
        )
        ranking = rank_records(self.current_records)

        logger.info(
            f"Epoch {self.epoch + 1} ended. "
            f"Max age: {summary.max_fitness:.2f}, Mean age: {summary.mean_fitness:.2f}"
        )

        if self.config.save_path is not None:
            self.store.save_generation([r.genome for r in ranking], epoch=self.epoch)

        self.last_generation = ranking
        self.current_records = []
        self.history.append(summary)
        self.epoch += 1

        if self.epoch >= self.config.epochs:
            self.state = ControllerState.TERMINATED
            logger.info("Simulation complete!")
        else:
            self.start_epoch()

        return summary

    # ==================== Observation ====================

    def get_best(self) -> tuple[np.ndarray | None, float]:
        """Best genome and fitness of the last finished epoch."""
        if not self.last_generation:
            return None, float("-inf")
        best = self.last_generation[0]
        return best.genome, best.fitness

    def get_status(self) -> dict[str, Any]:
        """Get current controller status."""
        elapsed = 0.0
        if self.start_time:
            elapsed = time.time() - self.start_time

        _, best_fitness = self.get_best()
        return {
            "state": self.state.value,
            "epoch": self.epoch,
            "epochs": self.config.epochs,
            "epoch_population": self.epoch_population,
            "deaths_this_epoch": self.deaths_this_epoch,
            "deaths_by_cause": {c.value: n for c, n in self.deaths_by_cause.items()},
            "best_fitness": best_fitness,
            "selection": self.policy.selection.describe(),
            "seed_pool_size": len(self.seed_pool),
            "elapsed_time": elapsed,
        }


def run_controller(argv: list[str] | None = None) -> dict[str, Any]:
    """
    Run a full evolution in the meadow.

    This is the entry point for the `neuro-forage` command.
    """
    import argparse

    from neuro_forage.config import RunConfig, load_config
    from neuro_forage.environments.meadow import Meadow

    from .runner import SimulationRunner

    parser = argparse.ArgumentParser(description="Survival neuroevolution in a meadow")
    parser.add_argument("--config", default=None, help="YAML run configuration")
    parser.add_argument("--epochs", type=int, default=None)
    parser.add_argument("--creatures-per-epoch", type=int, default=None)
    parser.add_argument("--mutation-rate", type=float, default=None)
    parser.add_argument("--mutation-strength", type=float, default=None)
    parser.add_argument("--tournament-size", type=int, default=None)
    parser.add_argument("--selection", default=None,
                        choices=SELECTION_STRATEGIES)
    parser.add_argument("--elite-fraction", type=float, default=None)
    parser.add_argument("--mutated-elite-fraction", type=float, default=None)
    parser.add_argument("--load-first-epoch", action="store_true",
                        help="Seed epoch zero from --load-path")
    parser.add_argument("--save-path", default=None)
    parser.add_argument("--load-path", default=None)
    parser.add_argument("--save-history", action="store_true")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--time-scale", type=float, default=None)
    parser.add_argument("--max-ticks", type=int, default=None)
    parser.add_argument("--plot", default=None, help="Save a fitness plot to this path")
    parser.add_argument("--log-level", default="INFO")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config) if args.config else RunConfig()

    overrides = {
        "epochs": args.epochs,
        "creatures_per_epoch": args.creatures_per_epoch,
        "mutation_rate": args.mutation_rate,
        "mutation_strength": args.mutation_strength,
        "tournament_size": args.tournament_size,
        "selection": args.selection,
        "elite_fraction": args.elite_fraction,
        "mutated_elite_fraction": args.mutated_elite_fraction,
        "save_path": args.save_path,
        "load_path": args.load_path,
        "seed": args.seed,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config.controller, key, value)
    if args.load_first_epoch:
        config.controller.load_first_epoch_from_save = True
    if args.save_history:
        config.controller.save_history = True
    if args.time_scale is not None:
        config.runner.time_scale = args.time_scale
    if args.max_ticks is not None:
        config.runner.max_ticks = args.max_ticks

    config.seed_world()
    world = Meadow(config.meadow, config.network_config())
    controller = EvolutionController(
        config.controller,
        world,
        genome_length=config.parameter_count(),
    )
    runner = SimulationRunner(world, controller, config.runner)
    final_stats = runner.run()

    if args.plot:
        from neuro_forage.observations.visualize import FitnessPlotter

        FitnessPlotter(controller.history).save(args.plot)

    return final_stats


if __name__ == "__main__":
    run_controller()
