"""
evolution/algorithms.py

The generational policy: who gets which genome in the next epoch.

Slots are filled in order:
1. Elites        - the single best genome, untouched
2. Mutated elite - the best genome, mutated
3. Everyone else - a tournament winner, mutated

Before any ranking exists, genomes come from a pool loaded from disk
(drawn uniformly, unmutated) or not at all (the network keeps its
random initialization).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import math
import numpy as np

from .fitness import DeathRecord
from .genome import Genome, MutationConfig, as_genome, mutate
from .selection import SelectionStrategy, create_selection


@dataclass
class EvolutionConfig:
    """Configuration for the generational policy."""
    elite_fraction: float = 0.02
    mutated_elite_fraction: float = 0.05
    tournament_size: int = 3
    selection: str = "tournament"
    mutation: MutationConfig = field(default_factory=MutationConfig)

    def validate(self) -> None:
        for name in ("elite_fraction", "mutated_elite_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.mutated_elite_fraction < self.elite_fraction:
            raise ValueError(
                "mutated_elite_fraction must be >= elite_fraction "
                f"({self.mutated_elite_fraction} < {self.elite_fraction})"
            )
        if self.tournament_size < 1:
            raise ValueError(f"tournament_size must be >= 1, got {self.tournament_size}")
        self.mutation.validate()


def _band(fraction: float, population: int) -> int:
    # Round first so 0.05 * 20 does not become 2 through float noise.
    return int(math.ceil(round(fraction * population, 9)))


class GenerationalPolicy:
    """
    Derives next-generation genomes from a ranked last generation.

    Stateless between calls; all randomness comes from the caller's rng.
    """

    def __init__(
        self,
        config: Optional[EvolutionConfig] = None,
        selection: Optional[SelectionStrategy] = None,
    ):
        self.config = config or EvolutionConfig()
        self.config.validate()
        self.selection = selection or create_selection(
            self.config.selection, self.config.tournament_size
        )

    def elite_count(self, population: int) -> int:
        return min(population, _band(self.config.elite_fraction, population))

    def mutated_elite_count(self, population: int) -> int:
        upper = min(population, _band(self.config.mutated_elite_fraction, population))
        return max(0, upper - self.elite_count(population))

    def genome_for_slot(
        self,
        slot: int,
        population: int,
        ranking: Sequence[DeathRecord],
        rng: np.random.Generator,
        seed_pool: Sequence[Genome] = (),
    ) -> Optional[Genome]:
        """
        Genome for the slot-th forager spawned this epoch.

        Returns None when the forager should keep its random init.
        """
        if not ranking:
            if len(seed_pool) > 0:
                return as_genome(seed_pool[rng.integers(len(seed_pool))])
            return None

        best = ranking[0].genome
        elites = self.elite_count(population)
        if slot < elites:
            return as_genome(best)
        if slot < elites + self.mutated_elite_count(population):
            return mutate(best, rng, self.config.mutation)

        parent = self.selection.select(ranking, rng)
        return mutate(parent.genome, rng, self.config.mutation)

    def next_generation(
        self,
        population: int,
        ranking: Sequence[DeathRecord],
        rng: np.random.Generator,
        seed_pool: Sequence[Genome] = (),
    ) -> List[Optional[Genome]]:
        """All slots at once, in slot order."""
        return [
            self.genome_for_slot(slot, population, ranking, rng, seed_pool)
            for slot in range(population)
        ]
