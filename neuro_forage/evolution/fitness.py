"""
neuro_forage/evolution/fitness.py

Fitness bookkeeping for survival-based evolution.

Fitness is how long a forager stayed alive. Nothing else.
A death record pairs that number with the genome that earned it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Sequence
import numpy as np


class CauseOfDeath(Enum):
    """Why a forager stopped."""
    HUNGER = "hunger"
    THIRST = "thirst"
    OTHER = "other"


@dataclass
class DeathRecord:
    """
    One member of an epoch, after death.

    The genome is owned by the controller from here on.
    """
    fitness: float
    genome: np.ndarray
    cause: CauseOfDeath = CauseOfDeath.OTHER

    def __post_init__(self):
        self.genome = np.asarray(self.genome, dtype=np.float64)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fitness": self.fitness,
            "cause": self.cause.value,
            "genome_length": len(self.genome),
        }


@dataclass
class EpochSummary:
    """Statistics for one finished epoch. Reporting only."""
    epoch: int
    population: int
    mean_fitness: float
    max_fitness: float
    min_fitness: float
    deaths_by_cause: Dict[str, int] = field(default_factory=dict)
    skipped_spawns: int = 0
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epoch": self.epoch,
            "population": self.population,
            "mean_fitness": self.mean_fitness,
            "max_fitness": self.max_fitness,
            "min_fitness": self.min_fitness,
            "deaths_by_cause": dict(self.deaths_by_cause),
            "skipped_spawns": self.skipped_spawns,
            "duration": self.duration,
        }


def rank_records(records: Sequence[DeathRecord]) -> List[DeathRecord]:
    """
    Sort best to worst by fitness.

    Stable: equal fitness keeps arrival order.
    """
    return sorted(records, key=lambda r: r.fitness, reverse=True)


def summarize_epoch(
    epoch: int,
    records: Sequence[DeathRecord],
    skipped_spawns: int = 0,
    duration: float = 0.0,
) -> EpochSummary:
    """Mean / max / min fitness and a death count per cause."""
    if not records:
        raise ValueError("Cannot summarize an epoch with no deaths")

    fitnesses = np.array([r.fitness for r in records])
    by_cause = {cause.value: 0 for cause in CauseOfDeath}
    for r in records:
        by_cause[r.cause.value] += 1

    return EpochSummary(
        epoch=epoch,
        population=len(records),
        mean_fitness=float(fitnesses.mean()),
        max_fitness=float(fitnesses.max()),
        min_fitness=float(fitnesses.min()),
        deaths_by_cause=by_cause,
        skipped_spawns=skipped_spawns,
        duration=duration,
    )
