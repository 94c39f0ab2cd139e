"""
neuro_forage/evolution/selection.py

Parent selection over a ranked generation.

All strategies share one interface: given the last generation ranked
best to worst, pick one record. Tournament is the canonical choice;
roulette and truncation are kept as alternative configurations.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Any, Sequence
import numpy as np

from .fitness import DeathRecord


class EmptyPopulationError(RuntimeError):
    """Selection was asked to choose from nothing."""


class SelectionStrategy(ABC):
    """
    Abstract base for parent selection.

    Rankings are sorted by descending fitness.
    """

    @abstractmethod
    def _select(
        self,
        ranking: Sequence[DeathRecord],
        rng: np.random.Generator,
    ) -> DeathRecord:
        pass

    def select(
        self,
        ranking: Sequence[DeathRecord],
        rng: np.random.Generator,
    ) -> DeathRecord:
        """Pick one parent record from a non-empty ranking."""
        if len(ranking) == 0:
            raise EmptyPopulationError(
                f"{self.__class__.__name__} called with an empty ranking"
            )
        return self._select(ranking, rng)

    def describe(self) -> Dict[str, Any]:
        return {"selection": self.__class__.__name__}


class TournamentSelection(SelectionStrategy):
    """
    Best of k, drawn uniformly with replacement.

    k = 1 degenerates to a uniform random pick.
    """

    def __init__(self, tournament_size: int = 3):
        if tournament_size < 1:
            raise ValueError(f"Tournament size must be >= 1, got {tournament_size}")
        self.tournament_size = tournament_size

    def _select(self, ranking, rng):
        picks = rng.integers(0, len(ranking), size=self.tournament_size)
        winner = ranking[picks[0]]
        for idx in picks[1:]:
            if ranking[idx].fitness > winner.fitness:
                winner = ranking[idx]
        return winner

    def describe(self) -> Dict[str, Any]:
        return {"selection": "tournament", "tournament_size": self.tournament_size}


class RouletteSelection(SelectionStrategy):
    """Fitness-proportional (age-proportional) selection."""

    def _select(self, ranking, rng):
        fitnesses = np.clip(np.array([r.fitness for r in ranking]), 0.0, None)
        total = fitnesses.sum()
        if total <= 0.0:
            return ranking[rng.integers(len(ranking))]
        return ranking[rng.choice(len(ranking), p=fitnesses / total)]

    def describe(self) -> Dict[str, Any]:
        return {"selection": "roulette"}


class TruncationSelection(SelectionStrategy):
    """
    Only the top half breeds, and the top tenth breeds most.

    With probability top_probability a parent comes from the top
    top_fraction; otherwise from the rest of the top survivor_fraction.
    """

    def __init__(
        self,
        top_fraction: float = 0.1,
        survivor_fraction: float = 0.5,
        top_probability: float = 0.9,
    ):
        self.top_fraction = top_fraction
        self.survivor_fraction = survivor_fraction
        self.top_probability = top_probability

    def _select(self, ranking, rng):
        count = len(ranking)
        top = max(1, int(count * self.top_fraction))
        cutoff = max(top, int(count * self.survivor_fraction))

        if rng.random() < self.top_probability or cutoff <= top:
            return ranking[rng.integers(0, top)]
        return ranking[rng.integers(top, cutoff)]

    def describe(self) -> Dict[str, Any]:
        return {
            "selection": "truncation",
            "top_fraction": self.top_fraction,
            "survivor_fraction": self.survivor_fraction,
            "top_probability": self.top_probability,
        }


SELECTION_STRATEGIES = ("tournament", "roulette", "truncation")


def create_selection(name: str, tournament_size: int = 3) -> SelectionStrategy:
    """Build a strategy by name."""
    if name == "tournament":
        return TournamentSelection(tournament_size)
    elif name == "roulette":
        return RouletteSelection()
    elif name == "truncation":
        return TruncationSelection()
    else:
        raise ValueError(f"Unknown selection strategy: {name}")
