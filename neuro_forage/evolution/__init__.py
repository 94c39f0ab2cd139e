"""
neuro_forage/evolution/

Generational neuroevolution driven by survival time.

Key insight: fitness arrives one death at a time.
- Spawn a cohort (fast, centralized)
- Let them live (slow, ticked by the world)
- Rank, select and mutate (fast, once per epoch)

Pieces:
- genome: flat parameter vectors and the mutation operator
- selection: tournament, roulette and truncation parent selection
- algorithms: the elitism + tournament generational policy
- fitness: death records, ranking and epoch statistics
"""

from .algorithms import EvolutionConfig, GenerationalPolicy
from .genome import Genome, MutationConfig, as_genome, mutate
from .fitness import (
    CauseOfDeath,
    DeathRecord,
    EpochSummary,
    rank_records,
    summarize_epoch,
)
from .selection import (
    EmptyPopulationError,
    SelectionStrategy,
    TournamentSelection,
    RouletteSelection,
    TruncationSelection,
    create_selection,
)

__all__ = [
    "EvolutionConfig",
    "GenerationalPolicy",
    "Genome",
    "MutationConfig",
    "as_genome",
    "mutate",
    "CauseOfDeath",
    "DeathRecord",
    "EpochSummary",
    "rank_records",
    "summarize_epoch",
    "EmptyPopulationError",
    "SelectionStrategy",
    "TournamentSelection",
    "RouletteSelection",
    "TruncationSelection",
    "create_selection",
]
