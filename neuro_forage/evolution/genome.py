"""
neuro_forage/evolution/genome.py

Genome helpers for evolutionary optimization.

A genome here is just the flat parameter vector of a ForagerNetwork.
The genome is the genotype; how long the forager survives is the phenotype.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence
import numpy as np

# A genome is a 1-D float64 array; the alias documents intent.
Genome = np.ndarray


@dataclass
class MutationConfig:
    """Per-scalar mutation settings."""
    rate: float = 0.05          # Probability each scalar is perturbed
    strength: float = 0.1       # Perturbation drawn from U(-strength, strength)
    clamp: float = 3.0          # Result clipped to [-clamp, clamp]

    def validate(self) -> None:
        if not 0.0 <= self.rate <= 1.0:
            raise ValueError(f"Mutation rate must be in [0, 1], got {self.rate}")
        if self.strength < 0.0:
            raise ValueError(f"Mutation strength must be >= 0, got {self.strength}")
        if self.clamp <= 0.0:
            raise ValueError(f"Genome clamp must be > 0, got {self.clamp}")


def as_genome(values: Sequence[float]) -> Genome:
    """Copy any sequence of reals into a fresh genome array."""
    return np.array(values, dtype=np.float64).reshape(-1)


def mutate(
    parent: Sequence[float],
    rng: np.random.Generator,
    config: MutationConfig,
) -> Genome:
    """
    Return a mutated copy of a genome.

    Every scalar independently gets, with probability config.rate, a
    uniform nudge in [-strength, strength]. The child is clipped to
    [-clamp, clamp]. The parent is never modified.
    """
    child = as_genome(parent)
    n = child.shape[0]

    # Draw both arrays in full so the stream is the same whatever the mask.
    mask = rng.random(n) < config.rate
    noise = rng.uniform(-config.strength, config.strength, size=n)

    child[mask] += noise[mask]
    return np.clip(child, -config.clamp, config.clamp)
