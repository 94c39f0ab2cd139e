"""
core/network.py

The forager's brain: a fixed-topology, two-stream feedforward network.

    vision (rays * (1 + categories)) -> 64 -> 32 ┐
                                                 ├-> 40 -> 16 -> 2
    state  (hunger, thirst)          ->  8 ──────┘

Hidden stages use leaky ReLU, the output stage tanh, so both action
values land in [-1, 1] (turn, forward).

The weights are never trained by gradient. They are evolved, and the
only way in or out is the flat genome (get_genome / set_genome).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import numpy as np


class ShapeMismatch(ValueError):
    """An input vector does not have the length the network was built for."""


class LengthMismatch(ValueError):
    """A genome does not have the network's parameter count."""


# Order matters: it defines the genome layout.
STAGES: Tuple[str, ...] = ("vision1", "vision2", "state", "merge", "output")


@dataclass
class NetworkConfig:
    """Layer sizes. Fixed for the lifetime of a run."""
    vision_input_size: int = 1085    # 155 rays * (1 distance + 6 categories)
    state_input_size: int = 2        # hunger, thirst
    vision_hidden1: int = 64
    vision_hidden2: int = 32
    state_hidden: int = 8
    merged_hidden: int = 16
    output_size: int = 2
    leaky_slope: float = 0.01

    def stage_shapes(self) -> List[Tuple[int, int]]:
        """(fan_in, fan_out) per stage, in genome order."""
        return [
            (self.vision_input_size, self.vision_hidden1),
            (self.vision_hidden1, self.vision_hidden2),
            (self.state_input_size, self.state_hidden),
            (self.vision_hidden2 + self.state_hidden, self.merged_hidden),
            (self.merged_hidden, self.output_size),
        ]


def parameter_count(config: Optional[NetworkConfig] = None) -> int:
    """Total number of weights and biases for a topology."""
    config = config or NetworkConfig()
    return sum(fan_in * fan_out + fan_out for fan_in, fan_out in config.stage_shapes())


def leaky_relu(x: np.ndarray, slope: float = 0.01) -> np.ndarray:
    return np.where(x > 0, x, slope * x)


class ForagerNetwork:
    """
    Multi-stream feedforward network with an evolvable flat genome.

    Forward is stateless: nothing is remembered between calls.
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or NetworkConfig()
        rng = rng if rng is not None else np.random.default_rng()

        self.weights: List[np.ndarray] = []
        self.biases: List[np.ndarray] = []
        for fan_in, fan_out in self.config.stage_shapes():
            # He scaling for rectifying units
            std = np.sqrt(2.0 / fan_in)
            self.weights.append(rng.standard_normal((fan_in, fan_out)) * std)
            self.biases.append(np.zeros(fan_out))

        self._parameter_count = parameter_count(self.config)

    @property
    def parameter_count(self) -> int:
        return self._parameter_count

    # ==================== Forward ====================

    def forward(
        self,
        vision: Sequence[float],
        state: Sequence[float],
    ) -> Tuple[float, float]:
        """
        Map perception and internal state to an action.

        Args:
            vision: Encoded ray features, exactly vision_input_size long
            state: (hunger, thirst)

        Returns:
            (turn, forward), each in [-1, 1]

        Raises:
            ShapeMismatch: If either input has the wrong length
        """
        vision = np.asarray(vision, dtype=np.float64).reshape(-1)
        state = np.asarray(state, dtype=np.float64).reshape(-1)

        if vision.shape[0] != self.config.vision_input_size:
            raise ShapeMismatch(
                f"Vision input has {vision.shape[0]} values, "
                f"expected {self.config.vision_input_size}"
            )
        if state.shape[0] != self.config.state_input_size:
            raise ShapeMismatch(
                f"State input has {state.shape[0]} values, "
                f"expected {self.config.state_input_size}"
            )

        w_v1, w_v2, w_s, w_m, w_o = self.weights
        b_v1, b_v2, b_s, b_m, b_o = self.biases
        slope = self.config.leaky_slope

        # Vision stream
        v = leaky_relu(vision @ w_v1 + b_v1, slope)
        v = leaky_relu(v @ w_v2 + b_v2, slope)

        # Internal state stream
        s = leaky_relu(state @ w_s + b_s, slope)

        merged = leaky_relu(np.concatenate([v, s]) @ w_m + b_m, slope)
        out = np.tanh(merged @ w_o + b_o)

        return float(out[0]), float(out[1])

    # ==================== Genome ====================

    def get_genome(self) -> np.ndarray:
        """
        Flatten all parameters into a new array.

        Per stage: weight matrix row-major (fan_in rows), then its bias.
        """
        parts = []
        for w, b in zip(self.weights, self.biases):
            parts.append(w.ravel())
            parts.append(b)
        return np.concatenate(parts)

    def set_genome(self, genome: Sequence[float]) -> None:
        """
        Install a flat genome positionally.

        Raises:
            LengthMismatch: If the genome length is not parameter_count.
                The network is left unmodified.
        """
        flat = np.asarray(genome, dtype=np.float64).reshape(-1)
        if flat.shape[0] != self._parameter_count:
            raise LengthMismatch(
                f"Genome has {flat.shape[0]} values, "
                f"network expects {self._parameter_count}"
            )

        weights = []
        biases = []
        idx = 0
        for fan_in, fan_out in self.config.stage_shapes():
            size = fan_in * fan_out
            weights.append(flat[idx:idx + size].reshape(fan_in, fan_out).copy())
            idx += size
            biases.append(flat[idx:idx + fan_out].copy())
            idx += fan_out

        self.weights = weights
        self.biases = biases

    def __repr__(self) -> str:
        sizes = " -> ".join(f"{w.shape[0]}x{w.shape[1]}" for w in self.weights)
        return f"ForagerNetwork({sizes}, params={self._parameter_count})"
