"""
core/agent.py

A forager: a body with hunger and thirst, and a small network for a brain.

It looks, it decides, it moves, it gets hungrier.
When hunger or thirst runs out, it dies, and its age is its fitness.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import numpy as np

from neuro_forage.evolution.fitness import CauseOfDeath
from .network import ForagerNetwork, NetworkConfig


@dataclass
class ForagerState:
    """
    What a forager IS at this moment.
    """
    position: np.ndarray          # (x, y) in world units
    heading: float = 0.0          # Radians, 0 = +x
    hunger: float = 1.0           # 1 = sated, 0 = starved
    thirst: float = 1.0           # 1 = quenched, 0 = dehydrated
    age: float = 0.0              # Seconds lived (scaled time)
    in_water: bool = False
    alive: bool = True
    cause_of_death: Optional[CauseOfDeath] = None

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)


@dataclass
class MetabolismConfig:
    """Rates are per second of simulated time."""
    hunger_decay: float = 0.01
    thirst_decay: float = 0.01
    drink_recovery: float = 0.1       # Thirst regained per second in water
    nutrition_scale: float = 0.1      # Hunger regained per nutrition point


@dataclass
class MovementConfig:
    move_speed: float = 5.0
    backwards_multiplier: float = 0.3
    turn_speed: float = 120.0         # Degrees per second at full turn


class Forager:
    """
    A single evolving agent.

    The network is the only thing evolution touches. Everything else
    (hunger, thirst, position) starts fresh every generation.

    A manually controlled forager ignores its network, never starves and
    never reports a death: it lives outside the evolving population.
    """

    def __init__(
        self,
        forager_id: str,
        position: Sequence[float],
        network: Optional[ForagerNetwork] = None,
        genome: Optional[np.ndarray] = None,
        heading: float = 0.0,
        metabolism: Optional[MetabolismConfig] = None,
        movement: Optional[MovementConfig] = None,
        network_config: Optional[NetworkConfig] = None,
        rng: Optional[np.random.Generator] = None,
        manual: bool = False,
    ):
        self.id = forager_id
        self.network = network or ForagerNetwork(network_config, rng=rng)
        if genome is not None:
            self.network.set_genome(genome)

        self.metabolism = metabolism or MetabolismConfig()
        self.movement = movement or MovementConfig()
        self.manual = manual
        self.manual_action: Tuple[float, float] = (0.0, 0.0)

        self.state = ForagerState(position=position, heading=heading)
        self.last_action: Tuple[float, float] = (0.0, 0.0)

    # ==================== Core Loop ====================

    def internal_features(self) -> np.ndarray:
        """(hunger, thirst), each in [0, 1]."""
        return np.array([self.state.hunger, self.state.thirst])

    def think(self, vision: np.ndarray) -> Tuple[float, float]:
        """Choose an action from what is seen and felt."""
        if self.manual:
            action = self.manual_action
        else:
            action = self.network.forward(vision, self.internal_features())
        turn = float(np.clip(action[0], -1.0, 1.0))
        forward = float(np.clip(action[1], -1.0, 1.0))
        self.last_action = (turn, forward)
        return self.last_action

    def act(self, delta_time: float) -> np.ndarray:
        """
        Turn, then move along the new heading.

        Returns the displacement. Wrapping is the world's business.
        """
        turn, forward = self.last_action
        self.state.heading += np.radians(turn * self.movement.turn_speed * delta_time)

        speed = forward * self.movement.move_speed
        if forward < 0:
            speed *= self.movement.backwards_multiplier

        step = speed * delta_time * np.array(
            [np.cos(self.state.heading), np.sin(self.state.heading)]
        )
        self.state.position = self.state.position + step
        return step

    def metabolize(self, delta_time: float) -> Optional[CauseOfDeath]:
        """
        Age and decay for one tick.

        Returns the cause if this tick killed the forager, else None.
        """
        if not self.state.alive:
            return None

        m = self.metabolism
        self.state.age += delta_time
        self.state.hunger -= m.hunger_decay * delta_time
        self.state.thirst -= m.thirst_decay * delta_time
        if self.state.in_water:
            self.state.thirst += m.drink_recovery * delta_time

        self.state.hunger = float(np.clip(self.state.hunger, 0.0, 1.0))
        self.state.thirst = float(np.clip(self.state.thirst, 0.0, 1.0))

        if self.manual:
            return None

        cause = None
        if self.state.hunger <= 0.0:
            cause = CauseOfDeath.HUNGER
        elif self.state.thirst <= 0.0:
            cause = CauseOfDeath.THIRST

        if cause is not None:
            self.state.alive = False
            self.state.cause_of_death = cause
        return cause

    # ==================== Interactions ====================

    def eat(self, nutrition: float) -> None:
        # Eating restores hunger only; age is untouched.
        gain = nutrition * self.metabolism.nutrition_scale
        self.state.hunger = float(np.clip(self.state.hunger + gain, 0.0, 1.0))

    def drink(self, amount: float) -> None:
        self.state.thirst = float(np.clip(self.state.thirst + amount, 0.0, 1.0))

    # ==================== Utilities ====================

    @property
    def fitness(self) -> float:
        return self.state.age

    def genome(self) -> np.ndarray:
        return self.network.get_genome()

    def __repr__(self) -> str:
        return (
            f"Forager(id={self.id}, "
            f"pos=[{self.state.position[0]:.2f}, {self.state.position[1]:.2f}], "
            f"hunger={self.state.hunger:.2f}, thirst={self.state.thirst:.2f}, "
            f"age={self.state.age:.2f})"
        )
