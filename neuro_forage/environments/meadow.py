"""
environments/meadow.py

A flat 2D meadow for foragers: ponds to drink from, plants to eat.

A simple world for simple beginnings.
Nothing here is physically accurate; it only has to produce vision,
hunger, thirst and, eventually, an age at death.

Features:
- Square, wrap-around space
- Circular ponds (drinking while inside)
- Plants that sprout on a timer and wither with age
- An optional temperature cycle; plants age faster outside their ideal range
- Raycast vision against ponds, plants and other foragers
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import numpy as np

from neuro_forage.core.agent import Forager, MetabolismConfig, MovementConfig
from neuro_forage.core.network import NetworkConfig
from neuro_forage.core.perception import VisionConfig, encode_vision
from neuro_forage.services.queue import DeathNotice, DeathQueue
from .base import Simulation

logger = logging.getLogger(__name__)


@dataclass
class PlantKind:
    name: str                       # Vision category
    nutrition: float
    life_expectancy: float          # Seconds before it withers
    ideal_temperature: Tuple[float, float] = (0.0, 1.0)
    outside_mortality: float = 3.0  # Aging rate outside the ideal range

    def aging_rate(self, temperature: float) -> float:
        low, high = self.ideal_temperature
        if low <= temperature <= high:
            return 1.0
        return self.outside_mortality


@dataclass
class Plant:
    position: np.ndarray
    kind: PlantKind
    age: float = 0.0


@dataclass
class Pond:
    center: np.ndarray
    radius: float

    def contains(self, point: np.ndarray) -> bool:
        return float(np.linalg.norm(point - self.center)) <= self.radius


def default_plant_kinds() -> List[PlantKind]:
    return [
        PlantKind("grass", nutrition=5.0, life_expectancy=30.0),
        PlantKind("berry", nutrition=8.0, life_expectancy=20.0),
    ]


@dataclass
class MeadowConfig:
    """Configuration for the meadow environment."""
    bounds: Tuple[float, float] = (-25.0, 25.0)     # Square world
    wrap_edges: bool = True                         # Toroidal topology

    # Bodies
    forager_radius: float = 0.5
    plant_radius: float = 0.3

    # Ponds
    num_ponds: int = 3
    pond_radius: Tuple[float, float] = (2.0, 5.0)

    # Spawning foragers
    spawn_min_distance: float = 2.0
    spawn_attempts: int = 100

    # Plants
    initial_plants: int = 10
    plant_interval: float = 2.0                     # Seconds between spawn rounds
    plants_per_interval: int = 2
    plant_likelihood: float = 0.3                   # Chance each attempt succeeds
    plant_min_distance: float = 2.0
    plant_kinds: List[PlantKind] = field(default_factory=default_plant_kinds)

    # Temperature cycles through [0, 1); speed 0 holds it still
    temperature: float = 0.0
    temperature_speed: float = 0.0

    vision: VisionConfig = field(default_factory=VisionConfig)
    metabolism: MetabolismConfig = field(default_factory=MetabolismConfig)
    movement: MovementConfig = field(default_factory=MovementConfig)

    seed: Optional[int] = None


class Meadow(Simulation):
    """
    2D continuous world implementing the population seams.

    Step order per tick:
    1. Perceive (all foragers see the same frozen world)
    2. Think
    3. Act (move, wrap)
    4. Interact (drink, eat)
    5. Grow plants
    6. Metabolize and collect deaths
    """

    def __init__(
        self,
        config: Optional[MeadowConfig] = None,
        network_config: Optional[NetworkConfig] = None,
    ):
        self.config = config or MeadowConfig()
        self.network_config = network_config or NetworkConfig(
            vision_input_size=self.config.vision.feature_size
        )
        if self.network_config.vision_input_size != self.config.vision.feature_size:
            raise ValueError(
                f"Network expects {self.network_config.vision_input_size} vision "
                f"inputs but vision produces {self.config.vision.feature_size}"
            )

        self.rng = np.random.default_rng(self.config.seed)
        self.foragers: Dict[str, Forager] = {}
        self.plants: List[Plant] = []
        self.ponds: List[Pond] = self._make_ponds()
        self.time = 0.0
        self.temperature = self.config.temperature
        self._plant_timer = 0.0
        self._next_id = 0

        for _ in range(self.config.initial_plants):
            self._try_plant()

    # ==================== Population seams ====================

    def find_spawn_position(self, placed: List[np.ndarray]) -> Optional[np.ndarray]:
        """Random dry spot at least spawn_min_distance from the others."""
        for _ in range(self.config.spawn_attempts):
            point = self._random_point()
            if any(p.contains(point) for p in self.ponds):
                continue
            if all(
                np.linalg.norm(point - other) >= self.config.spawn_min_distance
                for other in placed
            ):
                return point
        logger.debug(f"No spawn position after {self.config.spawn_attempts} attempts")
        return None

    def spawn_forager(
        self,
        position: np.ndarray,
        genome: Optional[np.ndarray] = None,
        manual: bool = False,
    ) -> Forager:
        forager_id = f"forager_{self._next_id}"
        self._next_id += 1

        forager = Forager(
            forager_id,
            position=position,
            genome=genome,
            heading=float(self.rng.uniform(0.0, 2 * np.pi)),
            metabolism=self.config.metabolism,
            movement=self.config.movement,
            network_config=self.network_config,
            rng=self.rng,
            manual=manual,
        )
        self.foragers[forager_id] = forager
        return forager

    def add_manual_forager(self, position: Optional[np.ndarray] = None) -> Forager:
        """A forager steered from outside; not part of any epoch."""
        if position is None:
            position = self._random_point()
        return self.spawn_forager(position, manual=True)

    def clear_foragers(self) -> None:
        self.foragers = {
            fid: f for fid, f in self.foragers.items() if f.manual
        }

    # ==================== Simulation ====================

    def step(self, delta_time: float, deaths: DeathQueue) -> None:
        self.time += delta_time

        # Phase 1: Perception
        visions = {fid: self.sense(f) for fid, f in self.foragers.items()}

        # Phase 2-3: Decide and move
        for fid, forager in self.foragers.items():
            forager.think(visions[fid])
            forager.act(delta_time)
            self._apply_bounds(forager)

        # Phase 4: Drink and eat
        for forager in self.foragers.values():
            forager.state.in_water = any(
                p.contains(forager.state.position) for p in self.ponds
            )
            self._feed(forager)

        # Phase 5: Plants
        self._grow_plants(delta_time)

        # Phase 6: Metabolism and death
        for fid in list(self.foragers):
            forager = self.foragers[fid]
            cause = forager.metabolize(delta_time)
            if cause is None:
                continue
            deaths.push(DeathNotice(
                forager_id=fid,
                fitness=forager.fitness,
                genome=forager.genome(),
                cause=cause,
            ))
            del self.foragers[fid]

    # ==================== Vision ====================

    def sense(self, forager: Forager) -> np.ndarray:
        """Cast the vision fan and encode the hits."""
        distances, categories = self.cast_rays(forager)
        return encode_vision(distances, categories, self.config.vision)

    def cast_rays(self, forager: Forager) -> Tuple[np.ndarray, List[Optional[str]]]:
        """
        Nearest hit per ray against every circle in the world.

        Returns:
            (distances, categories); a miss is (max_distance, None)
        """
        vision = self.config.vision
        angles = vision.ray_angles(forager.state.heading)
        directions = np.stack([np.cos(angles), np.sin(angles)], axis=1)

        centers, radii, names = self._obstacles(exclude=forager.id)
        distances = np.full(len(angles), vision.max_distance)
        categories: List[Optional[str]] = [None] * len(angles)
        if len(names) == 0:
            return distances, categories

        offsets = centers - forager.state.position                 # (N, 2)
        along = directions @ offsets.T                              # (R, N)
        off_sq = np.sum(offsets ** 2, axis=1)[None, :] - along ** 2
        inside = np.sum(offsets ** 2, axis=1) <= radii ** 2         # (N,)

        reach = radii[None, :] ** 2 - off_sq
        hits = reach >= 0.0
        entry = along - np.sqrt(np.where(hits, reach, 0.0))
        entry = np.where(inside[None, :], 0.0, entry)
        hits &= entry >= 0.0
        hits &= entry <= vision.max_distance

        entry = np.where(hits, entry, np.inf)
        nearest = np.argmin(entry, axis=1)
        for i, j in enumerate(nearest):
            if np.isfinite(entry[i, j]):
                distances[i] = entry[i, j]
                categories[i] = names[j]
        return distances, categories

    def _obstacles(self, exclude: str) -> Tuple[np.ndarray, np.ndarray, List[str]]:
        centers = []
        radii = []
        names = []
        for pond in self.ponds:
            centers.append(pond.center)
            radii.append(pond.radius)
            names.append("water")
        for plant in self.plants:
            centers.append(plant.position)
            radii.append(self.config.plant_radius)
            names.append(plant.kind.name)
        for fid, other in self.foragers.items():
            if fid == exclude:
                continue
            centers.append(other.state.position)
            radii.append(self.config.forager_radius)
            names.append("forager")

        if not names:
            return np.zeros((0, 2)), np.zeros(0), names
        return np.array(centers), np.array(radii), names

    # ==================== Internals ====================

    def _random_point(self) -> np.ndarray:
        low, high = self.config.bounds
        return self.rng.uniform(low, high, size=2)

    def _make_ponds(self) -> List[Pond]:
        low, high = self.config.pond_radius
        return [
            Pond(center=self._random_point(), radius=float(self.rng.uniform(low, high)))
            for _ in range(self.config.num_ponds)
        ]

    def _apply_bounds(self, forager: Forager) -> None:
        low, high = self.config.bounds
        if self.config.wrap_edges:
            span = high - low
            forager.state.position = (forager.state.position - low) % span + low
        else:
            forager.state.position = np.clip(forager.state.position, low, high)

    def _feed(self, forager: Forager) -> None:
        reach = self.config.forager_radius + self.config.plant_radius
        for i, plant in enumerate(self.plants):
            if np.linalg.norm(plant.position - forager.state.position) <= reach:
                forager.eat(plant.kind.nutrition)
                del self.plants[i]
                return

    def _advance_temperature(self, delta_time: float) -> None:
        self.temperature += self.config.temperature_speed * delta_time
        if self.temperature > 1.0:
            self.temperature -= 1.0

    def _grow_plants(self, delta_time: float) -> None:
        self._advance_temperature(delta_time)
        for plant in self.plants:
            plant.age += delta_time * plant.kind.aging_rate(self.temperature)
        self.plants = [p for p in self.plants if p.age < p.kind.life_expectancy]

        self._plant_timer += delta_time
        while self._plant_timer >= self.config.plant_interval:
            self._plant_timer -= self.config.plant_interval
            for _ in range(self.config.plants_per_interval):
                self._try_plant()

    def _try_plant(self) -> Optional[Plant]:
        if self.rng.random() > self.config.plant_likelihood:
            return None
        point = self._random_point()
        if any(p.contains(point) for p in self.ponds):
            return None
        for plant in self.plants:
            if np.linalg.norm(plant.position - point) < self.config.plant_min_distance:
                return None

        kinds = self.config.plant_kinds
        plant = Plant(position=point, kind=kinds[self.rng.integers(len(kinds))])
        self.plants.append(plant)
        return plant

    def __repr__(self) -> str:
        return (
            f"Meadow(foragers={len(self.foragers)}, "
            f"plants={len(self.plants)}, "
            f"ponds={len(self.ponds)}, "
            f"time={self.time:.1f})"
        )
