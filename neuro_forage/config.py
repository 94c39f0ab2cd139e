"""
neuro_forage/config.py

One place to describe a whole run.

A run is a controller, a runner and a meadow. The network shape is not
configured directly: its vision input follows from the vision settings.

YAML layout (every key optional):

    controller:
      epochs: 10
      creatures_per_epoch: 20
    runner:
      time_scale: 2.0
    meadow:
      bounds: [-25, 25]
      vision:
        num_rays: 31
      metabolism:
        hunger_decay: 0.01
      plant_kinds:
        - {name: grass, nutrition: 5.0, life_expectancy: 30.0}
      temperature_speed: 0.01
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Type, TypeVar
import logging

import numpy as np
import yaml

from neuro_forage.core.agent import MetabolismConfig, MovementConfig
from neuro_forage.core.network import NetworkConfig, parameter_count
from neuro_forage.core.perception import VisionConfig
from neuro_forage.environments.meadow import MeadowConfig, PlantKind
from neuro_forage.services.controller import ControllerConfig
from neuro_forage.services.runner import RunnerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RunConfig:
    """Everything needed to start a run."""
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    meadow: MeadowConfig = field(default_factory=MeadowConfig)

    def network_config(self) -> NetworkConfig:
        return NetworkConfig(vision_input_size=self.meadow.vision.feature_size)

    def parameter_count(self) -> int:
        return parameter_count(self.network_config())

    def seed_world(self) -> None:
        """Seed the meadow from the controller seed unless it has its own."""
        if self.meadow.seed is None and self.controller.seed is not None:
            self.meadow.seed = derive_world_seed(self.controller.seed)


def derive_world_seed(seed: int) -> int:
    """A world seed whose stream is independent of the controller's."""
    child = np.random.SeedSequence(seed).spawn(1)[0]
    return int(child.generate_state(1)[0])


def _build(cls: Type[T], data: Dict[str, Any] | None, section: str) -> T:
    """Instantiate a config dataclass, rejecting keys it does not know."""
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")
    return cls(**data)


def config_from_dict(data: Dict[str, Any] | None) -> RunConfig:
    """Build a RunConfig from plain nested dictionaries."""
    data = dict(data or {})
    unknown = set(data) - {"controller", "runner", "meadow"}
    if unknown:
        raise ValueError(f"Unknown config sections: {sorted(unknown)}")

    meadow_data = dict(data.get("meadow") or {})
    nested = {
        "vision": _build(VisionConfig, meadow_data.pop("vision", None), "meadow.vision"),
        "metabolism": _build(
            MetabolismConfig, meadow_data.pop("metabolism", None), "meadow.metabolism"
        ),
        "movement": _build(
            MovementConfig, meadow_data.pop("movement", None), "meadow.movement"
        ),
    }
    if "plant_kinds" in meadow_data:
        nested["plant_kinds"] = [
            _build(PlantKind, kind, "meadow.plant_kinds")
            for kind in meadow_data.pop("plant_kinds")
        ]
    for kind in nested.get("plant_kinds", []):
        kind.ideal_temperature = tuple(float(v) for v in kind.ideal_temperature)
    for key in ("bounds", "pond_radius"):
        if key in meadow_data:
            meadow_data[key] = tuple(float(v) for v in meadow_data[key])
    meadow_data.update(nested)

    config = RunConfig(
        controller=_build(ControllerConfig, data.get("controller"), "controller"),
        runner=_build(RunnerConfig, data.get("runner"), "runner"),
        meadow=_build(MeadowConfig, meadow_data, "meadow"),
    )
    config.controller.validate()
    config.runner.validate()
    return config


def load_config(path: str | Path) -> RunConfig:
    """Load a run configuration from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    logger.info(f"Loaded run configuration from {path}")
    return config_from_dict(data)
