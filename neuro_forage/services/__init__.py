"""
neuro_forage/services/

Services that run an evolution.

Architecture:
- Controller: owns run state, spawns cohorts, ranks and breeds
- Runner: the tick driver; steps the world and drains deaths
- Queue: death notices, serialized onto the main tick
- Persistence: ranked genomes as plain text files

The world pushes deaths onto the queue while it steps.
The runner drains the queue into the controller after every tick.
The controller ends an epoch on its last death and starts the next.
"""

from .queue import DeathNotice, DeathQueue
from .persistence import GenomeStore, PersistenceConfig, MalformedPersistedLine
from .controller import (
    ControllerConfig,
    ControllerState,
    EpochOverflowError,
    EvolutionController,
    SpawnExhaustedError,
)
from .runner import RunnerConfig, SimulationRunner

__all__ = [
    "DeathNotice",
    "DeathQueue",
    "GenomeStore",
    "PersistenceConfig",
    "MalformedPersistedLine",
    "ControllerConfig",
    "ControllerState",
    "EpochOverflowError",
    "EvolutionController",
    "SpawnExhaustedError",
    "RunnerConfig",
    "SimulationRunner",
]
