"""
Tests for services/runner.py, config.py and the command line entry point

These run whole (tiny) evolutions in the meadow.
"""

import numpy as np
import pytest

from neuro_forage.config import RunConfig, config_from_dict, derive_world_seed, load_config
from neuro_forage.core.agent import Forager, MetabolismConfig
from neuro_forage.core.network import NetworkConfig
from neuro_forage.core.perception import VisionConfig
from neuro_forage.environments.base import Simulation
from neuro_forage.environments.meadow import Meadow, MeadowConfig
from neuro_forage.evolution.fitness import CauseOfDeath
from neuro_forage.observations.visualize import FitnessPlotter
from neuro_forage.services.controller import (
    ControllerConfig,
    EvolutionController,
    run_controller,
)
from neuro_forage.services.queue import DeathNotice
from neuro_forage.services.runner import RunnerConfig, SimulationRunner


class RecordingWorld(Simulation):
    """Records every delta it is stepped by; kills one forager per step."""

    def __init__(self):
        self.deltas = []
        self.alive = []
        self._next = 0

    def find_spawn_position(self, placed):
        return np.zeros(2)

    def spawn_forager(self, position, genome=None):
        self.alive.append(f"f{self._next}")
        self._next += 1

    def clear_foragers(self):
        self.alive = []

    def step(self, delta_time, deaths):
        self.deltas.append(delta_time)
        if self.alive:
            fid = self.alive.pop(0)
            deaths.push(DeathNotice(fid, len(self.deltas), np.zeros(3), CauseOfDeath.OTHER))


class MetabolismWorld(Simulation):
    """One forager that only ages and decays; counts world steps."""

    def __init__(self, hunger, thirst):
        self.hunger = hunger
        self.thirst = thirst
        self.forager = None
        self.steps = 0

    def find_spawn_position(self, placed):
        return np.zeros(2)

    def spawn_forager(self, position, genome=None):
        self.forager = Forager(
            "solo",
            position,
            genome=genome,
            network_config=NetworkConfig(vision_input_size=7),
            rng=np.random.default_rng(42),
        )
        self.forager.state.hunger = self.hunger
        self.forager.state.thirst = self.thirst
        return self.forager

    def clear_foragers(self):
        pass

    def step(self, delta_time, deaths):
        self.steps += 1
        cause = self.forager.metabolize(delta_time)
        if cause is not None:
            deaths.push(DeathNotice(
                self.forager.id, self.forager.fitness, self.forager.genome(), cause
            ))


def small_run_config(tmp_path, **controller):
    settings = dict(
        epochs=2,
        creatures_per_epoch=3,
        save_path=str(tmp_path / "weights.csv"),
        load_path=str(tmp_path / "weights.csv"),
        seed=7,
    )
    settings.update(controller)
    return RunConfig(
        controller=ControllerConfig(**settings),
        runner=RunnerConfig(tick_delta=0.1, max_ticks=1000, log_interval=0),
        meadow=MeadowConfig(
            num_ponds=0,
            initial_plants=0,
            plant_likelihood=0.0,
            vision=VisionConfig(num_rays=3),
            metabolism=MetabolismConfig(hunger_decay=0.5, thirst_decay=0.25),
            seed=7,
        ),
    )


class TestSimulationRunner:
    """Tests for the tick driver."""

    def test_time_scale_repeats_steps(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(creatures_per_epoch=4, save_path=None), world
        )
        runner = SimulationRunner(world, controller, RunnerConfig(time_scale=2.0))
        controller.start()

        assert runner.tick(0.25) == 2
        assert world.deltas == [0.25, 0.25]
        assert runner.simulated_time == 0.5
        assert runner.ticks == 1

    def test_fractional_time_scale(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(creatures_per_epoch=4, save_path=None), world
        )
        runner = SimulationRunner(world, controller, RunnerConfig(time_scale=2.5))
        controller.start()

        runner.tick(0.25)
        assert world.deltas == [0.25, 0.25, 0.125]

        slow = SimulationRunner(world, controller, RunnerConfig(time_scale=0.5))
        assert slow.substeps(0.25) == [0.125]

    def test_no_steps_after_termination(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(epochs=1, creatures_per_epoch=1, save_path=None), world
        )
        runner = SimulationRunner(world, controller, RunnerConfig(time_scale=3.0))
        controller.start()

        runner.tick(0.1)
        assert controller.finished
        assert len(world.deltas) == 1

    @pytest.mark.parametrize("hunger, thirst", [(0.7, 0.3), (0.3, 0.7)])
    def test_time_scale_two_matches_two_ticks(self, hunger, thirst):
        """Default rates at the default tick: same age, levels and death step."""
        outcomes = []
        for time_scale in (2.0, 1.0):
            world = MetabolismWorld(hunger, thirst)
            controller = EvolutionController(
                ControllerConfig(epochs=1, creatures_per_epoch=1, save_path=None), world
            )
            runner = SimulationRunner(
                world, controller, RunnerConfig(tick_delta=0.02, time_scale=time_scale,
                                                log_interval=0)
            )
            runner.run()

            state = world.forager.state
            outcomes.append((
                state.age, state.hunger, state.thirst, state.cause_of_death,
                world.steps, controller.history[0].max_fitness,
            ))

        assert outcomes[0] == outcomes[1]

    def test_time_scale_two_matches_two_ticks_mid_run(self):
        states = []
        for time_scale, ticks in ((2.0, 500), (1.0, 1000)):
            world = MetabolismWorld(0.7, 0.3)
            controller = EvolutionController(
                ControllerConfig(epochs=1, creatures_per_epoch=1, save_path=None), world
            )
            runner = SimulationRunner(
                world, controller, RunnerConfig(tick_delta=0.02, time_scale=time_scale)
            )
            controller.start()
            for _ in range(ticks):
                runner.tick()
            s = world.forager.state
            states.append((s.age, s.hunger, s.thirst, runner.simulated_time))

        assert states[0] == states[1]

    def test_deaths_delivered_after_step(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(creatures_per_epoch=2, save_path=None), world
        )
        runner = SimulationRunner(world, controller, RunnerConfig(log_interval=0))
        controller.start()

        assert runner.tick() == 1
        assert controller.deaths_this_epoch == 1
        assert len(runner.deaths) == 0

    def test_run_to_completion_with_fake_world(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(epochs=3, creatures_per_epoch=2, save_path=None), world
        )
        stats = SimulationRunner(world, controller, RunnerConfig(log_interval=0)).run()

        assert stats["completed"]
        assert stats["total_epochs"] == 3
        assert stats["total_ticks"] == 6
        assert stats["best_genome_length"] == 3
        assert len(stats["history"]) == 3

    def test_max_ticks_stops_early(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(epochs=5, creatures_per_epoch=2, save_path=None), world
        )
        runner = SimulationRunner(world, controller, RunnerConfig(max_ticks=3, log_interval=0))
        stats = runner.run()

        assert not stats["completed"]
        assert stats["total_ticks"] == 3
        assert stats["total_epochs"] == 1

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            RunnerConfig(tick_delta=0.0).validate()
        with pytest.raises(ValueError):
            RunnerConfig(time_scale=0.0).validate()

    def test_meadow_run(self, tmp_path):
        config = small_run_config(tmp_path)
        world = Meadow(config.meadow, config.network_config())
        controller = EvolutionController(
            config.controller, world, genome_length=config.parameter_count()
        )
        stats = SimulationRunner(world, controller, config.runner).run()

        assert stats["completed"]
        assert stats["total_epochs"] == 2
        assert stats["best_genome_length"] == config.parameter_count()
        for summary in controller.history:
            assert summary.population == 3
            assert summary.deaths_by_cause["hunger"] == 3
            assert summary.max_fitness == pytest.approx(2.0, abs=0.11)

        saved = controller.store.load_generation(expected_length=config.parameter_count())
        assert len(saved) == 3

    def test_manual_forager_does_not_hold_up_epochs(self, tmp_path):
        config = small_run_config(tmp_path)
        world = Meadow(config.meadow, config.network_config())
        manual = world.add_manual_forager(np.zeros(2))
        controller = EvolutionController(
            config.controller, world, genome_length=config.parameter_count()
        )
        stats = SimulationRunner(world, controller, config.runner).run()

        assert stats["completed"]
        assert manual.state.alive
        assert manual.id in world.foragers

    def test_seeded_second_run(self, tmp_path):
        """A saved generation seeds the next run."""
        config = small_run_config(tmp_path, epochs=1)
        world = Meadow(config.meadow, config.network_config())
        first = EvolutionController(
            config.controller, world, genome_length=config.parameter_count()
        )
        SimulationRunner(world, first, config.runner).run()
        saved = first.store.load_generation()

        config.controller.load_first_epoch_from_save = True
        world = Meadow(config.meadow, config.network_config())
        second = EvolutionController(
            config.controller, world, genome_length=config.parameter_count()
        )
        second.start()

        assert len(second.seed_pool) == 3
        for forager in world.foragers.values():
            assert any(np.array_equal(forager.genome(), g) for g in saved)


class TestConfig:
    """Tests for run configuration loading."""

    def test_defaults(self):
        config = config_from_dict({})
        assert config.controller.epochs == 10
        assert config.meadow.vision.num_rays == 155
        assert config.parameter_count() == 72298

    def test_nested_sections(self):
        config = config_from_dict({
            "controller": {"epochs": 3, "selection": "roulette"},
            "runner": {"time_scale": 4.0},
            "meadow": {
                "bounds": [-10, 10],
                "vision": {"num_rays": 5},
                "metabolism": {"hunger_decay": 0.2},
                "plant_kinds": [{"name": "grass", "nutrition": 2.0, "life_expectancy": 5.0,
                                 "ideal_temperature": [0, 0.5]}],
                "temperature_speed": 0.1,
            },
        })
        assert config.controller.epochs == 3
        assert config.controller.selection == "roulette"
        assert config.runner.time_scale == 4.0
        assert config.meadow.bounds == (-10.0, 10.0)
        assert config.meadow.vision.feature_size == 35
        assert config.network_config().vision_input_size == 35
        assert config.meadow.metabolism.hunger_decay == 0.2
        assert config.meadow.plant_kinds[0].nutrition == 2.0
        assert config.meadow.plant_kinds[0].ideal_temperature == (0.0, 0.5)
        assert config.meadow.temperature_speed == 0.1

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="controller"):
            config_from_dict({"controller": {"epoch": 3}})
        with pytest.raises(ValueError, match="meadow.vision"):
            config_from_dict({"meadow": {"vision": {"rays": 3}}})
        with pytest.raises(ValueError):
            config_from_dict({"world": {}})

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            config_from_dict({"controller": {"creatures_per_epoch": 0}})

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            "controller:\n"
            "  epochs: 4\n"
            "  save_path: null\n"
            "meadow:\n"
            "  vision:\n"
            "    num_rays: 9\n"
        )
        config = load_config(path)
        assert config.controller.epochs == 4
        assert config.controller.save_path is None
        assert config.meadow.vision.num_rays == 9

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert isinstance(load_config(path), RunConfig)

    def test_world_seed_follows_controller_seed(self):
        config = config_from_dict({"controller": {"seed": 11}})
        config.seed_world()
        assert config.meadow.seed == derive_world_seed(11)
        assert derive_world_seed(11) != derive_world_seed(12)

    def test_explicit_world_seed_kept(self):
        config = config_from_dict({"controller": {"seed": 11}, "meadow": {"seed": 3}})
        config.seed_world()
        assert config.meadow.seed == 3

    def test_unseeded_run_stays_unseeded(self):
        config = config_from_dict({"controller": {"seed": None}})
        config.seed_world()
        assert config.meadow.seed is None


class TestCommandLine:
    """Tests for the neuro-forage entry point."""

    def test_run_from_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            "controller:\n"
            "  epochs: 1\n"
            "  creatures_per_epoch: 2\n"
            "runner:\n"
            "  tick_delta: 0.1\n"
            "  log_interval: 0\n"
            "meadow:\n"
            "  num_ponds: 0\n"
            "  initial_plants: 0\n"
            "  plant_likelihood: 0.0\n"
            "  seed: 3\n"
            "  vision:\n"
            "    num_rays: 3\n"
            "  metabolism:\n"
            "    hunger_decay: 1.0\n"
        )
        save_path = tmp_path / "out.csv"

        stats = run_controller([
            "--config", str(path),
            "--save-path", str(save_path),
            "--time-scale", "2.0",
            "--max-ticks", "100",
            "--log-level", "WARNING",
        ])

        assert stats["completed"]
        assert stats["total_epochs"] == 1
        assert len(save_path.read_text().splitlines()) == 2

    def _unseeded_meadow_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            "controller:\n"
            "  epochs: 2\n"
            "  creatures_per_epoch: 3\n"
            "runner:\n"
            "  tick_delta: 0.1\n"
            "  log_interval: 0\n"
            "meadow:\n"
            "  num_ponds: 1\n"
            "  initial_plants: 4\n"
            "  vision:\n"
            "    num_rays: 3\n"
            "  metabolism:\n"
            "    hunger_decay: 1.0\n"
        )
        return path

    def _save_with_seed(self, config_path, save_path, seed):
        run_controller([
            "--config", str(config_path),
            "--save-path", str(save_path),
            "--seed", str(seed),
            "--max-ticks", "1000",
            "--log-level", "WARNING",
        ])
        return save_path.read_text()

    def test_same_seed_saves_identical_generations(self, tmp_path):
        """--seed alone reproduces the whole run, meadow included."""
        config_path = self._unseeded_meadow_yaml(tmp_path)

        first = self._save_with_seed(config_path, tmp_path / "a.csv", 7)
        second = self._save_with_seed(config_path, tmp_path / "b.csv", 7)
        other = self._save_with_seed(config_path, tmp_path / "c.csv", 8)

        assert len(first.splitlines()) == 3
        assert first == second
        assert first != other


class TestFitnessPlotter:
    """Tests for fitness curve rendering."""

    def _history(self, tmp_path):
        world = RecordingWorld()
        controller = EvolutionController(
            ControllerConfig(epochs=2, creatures_per_epoch=2, save_path=None), world
        )
        SimulationRunner(world, controller, RunnerConfig(log_interval=0)).run()
        return controller.history

    def test_series(self, tmp_path):
        plotter = FitnessPlotter(self._history(tmp_path))
        data = plotter.series()
        np.testing.assert_array_equal(data["epoch"], [1, 2])
        np.testing.assert_array_equal(data["max"], [2.0, 4.0])
        np.testing.assert_array_equal(data["min"], [1.0, 3.0])

    def test_cause_fractions(self, tmp_path):
        fractions = FitnessPlotter(self._history(tmp_path)).cause_fractions()
        assert fractions["other"] == [1.0, 1.0]
        assert fractions["hunger"] == [0.0, 0.0]

    def test_save(self, tmp_path):
        pytest.importorskip("matplotlib")
        path = tmp_path / "fitness.png"
        FitnessPlotter(self._history(tmp_path)).save(str(path))
        assert path.is_file()
