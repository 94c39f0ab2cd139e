"""
Tests for services/persistence.py and services/queue.py
"""

import numpy as np
import pytest

from neuro_forage.evolution.fitness import CauseOfDeath
from neuro_forage.services.persistence import (
    GenomeStore,
    MalformedPersistedLine,
    PersistenceConfig,
    format_genome,
    parse_genome,
)
from neuro_forage.services.queue import DeathNotice, DeathQueue


@pytest.fixture
def store(tmp_path):
    path = str(tmp_path / "weights.csv")
    return GenomeStore(PersistenceConfig(save_path=path, load_path=path))


class TestLineFormat:
    """Tests for the one-genome-per-line text format."""

    def test_format(self):
        assert format_genome([0.5, -1.25, 3.0]) == "0.5,-1.25,3.0"

    def test_parse(self):
        np.testing.assert_array_equal(parse_genome("0.5,-1.25,3\n"), [0.5, -1.25, 3.0])

    def test_exact_round_trip(self):
        values = np.random.default_rng(42).uniform(-3, 3, 200)
        np.testing.assert_array_equal(parse_genome(format_genome(values)), values)

    def test_wrong_count(self):
        with pytest.raises(ValueError, match="expected 4 values"):
            parse_genome("1.0,2.0,3.0", expected_length=4)

    def test_not_a_number(self):
        with pytest.raises(ValueError, match="not a number"):
            parse_genome("1.0,abc,3.0")

    def test_blank_line(self):
        with pytest.raises(ValueError):
            parse_genome("\n")

    def test_non_finite(self):
        with pytest.raises(ValueError, match="non-finite"):
            parse_genome("1.0,nan,3.0")
        with pytest.raises(ValueError, match="non-finite"):
            parse_genome("inf,0.0")


class TestGenomeStore:
    """Tests for saving and loading ranked generations."""

    def test_save_then_load(self, store):
        rng = np.random.default_rng(42)
        genomes = [rng.uniform(-3, 3, 10) for _ in range(4)]

        store.save_generation(genomes)
        loaded = store.load_generation(expected_length=10)

        assert len(loaded) == 4
        for a, b in zip(genomes, loaded):
            np.testing.assert_array_equal(a, b)

    def test_order_preserved(self, store):
        genomes = [np.full(3, 7.5), np.full(3, 3.0), np.full(3, 1.2)]
        path = store.save_generation(genomes)

        lines = path.read_text().splitlines()
        assert lines == ["7.5,7.5,7.5", "3.0,3.0,3.0", "1.2,1.2,1.2"]

    def test_save_overwrites(self, store):
        store.save_generation([np.zeros(2)] * 3)
        store.save_generation([np.ones(2)])
        assert len(store.load_generation()) == 1

    def test_save_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "runs" / "a" / "weights.csv"
        store = GenomeStore(PersistenceConfig(save_path=str(path)))
        store.save_generation([np.zeros(2)])
        assert path.is_file()

    def test_history_snapshots(self, tmp_path):
        path = tmp_path / "weights.csv"
        store = GenomeStore(PersistenceConfig(save_path=str(path), save_history=True))

        store.save_generation([np.zeros(2)], epoch=0)
        store.save_generation([np.ones(2)], epoch=1)

        assert (tmp_path / "weights.epoch0000.csv").read_text() == "0.0,0.0\n"
        assert (tmp_path / "weights.epoch0001.csv").read_text() == "1.0,1.0\n"
        assert path.read_text() == "1.0,1.0\n"

    def test_no_history_by_default(self, tmp_path):
        store = GenomeStore(PersistenceConfig(save_path=str(tmp_path / "w.csv")))
        store.save_generation([np.zeros(2)], epoch=0)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["w.csv"]

    def test_missing_file(self, store):
        assert not store.exists()
        with pytest.raises(FileNotFoundError):
            store.load_generation()

    def test_malformed_line_aborts_load(self, store, tmp_path):
        path = tmp_path / "weights.csv"
        path.write_text("1.0,2.0,3.0\n1.0,2.0\n1.0,2.0,3.0\n")

        with pytest.raises(MalformedPersistedLine) as excinfo:
            store.load_generation(expected_length=3)

        assert excinfo.value.line_number == 2
        assert excinfo.value.path == str(path)
        assert "weights.csv:2" in str(excinfo.value)

    def test_trailing_blank_line_is_malformed(self, store, tmp_path):
        (tmp_path / "weights.csv").write_text("1.0,2.0\n\n")
        with pytest.raises(MalformedPersistedLine) as excinfo:
            store.load_generation(expected_length=2)
        assert excinfo.value.line_number == 2

    def test_lines_must_share_first_length(self, store, tmp_path):
        """Without an expected length, the first line sets it."""
        (tmp_path / "weights.csv").write_text("1.0,2.0,3.0\n1.0,2.0,3.0\n1.0,2.0\n")

        with pytest.raises(MalformedPersistedLine) as excinfo:
            store.load_generation()

        assert excinfo.value.line_number == 3
        assert "expected 3 values" in str(excinfo.value)

    def test_uniform_lines_without_expected_length(self, store, tmp_path):
        (tmp_path / "weights.csv").write_text("1.0,2.0\n3.0,4.0\n")
        assert [len(g) for g in store.load_generation()] == [2, 2]

    def test_malformed_is_value_error(self):
        assert issubclass(MalformedPersistedLine, ValueError)

    def test_snapshot_path(self):
        config = PersistenceConfig(save_path="out/SavedWeights.csv")
        assert str(config.snapshot_path(3)) == "out/SavedWeights.epoch0003.csv"


class TestDeathQueue:
    """Tests for the death notice queue."""

    def _notice(self, name, fitness=1.0):
        return DeathNotice(name, fitness, np.zeros(2), CauseOfDeath.HUNGER)

    def test_fifo(self):
        queue = DeathQueue()
        queue.push(self._notice("a"))
        queue.push(self._notice("b"))
        assert len(queue) == 2
        assert queue.pop().forager_id == "a"
        assert queue.pop().forager_id == "b"
        assert queue.pop() is None

    def test_drain_in_order(self):
        queue = DeathQueue()
        for name in "abc":
            queue.push(self._notice(name))

        seen = []
        assert queue.drain(lambda n: seen.append(n.forager_id)) == 3
        assert seen == ["a", "b", "c"]
        assert len(queue) == 0

    def test_drain_delivers_notices_pushed_by_handler(self):
        queue = DeathQueue()
        queue.push(self._notice("a"))
        seen = []

        def handler(notice):
            seen.append(notice.forager_id)
            if notice.forager_id == "a":
                queue.push(self._notice("b"))

        assert queue.drain(handler) == 2
        assert seen == ["a", "b"]

    def test_clear(self):
        queue = DeathQueue()
        queue.push(self._notice("a"))
        dropped = queue.clear()
        assert [n.forager_id for n in dropped] == ["a"]
        assert len(queue) == 0

    def test_notice_to_dict(self):
        d = self._notice("x", 2.5).to_dict()
        assert d["forager_id"] == "x"
        assert d["fitness"] == 2.5
        assert d["cause"] == "hunger"
