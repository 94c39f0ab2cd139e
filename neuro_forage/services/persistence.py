"""
neuro_forage/services/persistence.py

Genome persistence for evolution runs.

Each epoch the ranked genomes are written best to worst, one genome per
line, values as comma-separated decimal text. The same file can seed
generation zero of a later run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)


class MalformedPersistedLine(ValueError):
    """A stored genome line could not be parsed into a full genome."""

    def __init__(self, path: str | Path, line_number: int, reason: str):
        self.path = str(path)
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"{self.path}:{line_number}: {reason}")


@dataclass
class PersistenceConfig:
    """Where genomes are written and read."""

    save_path: str = "SavedWeights.csv"
    load_path: str = "SavedWeights.csv"

    # Also keep one snapshot per epoch next to save_path
    save_history: bool = False

    def snapshot_path(self, epoch: int) -> Path:
        """Per-epoch file: SavedWeights.csv -> SavedWeights.epoch0003.csv"""
        path = Path(self.save_path)
        return path.with_name(f"{path.stem}.epoch{epoch:04d}{path.suffix}")


def format_genome(genome: Sequence[float]) -> str:
    # repr gives the shortest text that parses back to the same float
    return ",".join(repr(float(v)) for v in genome)


def parse_genome(line: str, expected_length: int | None = None) -> np.ndarray:
    """
    Parse one persisted line.

    Raises ValueError with a short reason; the caller adds the location.
    """
    tokens = line.strip().split(",")
    if expected_length is not None and len(tokens) != expected_length:
        raise ValueError(f"expected {expected_length} values, found {len(tokens)}")

    values = np.empty(len(tokens))
    for i, token in enumerate(tokens):
        try:
            values[i] = float(token)
        except ValueError:
            raise ValueError(f"token {i + 1} is not a number: {token!r}") from None
    if not np.all(np.isfinite(values)):
        raise ValueError("non-finite value")
    return values


class GenomeStore:
    """
    Reads and writes ranked generations as plain text.

    No schema versioning: a file is only as valid as its line lengths.
    """

    def __init__(self, config: PersistenceConfig | None = None):
        self.config = config or PersistenceConfig()

    def save_generation(
        self,
        genomes: Sequence[Sequence[float]],
        epoch: int | None = None,
    ) -> Path:
        """
        Write genomes, already ordered best to worst.

        Args:
            genomes: Ranked genomes
            epoch: Epoch index, used for the history snapshot

        Returns:
            Path of the main save file
        """
        text = "".join(format_genome(g) + "\n" for g in genomes)

        path = Path(self.config.save_path)
        self._write(path, text)

        if self.config.save_history and epoch is not None:
            self._write(self.config.snapshot_path(epoch), text)

        logger.info(f"Saved {len(genomes)} genomes to {path}")
        return path

    def load_generation(
        self,
        path: str | Path | None = None,
        expected_length: int | None = None,
    ) -> list[np.ndarray]:
        """
        Load a ranked generation.

        Args:
            path: File to read (default: config.load_path)
            expected_length: Required values per line (network parameter count);
                when None, every line must match the first line

        Raises:
            FileNotFoundError: If the file does not exist
            MalformedPersistedLine: On the first bad line; nothing is returned
        """
        path = Path(path or self.config.load_path)
        genomes = []
        with open(path) as f:
            for line_number, line in enumerate(f, start=1):
                try:
                    genome = parse_genome(line, expected_length)
                except ValueError as e:
                    raise MalformedPersistedLine(path, line_number, str(e)) from None
                if expected_length is None:
                    expected_length = len(genome)
                genomes.append(genome)

        logger.info(f"Loaded {len(genomes)} genomes from {path}")
        return genomes

    def exists(self, path: str | Path | None = None) -> bool:
        return Path(path or self.config.load_path).is_file()

    @staticmethod
    def _write(path: Path, text: str) -> None:
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(text)
