"""
observations/visualize.py

Watch. Learn. Adjust.

Is the population actually living longer? The fitness curve says so,
or it does not.
"""

from __future__ import annotations
from typing import Dict, List, Sequence, TYPE_CHECKING
import numpy as np

if TYPE_CHECKING:
    from neuro_forage.evolution.fitness import EpochSummary


class FitnessPlotter:
    """
    Fitness curves across epochs.

    matplotlib is imported lazily; it is only needed when plotting.
    """

    def __init__(
        self,
        history: Sequence[EpochSummary],
        figsize: tuple = (10, 5),
    ):
        self.history = list(history)
        self.figsize = figsize

    def series(self) -> Dict[str, np.ndarray]:
        """Per-epoch arrays; epochs are 1-based for display."""
        return {
            "epoch": np.array([s.epoch + 1 for s in self.history]),
            "max": np.array([s.max_fitness for s in self.history]),
            "mean": np.array([s.mean_fitness for s in self.history]),
            "min": np.array([s.min_fitness for s in self.history]),
        }

    def cause_fractions(self) -> Dict[str, List[float]]:
        """Share of deaths by cause, per epoch."""
        causes = sorted({c for s in self.history for c in s.deaths_by_cause})
        result: Dict[str, List[float]] = {c: [] for c in causes}
        for s in self.history:
            total = max(1, s.population)
            for c in causes:
                result[c].append(s.deaths_by_cause.get(c, 0) / total)
        return result

    def render(self):
        """Build the figure and return it."""
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        data = self.series()
        fig, ax = plt.subplots(figsize=self.figsize)
        ax.fill_between(data["epoch"], data["min"], data["max"],
                        color="#4c72b0", alpha=0.2, label="min-max")
        ax.plot(data["epoch"], data["max"], color="#4c72b0", label="max age")
        ax.plot(data["epoch"], data["mean"], color="#dd8452", label="mean age")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Age at death (s)")
        ax.set_title("Survival across generations")
        ax.legend(loc="upper left")
        fig.tight_layout()
        return fig

    def save(self, path: str) -> None:
        import matplotlib.pyplot as plt

        fig = self.render()
        fig.savefig(path)
        plt.close(fig)
