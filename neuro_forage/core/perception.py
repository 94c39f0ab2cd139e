"""
core/perception.py

Turning what a forager sees into numbers its network can use.

Each ray contributes 1 + len(categories) values:
    [normalized distance, one-hot category ...]

A ray that hits nothing within range reports distance 1.0 and the
dedicated "nothing" category.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence
import numpy as np


NOTHING = "nothing"


def default_categories() -> Dict[str, int]:
    return {
        "land": 0,
        "water": 1,
        "forager": 2,
        "grass": 3,     # food 1
        "berry": 4,     # food 2
        NOTHING: 5,
    }


@dataclass
class VisionConfig:
    """How a forager looks at the world."""
    num_rays: int = 155
    fov_degrees: float = 120.0          # Fan centred on the heading
    max_distance: float = 15.0          # Beyond this a ray sees nothing
    categories: Dict[str, int] = field(default_factory=default_categories)

    @property
    def category_count(self) -> int:
        return len(self.categories)

    @property
    def feature_size(self) -> int:
        """Length of the encoded vision vector."""
        return self.num_rays * (1 + self.category_count)

    def ray_angles(self, heading: float) -> np.ndarray:
        """Absolute ray angles (radians), left to right across the fan."""
        if self.num_rays == 1:
            return np.array([heading])
        half = np.radians(self.fov_degrees) / 2.0
        return heading + np.linspace(-half, half, self.num_rays)


def encode_vision(
    distances: Sequence[float],
    categories: Sequence[Optional[str]],
    config: VisionConfig,
) -> np.ndarray:
    """
    Encode raw ray hits into the network's vision input.

    Args:
        distances: Hit distance per ray (max_distance or more for a miss)
        categories: Category name per ray, None for a miss
        config: Vision configuration holding the category map

    Returns:
        Flat array of length config.feature_size
    """
    distances = np.asarray(distances, dtype=np.float64)
    if len(distances) != config.num_rays or len(categories) != config.num_rays:
        raise ValueError(
            f"Expected {config.num_rays} rays, got "
            f"{len(distances)} distances and {len(categories)} categories"
        )

    stride = 1 + config.category_count
    features = np.zeros((config.num_rays, stride))
    features[:, 0] = np.clip(distances / config.max_distance, 0.0, 1.0)

    nothing_idx = config.categories.get(NOTHING)
    for i, name in enumerate(categories):
        if name is None:
            features[i, 0] = 1.0
            idx = nothing_idx
        else:
            idx = config.categories.get(name)
        # Unmapped categories leave the one-hot block empty
        if idx is not None:
            features[i, 1 + idx] = 1.0

    return features.reshape(-1)
