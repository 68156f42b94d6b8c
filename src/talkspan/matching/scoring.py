"""Feature weights and scoring helpers shared by the locators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

import numpy as np

INDEX_PROXIMITY = "index_proximity"
CONTEXT_CONTINUITY = "context_continuity"
STRUCTURAL_CONTEXT = "structural_context"
TEXT_SIMILARITY = "text_similarity"
UNIQUENESS = "uniqueness"
TEMPORAL_PROXIMITY = "temporal_proximity"
SIGNATURE_PRESENCE = "signature_presence"


@dataclass(slots=True, frozen=True)
class ScoringWeights:
    """Named feature weights. A score is the weighted sum of features clipped to [0, 1]."""

    weights: tuple[tuple[str, float], ...]

    @classmethod
    def from_mapping(cls, weights: Mapping[str, float]) -> "ScoringWeights":
        return cls(tuple(weights.items()))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.weights)

    def as_dict(self) -> dict[str, float]:
        return dict(self.weights)

    def vector(self) -> np.ndarray:
        return np.array([weight for _, weight in self.weights], dtype=np.float64)

    def feature_vector(self, features: Mapping[str, float]) -> np.ndarray:
        values = np.array([features.get(name, 0.0) for name in self.names], dtype=np.float64)
        return np.clip(values, 0.0, 1.0)

    def score(self, features: Mapping[str, float]) -> float:
        return float(self.feature_vector(features) @ self.vector())


# Same text, possibly lightly edited: the position among comments is the strongest
# signal, followed by the neighbours and the words themselves.
LOCATE_WEIGHTS = ScoringWeights.from_mapping(
    {
        INDEX_PROXIMITY: 0.35,
        CONTEXT_CONTINUITY: 0.2,
        STRUCTURAL_CONTEXT: 0.15,
        TEXT_SIMILARITY: 0.2,
        UNIQUENESS: 0.1,
    }
)

# Independent diffs have no shared ordering or headings.
EDIT_ORIGIN_WEIGHTS = ScoringWeights.from_mapping(
    {
        TEXT_SIMILARITY: 0.7,
        TEMPORAL_PROXIMITY: 0.2,
        SIGNATURE_PRESENCE: 0.1,
    }
)


def index_proximity(first: Optional[int], second: Optional[int]) -> float:
    if first is None or second is None:
        return 0.0
    return 1.0 / (1 + abs(first - second))


def temporal_proximity(first: Optional[datetime], second: Optional[datetime]) -> float:
    """1 for the same minute, decaying with the distance in minutes."""
    if first is None or second is None:
        return 0.0
    minutes = abs((first - second).total_seconds()) / 60
    return 1.0 / (1 + minutes)
