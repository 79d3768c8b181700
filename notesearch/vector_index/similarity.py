"""Similarity functions for dense vectors. Higher values mean more similar."""

from typing import Callable

import numpy as np


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between two vectors, 0.0 if either has zero magnitude."""
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def euclidean_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Map euclidean distance into (0, 1], 1.0 for identical vectors."""
    return 1.0 / (1.0 + float(np.linalg.norm(a - b)))


SIMILARITY_FUNCTIONS: dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    "cosine": cosine_similarity,
    "euclidean": euclidean_similarity,
}
