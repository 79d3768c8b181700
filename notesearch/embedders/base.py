from typing import Protocol

import numpy as np


class Embedder(Protocol):
    """Embedding provider. Every vector it returns has length ``dimension``."""

    dimension: int

    def embed(self, text: str) -> np.ndarray: ...
