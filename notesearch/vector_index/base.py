from typing import Protocol, Sequence

import numpy as np

from notesearch.domain.search import IndexHit


class SimilarityIndex(Protocol):
    """Pluggable nearest-neighbor index used to avoid pairwise comparisons."""

    def add_items(self, items: Sequence[tuple[str, np.ndarray]]) -> None:
        """Add (id, embedding) pairs to the index."""
        ...

    def search(self, query_embedding: np.ndarray, k: int) -> list[IndexHit]:
        """Get the k nearest items to a query embedding."""
        ...

    def clear(self) -> None:
        """Remove all items from the index."""
        ...
