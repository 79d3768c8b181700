from typing import Any, Optional, Sequence

import numpy as np
from loguru import logger

from notesearch.domain.search import IndexHit
from notesearch.exceptions import DimensionMismatchError
from notesearch.serialization import Serializable, compute_checksum
from notesearch.vector_index.base import SimilarityIndex
from notesearch.vector_index.hnsw import HNSW


class HNSWAdapter(Serializable, SimilarityIndex):
    """Exposes HNSW, which is keyed by integers, as a string-keyed SimilarityIndex."""

    ns_namespace = ["notesearch", "vector_index"]

    def __init__(
        self,
        dimension: Optional[int] = None,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        seed: Optional[int] = None,
        metric: str = "cosine",
    ) -> None:
        self.hnsw = HNSW(
            m=m,
            ef_construction=ef_construction,
            metric=metric,
            dimension=dimension,
            ef_search=ef_search,
            seed=seed,
        )
        self._node_id_map: dict[str, int] = {}
        self._reverse_node_id_map: dict[int, str] = {}
        self._next_node_id = 0

    def __len__(self) -> int:
        return len(self.hnsw)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._node_id_map

    def get_vector(self, item_id: str) -> Optional[np.ndarray]:
        numeric_id = self._node_id_map.get(item_id)
        if numeric_id is None:
            return None
        return self.hnsw.get_vector(numeric_id)

    def add_items(self, items: Sequence[tuple[str, np.ndarray]]) -> None:
        """Add (id, embedding) pairs. Duplicates and bad dimensions are skipped with a warning."""
        for item_id, embedding in items:
            if item_id in self._node_id_map:
                logger.warning(
                    f"Point {item_id} ({self._node_id_map[item_id]}) already exists in HNSW, skipping"
                )
                continue

            numeric_id = self._next_node_id
            try:
                self.hnsw.add_point(numeric_id, embedding)
            except DimensionMismatchError as e:
                logger.warning(f"Skipping {item_id}: {e}")
                continue

            self._next_node_id += 1
            self._node_id_map[item_id] = numeric_id
            self._reverse_node_id_map[numeric_id] = item_id

    def search(self, query_embedding: np.ndarray, k: int) -> list[IndexHit]:
        """Get the k nearest items. Distance is 1 - similarity under the index metric."""
        if len(self.hnsw) == 0:
            return []

        matches = self.hnsw.search_knn(query_embedding, k)
        return [
            IndexHit(id=self._reverse_node_id_map[match.id], distance=1.0 - match.score)
            for match in matches
            if match.id in self._reverse_node_id_map
        ]

    def clear(self) -> None:
        self.hnsw.clear()
        self._node_id_map.clear()
        self._reverse_node_id_map.clear()
        self._next_node_id = 0

    def get_stats(self) -> dict[str, Any]:
        return {"node_count": len(self.hnsw), "dimension": self.hnsw.dimension}

    def get_index_checksum(self) -> str:
        return compute_checksum(self.ns_kwargs())

    def ns_kwargs(self) -> dict[str, Any]:
        return {
            "index": self.hnsw.to_dict(),
            "id_map": [[item_id, numeric_id] for item_id, numeric_id in self._node_id_map.items()],
            "next_node_id": self._next_node_id,
        }

    @classmethod
    def deserialize(cls, data: Any) -> "HNSWAdapter":
        """Build an adapter from the output of serialize().

        Raises:
            ValueError: If the payload is malformed
        """
        kwargs = cls.unwrap(data)
        hnsw = HNSW.from_dict(kwargs["index"])
        adapter = cls(
            dimension=hnsw.dimension,
            m=hnsw.m,
            ef_construction=hnsw.ef_construction,
            ef_search=hnsw.ef_search,
            metric=hnsw.metric,
        )
        adapter.hnsw = hnsw
        adapter._node_id_map = {str(item_id): int(numeric_id) for item_id, numeric_id in kwargs["id_map"]}
        adapter._reverse_node_id_map = {
            numeric_id: item_id for item_id, numeric_id in adapter._node_id_map.items()
        }
        if any(numeric_id not in hnsw for numeric_id in adapter._reverse_node_id_map):
            raise ValueError("Serialized HNSW id map references missing points")
        adapter._next_node_id = int(kwargs["next_node_id"])
        return adapter
