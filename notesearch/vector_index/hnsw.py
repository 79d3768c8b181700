"""
HNSW (Hierarchical Navigable Small World) vector index.

Points live on a stack of proximity graphs. Every point is on layer 0; a point drawn at
level L is also linked on layers 1..L. Searches enter at the top layer through a single
entry point, descend greedily, and finish with a beam search on layer 0.

Points cannot be removed. Callers that need removal clear the index and re-insert the
surviving points.
"""

import heapq
import math
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from notesearch.domain.search import VectorMatch
from notesearch.exceptions import DimensionMismatchError, DuplicatePointError, InvalidDimensionError
from notesearch.vector_index.similarity import SIMILARITY_FUNCTIONS


class HNSW:
    """Approximate k-nearest-neighbor index over fixed-dimension vectors."""

    def __init__(
        self,
        m: int = 16,
        ef_construction: int = 200,
        metric: str = "cosine",
        dimension: Optional[int] = None,
        ef_search: int = 50,
        seed: Optional[int] = None,
    ):
        """Initialize an empty index.

        Args:
            m: Max neighbors per point on layers above 0. Layer 0 allows 2 * m.
            ef_construction: Candidate list size when inserting on layer 0
            metric: "cosine" or "euclidean"
            dimension: Vector length. If omitted it is fixed by the first inserted point.
            ef_search: Minimum candidate list size when searching layer 0
            seed: Seed for the level generator
        """
        if metric not in SIMILARITY_FUNCTIONS:
            raise ValueError(f"Unknown metric {metric!r}, expected one of {list(SIMILARITY_FUNCTIONS)}")
        if dimension is not None and dimension <= 0:
            raise InvalidDimensionError("HNSW dimension must be a positive number")
        if m < 2:
            raise ValueError("HNSW m must be at least 2")

        self.m = m
        self.m_max0 = m * 2
        self.ef_construction = ef_construction
        self.ef_search = ef_search
        self.metric = metric
        self.dimension = dimension
        self.level_multiplier = 1.0 / math.log(m)

        self._rng = np.random.default_rng(seed)
        self._vectors: dict[int, NDArray[np.float32]] = {}
        self._prepared: dict[int, NDArray[np.float32]] = {}
        self._levels: dict[int, int] = {}
        self._neighbors: dict[int, list[list[int]]] = {}
        self.entry_point_id: Optional[int] = None
        self.max_level = -1

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, point_id: int) -> bool:
        return point_id in self._vectors

    def get_vector(self, point_id: int) -> NDArray[np.float32]:
        return self._vectors[point_id]

    def get_level(self, point_id: int) -> int:
        return self._levels[point_id]

    def get_neighbors(self, point_id: int, layer: int = 0) -> list[int]:
        """Get the adjacency list of a point on a layer (empty above its level)."""
        layers = self._neighbors[point_id]
        return list(layers[layer]) if layer < len(layers) else []

    def add_point(self, point_id: int, vector: np.ndarray) -> None:
        """Insert a point and link it into every layer up to its drawn level."""
        if point_id in self._vectors:
            raise DuplicatePointError(f"Point {point_id} already exists")

        vector = self._check_vector(vector)
        if self.dimension is None:
            self.dimension = int(vector.shape[0])

        level = self._draw_level()
        prepared = self._prepare(vector)
        self._vectors[point_id] = vector
        self._prepared[point_id] = prepared
        self._levels[point_id] = level
        self._neighbors[point_id] = [[] for _ in range(level + 1)]

        if self.entry_point_id is None:
            self.entry_point_id = point_id
            self.max_level = level
            return

        entry_points = [self.entry_point_id]
        for layer in range(self.max_level, level, -1):
            nearest = self._search_layer(prepared, entry_points, ef=1, layer=layer)
            entry_points = [nearest[0][1]]

        for layer in range(min(level, self.max_level), -1, -1):
            cap = self.m_max0 if layer == 0 else self.m
            ef = self.ef_construction if layer == 0 else max(self.m, self.ef_construction // 4)
            candidates = self._search_layer(prepared, entry_points, ef=ef, layer=layer)

            selected = [candidate_id for _, candidate_id in candidates[:cap]]
            self._neighbors[point_id][layer] = selected
            for neighbor_id in selected:
                neighbor_links = self._neighbors[neighbor_id][layer]
                neighbor_links.append(point_id)
                if len(neighbor_links) > cap:
                    self._prune(neighbor_id, layer, cap)

            entry_points = [candidate_id for _, candidate_id in candidates]

        if level > self.max_level:
            self.entry_point_id = point_id
            self.max_level = level

    def search_knn(self, query: np.ndarray, k: int, ef: Optional[int] = None) -> list[VectorMatch]:
        """Get the k points closest to a query vector, best first.

        Args:
            query: Query vector of the index dimension
            k: Number of results
            ef: Candidate list size on layer 0, at least k

        Returns:
            Up to k matches with similarity scores
        """
        if self.entry_point_id is None or k <= 0:
            return []

        prepared = self._prepare(self._check_vector(query))
        entry_points = [self.entry_point_id]
        for layer in range(self.max_level, 0, -1):
            nearest = self._search_layer(prepared, entry_points, ef=1, layer=layer)
            entry_points = [nearest[0][1]]

        beam = max(ef or self.ef_search, k)
        results = self._search_layer(prepared, entry_points, ef=beam, layer=0)
        return [VectorMatch(id=point_id, score=score) for score, point_id in results[:k]]

    def clear(self) -> None:
        """Remove all points, keeping the configuration."""
        self._vectors.clear()
        self._prepared.clear()
        self._levels.clear()
        self._neighbors.clear()
        self.entry_point_id = None
        self.max_level = -1

    def to_dict(self) -> dict[str, Any]:
        """Dump the full graph: parameters, vectors, levels, adjacency and entry point."""
        return {
            "m": self.m,
            "ef_construction": self.ef_construction,
            "ef_search": self.ef_search,
            "metric": self.metric,
            "dimension": self.dimension,
            "entry_point_id": self.entry_point_id,
            "max_level": self.max_level,
            "nodes": [
                {
                    "id": point_id,
                    "level": self._levels[point_id],
                    "vector": vector.tolist(),
                    "neighbors": [list(layer) for layer in self._neighbors[point_id]],
                }
                for point_id, vector in self._vectors.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], seed: Optional[int] = None) -> "HNSW":
        """Rebuild an index from a dump produced by to_dict."""
        index = cls(
            m=data["m"],
            ef_construction=data["ef_construction"],
            metric=data["metric"],
            dimension=data["dimension"],
            ef_search=data["ef_search"],
            seed=seed,
        )
        for node in data["nodes"]:
            point_id = int(node["id"])
            vector = index._check_vector(node["vector"])
            index._vectors[point_id] = vector
            index._prepared[point_id] = index._prepare(vector)
            index._levels[point_id] = int(node["level"])
            index._neighbors[point_id] = [[int(n) for n in layer] for layer in node["neighbors"]]
        entry_point_id = data["entry_point_id"]
        if entry_point_id is not None and entry_point_id not in index._vectors:
            raise ValueError(f"Entry point {entry_point_id} is not a point of the index")
        index.entry_point_id = entry_point_id
        index.max_level = int(data["max_level"])
        return index

    def _draw_level(self) -> int:
        uniform = 1.0 - self._rng.random()  # in (0, 1]
        return int(math.floor(-math.log(uniform) * self.level_multiplier))

    def _check_vector(self, vector: Any) -> NDArray[np.float32]:
        vector = np.asarray(vector, dtype=np.float32)
        if vector.ndim != 1:
            raise ValueError("Vectors must be one-dimensional")
        if self.dimension is not None and vector.shape[0] != self.dimension:
            raise DimensionMismatchError(self.dimension, int(vector.shape[0]))
        return vector

    def _prepare(self, vector: NDArray[np.float32]) -> NDArray[np.float32]:
        if self.metric != "cosine":
            return vector
        norm = float(np.linalg.norm(vector))
        return vector / norm if norm > 0 else vector

    def _similarity(self, prepared_query: NDArray[np.float32], point_id: int) -> float:
        other = self._prepared[point_id]
        if self.metric == "cosine":
            return float(np.dot(prepared_query, other))
        return SIMILARITY_FUNCTIONS[self.metric](prepared_query, other)

    def _search_layer(
        self, prepared_query: NDArray[np.float32], entry_points: list[int], ef: int, layer: int
    ) -> list[tuple[float, int]]:
        """Beam search on one layer. Returns up to ef (similarity, id) pairs, best first."""
        visited = set(entry_points)
        candidates: list[tuple[float, int]] = []  # max-heap via negated similarity
        results: list[tuple[float, int]] = []  # min-heap of the best ef found so far

        for point_id in entry_points:
            score = self._similarity(prepared_query, point_id)
            heapq.heappush(candidates, (-score, point_id))
            heapq.heappush(results, (score, point_id))
            if len(results) > ef:
                heapq.heappop(results)

        while candidates:
            negated, current_id = heapq.heappop(candidates)
            if len(results) >= ef and -negated < results[0][0]:
                break

            layers = self._neighbors[current_id]
            if layer >= len(layers):
                continue
            for neighbor_id in layers[layer]:
                if neighbor_id in visited:
                    continue
                visited.add(neighbor_id)
                score = self._similarity(prepared_query, neighbor_id)
                if len(results) < ef or score > results[0][0]:
                    heapq.heappush(candidates, (-score, neighbor_id))
                    heapq.heappush(results, (score, neighbor_id))
                    if len(results) > ef:
                        heapq.heappop(results)

        return sorted(results, reverse=True)

    def _prune(self, point_id: int, layer: int, cap: int) -> None:
        """Keep only the cap closest neighbors of a point on a layer."""
        prepared = self._prepared[point_id]
        links = self._neighbors[point_id][layer]
        scored = sorted(
            ((self._similarity(prepared, neighbor_id), neighbor_id) for neighbor_id in links),
            reverse=True,
        )
        self._neighbors[point_id][layer] = [neighbor_id for _, neighbor_id in scored[:cap]]
