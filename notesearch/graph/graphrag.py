"""Typed multigraph over notes and entities with random-walk retrieval.

Queries run in four stages:

1. Seeding: take the 2 * top_k nodes most cosine-similar to the query embedding, found
   through a similarity index when one is given, or the caller's seed nodes with a
   uniform score of 1.0.
2. Walking: run a random walk with restart from every seed.
3. Aggregating: each visited node scores seed_score * visit_frequency, summed over walks.
4. Ranking: sort by score and keep top_k.
"""

import random
from collections import defaultdict
from typing import Literal, Optional

import numpy as np
from loguru import logger

from notesearch.domain.graph import EdgeTypeDefinition, GraphEdge, GraphNode, Neighbor, RankedNode
from notesearch.exceptions import (
    DimensionMismatchError,
    EmptyQueryError,
    InvalidDimensionError,
    MissingNodeError,
    UnknownEdgeTypeError,
)
from notesearch.graph.sampling import select_weighted
from notesearch.vector_index.base import SimilarityIndex
from notesearch.vector_index.similarity import cosine_similarity

Direction = Literal["in", "out", "both"]


class GraphRAG:
    """Knowledge graph with an edge-type registry and hybrid dense/graph retrieval."""

    def __init__(self, dimension: int, seed: Optional[int] = None) -> None:
        """Initialize an empty graph.

        Args:
            dimension: Length every node and query embedding must have
            seed: Seed for the random walks
        """
        if not dimension or dimension <= 0:
            raise InvalidDimensionError("GraphRAG dimension must be a positive number")

        self._dimension = dimension
        self._rng = random.Random(seed)
        self._nodes: dict[str, GraphNode] = {}
        self._edges: list[GraphEdge] = []
        self._out_edges: dict[str, list[tuple[int, GraphEdge]]] = defaultdict(list)
        self._in_edges: dict[str, list[tuple[int, GraphEdge]]] = defaultdict(list)
        self._edge_seq = 0
        self._edge_types: dict[str, EdgeTypeDefinition] = {}

        self.define_edge_type("semantic", EdgeTypeDefinition(symmetrical=True))
        logger.debug(f"GraphRAG initialized with {dimension}D embeddings")

    def get_dimension(self) -> int:
        return self._dimension

    def update_dimension(self, dimension: int) -> None:
        """Change the embedding dimension. Existing embeddings are not converted."""
        if not dimension or dimension <= 0:
            raise InvalidDimensionError("GraphRAG dimension must be a positive number")
        if self._nodes:
            logger.warning(
                f"Updating dimension of a non-empty graph from {self._dimension}D to "
                f"{dimension}D. Existing embeddings may be incompatible."
            )
        self._dimension = dimension

    # Edge-type registry

    def define_edge_type(self, name: str, definition: EdgeTypeDefinition | None = None) -> None:
        if name in self._edge_types:
            logger.debug(f"Edge type {name!r} is being redefined")
        self._edge_types[name] = definition or EdgeTypeDefinition()

    def get_edge_types(self) -> dict[str, EdgeTypeDefinition]:
        return dict(self._edge_types)

    # Nodes and edges

    def add_node(self, node: GraphNode) -> None:
        """Add a node, replacing any node with the same ID."""
        if node.embedding is not None and len(node.embedding) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(node.embedding))
        self._nodes[node.id] = node

    def get_node(self, node_id: str) -> GraphNode | None:
        return self._nodes.get(node_id)

    def get_nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it. Returns False if it did not exist."""
        if node_id not in self._nodes:
            return False
        del self._nodes[node_id]
        self._reindex_edges(
            [edge for edge in self._edges if edge.source != node_id and edge.target != node_id]
        )
        return True

    def add_edge(self, edge: GraphEdge) -> None:
        """Add an edge, plus its mirror if the edge type is symmetrical.

        Raises:
            MissingNodeError: If either endpoint is not in the graph
            UnknownEdgeTypeError: If the edge type was never defined
        """
        if edge.source not in self._nodes or edge.target not in self._nodes:
            raise MissingNodeError("Both source and target nodes must exist")
        definition = self._edge_types.get(edge.type)
        if definition is None:
            raise UnknownEdgeTypeError(
                f"Edge type {edge.type!r} is not defined. Use define_edge_type first."
            )

        self._append_edge(edge)
        if definition.symmetrical:
            self._append_edge(
                GraphEdge(source=edge.target, target=edge.source, weight=edge.weight, type=edge.type)
            )

    def has_edge(self, source: str, target: str, edge_type: str | None = None) -> bool:
        return any(
            edge.target == target and (edge_type is None or edge.type == edge_type)
            for _, edge in self._out_edges.get(source, [])
        )

    def get_edges(self) -> list[GraphEdge]:
        return list(self._edges)

    def clear_edges(self, edge_type: str | None = None) -> None:
        """Remove all edges, or only those of one type."""
        if edge_type is None:
            self._reindex_edges([])
        else:
            self._reindex_edges([edge for edge in self._edges if edge.type != edge_type])

    def clear(self) -> None:
        """Remove all nodes and edges, keeping the dimension and edge-type registry."""
        self._nodes.clear()
        self._reindex_edges([])

    # Edge builders

    def build_semantic_edges(
        self,
        threshold: float = 0.7,
        index: SimilarityIndex | None = None,
        k: int = 5,
        rebuild_index: bool = True,
    ) -> int:
        """Link embedded nodes whose cosine similarity is above the threshold.

        Without an index every pair is compared, which is quadratic and only suitable for
        small graphs. With an index, each node is linked to those of its k nearest
        neighbors above the threshold. The index is first rebuilt from the embedded nodes
        unless rebuild_index is False, in which case it must already hold them.

        Returns:
            Number of semantic edges added, mirrors included
        """
        embedded = [node for node in self._nodes.values() if node.embedding is not None]
        before = len(self._edges)

        if index is not None:
            if rebuild_index:
                index.clear()
                index.add_items([(node.id, node.embedding) for node in embedded])
            for node in embedded:
                for hit in index.search(node.embedding, k):
                    similarity = 1.0 - hit.distance
                    if (
                        hit.id != node.id
                        and hit.id in self._nodes
                        and similarity > threshold
                        and not self.has_edge(node.id, hit.id, "semantic")
                    ):
                        self.add_edge(
                            GraphEdge(source=node.id, target=hit.id, weight=similarity, type="semantic")
                        )
        else:
            for i, first in enumerate(embedded):
                for second in embedded[i + 1 :]:
                    similarity = cosine_similarity(first.embedding, second.embedding)
                    if similarity > threshold:
                        self.add_edge(
                            GraphEdge(source=first.id, target=second.id, weight=similarity, type="semantic")
                        )

        added = len(self._edges) - before
        logger.debug(f"Built {added} semantic edges over {len(embedded)} embedded nodes")
        return added

    def build_sequential_edges(self, metadata_key: str, group_key: str | None = None) -> int:
        """Link each node to the next one in order of a numeric metadata field.

        Args:
            metadata_key: Metadata field to order by, e.g. "chunk_index" or "timestamp"
            group_key: If given, nodes are only ordered and linked within groups sharing
                this metadata value

        Returns:
            Number of sequential edges added
        """
        self.define_edge_type("sequential", EdgeTypeDefinition(symmetrical=False))

        groups: dict[object, list[GraphNode]] = defaultdict(list)
        for node in self._nodes.values():
            if node.metadata.get(metadata_key) is None:
                continue
            group = node.metadata.get(group_key) if group_key else None
            groups[group].append(node)

        added = 0
        for members in groups.values():
            members.sort(key=lambda node: node.metadata[metadata_key])
            for source, target in zip(members, members[1:]):
                self.add_edge(GraphEdge(source=source.id, target=target.id, weight=1.0, type="sequential"))
                added += 1
        return added

    def build_hierarchical_edges(self, parent_id_key: str) -> int:
        """Link parent to child for every node whose metadata names an existing parent."""
        self.define_edge_type("hierarchical", EdgeTypeDefinition(symmetrical=False))

        added = 0
        for node in list(self._nodes.values()):
            parent_id = node.metadata.get(parent_id_key)
            if parent_id and parent_id in self._nodes:
                self.add_edge(GraphEdge(source=parent_id, target=node.id, weight=1.0, type="hierarchical"))
                added += 1
        return added

    def build_reference_edges(self, references: dict[str, list[str]], weight: float = 1.0) -> int:
        """Add directed "reference" edges for explicit links between nodes.

        Args:
            references: Source node ID to the node IDs it references. Links to unknown
                nodes are skipped.
        """
        self.define_edge_type("reference", EdgeTypeDefinition(symmetrical=False))

        added = 0
        for source, targets in references.items():
            if source not in self._nodes:
                continue
            for target in targets:
                if target == source or target not in self._nodes:
                    continue
                if self.has_edge(source, target, "reference"):
                    continue
                self.add_edge(GraphEdge(source=source, target=target, weight=weight, type="reference"))
                added += 1
        return added

    # Typed traversal

    def get_neighbors(
        self, node_id: str, edge_type: str | None = None, direction: Direction = "out"
    ) -> list[Neighbor]:
        """Get neighbors of a node, filtered by edge type and direction.

        A neighbor reachable through several edges is reported once, with the weight of
        the earliest inserted edge.
        """
        incident: list[tuple[int, GraphEdge]] = []
        if direction in ("out", "both"):
            incident.extend(self._out_edges.get(node_id, []))
        if direction in ("in", "both"):
            incident.extend(self._in_edges.get(node_id, []))
        if direction == "both":
            incident.sort(key=lambda item: item[0])

        neighbors: dict[str, Neighbor] = {}
        for _, edge in incident:
            if edge_type and edge.type != edge_type:
                continue
            if direction in ("out", "both") and edge.source == node_id and edge.target not in neighbors:
                neighbors[edge.target] = Neighbor(id=edge.target, weight=edge.weight)
            if direction in ("in", "both") and edge.target == node_id and edge.source not in neighbors:
                neighbors[edge.source] = Neighbor(id=edge.source, weight=edge.weight)
        return list(neighbors.values())

    def get_parents(self, node_id: str, hierarchy_type: str = "hierarchical") -> list[Neighbor]:
        return self.get_neighbors(node_id, edge_type=hierarchy_type, direction="in")

    def get_children(self, node_id: str, hierarchy_type: str = "hierarchical") -> list[Neighbor]:
        return self.get_neighbors(node_id, edge_type=hierarchy_type, direction="out")

    # Retrieval

    def random_walk_with_restart(
        self,
        start_node_id: str,
        steps: int = 100,
        restart_prob: float = 0.15,
        edge_type: str | None = "semantic",
    ) -> dict[str, float]:
        """Estimate proximity to a start node by walking outgoing edges.

        At each step the current node is visited, then the walk jumps back to the start
        with probability restart_prob, or at a dead end, and otherwise follows an edge
        chosen in proportion to its weight.

        Returns:
            Visit frequency per visited node, summing to 1 (empty if steps <= 0)
        """
        visits: dict[str, int] = defaultdict(int)
        current = start_node_id

        for _ in range(steps):
            visits[current] += 1

            if self._rng.random() < restart_prob:
                current = start_node_id
                continue

            neighbors = self.get_neighbors(current, edge_type=edge_type, direction="out")
            if not neighbors:
                current = start_node_id
                continue

            current = select_weighted(neighbors, self._rng)

        total = sum(visits.values())
        return {node_id: count / total for node_id, count in visits.items()}

    def query(
        self,
        query_embedding: np.ndarray | list[float] | None = None,
        seed_node_ids: list[str] | None = None,
        top_k: int = 10,
        random_walk_steps: int = 100,
        restart_prob: float = 0.15,
        walk_edge_type: str | None = "semantic",
        index: SimilarityIndex | None = None,
    ) -> list[RankedNode]:
        """Rank nodes by dense similarity refined with random walks.

        Args:
            query_embedding: Query vector; seeds are its 2 * top_k most similar nodes
            seed_node_ids: Start nodes, used with a score of 1.0 when no embedding is given
            top_k: Number of results
            random_walk_steps: Steps per walk
            restart_prob: Probability of jumping back to the seed at each step
            walk_edge_type: Edge type the walks follow, or None for any type
            index: Similarity index over the graph's embedded nodes to find the seeds with,
                instead of comparing the query against every node

        Raises:
            EmptyQueryError: If neither an embedding nor seed nodes are given
            DimensionMismatchError: If the embedding has the wrong length
        """
        if query_embedding is None and seed_node_ids is None:
            raise EmptyQueryError("Must provide either a query_embedding or seed_node_ids")

        if query_embedding is not None:
            query_vector = np.asarray(query_embedding, dtype=np.float32)
            if len(query_vector) != self._dimension:
                raise DimensionMismatchError(self._dimension, len(query_vector))
            initial_scores = self._dense_seeds(query_vector, top_k * 2, index)
        else:
            initial_scores = {}
            for node_id in seed_node_ids or []:
                if node_id not in self._nodes:
                    logger.warning(f"Seed node {node_id} is not in the graph, skipping")
                    continue
                initial_scores[node_id] = 1.0

        reranked: dict[str, float] = defaultdict(float)
        for node_id, initial_score in initial_scores.items():
            walk = self.random_walk_with_restart(node_id, random_walk_steps, restart_prob, walk_edge_type)
            for walked_id, walk_score in walk.items():
                reranked[walked_id] += initial_score * walk_score

        ranked = sorted(reranked.items(), key=lambda item: item[1], reverse=True)[:top_k]
        return [
            RankedNode(
                id=node.id,
                content=node.content,
                embedding=node.embedding,
                metadata=node.metadata,
                score=score,
            )
            for node_id, score in ranked
            if (node := self._nodes.get(node_id)) is not None
        ]

    def _dense_seeds(
        self, query_vector: np.ndarray, count: int, index: SimilarityIndex | None
    ) -> dict[str, float]:
        if index is not None:
            hits = [hit for hit in index.search(query_vector, count) if hit.id in self._nodes]
            if hits:
                return {hit.id: 1.0 - hit.distance for hit in hits}

        candidates = sorted(
            (
                (node.id, cosine_similarity(query_vector, node.embedding))
                for node in self._nodes.values()
                if node.embedding is not None
            ),
            key=lambda item: item[1],
            reverse=True,
        )
        return dict(candidates[:count])

    def _append_edge(self, edge: GraphEdge) -> None:
        seq = self._edge_seq
        self._edge_seq += 1
        self._edges.append(edge)
        self._out_edges[edge.source].append((seq, edge))
        self._in_edges[edge.target].append((seq, edge))

    def _reindex_edges(self, edges: list[GraphEdge]) -> None:
        self._edges = []
        self._out_edges = defaultdict(list)
        self._in_edges = defaultdict(list)
        self._edge_seq = 0
        for edge in edges:
            self._append_edge(edge)
