"""Dense retrieval over note chunks: embeddings, an HNSW index and a GraphRAG graph.

Each note is split into chunks that become graph nodes ``{note_id}_chunk_{i}``. The
graph links chunks of the same note in order, links notes through their explicit
references, and links semantically similar chunks found through the HNSW index.

Every mutation builds a new graph and index and swaps them in as one snapshot, so a
search that started on the previous snapshot finishes on it. Chunk embeddings are kept
in the snapshot and reused. Adding a note embeds only that note, and a sync only sends
notes that are new or changed since the last snapshot to the embedder.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from notesearch.domain.graph import GraphNode, RankedNode
from notesearch.domain.note import Note, TextChunk
from notesearch.domain.search import GraphStats, SemanticSearchResult
from notesearch.embedders.base import Embedder
from notesearch.exceptions import DimensionMismatchError
from notesearch.graph.graphrag import GraphRAG
from notesearch.ingestion.text_chunker import TextChunker
from notesearch.vector_index.hnsw_adapter import HNSWAdapter


def chunk_node_id(note_id: str, chunk_index: int) -> str:
    return f"{note_id}_chunk_{chunk_index}"


@dataclass(frozen=True)
class _Snapshot:
    graph: GraphRAG
    index: HNSWAdapter
    notes: dict[str, Note] = field(default_factory=dict)
    chunks: dict[str, tuple[GraphNode, ...]] = field(default_factory=dict)
    generation: int = 0


class EmbeddingSearchService:
    """Semantic search over notes with graph re-ranking."""

    def __init__(
        self,
        *,
        embedder: Embedder,
        dimension: int = 384,
        chunker: TextChunker | None = None,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        metric: str = "cosine",
        semantic_edge_threshold: float = 0.7,
        semantic_edge_k: int = 10,
        random_walk_steps: int = 100,
        restart_prob: float = 0.15,
        walk_edge_type: str | None = "semantic",
        seed: Optional[int] = None,
    ):
        """Initialize the service with an empty graph.

        Args:
            embedder: Embedding provider, whose dimension must equal ``dimension``
            dimension: Length of every chunk and query embedding
            chunker: Splits notes into chunks. Defaults to 500 characters with 50 overlap.
            m: HNSW max neighbors per point
            ef_construction: HNSW candidate list size on insertion
            ef_search: HNSW candidate list size on search
            metric: HNSW similarity metric, "cosine" or "euclidean"
            semantic_edge_threshold: Minimum cosine similarity for a semantic edge
            semantic_edge_k: Neighbors considered per chunk when building semantic edges
            random_walk_steps: Steps per random walk at query time
            restart_prob: Restart probability of the random walks
            walk_edge_type: Edge type the walks follow at query time
            seed: Seed for HNSW levels and random walks

        Raises:
            DimensionMismatchError: If the embedder produces vectors of another length
        """
        if embedder.dimension != dimension:
            raise DimensionMismatchError(dimension, embedder.dimension)

        self.embedder = embedder
        self.dimension = dimension
        self.chunker = chunker or TextChunker()
        self.m = m
        self.ef_construction = ef_construction
        self.ef_search = ef_search
        self.metric = metric
        self.semantic_edge_threshold = semantic_edge_threshold
        self.semantic_edge_k = semantic_edge_k
        self.random_walk_steps = random_walk_steps
        self.restart_prob = restart_prob
        self.walk_edge_type = walk_edge_type
        self.seed = seed

        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot(graph=self._new_graph(), index=self._new_index())

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def graph(self) -> GraphRAG:
        return self._snapshot.graph

    @property
    def vector_index(self) -> HNSWAdapter:
        return self._snapshot.index

    @property
    def notes(self) -> dict[str, Note]:
        return dict(self._snapshot.notes)

    def add_note(self, note: Note) -> int:
        """Embed a note and add it to the graph, replacing any earlier version of it.

        Returns:
            Number of chunks added
        """
        nodes = self._embed_note(note)
        if not nodes:
            logger.warning(f"No chunks created for note {note.id}")
            return 0

        with self._write_lock:
            snapshot = self._snapshot
            self._swap(
                notes={**snapshot.notes, note.id: note},
                chunks={**snapshot.chunks, note.id: nodes},
            )
        logger.info(f"Added note {note.id} with {len(nodes)} chunks to the knowledge graph")
        return len(nodes)

    def remove_note(self, note_id: str) -> bool:
        """Remove a note's chunks and rebuild the graph. Returns False if it was not indexed."""
        with self._write_lock:
            snapshot = self._snapshot
            if note_id not in snapshot.notes:
                return False
            self._swap(
                notes={key: note for key, note in snapshot.notes.items() if key != note_id},
                chunks={key: nodes for key, nodes in snapshot.chunks.items() if key != note_id},
            )
        logger.info(f"Removed note {note_id} from the knowledge graph")
        return True

    def sync_all_notes(self, notes: Iterable[Note]) -> int:
        """Replace the graph with the given notes.

        Notes that fail to embed are logged and left out. Notes identical to the version
        in the current snapshot keep their chunk embeddings.

        Returns:
            Number of indexed notes
        """
        notes = list(notes)
        logger.info(f"Embeddings: syncing {len(notes)} notes")

        previous = self._snapshot
        indexed: dict[str, Note] = {}
        chunks: dict[str, tuple[GraphNode, ...]] = {}
        for note in notes:
            if previous.notes.get(note.id) == note:
                indexed[note.id] = note
                chunks[note.id] = previous.chunks[note.id]
                continue
            try:
                nodes = self._embed_note(note)
            except Exception as e:
                logger.warning(f"Failed to create embeddings for note {note.id}: {e}")
                continue
            if not nodes:
                continue
            indexed[note.id] = note
            chunks[note.id] = nodes

        with self._write_lock:
            self._swap(notes=indexed, chunks=chunks)
        logger.info(
            f"Embeddings: sync completed, {len(indexed)} notes in {len(self._snapshot.graph.get_nodes())} chunks"
        )
        return len(indexed)

    def restore(self, notes: Iterable[Note], index: HNSWAdapter) -> bool:
        """Rebuild the graph from a persisted index without calling the embedder.

        The notes are chunked again and every chunk must find its embedding in the index.

        Returns:
            False, leaving the service unchanged, if any chunk is missing from the index
        """
        dimension = index.get_stats()["dimension"]
        if dimension not in (None, self.dimension):
            logger.warning(f"Persisted HNSW index has dimension {dimension}, expected {self.dimension}")
            return False

        indexed: dict[str, Note] = {}
        chunks: dict[str, tuple[GraphNode, ...]] = {}
        for note in notes:
            nodes = []
            for chunk in self._chunk_note(note):
                node_id = chunk_node_id(note.id, chunk.metadata["chunk_index"])
                embedding = index.get_vector(node_id)
                if embedding is None:
                    logger.warning(f"Chunk {node_id} is missing from the persisted HNSW index")
                    return False
                nodes.append(GraphNode(id=node_id, content=chunk.text, embedding=embedding, metadata=chunk.metadata))
            if nodes:
                indexed[note.id] = note
                chunks[note.id] = tuple(nodes)

        if sum(len(nodes) for nodes in chunks.values()) != len(index):
            logger.warning("Persisted HNSW index does not match the notes")
            return False

        with self._write_lock:
            self._swap(notes=indexed, chunks=chunks, index=index)
        logger.info(f"Embeddings: restored {len(indexed)} notes from the persisted index")
        return True

    def search(self, query: str, top_k: int = 10) -> list[SemanticSearchResult]:
        """Get the notes whose chunks best match a query, best first.

        Chunks are ranked by GraphRAG.query and each note scores as its best chunk.
        """
        snapshot = self._snapshot
        if not query.strip() or not snapshot.chunks or top_k <= 0:
            return []

        query_embedding = self.embedder.embed(query)
        ranked = snapshot.graph.query(
            query_embedding=query_embedding,
            top_k=top_k * 3,
            random_walk_steps=self.random_walk_steps,
            restart_prob=self.restart_prob,
            walk_edge_type=self.walk_edge_type,
            index=snapshot.index,
        )
        return self._aggregate(snapshot, ranked, top_k)

    def related(self, note_id: str, top_k: int = 10) -> list[SemanticSearchResult]:
        """Get notes related to a note by walking the graph from its chunks.

        The walks follow edges of every type, so explicit references count alongside
        semantic similarity. The note itself is not returned.
        """
        snapshot = self._snapshot
        nodes = snapshot.chunks.get(note_id)
        if not nodes or top_k <= 0:
            return []

        ranked = snapshot.graph.query(
            seed_node_ids=[node.id for node in nodes],
            top_k=len(snapshot.graph.get_nodes()),
            random_walk_steps=self.random_walk_steps,
            restart_prob=self.restart_prob,
            walk_edge_type=None,
        )
        ranked = [node for node in ranked if node.metadata.get("note_id") != note_id]
        return self._aggregate(snapshot, ranked, top_k)

    def get_stats(self) -> GraphStats:
        snapshot = self._snapshot
        return GraphStats(
            node_count=len(snapshot.graph.get_nodes()),
            edge_count=len(snapshot.graph.get_edges()),
            index_node_count=len(snapshot.index),
            dimension=self.dimension,
        )

    def clear(self) -> None:
        with self._write_lock:
            self._swap(notes={}, chunks={})

    def _new_graph(self) -> GraphRAG:
        return GraphRAG(self.dimension, seed=self.seed)

    def _new_index(self) -> HNSWAdapter:
        return HNSWAdapter(
            dimension=self.dimension,
            m=self.m,
            ef_construction=self.ef_construction,
            ef_search=self.ef_search,
            seed=self.seed,
            metric=self.metric,
        )

    def _chunk_note(self, note: Note) -> list[TextChunk]:
        return self.chunker.chunk_text(
            f"{note.title}\n\n{note.content}", metadata={"note_id": note.id, "title": note.title}
        )

    def _embed_note(self, note: Note) -> tuple[GraphNode, ...]:
        nodes = []
        for chunk in self._chunk_note(note):
            embedding = self.embedder.embed(chunk.text)
            if len(embedding) != self.dimension:
                raise DimensionMismatchError(self.dimension, len(embedding))
            nodes.append(
                GraphNode(
                    id=chunk_node_id(note.id, chunk.metadata["chunk_index"]),
                    content=chunk.text,
                    embedding=embedding,
                    metadata=chunk.metadata,
                )
            )
        return tuple(nodes)

    def _swap(
        self,
        notes: dict[str, Note],
        chunks: dict[str, tuple[GraphNode, ...]],
        index: HNSWAdapter | None = None,
    ) -> None:
        rebuild_index = index is None
        if index is None:
            index = self._new_index()

        graph = self._new_graph()
        for nodes in chunks.values():
            for node in nodes:
                graph.add_node(node)

        graph.build_sequential_edges("chunk_index", group_key="note_id")
        graph.build_reference_edges(
            {
                chunk_node_id(note_id, 0): [chunk_node_id(target, 0) for target in note.links]
                for note_id, note in notes.items()
            }
        )
        graph.build_semantic_edges(
            threshold=self.semantic_edge_threshold,
            index=index,
            k=self.semantic_edge_k,
            rebuild_index=rebuild_index,
        )

        self._snapshot = _Snapshot(
            graph=graph,
            index=index,
            notes=notes,
            chunks=chunks,
            generation=self._snapshot.generation + 1,
        )

    @staticmethod
    def _aggregate(snapshot: _Snapshot, ranked: list[RankedNode], top_k: int) -> list[SemanticSearchResult]:
        best: dict[str, RankedNode] = {}
        for node in ranked:
            note_id = node.metadata.get("note_id")
            if note_id not in snapshot.notes:
                continue
            if note_id not in best or node.score > best[note_id].score:
                best[note_id] = node

        results = [
            SemanticSearchResult(
                note_id=note_id,
                title=snapshot.notes[note_id].title,
                content=node.content,
                score=node.score,
            )
            for note_id, node in best.items()
        ]
        results.sort(key=lambda result: result.score, reverse=True)
        return results[:top_k]
