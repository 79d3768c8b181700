"""Process-wide search services, constructed once at startup and passed to consumers."""

from loguru import logger

from notesearch.config import Settings, settings
from notesearch.embedders.base import Embedder
from notesearch.ingestion.text_chunker import TextChunker
from notesearch.lexical.bm25 import BM25Constants
from notesearch.lexical.service import BM25Index
from notesearch.persistence.adapters import BM25Persistence, HNSWPersistence
from notesearch.persistence.base import IndexTable
from notesearch.persistence.memory import InMemoryIndexTable
from notesearch.search.embedding_search import EmbeddingSearchService
from notesearch.search.hybrid import HybridSearchService


class SearchServices:
    """Owns the lexical and dense indices, the hybrid service over them, and their persistence.

    Persistence calls must not overlap with syncs or note updates on the same instance.
    """

    def __init__(
        self,
        *,
        bm25: BM25Index,
        embeddings: EmbeddingSearchService,
        table: IndexTable,
        hybrid_alpha: float = 0.5,
    ):
        self.bm25 = bm25
        self.embeddings = embeddings
        self.hybrid = HybridSearchService(bm25, embeddings, alpha=hybrid_alpha)
        self.bm25_persistence = BM25Persistence(table)
        self.hnsw_persistence = HNSWPersistence(table)

    @classmethod
    def from_settings(
        cls,
        embedder: Embedder,
        table: IndexTable | None = None,
        config: Settings = settings,
        seed: int | None = None,
    ) -> "SearchServices":
        """Build the services with every parameter taken from the configuration."""
        bm25 = BM25Index(
            constants=BM25Constants(k1=config.bm25_k1, b=config.bm25_b),
            preview_length=config.bm25_preview_length,
        )
        embeddings = EmbeddingSearchService(
            embedder=embedder,
            dimension=config.embedding_dimension,
            chunker=TextChunker(chunk_size=config.chunk_size, overlap=config.chunk_overlap),
            m=config.hnsw_m,
            ef_construction=config.hnsw_ef_construction,
            ef_search=config.hnsw_ef_search,
            metric=config.hnsw_metric,
            semantic_edge_threshold=config.semantic_edge_threshold,
            semantic_edge_k=config.semantic_edge_k,
            random_walk_steps=config.random_walk_steps,
            restart_prob=config.restart_prob,
            walk_edge_type=config.walk_edge_type,
            seed=seed,
        )
        return cls(
            bm25=bm25,
            embeddings=embeddings,
            table=table if table is not None else InMemoryIndexTable(),
            hybrid_alpha=config.hybrid_alpha,
        )

    def save(self) -> bool:
        """Persist both indices. Returns whether both saves succeeded."""
        bm25_saved = self.bm25_persistence.auto_save(self.bm25)
        hnsw_saved = self.hnsw_persistence.auto_save(self.embeddings.vector_index)
        return bm25_saved and hnsw_saved

    def load(self) -> bool:
        """Restore both indices from persistence.

        Returns:
            False if either index is missing or fails verification, in which case the
            caller should sync from the note store instead
        """
        bm25 = self.bm25_persistence.load()
        if bm25 is None:
            logger.info("No usable persisted BM25 index, a sync is needed")
            return False

        index = self.hnsw_persistence.load()
        if index is None or not self.embeddings.restore(bm25.notes, index):
            logger.info("No usable persisted HNSW index, a sync is needed")
            return False

        self.bm25 = bm25
        self.hybrid.bm25 = bm25
        return True

    def reset(self) -> None:
        """Empty every index. Persisted records are kept."""
        self.hybrid.clear_all()

    def dispose(self) -> None:
        """Empty every index and drop the persisted records."""
        self.reset()
        self.bm25_persistence.delete()
        self.hnsw_persistence.delete()
        logger.info("Search services disposed")
