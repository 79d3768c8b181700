"""Hybrid search: BM25 and embedding search fused with a weighted sum."""

from typing import Any, Iterable, Sequence

from loguru import logger

from notesearch.domain.note import Note
from notesearch.domain.search import HybridSearchResult, LexicalSearchResult, SemanticSearchResult
from notesearch.lexical.service import BM25Index
from notesearch.search.embedding_search import EmbeddingSearchService


def _max_normalized(results: Sequence[LexicalSearchResult | SemanticSearchResult]) -> dict[str, float]:
    max_score = max((result.score for result in results), default=0.0)
    return {result.note_id: result.score / max_score if max_score > 0 else 0.0 for result in results}


class HybridSearchService:
    """Runs lexical and dense search for a query and fuses the rankings.

    ``alpha`` weighs the two: 0.0 is lexical only, 1.0 is dense only.
    """

    def __init__(self, bm25: BM25Index, embeddings: EmbeddingSearchService, alpha: float = 0.5):
        self._check_alpha(alpha)
        self.bm25 = bm25
        self.embeddings = embeddings
        self.alpha = alpha

    def search(self, query: str, alpha: float | None = None, limit: int = 10) -> list[HybridSearchResult]:
        """Search both indices and fuse the results.

        Each side fetches ``limit * 3`` candidates and has its scores divided by its best
        score. A note scores ``(1 - alpha) * sparse + alpha * dense``, with a missing side
        counting as 0. A side whose weight is 0 is not searched.

        Raises:
            ValueError: If alpha is outside [0, 1]
        """
        alpha = self.alpha if alpha is None else alpha
        self._check_alpha(alpha)
        if not query.strip() or limit <= 0:
            return []

        logger.debug(f"Hybrid search (alpha: {alpha}) for {query!r}")
        search_limit = limit * 3
        sparse = self.bm25.search(query, search_limit) if alpha < 1 else []
        dense = self.embeddings.search(query, search_limit) if alpha > 0 else []
        logger.debug(f"Sparse search returned {len(sparse)} results, dense search {len(dense)}")

        fused = self._fuse(sparse, dense, alpha)
        fused.sort(key=lambda result: result.fused_score, reverse=True)
        return fused[:limit]

    def related(self, note_id: str, limit: int = 10) -> list[SemanticSearchResult]:
        """Get notes related to a note through the knowledge graph."""
        return self.embeddings.related(note_id, limit)

    def sync_all_notes(self, notes: Iterable[Note]) -> dict[str, int]:
        """Rebuild both indices from the same notes.

        Returns:
            Number of notes indexed by each side
        """
        notes = list(notes)
        logger.info(f"Syncing {len(notes)} notes across all search services")
        counts = {
            "bm25": self.bm25.sync_all_notes(notes),
            "embeddings": self.embeddings.sync_all_notes(notes),
        }
        logger.info(f"All search services synced: {counts}")
        return counts

    def clear_all(self) -> None:
        self.bm25.clear_index()
        self.embeddings.clear()

    def get_index_status(self) -> dict[str, Any]:
        return {
            "bm25": self.bm25.get_index_status(),
            "embeddings": self.embeddings.get_stats(),
        }

    @staticmethod
    def _check_alpha(alpha: float) -> None:
        if not 0.0 <= alpha <= 1.0:
            raise ValueError("Alpha must be between 0.0 and 1.0")

    @staticmethod
    def _fuse(
        sparse: list[LexicalSearchResult], dense: list[SemanticSearchResult], alpha: float
    ) -> list[HybridSearchResult]:
        sparse_scores = _max_normalized(sparse)
        dense_scores = _max_normalized(dense)

        # Title and content come from the first side that returned the note
        documents: dict[str, LexicalSearchResult | SemanticSearchResult] = {}
        for result in [*sparse, *dense]:
            documents.setdefault(result.note_id, result)

        return [
            HybridSearchResult(
                note_id=note_id,
                title=document.title,
                content=document.content,
                fused_score=(1 - alpha) * sparse_scores.get(note_id, 0.0)
                + alpha * dense_scores.get(note_id, 0.0),
                sparse_score=sparse_scores.get(note_id),
                dense_score=dense_scores.get(note_id),
            )
            for note_id, document in documents.items()
        ]
