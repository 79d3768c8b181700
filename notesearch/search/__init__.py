from notesearch.search.embedding_search import EmbeddingSearchService
from notesearch.search.hybrid import HybridSearchService
from notesearch.search.services import SearchServices

__all__ = ["EmbeddingSearchService", "HybridSearchService", "SearchServices"]
