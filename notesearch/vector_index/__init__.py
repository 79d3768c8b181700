from notesearch.vector_index.base import SimilarityIndex
from notesearch.vector_index.hnsw import HNSW
from notesearch.vector_index.hnsw_adapter import HNSWAdapter

__all__ = ["HNSW", "HNSWAdapter", "SimilarityIndex"]
