from notesearch.graph.graphrag import GraphRAG
from notesearch.graph.sampling import select_weighted

__all__ = ["GraphRAG", "select_weighted"]
