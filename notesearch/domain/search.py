"""Search result and index status models."""

from pydantic import BaseModel


class VectorMatch(BaseModel):
    """A point returned by the vector index. Higher score means closer."""

    id: int
    score: float


class LexicalSearchResult(BaseModel):
    note_id: str
    title: str
    content: str  # preview
    score: float


class SemanticSearchResult(BaseModel):
    note_id: str
    title: str
    content: str
    score: float


class HybridSearchResult(BaseModel):
    note_id: str
    title: str
    content: str
    fused_score: float
    sparse_score: float | None = None
    dense_score: float | None = None


class LexicalIndexStatus(BaseModel):
    has_index: bool
    index_size: int
    total_documents: int
    total_terms: int
    needs_rebuild: bool = False
    generation: int = 0


class LexicalIndexMetadata(BaseModel):
    version: int
    checksum: str
    total_documents: int
    total_terms: int
    last_sync_time: float


class GraphStats(BaseModel):
    node_count: int
    edge_count: int
    index_node_count: int
    dimension: int | None = None


class IndexHit(BaseModel):
    """A neighbor returned by a similarity index. Lower distance means closer."""

    id: str
    distance: float
