from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="NOTESEARCH_")

    # Embedding settings
    embedding_dimension: int = 384
    voyage_ai_api_key: str | None = None
    openai_api_key: str | None = None

    # Vector index settings
    hnsw_m: int = 16
    hnsw_ef_construction: int = 200
    hnsw_ef_search: int = 50
    hnsw_metric: str = "cosine"

    # Lexical index settings
    bm25_k1: float = 1.2
    bm25_b: float = 0.75
    bm25_preview_length: int = 200

    # Graph settings
    semantic_edge_threshold: float = 0.7
    semantic_edge_k: int = 10
    random_walk_steps: int = 100
    restart_prob: float = 0.15
    walk_edge_type: str = "semantic"

    # Chunking settings
    chunk_size: int = 500
    chunk_overlap: int = 50

    # Search settings
    hybrid_alpha: float = 0.5  # 0.0 = lexical only, 1.0 = dense only

    # Persistence settings
    index_store_path: Path = Path("data/indices.json")

    log_level: str = "INFO"  # Can be DEBUG, INFO, WARNING, ERROR, CRITICAL


settings = Settings()
