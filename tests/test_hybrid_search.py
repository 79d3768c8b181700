"""Tests for hybrid search and the search services container."""

import pytest

from notesearch.config import Settings
from notesearch.domain.note import Note
from notesearch.lexical.service import BM25Index
from notesearch.persistence.memory import InMemoryIndexTable
from notesearch.search.embedding_search import EmbeddingSearchService
from notesearch.search.hybrid import HybridSearchService
from notesearch.search.services import SearchServices
from tests.fakes import FailingIndexTable, FakeEmbedder


@pytest.fixture
def hybrid_service(
    embedding_service: EmbeddingSearchService, test_notes: list[Note]
) -> HybridSearchService:
    service = HybridSearchService(BM25Index(), embedding_service)
    service.sync_all_notes(test_notes)
    return service


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        embedding_dimension=256,
        chunk_size=200,
        chunk_overlap=20,
        semantic_edge_threshold=0.5,
        hybrid_alpha=0.5,
    )


def test_alpha_must_be_in_range(hybrid_service: HybridSearchService) -> None:
    with pytest.raises(ValueError):
        hybrid_service.search("bread", alpha=1.5)
    with pytest.raises(ValueError):
        hybrid_service.search("bread", alpha=-0.1)
    with pytest.raises(ValueError):
        HybridSearchService(hybrid_service.bm25, hybrid_service.embeddings, alpha=2.0)


def test_empty_query(hybrid_service: HybridSearchService) -> None:
    assert hybrid_service.search("") == []
    assert hybrid_service.search("  \n") == []


def test_sparse_only_skips_dense_search(
    hybrid_service: HybridSearchService, fake_embedder: FakeEmbedder
) -> None:
    calls = len(fake_embedder.calls)

    results = hybrid_service.search("bread", alpha=0.0)

    assert len(fake_embedder.calls) == calls, "Dense search must not run when alpha is 0"
    assert [result.note_id for result in results] == ["note2", "note1"]
    assert results[0].sparse_score == 1.0
    assert results[0].fused_score == 1.0
    assert all(result.dense_score is None for result in results)


def test_dense_only_skips_sparse_search(hybrid_service: HybridSearchService) -> None:
    results = hybrid_service.search("tomatoes basil garden", alpha=1.0)

    assert results[0].note_id == "note3"
    assert results[0].dense_score == 1.0
    assert all(result.sparse_score is None for result in results)


def test_fused_scores(hybrid_service: HybridSearchService) -> None:
    results = hybrid_service.search("bread flour", alpha=0.3, limit=10)

    assert results
    for result in results:
        expected = 0.7 * (result.sparse_score or 0.0) + 0.3 * (result.dense_score or 0.0)
        assert result.fused_score == pytest.approx(expected)
    assert [r.fused_score for r in results] == sorted((r.fused_score for r in results), reverse=True)
    assert max(r.sparse_score or 0.0 for r in results) == pytest.approx(1.0)


def test_limit(hybrid_service: HybridSearchService) -> None:
    assert len(hybrid_service.search("bread", limit=1)) == 1
    assert hybrid_service.search("bread", limit=0) == []


def test_default_alpha(hybrid_service: HybridSearchService) -> None:
    hybrid_service.alpha = 0.0

    results = hybrid_service.search("bread")

    assert all(result.dense_score is None for result in results)


def test_related(hybrid_service: HybridSearchService) -> None:
    assert [result.note_id for result in hybrid_service.related("note2")] == ["note1"]


def test_status_and_clear(hybrid_service: HybridSearchService) -> None:
    status = hybrid_service.get_index_status()
    assert status["bm25"].total_documents == 3
    assert status["embeddings"].node_count == 3

    hybrid_service.clear_all()

    status = hybrid_service.get_index_status()
    assert not status["bm25"].has_index
    assert status["embeddings"].node_count == 0
    assert hybrid_service.search("bread") == []


def test_sync_all_notes_counts(hybrid_service: HybridSearchService, test_notes: list[Note]) -> None:
    assert hybrid_service.sync_all_notes(test_notes) == {"bm25": 3, "embeddings": 3}


def test_services_save_and_load(test_settings: Settings, test_notes: list[Note]) -> None:
    table = InMemoryIndexTable()
    services = SearchServices.from_settings(FakeEmbedder(), table=table, config=test_settings, seed=42)
    services.hybrid.sync_all_notes(test_notes)

    assert services.save()
    assert set(table.records) == {"bm25-main-index", "hnsw-main-index"}

    embedder = FakeEmbedder()
    loaded = SearchServices.from_settings(embedder, table=table, config=test_settings, seed=42)
    assert loaded.load()

    assert embedder.calls == []
    assert loaded.hybrid.bm25 is loaded.bm25
    assert loaded.bm25.get_index_checksum() == services.bm25.get_index_checksum()
    assert loaded.embeddings.get_stats() == services.embeddings.get_stats()
    assert loaded.hybrid.search("bread", alpha=0.0) == services.hybrid.search("bread", alpha=0.0)
    assert loaded.hybrid.search("tomatoes basil garden", alpha=1.0)[0].note_id == "note3"


def test_services_load_needs_both_indices(test_settings: Settings, test_notes: list[Note]) -> None:
    table = InMemoryIndexTable()
    services = SearchServices.from_settings(FakeEmbedder(), table=table, config=test_settings)
    assert not services.load()

    services.hybrid.sync_all_notes(test_notes)
    services.save()
    table.records["hnsw-main-index"]["checksum"] = "0" * 64

    loaded = SearchServices.from_settings(FakeEmbedder(), table=table, config=test_settings)
    original_bm25 = loaded.bm25
    assert not loaded.load()
    assert loaded.bm25 is original_bm25


def test_services_save_failure(test_settings: Settings, test_notes: list[Note]) -> None:
    services = SearchServices.from_settings(FakeEmbedder(), table=FailingIndexTable(), config=test_settings)
    services.hybrid.sync_all_notes(test_notes)

    assert not services.save()


def test_services_reset_and_dispose(test_settings: Settings, test_notes: list[Note]) -> None:
    table = InMemoryIndexTable()
    services = SearchServices.from_settings(FakeEmbedder(), table=table, config=test_settings)
    services.hybrid.sync_all_notes(test_notes)
    services.save()

    services.reset()
    assert services.hybrid.search("bread") == []
    assert services.load(), "Reset keeps persisted indices"

    services.dispose()
    assert services.hybrid.search("bread") == []
    assert table.records == {}
    assert not services.load()


def test_from_settings_uses_configuration(test_settings: Settings) -> None:
    services = SearchServices.from_settings(FakeEmbedder(), config=test_settings)

    assert services.embeddings.dimension == 256
    assert services.embeddings.chunker.chunk_size == 200
    assert services.hybrid.alpha == 0.5
    assert services.bm25.constants.k1 == test_settings.bm25_k1
