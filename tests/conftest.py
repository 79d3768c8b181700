import tempfile
from pathlib import Path
from typing import Generator

import pytest

from notesearch.domain.note import Note
from notesearch.ingestion.text_chunker import TextChunker
from notesearch.lexical.service import BM25Index
from notesearch.persistence.memory import InMemoryIndexTable
from notesearch.search.embedding_search import EmbeddingSearchService
from tests.fakes import FakeEmbedder


@pytest.fixture
def test_notes() -> list[Note]:
    return [
        Note(
            id="note1",
            title="Sourdough Baking",
            content="Feed the sourdough starter with flour and water before baking bread.",
        ),
        Note(
            id="note2",
            title="Bread Recipes",
            content="A simple bread recipe uses flour, water, salt and yeast.",
            links=["note1"],
        ),
        Note(
            id="note3",
            title="Garden Plan",
            content="Plant tomatoes and basil in the raised garden beds in spring.",
        ),
    ]


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index_table() -> InMemoryIndexTable:
    return InMemoryIndexTable()


@pytest.fixture
def bm25_index(test_notes: list[Note]) -> BM25Index:
    index = BM25Index()
    index.sync_all_notes(test_notes)
    return index


@pytest.fixture
def embedding_service(fake_embedder: FakeEmbedder) -> EmbeddingSearchService:
    """Embedding search over the fake embedder with a fixed seed."""
    return EmbeddingSearchService(
        embedder=fake_embedder,
        dimension=fake_embedder.dimension,
        chunker=TextChunker(chunk_size=200, overlap=20),
        semantic_edge_threshold=0.5,
        seed=42,
    )


@pytest.fixture
def temp_notes_base() -> Generator[Path, None, None]:
    """Create a temporary notes directory structure
    used when testing the loading of markdown notes.
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def notes_directory(temp_notes_base: Path) -> Path:
    """Create notes subdirectory."""
    notes_dir = temp_notes_base / "notes"
    notes_dir.mkdir()
    return notes_dir
