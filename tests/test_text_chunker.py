import pytest

from notesearch.ingestion.text_chunker import TextChunker

LONG_TEXT = """# Header 1

This is a paragraph under header 1 with lots of content that should definitely exceed the chunk size.

## Header 2

This is another paragraph under header 2 with even more content to ensure we get multiple chunks.

### Header 3

And this is a third paragraph with additional content to make sure we have enough text to split."""


def test_text_chunker_basic_functionality() -> None:
    """Test basic text chunking functionality."""
    chunker = TextChunker(chunk_size=80, overlap=10)

    chunks = chunker.chunk_text(LONG_TEXT)

    assert len(chunks) > 1
    assert all(chunk.text.strip() for chunk in chunks)
    assert all(len(chunk.text) <= 80 for chunk in chunks)
    assert [chunk.metadata["chunk_index"] for chunk in chunks] == list(range(len(chunks)))
    assert all(chunk.metadata["total_chunks"] == len(chunks) for chunk in chunks)


def test_text_chunker_small_text() -> None:
    """Test chunking with text smaller than the chunk size."""
    chunker = TextChunker(chunk_size=1000, overlap=100)

    text = "  This is a small text that should fit in one chunk.  "

    chunks = chunker.chunk_text(text, metadata={"note_id": "n1"})

    assert len(chunks) == 1
    assert chunks[0].text == text.strip()
    assert chunks[0].metadata == {
        "note_id": "n1",
        "chunk_index": 0,
        "start_position": 0,
        "end_position": len(text.strip()),
        "total_chunks": 1,
    }


def test_text_chunker_covers_all_words() -> None:
    """Test that every word of the text ends up in some chunk, unbroken."""
    chunker = TextChunker(chunk_size=60, overlap=0)

    chunks = chunker.chunk_text(LONG_TEXT)

    chunk_words = {word for chunk in chunks for word in chunk.text.split()}
    assert chunk_words == set(LONG_TEXT.split())


def test_text_chunker_overlap_functionality() -> None:
    """Test that consecutive chunks share text when overlap is set."""
    with_overlap = TextChunker(chunk_size=60, overlap=15).chunk_text(LONG_TEXT)
    without_overlap = TextChunker(chunk_size=60, overlap=0).chunk_text(LONG_TEXT)

    for previous, current in zip(with_overlap, with_overlap[1:]):
        assert current.metadata["start_position"] < previous.metadata["end_position"]
        assert current.metadata["start_position"] > previous.metadata["start_position"]

    for previous, current in zip(without_overlap, without_overlap[1:]):
        assert current.metadata["start_position"] == previous.metadata["end_position"]


def test_text_chunker_hard_cut_without_boundaries() -> None:
    chunker = TextChunker(chunk_size=50, overlap=10)

    chunks = chunker.chunk_text("x" * 120)

    assert [(c.metadata["start_position"], c.metadata["end_position"]) for c in chunks] == [
        (0, 50),
        (40, 90),
        (80, 120),
    ]


def test_text_chunker_empty_text() -> None:
    """Test chunking empty or whitespace-only text."""
    chunker = TextChunker()

    assert chunker.chunk_text("") == []
    assert chunker.chunk_text("   \n\n   ") == []


def test_text_chunker_invalid_parameters() -> None:
    with pytest.raises(ValueError):
        TextChunker(chunk_size=0)
    with pytest.raises(ValueError):
        TextChunker(chunk_size=10, overlap=10)
