"""Text chunking service for note content."""

from typing import Any

from notesearch.domain.note import TextChunk


class TextChunker:
    """Service for splitting note text into overlapping chunks at natural boundaries."""

    def __init__(self, chunk_size: int = 500, overlap: int = 50):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum characters per chunk
            overlap: Number of characters to overlap between chunks
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be at least 0 and smaller than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk_text(self, text: str, metadata: dict[str, Any] | None = None) -> list[TextChunk]:
        """Split text into chunks, preferring to end each chunk at a sentence, line or word.

        Args:
            text: Input text
            metadata: Extra metadata copied into every chunk

        Returns:
            List of chunks with chunk_index, start_position, end_position and total_chunks
            in their metadata
        """
        metadata = metadata or {}
        clean_text = text.strip() if text else ""
        if not clean_text:
            return []

        if len(clean_text) <= self.chunk_size:
            return [
                TextChunk(
                    text=clean_text,
                    metadata={
                        **metadata,
                        "chunk_index": 0,
                        "start_position": 0,
                        "end_position": len(clean_text),
                        "total_chunks": 1,
                    },
                )
            ]

        chunks = []
        start = 0
        chunk_index = 0
        while start < len(clean_text):
            end = self._find_chunk_end(clean_text, start)
            chunk_text = clean_text[start:end].strip()
            if chunk_text:
                chunks.append(
                    TextChunk(
                        text=chunk_text,
                        metadata={
                            **metadata,
                            "chunk_index": chunk_index,
                            "start_position": start,
                            "end_position": end,
                        },
                    )
                )
                chunk_index += 1
            next_start = end - self.overlap
            start = next_start if next_start > start else end
            if end >= len(clean_text):
                break

        for chunk in chunks:
            chunk.metadata["total_chunks"] = len(chunks)
        return chunks

    def _find_chunk_end(self, text: str, start: int) -> int:
        end = min(start + self.chunk_size, len(text))
        if end >= len(text):
            return end

        # Latest boundary that does not throw away more than 30% of the chunk
        boundary = max(text.rfind(".", start, end), text.rfind("\n", start, end), text.rfind(" ", start, end))
        if boundary > start + self.chunk_size * 0.7:
            return boundary + 1
        return end
