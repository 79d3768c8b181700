import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from notesearch.domain.note import Note
from notesearch.domain.search import LexicalIndexMetadata, LexicalIndexStatus, LexicalSearchResult
from notesearch.lexical.bm25 import BM25Constants, bm25_scores, preprocess_text, tokenize
from notesearch.serialization import SERIALIZATION_VERSION, Serializable, compute_checksum


@dataclass(frozen=True)
class _Corpus:
    """One immutable generation of the lexical index.

    documents[i] is the preprocessed text of notes[i]. Readers take a reference to the
    current corpus and keep using it even if a sync swaps in a new one.
    """

    documents: tuple[str, ...] = ()
    notes: tuple[Note, ...] = ()
    last_sync_time: float = 0.0
    generation: int = 0
    tokens: tuple[tuple[str, ...], ...] = field(default=(), compare=False)


class BM25Index(Serializable):
    """Keyword index over notes, scored with BM25 at query time.

    Every mutation builds a complete new corpus and swaps it in, so the document list and
    the note list always line up position for position.
    """

    ns_namespace = ["notesearch", "lexical"]

    def __init__(
        self,
        constants: BM25Constants | None = None,
        preview_length: int = 200,
    ) -> None:
        self.constants = constants or BM25Constants()
        self.preview_length = preview_length
        self._corpus = _Corpus()
        self._write_lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._corpus.generation

    @property
    def documents(self) -> tuple[str, ...]:
        return self._corpus.documents

    @property
    def notes(self) -> tuple[Note, ...]:
        return self._corpus.notes

    @property
    def last_sync_time(self) -> float:
        return self._corpus.last_sync_time

    def sync_all_notes(self, notes: Iterable[Note]) -> int:
        """Replace the whole index with the given notes.

        Returns:
            Number of indexed documents
        """
        notes = list(notes)
        logger.info(f"BM25: syncing {len(notes)} notes")
        with self._write_lock:
            self._swap(notes, time.time())
        logger.info(f"BM25: sync completed, {len(self._corpus.documents)} documents")
        return len(self._corpus.documents)

    def upsert_note(self, note: Note) -> None:
        """Add a note, or replace the note with the same ID, keeping its position."""
        with self._write_lock:
            notes = list(self._corpus.notes)
            for position, existing in enumerate(notes):
                if existing.id == note.id:
                    notes[position] = note
                    break
            else:
                notes.append(note)
            self._swap(notes, self._corpus.last_sync_time)

    def remove_note(self, note_id: str) -> bool:
        """Remove a note by ID. Returns False if it was not indexed."""
        with self._write_lock:
            notes = [note for note in self._corpus.notes if note.id != note_id]
            if len(notes) == len(self._corpus.notes):
                return False
            self._swap(notes, self._corpus.last_sync_time)
            return True

    def search(self, query: str, limit: int = 10) -> list[LexicalSearchResult]:
        """Rank notes against a keyword query.

        Only notes with a positive score are returned. Empty queries and empty indices
        return no results.
        """
        corpus = self._corpus
        if not query.strip() or not corpus.documents or limit <= 0:
            return []

        keywords = tokenize(preprocess_text(query))
        if not keywords:
            return []

        logger.debug(f"BM25: searching for {keywords}")
        scores = bm25_scores(corpus.tokens, keywords, self.constants)
        ranked = sorted(range(len(scores)), key=lambda position: scores[position], reverse=True)

        results = []
        for position in ranked[:limit]:
            if scores[position] <= 0:
                break
            note = corpus.notes[position]
            results.append(
                LexicalSearchResult(
                    note_id=note.id,
                    title=note.title,
                    content=self._preview(note.content),
                    score=scores[position],
                )
            )
        logger.debug(f"BM25: found {len(results)} results")
        return results

    def get_index_status(self) -> LexicalIndexStatus:
        corpus = self._corpus
        total_terms = len({token for tokens in corpus.tokens for token in tokens})
        return LexicalIndexStatus(
            has_index=len(corpus.documents) > 0,
            index_size=len(corpus.documents),
            total_documents=len(corpus.documents),
            total_terms=total_terms,
            needs_rebuild=False,
            generation=corpus.generation,
        )

    def get_index_checksum(self) -> str:
        return compute_checksum(self.ns_kwargs())

    def get_index_metadata(self) -> LexicalIndexMetadata:
        status = self.get_index_status()
        return LexicalIndexMetadata(
            version=SERIALIZATION_VERSION,
            checksum=self.get_index_checksum(),
            total_documents=status.total_documents,
            total_terms=status.total_terms,
            last_sync_time=self._corpus.last_sync_time,
        )

    def clear_index(self) -> None:
        """Drop all documents, keeping the scoring constants."""
        with self._write_lock:
            self._corpus = _Corpus(generation=self._corpus.generation + 1)

    def ns_kwargs(self) -> dict[str, Any]:
        corpus = self._corpus
        return {
            "documents": list(corpus.documents),
            "note_map": [[position, note.model_dump(mode="json")] for position, note in enumerate(corpus.notes)],
            "last_sync_time": corpus.last_sync_time,
            "constants": self.constants.model_dump(),
            "preview_length": self.preview_length,
        }

    @classmethod
    def deserialize(cls, data: Any) -> "BM25Index":
        """Build an index from the output of serialize().

        Raises:
            ValueError: If the payload is malformed or documents and notes do not line up
        """
        kwargs = cls.unwrap(data)
        index = cls(
            constants=BM25Constants.model_validate(kwargs["constants"]),
            preview_length=int(kwargs.get("preview_length", 200)),
        )

        documents = [str(document) for document in kwargs["documents"]]
        note_map = {int(position): Note.model_validate(note) for position, note in kwargs["note_map"]}
        if sorted(note_map) != list(range(len(documents))):
            raise ValueError("Serialized BM25 note map does not match its documents")

        notes = tuple(note_map[position] for position in range(len(documents)))
        index._corpus = _Corpus(
            documents=tuple(documents),
            notes=notes,
            last_sync_time=float(kwargs["last_sync_time"]),
            generation=1,
            tokens=tuple(tuple(tokenize(document)) for document in documents),
        )
        return index

    def _swap(self, notes: list[Note], last_sync_time: float) -> None:
        documents = tuple(preprocess_text(f"{note.title} {note.content}") for note in notes)
        self._corpus = _Corpus(
            documents=documents,
            notes=tuple(notes),
            last_sync_time=last_sync_time,
            generation=self._corpus.generation + 1,
            tokens=tuple(tuple(tokenize(document)) for document in documents),
        )

    def _preview(self, content: str) -> str:
        if len(content) <= self.preview_length:
            return content
        return content[: self.preview_length] + "..."
