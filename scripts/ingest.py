"""CLI for indexing a folder of markdown notes and saving the search indices to a local file"""

import argparse
import sys
from pathlib import Path

from loguru import logger

from notesearch.config import settings
from notesearch.embedders.base import Embedder
from notesearch.embedders.openai_embedder import OpenAIEmbedder
from notesearch.embedders.voyage_embedder import VoyageEmbedder
from notesearch.ingestion.note_loader import MarkdownNoteLoader
from notesearch.persistence.local import JsonFileIndexTable
from notesearch.search.services import SearchServices


def get_embedder(provider: str) -> Embedder:
    if provider == "openai":
        return OpenAIEmbedder(api_key=settings.openai_api_key, dimension=settings.embedding_dimension)
    return VoyageEmbedder(api_key=settings.voyage_ai_api_key, dimension=settings.embedding_dimension)


def main(in_folder: str, outfile: str, provider: str, query: str | None = None) -> None:
    logger.configure(handlers=[{"sink": sys.stderr, "level": settings.log_level}])

    notes = MarkdownNoteLoader().load(Path(in_folder))
    services = SearchServices.from_settings(
        embedder=get_embedder(provider),
        table=JsonFileIndexTable(filepath=Path(outfile)),
    )
    services.hybrid.sync_all_notes(notes)
    if not services.save():
        logger.error(f"Failed to save the search indices to {outfile}")

    if query:
        for result in services.hybrid.search(query):
            print(f"{result.fused_score:.3f}  {result.title}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--in-folder", type=str, required=True, help="Folder containing markdown files"
    )
    parser.add_argument(
        "--outfile",
        type=str,
        required=False,
        help="Local output file for the search indices",
        default=settings.index_store_path,
    )
    parser.add_argument(
        "--provider",
        type=str,
        choices=["voyage", "openai"],
        default="openai",
        help="Embedding provider",
    )
    parser.add_argument(
        "--query", type=str, required=False, help="Run a hybrid search after indexing"
    )

    args = parser.parse_args()

    main(
        in_folder=args.in_folder,
        outfile=args.outfile,
        provider=args.provider,
        query=args.query,
    )
