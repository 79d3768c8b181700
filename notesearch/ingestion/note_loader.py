"""Loading markdown files from a folder as notes."""

import logging
from hashlib import md5
from pathlib import Path

from notesearch.domain.note import Note

from .references import ReferenceResolver, extract_wikilinks

logger = logging.getLogger(__name__)


class MarkdownNoteLoader:
    """Reads a folder of markdown files into Note snapshots with resolved links."""

    def load(self, folder: Path) -> list[Note]:
        """Load every markdown note under a folder.

        Args:
            folder: Path to folder containing markdown files

        Returns:
            Notes in path order, with wikilinks resolved to note IDs
        """
        files = self._get_markdown_files(folder)
        logger.info(f"Found {len(files)} markdown files in {folder}")

        resolver = ReferenceResolver(self._get_path_to_id_mapping(files, folder))
        notes = []
        for file in files:
            logger.debug(f"Processing {file}")
            content = file.read_text(encoding="utf-8")
            note_id = self.generate_note_id(file, folder)
            links = [
                linked_id
                for linked_id in resolver.resolve_references(extract_wikilinks(content))
                if linked_id != note_id
            ]
            notes.append(
                Note(
                    id=note_id,
                    title=self._extract_title(file, content),
                    content=content,
                    links=links,
                )
            )
        return notes

    @staticmethod
    def generate_note_id(file: Path, base_folder: Path) -> str:
        """Generate a unique note ID from file path."""
        return md5(str(file.relative_to(base_folder)).encode()).hexdigest()

    @staticmethod
    def _extract_title(file: Path, content: str) -> str:
        if content.startswith("#"):
            return content.split("\n")[0].lstrip("#").strip()
        return file.stem

    @staticmethod
    def _get_markdown_files(folder: Path) -> list[Path]:
        return sorted(f for f in folder.rglob("*.md") if not f.name.endswith(".excalidraw.md"))

    @classmethod
    def _get_path_to_id_mapping(cls, files: list[Path], folder: Path) -> dict[str, str]:
        """Map file stems, file names and relative paths to note IDs."""
        mapping = {}
        for file in files:
            note_id = cls.generate_note_id(file, folder)
            mapping[file.stem] = note_id
            mapping[file.name] = note_id
            mapping[str(file.relative_to(folder))] = note_id
        return mapping
