"""Wikilink extraction and resolution of note references to note IDs."""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

WIKILINK_PATTERN = re.compile(r"(?<!!)\[\[([^\]|#]+)(?:#[^\]|]*)?(?:\|[^\]]*)?\]\]")


def extract_wikilinks(content: str) -> list[str]:
    """Extract [[wikilink]] targets from note content, skipping ![[embeds]].

    Aliases ([[Target|text]]) and heading anchors ([[Target#Heading]]) are stripped.

    Args:
        content: Note content

    Returns:
        Link targets in order of appearance, without duplicates
    """
    seen: dict[str, None] = {}
    for match in WIKILINK_PATTERN.finditer(content):
        seen.setdefault(match.group(1).strip(), None)
    return list(seen)


class ReferenceResolver:
    """Handles resolution of note references from wikilinks to note IDs."""

    def __init__(self, note_mapping: dict[str, str]):
        """Initialize resolver with a note mapping.

        Args:
            note_mapping: Dictionary mapping note titles, file names and relative paths to note IDs
        """
        self.note_mapping = note_mapping
        self._lowercase_mapping = {name.lower(): note_id for name, note_id in note_mapping.items()}

    def resolve_references(self, links: list[str]) -> list[str]:
        """Convert note names/paths to note IDs using the mapping dictionary.

        Args:
            links: List of note names or paths from wikilinks

        Returns:
            List of resolved note IDs, unresolved links omitted
        """
        resolved_ids = []
        for link in links:
            resolved_id = self._resolve_single_reference(link)
            if resolved_id and resolved_id not in resolved_ids:
                resolved_ids.append(resolved_id)
        return resolved_ids

    def _resolve_single_reference(self, link: str) -> str | None:
        if link in self.note_mapping:
            return self.note_mapping[link]

        md_link = f"{link}.md"
        if md_link in self.note_mapping:
            return self.note_mapping[md_link]

        for path, note_id in self.note_mapping.items():
            if Path(path).stem == link:
                return note_id

        if link.lower() in self._lowercase_mapping:
            return self._lowercase_mapping[link.lower()]

        logger.warning(f"Could not resolve wikilink: {link}")
        return None
