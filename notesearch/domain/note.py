"""Note domain models."""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator

from notesearch.domain.attributes import TypedAttribute, parse_attribute


def attributes_before_validator(x: dict[str, Any] | None) -> dict[str, TypedAttribute]:
    return {name: parse_attribute(raw) for name, raw in (x or {}).items()}


class Note(BaseModel):
    """A note as supplied by the note store, indexed as one document.

    Attributes:
        id: Unique identifier of the note
        title: Note title
        content: Plain text content
        links: IDs of notes this note explicitly references
        attributes: Typed entity attributes keyed by attribute name
    """

    id: str
    title: str
    content: str
    links: list[str] = []
    attributes: Annotated[
        dict[str, TypedAttribute], BeforeValidator(attributes_before_validator)
    ] = {}

    model_config = {"frozen": True}


class TextChunk(BaseModel):
    """A chunk of note text, with its position in the note kept in metadata."""

    text: str
    metadata: dict[str, Any] = {}
