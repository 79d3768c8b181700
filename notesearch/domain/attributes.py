"""Typed note attributes.

Attribute payloads arrive as loose JSON. They are validated into one of the known
variants, discriminated on ``type``. Anything that does not fit a known variant is kept
as an ``UntypedAttribute`` carrying the raw payload, so nothing passes through unchecked.
"""

import logging
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class _AttributeBase(BaseModel):
    name: str
    unit: str | None = None


class TextAttribute(_AttributeBase):
    type: Literal["Text"] = "Text"
    value: str


class NumberAttribute(_AttributeBase):
    type: Literal["Number"] = "Number"
    value: float


class BooleanAttribute(_AttributeBase):
    type: Literal["Boolean"] = "Boolean"
    value: bool


class DateAttribute(_AttributeBase):
    type: Literal["Date"] = "Date"
    value: datetime


class ListAttribute(_AttributeBase):
    type: Literal["List"] = "List"
    value: list[str]


class URLAttribute(_AttributeBase):
    type: Literal["URL"] = "URL"
    value: str


class EntityReference(BaseModel):
    id: str
    label: str
    kind: str


class EntityLinkAttribute(_AttributeBase):
    type: Literal["EntityLink"] = "EntityLink"
    value: EntityReference


class ProgressBarValue(BaseModel):
    current: float
    maximum: float


class ProgressBarAttribute(_AttributeBase):
    type: Literal["ProgressBar"] = "ProgressBar"
    value: ProgressBarValue


class StatBlockValue(BaseModel):
    strength: int
    dexterity: int
    constitution: int
    intelligence: int
    wisdom: int
    charisma: int


class StatBlockAttribute(_AttributeBase):
    type: Literal["StatBlock"] = "StatBlock"
    value: StatBlockValue


class RelationshipValue(BaseModel):
    entity_id: str
    entity_label: str
    relationship_type: str


class RelationshipAttribute(_AttributeBase):
    type: Literal["Relationship"] = "Relationship"
    value: RelationshipValue


class UntypedAttribute(BaseModel):
    """Attribute whose payload did not match any known variant."""

    name: str
    type: Literal["Untyped"] = "Untyped"
    declared_type: str | None = None
    value: Any = None


TypedAttribute = Annotated[
    Union[
        TextAttribute,
        NumberAttribute,
        BooleanAttribute,
        DateAttribute,
        ListAttribute,
        URLAttribute,
        EntityLinkAttribute,
        ProgressBarAttribute,
        StatBlockAttribute,
        RelationshipAttribute,
        UntypedAttribute,
    ],
    Field(discriminator="type"),
]

_typed_attribute_adapter = TypeAdapter(TypedAttribute)


def parse_attribute(raw: Any) -> TypedAttribute:
    """Validate a raw attribute payload into a typed variant.

    Args:
        raw: Attribute dict as stored by the note store, or an already parsed attribute

    Returns:
        The matching typed attribute, or an UntypedAttribute if the payload has an
        unknown type or a value that does not fit its declared type
    """
    if isinstance(raw, BaseModel):
        return raw  # type: ignore[return-value]

    if not isinstance(raw, dict):
        return UntypedAttribute(name="", value=raw)

    try:
        return _typed_attribute_adapter.validate_python(raw)
    except ValidationError:
        declared_type = raw.get("type")
        logger.debug(f"Attribute {raw.get('name')!r} of type {declared_type!r} kept untyped")
        return UntypedAttribute(
            name=str(raw.get("name", "")),
            declared_type=str(declared_type) if declared_type is not None else None,
            value=raw.get("value"),
        )
