"""Knowledge graph domain models."""

from typing import Annotated, Any, Optional

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, BeforeValidator, PlainSerializer


def nd_array_before_validator(x: list[float]) -> NDArray[np.float32]:
    return np.asarray(x, dtype=np.float32)


def nd_array_serializer(x: NDArray[np.float32]) -> list[float]:
    return x.tolist()  # type: ignore


NumPyArray = Annotated[
    np.ndarray,
    BeforeValidator(nd_array_before_validator),
    PlainSerializer(nd_array_serializer, return_type=list),
]


class EdgeTypeDefinition(BaseModel):
    """Behaviour of an edge type. Symmetrical types add the mirror edge on insertion."""

    symmetrical: bool = False


class GraphNode(BaseModel):
    """A document or entity in the knowledge graph."""

    id: str
    content: str
    embedding: Optional[NumPyArray] = None
    metadata: dict[str, Any] = {}

    model_config = {"arbitrary_types_allowed": True}


class GraphEdge(BaseModel):
    source: str
    target: str
    weight: float
    type: str


class Neighbor(BaseModel):
    id: str
    weight: float


class RankedNode(GraphNode):
    score: float
