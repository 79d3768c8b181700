"""Errors raised by the search indices.

Structural problems (bad dimensions, unknown edge types, missing endpoints) are raised
to the caller. Bulk paths catch them per item and log instead.
"""


class InvalidDimensionError(ValueError):
    """Raised when an index is configured with a non-positive dimension."""


class DimensionMismatchError(ValueError):
    """Raised when an embedding does not have the configured length."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Embedding dimension must be {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class DuplicatePointError(ValueError):
    """Raised when a point id is inserted into the vector index twice."""


class UnknownEdgeTypeError(KeyError):
    """Raised when an edge uses a type that was never registered."""


class MissingNodeError(KeyError):
    """Raised when an edge references a node that is not in the graph."""


class EmptyQueryError(ValueError):
    """Raised when a graph query has neither an embedding nor seed nodes."""
