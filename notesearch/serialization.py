"""Constructor-style serialization envelope shared by the persisted indices.

An index serializes to ``{"ns": 1, "type": "constructor", "id": [...], "kwargs": {...}}``
where ``kwargs`` holds everything needed to construct an equal instance. The checksum
is a SHA-256 over the canonical JSON encoding of ``kwargs``. Key order is preserved, so
a payload that survives a JSON round trip unchanged hashes to the same value.
"""

import json
from hashlib import sha256
from typing import Any, ClassVar

SERIALIZATION_VERSION = 1


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def compute_checksum(payload: Any) -> str:
    return sha256(canonical_json(payload).encode("utf-8")).hexdigest()


class Serializable:
    """Mixin for objects that serialize to the constructor envelope."""

    ns_namespace: ClassVar[list[str]] = ["notesearch"]

    @classmethod
    def ns_id(cls) -> list[str]:
        return [*cls.ns_namespace, cls.__name__]

    def ns_kwargs(self) -> dict[str, Any]:
        raise NotImplementedError

    def serialize(self) -> dict[str, Any]:
        return {
            "ns": SERIALIZATION_VERSION,
            "type": "constructor",
            "id": self.ns_id(),
            "kwargs": self.ns_kwargs(),
        }

    @classmethod
    def unwrap(cls, data: Any) -> dict[str, Any]:
        """Check an envelope was produced by this class and return its kwargs.

        Raises:
            ValueError: If the payload is not a constructor envelope for this class
        """
        if not isinstance(data, dict):
            raise ValueError(f"Serialized {cls.__name__} must be an object")
        if data.get("type") != "constructor":
            raise ValueError(f"Cannot construct {cls.__name__} from type {data.get('type')!r}")
        if data.get("id") != cls.ns_id():
            raise ValueError(f"Serialized id {data.get('id')!r} does not match {cls.ns_id()!r}")
        kwargs = data.get("kwargs")
        if not isinstance(kwargs, dict):
            raise ValueError(f"Serialized {cls.__name__} has no kwargs")
        return kwargs
