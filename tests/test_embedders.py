"""Tests for the embedding providers, with the API clients replaced by fakes."""

from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

from notesearch.embedders import voyage_embedder
from notesearch.embedders.voyage_embedder import VoyageEmbedder
from notesearch.exceptions import InvalidDimensionError


class FakeVoyageClient:
    """Records embed calls and returns vectors of the requested output dimension."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self.calls: list[dict[str, Any]] = []

    def embed(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        size = kwargs.get("output_dimension") or 1024
        return SimpleNamespace(embeddings=[[0.5] * size for _ in kwargs["texts"]])


@pytest.fixture
def fake_voyage_client(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(voyage_embedder.voyageai, "Client", FakeVoyageClient)


def test_voyage_embedder_requests_configured_dimension(fake_voyage_client: None) -> None:
    embedder = VoyageEmbedder(api_key="test-key", dimension=256)

    embedding = embedder.embed("Sourdough starter")

    assert embedding.shape == (256,)
    assert embedding.dtype == np.float32
    assert embedder.client.calls == [
        {
            "texts": ["Sourdough starter"],
            "model": "voyage-3.5",
            "input_type": "document",
            "output_dimension": 256,
        }
    ]


def test_voyage_embedder_rejects_unsupported_dimension(fake_voyage_client: None) -> None:
    with pytest.raises(InvalidDimensionError):
        VoyageEmbedder(api_key="test-key", dimension=384)
