"""Tests for the HNSW index and its string-keyed adapter."""

import numpy as np
import pytest

from notesearch.exceptions import DimensionMismatchError, DuplicatePointError, InvalidDimensionError
from notesearch.vector_index.hnsw import HNSW
from notesearch.vector_index.hnsw_adapter import HNSWAdapter


def brute_force_top_k(data: np.ndarray, query: np.ndarray, k: int) -> set[int]:
    normalized = data / np.linalg.norm(data, axis=1, keepdims=True)
    similarities = normalized @ (query / np.linalg.norm(query))
    return set(np.argsort(-similarities)[:k].tolist())


@pytest.fixture
def random_index() -> tuple[HNSW, np.ndarray]:
    rng = np.random.default_rng(0)
    data = rng.normal(size=(200, 16)).astype(np.float32)
    index = HNSW(m=16, ef_construction=200, dimension=16, seed=42)
    for point_id, vector in enumerate(data):
        index.add_point(point_id, vector)
    return index, data


def test_search_knn_recall_on_small_corpus(random_index: tuple[HNSW, np.ndarray]) -> None:
    """Test that most queries get the exact top-k."""
    index, data = random_index
    queries = np.random.default_rng(1).normal(size=(50, 16)).astype(np.float32)
    k = 5

    exact = 0
    for query in queries:
        found = {match.id for match in index.search_knn(query, k)}
        if found == brute_force_top_k(data, query, k):
            exact += 1

    assert exact >= 0.9 * len(queries), f"Only {exact} of {len(queries)} queries got the exact top-{k}"


def test_search_knn_returns_stored_point_first(random_index: tuple[HNSW, np.ndarray]) -> None:
    index, data = random_index

    matches = index.search_knn(data[17], 3)

    assert matches[0].id == 17
    assert matches[0].score == pytest.approx(1.0, abs=1e-5)
    assert [match.score for match in matches] == sorted((match.score for match in matches), reverse=True)


def test_neighbor_lists_respect_caps_and_levels(random_index: tuple[HNSW, np.ndarray]) -> None:
    index, _ = random_index

    for point_id in range(len(index)):
        assert len(index.get_neighbors(point_id, 0)) <= 2 * index.m
        for layer in range(1, index.get_level(point_id) + 1):
            neighbors = index.get_neighbors(point_id, layer)
            assert len(neighbors) <= index.m
            assert all(index.get_level(neighbor) >= layer for neighbor in neighbors)
        assert point_id not in index.get_neighbors(point_id, 0)
        assert index.get_neighbors(point_id, 0), f"Point {point_id} has no layer-0 neighbors"


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_small_m_build_leaves_no_isolated_points(seed: int) -> None:
    data = np.random.default_rng(seed).normal(size=(300, 8)).astype(np.float32)
    index = HNSW(m=2, ef_construction=4, dimension=8, seed=seed)
    for point_id, vector in enumerate(data):
        index.add_point(point_id, vector)

    isolated = [point_id for point_id in range(len(index)) if not index.get_neighbors(point_id, 0)]

    assert isolated == []


def test_second_point_links_to_first() -> None:
    index = HNSW(dimension=2, seed=0)
    index.add_point(0, np.array([1.0, 0.0]))
    index.add_point(1, np.array([0.0, 1.0]))

    assert index.get_neighbors(0, 0) == [1]
    assert index.get_neighbors(1, 0) == [0]


def test_entry_point_is_on_top_layer(random_index: tuple[HNSW, np.ndarray]) -> None:
    index, _ = random_index

    assert index.entry_point_id is not None
    assert index.get_level(index.entry_point_id) == index.max_level
    assert max(index.get_level(point_id) for point_id in range(len(index))) == index.max_level


def test_add_point_dimension_mismatch() -> None:
    index = HNSW(dimension=4)

    with pytest.raises(DimensionMismatchError):
        index.add_point(0, np.ones(3))
    assert len(index) == 0


def test_search_dimension_mismatch() -> None:
    index = HNSW(dimension=4)
    index.add_point(0, np.ones(4))

    with pytest.raises(DimensionMismatchError):
        index.search_knn(np.ones(5), 1)


def test_dimension_fixed_by_first_point() -> None:
    index = HNSW()
    index.add_point(0, np.ones(3))

    assert index.dimension == 3
    with pytest.raises(DimensionMismatchError):
        index.add_point(1, np.ones(4))


def test_duplicate_point_raises() -> None:
    index = HNSW(dimension=2)
    index.add_point(0, np.array([1.0, 0.0]))

    with pytest.raises(DuplicatePointError, match="Point 0 already exists"):
        index.add_point(0, np.array([0.0, 1.0]))


def test_invalid_configuration() -> None:
    with pytest.raises(InvalidDimensionError):
        HNSW(dimension=0)
    with pytest.raises(ValueError):
        HNSW(metric="manhattan")


def test_search_empty_index_and_zero_k() -> None:
    index = HNSW(dimension=2)
    assert index.search_knn(np.array([1.0, 0.0]), 3) == []

    index.add_point(0, np.array([1.0, 0.0]))
    assert index.search_knn(np.array([1.0, 0.0]), 0) == []


def test_euclidean_metric() -> None:
    index = HNSW(metric="euclidean", dimension=2, seed=1)
    index.add_point(0, np.array([0.0, 0.0]))
    index.add_point(1, np.array([1.0, 0.0]))
    index.add_point(2, np.array([10.0, 0.0]))

    matches = index.search_knn(np.array([0.9, 0.0]), 3)

    assert [match.id for match in matches] == [1, 0, 2]
    assert matches[0].score == pytest.approx(1 / 1.1, rel=1e-4)


def test_clear_keeps_configuration() -> None:
    index = HNSW(dimension=2, m=4)
    index.add_point(0, np.array([1.0, 0.0]))

    index.clear()

    assert len(index) == 0
    assert index.entry_point_id is None
    assert index.m == 4
    assert index.search_knn(np.array([1.0, 0.0]), 1) == []


def test_to_dict_round_trip(random_index: tuple[HNSW, np.ndarray]) -> None:
    index, data = random_index

    restored = HNSW.from_dict(index.to_dict())

    assert restored.to_dict() == index.to_dict()
    for query in data[:10]:
        assert restored.search_knn(query, 5) == index.search_knn(query, 5)


def test_from_dict_rejects_unknown_entry_point() -> None:
    index = HNSW(dimension=2)
    index.add_point(0, np.array([1.0, 0.0]))
    dump = index.to_dict()
    dump["entry_point_id"] = 99

    with pytest.raises(ValueError):
        HNSW.from_dict(dump)


def test_adapter_maps_string_ids() -> None:
    adapter = HNSWAdapter(dimension=2, seed=0)
    adapter.add_items([("a", np.array([1.0, 0.0])), ("b", np.array([0.0, 1.0]))])

    hits = adapter.search(np.array([1.0, 0.1]), 2)

    assert [hit.id for hit in hits] == ["a", "b"]
    assert hits[0].distance < hits[1].distance
    assert "a" in adapter
    assert adapter.get_vector("missing") is None


def test_adapter_skips_duplicates_and_bad_dimensions() -> None:
    adapter = HNSWAdapter(dimension=2, seed=0)

    adapter.add_items(
        [
            ("a", np.array([1.0, 0.0])),
            ("a", np.array([0.0, 1.0])),
            ("bad", np.array([1.0, 0.0, 0.0])),
            ("b", np.array([0.0, 1.0])),
        ]
    )

    assert len(adapter) == 2
    assert "bad" not in adapter
    np.testing.assert_allclose(adapter.get_vector("a"), [1.0, 0.0])
    assert adapter.get_stats() == {"node_count": 2, "dimension": 2}


def test_adapter_serialize_round_trip() -> None:
    adapter = HNSWAdapter(dimension=8, seed=3)
    vectors = np.random.default_rng(2).normal(size=(30, 8))
    adapter.add_items([(f"item-{i}", vector) for i, vector in enumerate(vectors)])

    restored = HNSWAdapter.deserialize(adapter.serialize())

    assert restored.get_index_checksum() == adapter.get_index_checksum()
    assert restored.search(vectors[4], 5) == adapter.search(vectors[4], 5)


def test_adapter_deserialize_rejects_other_payloads() -> None:
    with pytest.raises(ValueError):
        HNSWAdapter.deserialize({"type": "constructor", "id": ["other"], "kwargs": {}})
    with pytest.raises(ValueError):
        HNSWAdapter.deserialize("not an index")
