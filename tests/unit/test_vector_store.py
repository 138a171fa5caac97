"""Unit tests for cosine similarity and VectorStore."""

import pytest

from replyloop.storage.vector_store import cosine_similarity

pytestmark = pytest.mark.unit


def test_cosine_identical_vectors_is_one():
    v = [0.3, -1.2, 4.5, 0.01]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_cosine_is_commutative():
    a = [1.0, 2.0, 3.0]
    b = [-0.5, 4.0, 0.25]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_cosine_orthogonal_and_opposite():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_cosine_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0


def test_cosine_dimension_mismatch_raises():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_exact_match_returns_single_result(vector_store):
    """One stored vector equal to the query, the others far away."""
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0, 0.0], "test")
    vector_store.upsert("k2", "knowledge_item", [0.0, 1.0, 0.0], "test")
    vector_store.upsert("k3", "knowledge_item", [0.0, 0.0, 1.0], "test")

    results = vector_store.find_similar([1.0, 0.0, 0.0], threshold=0.7, limit=10)

    assert len(results) == 1
    record, similarity = results[0]
    assert record.source_id == "k1"
    assert similarity == pytest.approx(1.0)


def test_find_similar_threshold_and_order(vector_store):
    vector_store.upsert("low", "knowledge_item", [0.6, 0.8], "test")
    vector_store.upsert("high", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("mid", "knowledge_item", [0.8, 0.6], "test")

    results = vector_store.find_similar([1.0, 0.0], threshold=0.55, limit=10)

    assert [r.source_id for r, _ in results] == ["high", "mid", "low"]
    similarities = [s for _, s in results]
    assert similarities == sorted(similarities, reverse=True)

    assert [r.source_id for r, _ in vector_store.find_similar([1.0, 0.0], threshold=0.7)] == [
        "high",
        "mid",
    ]


def test_find_similar_threshold_is_inclusive(vector_store):
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0], "test")

    results = vector_store.find_similar([1.0, 0.0], threshold=1.0)

    assert len(results) == 1


def test_find_similar_respects_limit(vector_store):
    for i in range(5):
        vector_store.upsert(f"k{i}", "knowledge_item", [1.0, 0.01 * i], "test")

    results = vector_store.find_similar([1.0, 0.0], threshold=0.0, limit=2)

    assert [r.source_id for r, _ in results] == ["k0", "k1"]


def test_find_similar_ties_keep_insertion_order(vector_store):
    vector_store.upsert("first", "knowledge_item", [2.0, 0.0], "test")
    vector_store.upsert("second", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("third", "knowledge_item", [3.0, 0.0], "test")

    results = vector_store.find_similar([1.0, 0.0], threshold=0.5, limit=10)

    assert [r.source_id for r, _ in results] == ["first", "second", "third"]


def test_find_similar_filters_source_type_and_dimensions(vector_store):
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("m1", "message", [1.0, 0.0], "test")
    vector_store.upsert("k3d", "knowledge_item", [1.0, 0.0, 0.0], "other-model")

    results = vector_store.find_similar([1.0, 0.0], "knowledge_item", threshold=0.5)

    assert [r.source_id for r, _ in results] == ["k1"]


def test_find_similar_non_positive_limit(vector_store):
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0], "test")
    assert vector_store.find_similar([1.0, 0.0], limit=0) == []


def test_upsert_twice_keeps_one_record_with_second_vector(vector_store):
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0], "v1", {"n": 1})
    vector_store.upsert("k1", "knowledge_item", [0.0, 1.0], "v2", {"n": 2})

    assert vector_store.count("knowledge_item") == 1
    record = vector_store.get_by_source("k1", "knowledge_item")
    assert record.vector == [0.0, 1.0]
    assert record.model == "v2"
    assert record.metadata == {"n": 2}
    assert record.dimensions == 2


def test_same_source_id_different_types_are_separate(vector_store):
    vector_store.upsert("x", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("x", "message", [0.0, 1.0], "test")

    assert vector_store.count() == 2
    assert vector_store.get_by_source("x", "message").vector == [0.0, 1.0]


def test_upsert_keeps_scan_position(vector_store):
    vector_store.upsert("a", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("b", "knowledge_item", [1.0, 0.0], "test")
    vector_store.upsert("a", "knowledge_item", [2.0, 0.0], "test")

    results = vector_store.find_similar([1.0, 0.0], threshold=0.5)

    assert [r.source_id for r, _ in results] == ["a", "b"]


def test_upsert_rejects_bad_input(vector_store):
    with pytest.raises(ValueError):
        vector_store.upsert("k", "unknown", [1.0], "test")
    with pytest.raises(ValueError):
        vector_store.upsert("k", "knowledge_item", [], "test")


def test_delete_by_source(vector_store):
    vector_store.upsert("k1", "knowledge_item", [1.0, 0.0], "test")

    assert vector_store.delete_by_source("k1", "knowledge_item") is True
    assert vector_store.delete_by_source("k1", "knowledge_item") is False
    assert vector_store.get_by_source("k1", "knowledge_item") is None
