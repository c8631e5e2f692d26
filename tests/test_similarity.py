import numpy as np
import pytest

from face_checkin.similarity import (
    as_unit,
    best_match,
    euclidean_distance,
    normalize,
    similarity,
)


def test_normalize_produces_unit_vector():
    rng = np.random.default_rng(7)
    for _ in range(10):
        vec = rng.normal(size=128).astype(np.float32)
        assert abs(np.linalg.norm(normalize(vec)) - 1.0) < 1e-5


def test_normalize_leaves_zero_vector_unchanged():
    zero = np.zeros(4, dtype=np.float32)
    out = normalize(zero)
    assert np.array_equal(out, zero)


def test_self_similarity_is_maximal():
    a = normalize(np.asarray([0.3, -0.2, 0.9, 0.1], dtype=np.float32))
    for threshold in (0.1, 0.6, 2.0):
        assert similarity(a, a, threshold) == 1.0


def test_similarity_is_symmetric():
    a = normalize(np.asarray([1.0, 0.2, 0.0], dtype=np.float32))
    b = normalize(np.asarray([0.9, 0.3, 0.1], dtype=np.float32))
    assert similarity(a, b) == similarity(b, a)


def test_similarity_saturates_at_threshold():
    a = np.asarray([1.0, 0.0], dtype=np.float32)
    b = np.asarray([0.0, 1.0], dtype=np.float32)
    # Distance is sqrt(2), well beyond 0.6.
    assert similarity(a, b, 0.6) == 0.0


def test_similarity_rejects_non_positive_threshold():
    a = np.asarray([1.0, 0.0], dtype=np.float32)
    with pytest.raises(ValueError):
        similarity(a, a, 0.0)


def test_distance_uses_shared_prefix_on_length_mismatch():
    a = np.asarray([1.0, 0.0, 5.0], dtype=np.float32)
    b = np.asarray([1.0, 0.0], dtype=np.float32)
    assert euclidean_distance(a, b) == 0.0


def test_best_match_on_empty_templates():
    result = best_match(np.asarray([1.0, 0.0], dtype=np.float32), [])
    assert result.best_similarity == 0.0
    assert result.best_index == -1
    assert result.all_distances == []


def test_best_match_picks_closest_template():
    templates = [
        np.asarray([0.0, 1.0, 0.0], dtype=np.float32),
        np.asarray([1.0, 0.05, 0.0], dtype=np.float32),
        np.asarray([1.0, 0.2, 0.0], dtype=np.float32),
    ]
    result = best_match(np.asarray([2.0, 0.0, 0.0], dtype=np.float32), templates)
    assert result.best_index == 1
    assert 0.0 < result.best_similarity < 1.0
    assert len(result.all_distances) == 3


def test_best_match_ties_keep_first_index():
    template = np.asarray([1.0, 0.0], dtype=np.float32)
    result = best_match(template, [template, template.copy()])
    assert result.best_index == 0
    assert result.best_similarity == 1.0


def test_best_match_with_no_positive_score_reports_no_index():
    templates = [np.asarray([0.0, 1.0], dtype=np.float32)]
    result = best_match(np.asarray([1.0, 0.0], dtype=np.float32), templates)
    assert result.best_index == -1
    assert result.best_similarity == 0.0
    assert result.all_distances == pytest.approx([np.sqrt(2.0)])


def test_as_unit_keeps_unit_vectors_bit_identical():
    rng = np.random.default_rng(3)
    for _ in range(20):
        unit = normalize(rng.standard_normal(512).astype(np.float32))
        assert np.array_equal(as_unit(unit), unit)


def test_stored_unit_template_matches_its_source_exactly():
    rng = np.random.default_rng(11)
    for _ in range(20):
        raw = rng.standard_normal(512).astype(np.float32)
        template = normalize(raw)
        result = best_match(raw, [template])
        assert result.best_similarity == 1.0
        assert result.all_distances == [0.0]
