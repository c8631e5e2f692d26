import json

import numpy as np

from face_checkin.similarity import normalize
from face_checkin.template_codec import flatten, is_well_formed, restore


def _templates():
    rng = np.random.default_rng(3)
    return [normalize(rng.normal(size=16)) for _ in range(5)]


def test_flatten_shape():
    flattened = flatten(_templates())
    assert flattened["count"] == 5
    assert len(flattened["templates"]) == 5
    assert all(item["length"] == 16 for item in flattened["templates"])


def test_restore_round_trips_exact_values_through_json():
    templates = _templates()
    payload = json.loads(json.dumps(flatten(templates)))
    restored = restore(payload)
    assert len(restored) == len(templates)
    for original, back in zip(templates, restored):
        assert back.dtype == np.float32
        assert np.array_equal(original, back)


def test_restore_tolerates_missing_structure():
    assert restore(None) == []
    assert restore({"count": 2}) == []
    assert is_well_formed(None) is False
    assert is_well_formed({"count": 2}) is False


def test_empty_set_is_well_formed_but_empty():
    flattened = flatten([])
    assert is_well_formed(flattened) is True
    assert restore(flattened) == []
