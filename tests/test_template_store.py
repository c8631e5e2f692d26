import numpy as np

from face_checkin.template_codec import flatten, restore
from face_checkin.template_store import TemplateStore


def _flattened(*vectors):
    return flatten([np.asarray(v, dtype=np.float32) for v in vectors])


def test_save_and_reload_from_disk(tmp_path):
    path = tmp_path / "store.json"
    store = TemplateStore(path)
    store.save("alice", _flattened([1.0, 0.0, 0.0], [0.0, 1.0, 0.0]))

    reloaded = TemplateStore(path)
    assert reloaded.has_user("alice") is True
    templates = restore(reloaded.load("alice"))
    assert len(templates) == 2
    assert np.allclose(templates[1], np.asarray([0.0, 1.0, 0.0], dtype=np.float32))


def test_save_replaces_existing_set(tmp_path):
    store = TemplateStore(tmp_path / "store.json")
    store.save("alice", _flattened([1.0, 0.0], [0.0, 1.0]))
    store.save("alice", _flattened([0.5, 0.5]))

    assert store.load("alice")["count"] == 1


def test_load_missing_user_returns_none(tmp_path):
    store = TemplateStore(tmp_path / "store.json")
    assert store.load("missing") is None


def test_delete_user(tmp_path):
    store = TemplateStore(tmp_path / "store.json")
    store.save("alice", _flattened([1.0, 0.0]))
    store.save("bob", _flattened([0.0, 1.0]))

    assert store.delete_user("alice") is True
    assert store.delete_user("alice") is False
    assert store.list_users() == ["bob"]


def test_empty_file_loads_as_empty_store(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("")
    store = TemplateStore(path)
    assert store.list_users() == []


def test_entry_without_templates_is_kept_as_enrolled(tmp_path):
    path = tmp_path / "store.json"
    path.write_text('[{"user_id": "alice"}, {"user_id": "bob", "face_templates": null}]')
    store = TemplateStore(path)

    assert store.list_users() == ["alice", "bob"]
    assert store.load("alice") == {}
    assert store.load("bob") == {}
