"""Tests for the local durable stores."""

import json

import pytest

from syncban.store import JsonFileStore, MemoryStore


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return JsonFileStore(tmp_path / "store")


def test_load_missing_returns_none(store):
    assert store.load("documents/b-1") is None


def test_save_and_load(store):
    store.save("documents/b-1", {"dirty": True, "working": {"id": "b-1"}})
    assert store.load("documents/b-1") == {"dirty": True, "working": {"id": "b-1"}}


def test_saved_value_is_a_copy(store):
    value = {"items": [1]}
    store.save("k", value)
    value["items"].append(2)
    loaded = store.load("k")
    loaded["items"].append(3)
    assert store.load("k") == {"items": [1]}


def test_keys_by_prefix(store):
    store.save("queue", [])
    store.save("documents/b-2", {})
    store.save("documents/b-1", {})
    assert store.keys("documents/") == ["documents/b-1", "documents/b-2"]
    assert store.keys() == ["documents/b-1", "documents/b-2", "queue"]


def test_delete_and_clear(store):
    store.save("a", 1)
    store.save("b", 2)
    store.delete("a")
    store.delete("missing")
    assert store.keys() == ["b"]
    store.clear()
    assert store.keys() == []


# --- JsonFileStore specifics ---


def test_json_layout_on_disk(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save("documents/b-1", {"id": "b-1"})
    path = tmp_path / "documents" / "b-1.json"
    assert json.loads(path.read_text()) == {"id": "b-1"}


def test_json_store_leaves_no_temp_files(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save("queue", [1])
    store.save("queue", [1, 2])
    assert sorted(p.name for p in tmp_path.iterdir()) == ["queue.json"]


def test_json_store_survives_reopen(tmp_path):
    JsonFileStore(tmp_path).save("queue", [{"id": "op-1"}])
    assert JsonFileStore(tmp_path).load("queue") == [{"id": "op-1"}]


def test_corrupt_record_raises(tmp_path):
    (tmp_path / "queue.json").write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        JsonFileStore(tmp_path).load("queue")


def test_invalid_key_rejected(tmp_path):
    with pytest.raises(ValueError):
        JsonFileStore(tmp_path).save("..", 1)
