"""Test the JSON document stores."""
import json
import os

import pytest

from vantelemetry.exceptions import PersistenceError
from vantelemetry.persistence import InMemoryStore, JsonFileStore


@pytest.fixture
def file_store(tmp_path):
    return JsonFileStore(str(tmp_path / "data"))


def test_file_store_round_trip(file_store):
    """Test a saved document loads back equal and lands on disk."""
    doc = [{"id": "a", "name": "Fresh Water", "current_level": 50.0}]
    file_store.save("tanks.json", doc)

    assert file_store.load("tanks.json") == doc
    assert file_store.exists("tanks.json")
    with open(os.path.join(file_store.data_dir, "tanks.json"), encoding="utf-8") as f:
        assert json.load(f) == doc


def test_file_store_missing_key_is_none(file_store):
    """Test loading an absent key returns None instead of raising."""
    assert file_store.load("nothing.json") is None
    assert file_store.keys() == []


def test_file_store_corrupt_document(file_store):
    """Test a corrupt file raises PersistenceError."""
    os.makedirs(file_store.data_dir, exist_ok=True)
    with open(os.path.join(file_store.data_dir, "tanks.json"), "w", encoding="utf-8") as f:
        f.write("{not json")

    with pytest.raises(PersistenceError):
        file_store.load("tanks.json")


def test_file_store_leaves_no_temp_files(file_store):
    """Test repeated saves leave only the target file behind."""
    for i in range(3):
        file_store.save("settings.json", {"n": i})
    assert sorted(os.listdir(file_store.data_dir)) == ["settings.json"]
    assert file_store.load("settings.json") == {"n": 2}


def test_file_store_delete_and_keys(file_store):
    """Test delete removes the key and keys lists json documents."""
    file_store.save("a.json", [])
    file_store.save("b.json", [])
    assert file_store.keys() == ["a.json", "b.json"]

    file_store.delete("a.json")
    file_store.delete("a.json")
    assert file_store.keys() == ["b.json"]


def test_file_store_rejects_path_keys(file_store):
    """Test keys cannot escape the data directory."""
    with pytest.raises(PersistenceError):
        file_store.save("../escape.json", {})


def test_file_store_unserializable_value(file_store):
    """Test a value json cannot encode raises PersistenceError."""
    with pytest.raises(PersistenceError):
        file_store.save("bad.json", {"x": object()})


def test_memory_store_returns_copies():
    """Test mutating a loaded document does not change the stored one."""
    store = InMemoryStore()
    store.save("tanks.json", [{"id": "a"}])
    loaded = store.load("tanks.json")
    loaded.append({"id": "b"})

    assert store.load("tanks.json") == [{"id": "a"}]


def test_memory_store_corrupt_document():
    """Test a planted corrupt document raises PersistenceError."""
    store = InMemoryStore()
    store.put_raw("tanks.json", "{oops")
    with pytest.raises(PersistenceError):
        store.load("tanks.json")
