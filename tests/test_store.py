"""Tests for the collection stores."""

from __future__ import annotations

import json

import pytest

from quizhub.core.store import InMemoryStore, JsonFileStore, create_store, index_of


def test_in_memory_store_returns_copies():
    store = InMemoryStore()
    store.write_all("quiz_data", [{"id": "1", "title": "A"}])

    records = store.read_all("quiz_data")
    records[0]["title"] = "changed"

    assert store.read_all("quiz_data") == [{"id": "1", "title": "A"}]


def test_unknown_collection_reads_empty():
    assert InMemoryStore().read_all("attempt_data") == []


def test_json_store_persists_between_instances(tmp_path):
    JsonFileStore(tmp_path).write_all("attempt_data", [{"id": "a1", "score": 3}])

    reopened = JsonFileStore(tmp_path)

    assert reopened.read_all("attempt_data") == [{"id": "a1", "score": 3}]
    assert json.loads((tmp_path / "attempt_data.json").read_text(encoding="utf-8"))[0]["id"] == "a1"


def test_json_store_treats_corrupt_file_as_empty(tmp_path):
    (tmp_path / "quiz_data.json").write_text("{not json", encoding="utf-8")
    assert JsonFileStore(tmp_path).read_all("quiz_data") == []


def test_json_store_rejects_path_like_collection_names(tmp_path):
    with pytest.raises(ValueError):
        JsonFileStore(tmp_path).read_all("../escape")


def test_create_store_picks_backend(tmp_path):
    assert isinstance(create_store(None), InMemoryStore)
    assert isinstance(create_store(tmp_path / "data"), JsonFileStore)


def test_index_of():
    records = [{"id": "a"}, {"id": "b"}]
    assert index_of(records, "b") == 1
    assert index_of(records, "missing") == -1
