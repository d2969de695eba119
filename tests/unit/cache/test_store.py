"""Tests for the key-value store backends."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mosaic.cache.store import STORE_VERSION, JsonFileStore, KeyValueStore, MemoryStore


def test_key_value_store_is_abstract() -> None:
    with pytest.raises(TypeError):
        KeyValueStore()  # type: ignore[abstract]


def test_memory_store_basics() -> None:
    store = MemoryStore()
    store.set("a", 1)
    store.set("b", [1, 2])
    assert store.get("a") == 1
    assert store.get("missing", "fallback") == "fallback"
    assert "b" in store
    assert len(store) == 2
    assert store.delete("a") is True
    assert store.delete("a") is False
    assert store.keys() == ["b"]
    store.load()
    store.persist()
    assert store.get("b") == [1, 2]


def test_json_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "store.json"
    store = JsonFileStore(path)
    store.set("hashes", {"/a.html": "abc"})
    store.persist()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"version": STORE_VERSION, "hashes": {"/a.html": "abc"}}

    fresh = JsonFileStore(path)
    fresh.load()
    assert fresh.get("hashes") == {"/a.html": "abc"}
    assert "version" not in fresh


def test_json_store_skips_clean_persist(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.persist()
    assert not path.exists()


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"version": 99, "hashes": {"/a": "x"}}),
        json.dumps(["a", "list"]),
        "",
    ],
)
def test_json_store_fails_open(tmp_path: Path, content: str) -> None:
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")
    store = JsonFileStore(path)
    store.load()
    assert len(store) == 0


def test_json_store_missing_file_is_empty(tmp_path: Path) -> None:
    store = JsonFileStore(tmp_path / "nope.json")
    store.load()
    assert len(store) == 0


def test_json_store_clear_deletes_file(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.set("k", "v")
    store.persist()
    store.clear()
    assert not path.exists()
    assert len(store) == 0
