"""Tests for the key-value storage backends."""

import pytest

from chemsearch.core.storage import (
    ANALYTICS_KEY,
    BOOKMARKS_KEY,
    HISTORY_KEY,
    JsonFileStorage,
    MemoryStorage,
    StorageError,
)


def test_namespaced_keys():
    assert HISTORY_KEY == "chemsearch-history"
    assert BOOKMARKS_KEY == "chemsearch-bookmarks"
    assert ANALYTICS_KEY == "chemsearch-analytics"


class TestMemoryStorage:
    def test_set_get_delete(self):
        storage = MemoryStorage()
        assert storage.get("a") is None
        storage.set("a", "1")
        assert storage.get("a") == "1"
        assert storage.keys() == ["a"]
        storage.delete("a")
        storage.delete("a")
        assert storage.get("a") is None

    def test_initial(self):
        storage = MemoryStorage({"k": "v"})
        assert storage.get("k") == "v"


class TestJsonFileStorage:
    def test_missing_key(self, tmp_path):
        assert JsonFileStorage(tmp_path).get(HISTORY_KEY) is None

    def test_undecodable_file(self, tmp_path):
        (tmp_path / f"{HISTORY_KEY}.json").write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(StorageError, match="Cannot read"):
            JsonFileStorage(tmp_path).get(HISTORY_KEY)

    def test_set_creates_directory(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "store")
        storage.set(HISTORY_KEY, '{"a": 1}')
        assert (tmp_path / "store" / "chemsearch-history.json").is_file()
        assert storage.get(HISTORY_KEY) == '{"a": 1}\n'

    def test_overwrite_leaves_no_temp_file(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.set(BOOKMARKS_KEY, "[]")
        storage.set(BOOKMARKS_KEY, "[1]")
        assert storage.get(BOOKMARKS_KEY).strip() == "[1]"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["chemsearch-bookmarks.json"]

    def test_delete_idempotent(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.set(ANALYTICS_KEY, "{}")
        storage.delete(ANALYTICS_KEY)
        storage.delete(ANALYTICS_KEY)
        assert storage.get(ANALYTICS_KEY) is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", ".hidden"])
    def test_invalid_key(self, tmp_path, key):
        with pytest.raises(StorageError):
            JsonFileStorage(tmp_path).set(key, "x")
