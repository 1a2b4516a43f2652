"""Key-value storage for session and analytics state.

Values are JSON documents stored under namespaced keys (``chemsearch-history``,
``chemsearch-bookmarks``, ``chemsearch-analytics``). Backends raise StorageError;
callers treat it as "no persisted state".
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

KEY_PREFIX = "chemsearch"
HISTORY_KEY = f"{KEY_PREFIX}-history"
BOOKMARKS_KEY = f"{KEY_PREFIX}-bookmarks"
ANALYTICS_KEY = f"{KEY_PREFIX}-analytics"

_SAFE_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(Exception):
    pass


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _check_key(key: str) -> str:
    if not _SAFE_KEY_RE.match(key) or key.startswith("."):
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


class MemoryStorage:
    """In-process storage, used by tests and one-shot sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(_check_key(key))

    def set(self, key: str, value: str) -> None:
        self._data[_check_key(key)] = value

    def delete(self, key: str) -> None:
        self._data.pop(_check_key(key), None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStorage:
    """One ``<key>.json`` file per key inside a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value.rstrip("\n") + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
