"""
storage.py - Key-value storage backends

Provides the flat string-keyed store the persistence adapter writes JSON
blobs into.

Classes:
- KeyValueStore: Protocol defining the storage interface
- InMemoryKeyValueStore: Process-local dict, for tests and demos
- JsonFileKeyValueStore: One <key>.json file per key in a directory

There is no atomicity across keys. Failures surface as StorageError.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable
import os
import re
import tempfile
import threading

from .core import StorageError


_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for key-value stores.

    Values are opaque strings (serialized JSON). get() returns None for a
    missing key; remove() of a missing key is a no-op.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def remove_all(self, keys: Iterable[str]) -> None:
        ...

    def list_keys(self) -> List[str]:
        ...


class InMemoryKeyValueStore:
    """Thread-safe in-memory store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Value for {key} must be a string, got {type(value).__name__}")
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def remove_all(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def list_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)

    def __repr__(self):
        return f"InMemoryKeyValueStore({len(self._data)} keys)"


class JsonFileKeyValueStore:
    """
    Directory-backed store: key "app_users_data" lives in app_users_data.json.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace(), so a crashed write never leaves half a blob.
    """

    SUFFIX = ".json"

    def __init__(self, directory):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.directory}: {e}") from e

    def _path(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise StorageError(f"Invalid storage key {key!r}")
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Cannot write {key}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, path)
        except (OSError, UnicodeEncodeError) as e:
            Path(tmp).unlink(missing_ok=True)
            raise StorageError(f"Cannot write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot remove {key}: {e}") from e

    def remove_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)

    def list_keys(self) -> List[str]:
        try:
            return sorted(p.name[:-len(self.SUFFIX)] for p in self.directory.glob(f"*{self.SUFFIX}"))
        except OSError as e:
            raise StorageError(f"Cannot list {self.directory}: {e}") from e

    def __repr__(self):
        return f"JsonFileKeyValueStore({self.directory})"
