"""
Key-Value Stores for Demo Mode

DESIGN DECISION: Demo mode keeps every entity kind as one serialized list
under its own key, the same shape a browser's localStorage would hold.
The store itself only knows strings; serialization is the caller's job.

Two implementations:
- JsonFileStore: durable across process restarts (the default)
- InMemoryStore: for tests and throwaway sessions
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from nexora.services.storage.interface import StorageError


class KeyValueStore(ABC):
    """String-to-string persistent storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Drop a key. Removing an absent key is a no-op."""


class InMemoryStore(KeyValueStore):
    """Process-local store backed by a dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Store persisted as a single JSON object on disk.

    The file is re-read on every access so that another process writing
    the same file is picked up. Writes go to a temporary file first and
    are moved into place, so a crash never leaves a half-written store.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read local store {self._path}: {e}")

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Local store {self._path} is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise StorageError(f"Local store {self._path} must hold a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                dir=self._path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as e:
            raise StorageError(f"Failed to write local store {self._path}: {e}")

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
