"""Key-value stores behind the build cache and the modification-time record.

Two backends share one interface:

  MemoryStore     — lives for the lifetime of the process (watch/serve).
  JsonFileStore   — loaded from and persisted to one JSON file.

Values must be JSON-serialisable. A missing, unreadable, corrupt, or
wrong-version JSON file loads as an empty store; it is never an error.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterator

from mosaic.io import atomic_write
from mosaic.logging import get_logger

logger = get_logger(__name__)

STORE_VERSION = 1


class KeyValueStore(ABC):
    """String → value mapping held in memory, with a pluggable durable layer.

    Subclasses implement load() and persist().
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._dirty = False

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._dirty = True

    def delete(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            self._dirty = True
            return True
        return False

    def keys(self) -> list[str]:
        return list(self._data)

    def items(self) -> Iterator[tuple[str, Any]]:
        return iter(list(self._data.items()))

    def clear(self) -> None:
        self._data.clear()
        self._dirty = True

    @abstractmethod
    def load(self) -> None:
        """Replace the in-memory contents with the durable copy."""

    @abstractmethod
    def persist(self) -> None:
        """Write the in-memory contents to durable storage."""

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class MemoryStore(KeyValueStore):
    """Ephemeral store; load() and persist() do nothing."""

    def load(self) -> None:
        return

    def persist(self) -> None:
        self._dirty = False


class JsonFileStore(KeyValueStore):
    """A store that round-trips through ``{"version": 1, ...}`` JSON."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)

    def load(self) -> None:
        self._data = {}
        self._dirty = False
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != STORE_VERSION:
            logger.info("Ignoring cache file %s with an unknown version", self.path)
            return
        self._data = {key: value for key, value in data.items() if key != "version"}

    def persist(self) -> None:
        if not self._dirty:
            return
        payload = {"version": STORE_VERSION, **self._data}
        atomic_write(self.path, json.dumps(payload, indent=2, sort_keys=True))
        self._dirty = False

    def clear(self) -> None:
        """Empty the store and delete its file."""
        super().clear()
        self._dirty = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["KeyValueStore", "MemoryStore", "JsonFileStore", "STORE_VERSION"]
