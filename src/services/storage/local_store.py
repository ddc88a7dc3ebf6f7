"""
Local Key-Value Storage

The ledger's offline state lives here. Two implementations:
- JsonFileKeyValueStore: one JSON document on disk, rewritten atomically
- InMemoryKeyValueStore: for tests and throwaway sessions

Every write is a full read-modify-write of the document. That is fine
for a personal ledger and keeps each write atomic from the engine's
point of view.
"""

import copy
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from src.services.storage.interface import KeyValueStoreInterface, StorageError


logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dict-backed store. Values are deep-copied in and out like a real store."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, Any]:
        """Copy of everything stored (for inspection in tests)."""
        return copy.deepcopy(self._data)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    JSON-file backed store.

    A missing file reads as empty. A corrupt file is renamed to
    `<name>.corrupt-<timestamp>.json` (and logged) and then reads as empty,
    so unsynced entries and pending deletions can still be recovered by hand.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._set_aside(str(e))
            return {}

        if not isinstance(data, dict):
            self._set_aside("not an object")
            return {}
        return data

    def _set_aside(self, reason: str) -> None:
        """Move an unreadable file out of the way so the next write cannot destroy it."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup = self._path.with_name(f"{self._path.stem}.corrupt-{stamp}{self._path.suffix}")
        try:
            os.replace(self._path, backup)
        except OSError as e:
            raise StorageError(f"Local store {self._path} is corrupt and could not be moved aside: {e}")
        logger.error(
            "local_store_corrupt",
            path=str(self._path),
            backup=str(backup),
            error=reason,
        )

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise StorageError(f"Failed to write local store {self._path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
