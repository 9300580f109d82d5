from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional


class ThreadSafePropertyStore:
    """A thread-safe, document-scoped key/value property bag.

    Keys and values are plain strings.  Every call is atomic on its own, but
    there is no transaction spanning several calls: a read followed by a write
    can interleave with another caller's writes.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._properties: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def get_property(self, key: str) -> Optional[str]:
        """Returns the value stored under *key* or None if absent."""
        with self._lock:
            return self._properties.get(key)

    def get_properties(self) -> Dict[str, str]:
        """Returns a shallow copy of every stored property."""
        with self._lock:
            return dict(self._properties)

    def set_property(self, key: str, value: str) -> None:
        """Stores *value* under *key*, replacing any previous value.

        Raises TypeError if *value* is not a string.
        """
        if not isinstance(value, str):
            raise TypeError(
                f"Property {key} must be stored as a string, got {type(value).__name__}."
            )
        with self._lock:
            self._properties[key] = value
            self._persist()

    def set_property_if_absent(self, key: str, value: str) -> str:
        """Stores *value* under *key* unless a non-empty value is already there.

        The check and the write happen under one lock acquisition.  Returns
        whichever value is stored afterwards.
        """
        if not isinstance(value, str):
            raise TypeError(
                f"Property {key} must be stored as a string, got {type(value).__name__}."
            )
        with self._lock:
            current = self._properties.get(key)
            if current:
                return current
            self._properties[key] = value
            self._persist()
            return value

    def delete_property(self, key: str) -> Optional[str]:
        """Removes *key*. Returns the removed value or None if not found."""
        with self._lock:
            removed = self._properties.pop(key, None)
            if removed is not None:
                self._persist()
            return removed

    def count(self) -> int:
        """Returns the total number of stored properties."""
        with self._lock:
            return len(self._properties)

    def _persist(self) -> None:
        """Hook for durable backends; called with the lock held."""


class JsonFilePropertyStore(ThreadSafePropertyStore):
    """Property store that mirrors its contents to a JSON file on every write."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        super().__init__(self._load(self._path))
        self._logger.info(
            "property_store_loaded",
            extra={"path": str(self._path), "count": len(self._properties)},
        )

    @staticmethod
    def _load(path: Path) -> Dict[str, str]:
        if not path.exists():
            return {}
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Property file {path} must contain a JSON object.")
        # Values are always strings in the bag
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._properties, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except BaseException:
            # Leave the previous file intact
            tmp = Path(tmp_path)
            if tmp.exists():
                tmp.unlink()
            raise


def build_property_store(path: Optional[str] = None) -> ThreadSafePropertyStore:
    """Return a file-backed store when *path* is given, otherwise an in-memory one."""
    if path:
        return JsonFilePropertyStore(path)
    return ThreadSafePropertyStore()
