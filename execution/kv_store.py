"""Key-value persistence collaborators for the project store.

The store only needs get(key) -> str | None and set(key, value). The
in-memory variant backs tests; the JSON file variant keeps every key in a
single document written atomically.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    """Dictionary-backed store."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """All keys stored as string values in one JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict:
        """Load the backing file, treating a missing file as empty.

        Raises:
            json.JSONDecodeError: If the file contains invalid JSON.
        """
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} does not contain a JSON object")
        return data

    def _write(self, data: dict) -> None:
        """Atomic write: write to temp file in same directory, then rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp", prefix="store_"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, str(self.path))
        except Exception:
            # Clean up temp file on failure
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)
