"""Small synchronous key/value stores for state that should survive a restart.

The file-backed store is allowed to fail: when the file cannot be read or
written, or the data grows past its quota, it logs once and keeps working from
memory for the rest of the session instead of raising.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Values are copied through JSON like the file store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStore:
    """Keys kept in one JSON document on disk."""

    def __init__(self, path: Path, *, max_bytes: int = 5 * 1024 * 1024) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes
        self._lock = threading.Lock()
        self._degraded = False
        self._data: dict[str, Any] = self._load()

    @property
    def degraded(self) -> bool:
        return self._degraded

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._write_locked()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._write_locked()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            self._degrade("Could not read %s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed local state in %s", self.path)
            return {}
        return data

    def _write_locked(self) -> None:
        if self._degraded:
            return
        try:
            encoded = json.dumps(self._data, indent=2)
        except (TypeError, ValueError):
            self._degrade("Local state for %s is not JSON serializable", self.path)
            return
        if len(encoded.encode("utf-8")) > self.max_bytes:
            self._degrade("Local state for %s exceeds %d bytes", self.path, self.max_bytes)
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(encoded)
            tmp_path.replace(self.path)
        except OSError:
            self._degrade("Could not write %s", self.path)

    def _degrade(self, message: str, *args: object) -> None:
        if not self._degraded:
            logger.warning(message + "; continuing with in-memory state only.", *args, exc_info=True)
        self._degraded = True
