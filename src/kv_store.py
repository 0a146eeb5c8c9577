"""
NIP Editor - Key/Value Store
Small string key/value persistence for editor state (recent rules,
favorites, tab order, last folder).

The engine only needs get(key) -> str | None and set(key, value).
JsonFileStore keeps every key in one JSON object on disk; MemoryStore is
the in-process variant used by tests and ephemeral sessions.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface: string values by string key."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class MemoryStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._data[key] = value

    def delete(self, key: str):
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys in a single JSON file, loaded once and rewritten on every set."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except Exception as e:
            logger.warning(f"State file unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} is not an object, starting empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._data[key] = value
            self._write()

    def delete(self, key: str):
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._write()

    def _write(self):
        """Atomic write: temp file in the same directory, then replace."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp", prefix=".")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, indent=2)
                os.replace(tmp_path, self.path)
            except Exception:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except Exception as e:
            logger.warning(f"Failed to save editor state: {e}")


def load_json(store: KeyValueStore, key: str, expected_type):
    """Parse a JSON value from the store; missing or corrupt → None."""
    raw = store.get(key)
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring corrupt stored value for {key!r}")
        return None
    if not isinstance(parsed, expected_type):
        return None
    return parsed


def save_json(store: KeyValueStore, key: str, value):
    store.set(key, json.dumps(value))
