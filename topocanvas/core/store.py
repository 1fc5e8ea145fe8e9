"""Key-value persistence for diagram state.

Backends hold plain strings. `Store` namespaces keys per diagram, probes the
backend once and degrades every call to a no-op when it is unavailable.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

KEY_PREFIX = "diagrams"
_PROBE_KEY = "storage test"


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryBackend:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


def get_store_dir() -> Path:
    """Directory for the file-backed store.

    Defaults to `./.topocanvas`. Override with `TOPOCANVAS_STORE_DIR`.
    """
    override = (os.environ.get("TOPOCANVAS_STORE_DIR") or "").strip()
    if override:
        p = Path(override)
        return p if p.is_absolute() else (Path.cwd() / p).resolve()
    return Path.cwd() / ".topocanvas"


class JsonFileBackend:
    """All keys in one JSON object on disk, rewritten atomically on change."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else get_store_dir() / "store.json"
        self._lock = threading.RLock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: expected a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2, sort_keys=True))
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


def probe(backend: Optional[KeyValueBackend]) -> bool:
    """Feature-detect a backend by writing and removing a test key."""
    if backend is None:
        return False
    try:
        backend.set(_PROBE_KEY, _PROBE_KEY)
        backend.remove(_PROBE_KEY)
        return True
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Storage unavailable (%s); persistence disabled", e)
        return False


def parse_json(value: Any) -> Any:
    """Parse a stored string; malformed records read as absent (None)."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.exception("Malformed persisted record: %.80r", value)
        return None


class Store:
    """Diagram-scoped view over a backend: keys are `diagrams.<id>.<path>`."""

    def __init__(self, backend: Optional[KeyValueBackend], diagram_id: str):
        self.backend = backend
        self.diagram_id = diagram_id
        self.available = probe(backend)

    def key(self, path: str) -> str:
        return f"{KEY_PREFIX}.{self.diagram_id}.{path}"

    def get(self, path: str) -> Optional[str]:
        if not self.available:
            return None
        try:
            return self.backend.get(self.key(path))
        except (OSError, ValueError) as e:
            logger.warning("Store read failed for %s: %s", path, e)
            return None

    def get_parsed(self, path: str) -> Any:
        return parse_json(self.get(path))

    def set(self, path: str, value: str) -> bool:
        if not self.available:
            return False
        try:
            self.backend.set(self.key(path), value)
            return True
        except (OSError, ValueError) as e:
            logger.warning("Store write failed for %s: %s", path, e)
            return False

    def remove(self, path: str) -> bool:
        if not self.available:
            return False
        try:
            self.backend.remove(self.key(path))
            return True
        except (OSError, ValueError) as e:
            logger.warning("Store remove failed for %s: %s", path, e)
            return False

    def get_flag(self, path: str) -> Optional[bool]:
        value = self.get(path)
        if value is None:
            return None
        return value != "false"

    def set_flag(self, path: str, value: bool) -> bool:
        return self.set(path, "true" if value else "false")
