"""Persisted layout: pinned node/group positions and the viewport transform."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .models import Layer
from .settings import Settings
from .store import Store, parse_json
from .tasks import Debouncer

logger = logging.getLogger(__name__)

SAVE_INTERVAL = 1.0


def _pinned(item: Any) -> Dict[str, Any]:
    return {"name": item.name, "fx": item.fx, "fy": item.fy}


def serialize_layout(layer: Layer) -> str:
    return json.dumps(
        {
            "nodes": [_pinned(n) for n in layer.nodes],
            "groups": [_pinned(g) for g in layer.groups],
        }
    )


class LayoutStore:
    """Per-layer fixed positions under `diagrams.<id>.<layer>.layout`.

    Writes go through change detection: a layer is written only when its
    serialized form differs from what was last written for it.
    """

    storage_path = "layout"
    index_path = "layout.index"

    def __init__(self, store: Store, settings: Settings, *, interval: float = SAVE_INTERVAL):
        self.store = store
        self.settings = settings
        self._last: Dict[str, Optional[str]] = {}
        self.interval = interval
        # one pending write per layer id
        self._pending: Dict[str, Debouncer] = {}

    def path(self, layer_id: str) -> str:
        return f"{layer_id}.{self.storage_path}"

    def _explicit(self, layer_id: str) -> Any:
        layout = parse_json(self.settings.layout)
        if isinstance(layout, Mapping):
            return parse_json(layout.get(layer_id))
        return None

    def get(self, layer_id: str) -> Optional[Dict[str, Any]]:
        """Stored record for a layer, preferring an explicitly configured one."""
        record = self._explicit(layer_id)
        if record is None:
            record = self.store.get_parsed(self.path(layer_id))
        if record is not None and not isinstance(record, Mapping):
            logger.error("Ignoring layout record for %s: not an object", layer_id)
            return None
        return record

    def restore(self, layer: Layer) -> int:
        """Copy stored fixed positions onto matching live nodes and groups.

        Entries without a live counterpart (and live entities without an
        entry) are skipped. Returns how many entities were matched.
        """
        record = self.get(layer.id)
        if not record:
            return 0

        matched = 0
        for key, live in (("nodes", layer.nodes), ("groups", layer.groups)):
            by_name = {item.name: item for item in live}
            for stored in record.get(key) or []:
                if not isinstance(stored, Mapping):
                    continue
                item = by_name.get(stored.get("name"))
                if item is None:
                    continue
                item.fx = stored.get("fx")
                item.fy = stored.get("fy")
                matched += 1
        logger.debug("Restored %d pinned positions on layer %s", matched, layer.id)
        return matched

    def save(self, layer: Layer) -> bool:
        """Write the layer's pinned positions if they changed. Returns True on write."""
        serialized = serialize_layout(layer)
        if layer.id not in self._last:
            self._last[layer.id] = self.store.get(self.path(layer.id))
        if self._last[layer.id] == serialized:
            return False
        if not self.store.set(self.path(layer.id), serialized):
            return False
        self._last[layer.id] = serialized
        self._index_add(layer.id)
        return True

    def schedule_save(self, layer: Layer) -> None:
        debouncer = self._pending.get(layer.id)
        if debouncer is None:
            debouncer = self._pending[layer.id] = Debouncer(self.save, self.interval)
        debouncer(layer)

    def flush(self) -> None:
        for debouncer in list(self._pending.values()):
            debouncer.flush()

    def _index(self) -> List[str]:
        ids = self.store.get_parsed(self.index_path)
        return [str(i) for i in ids] if isinstance(ids, list) else []

    def _index_add(self, layer_id: str) -> None:
        ids = self._index()
        if layer_id not in ids:
            ids.append(layer_id)
            self.store.set(self.index_path, json.dumps(ids))

    def clear(self) -> None:
        """Remove every stored layer layout."""
        for debouncer in self._pending.values():
            debouncer.cancel()
        self._pending.clear()
        for layer_id in self._index():
            self.store.remove(self.path(layer_id))
        self.store.remove(self.index_path)
        self._last.clear()


class TransformStore:
    """The root layer's viewport transform under `diagrams.<id>.transform`."""

    storage_path = "transform"

    def __init__(self, store: Store, settings: Settings, *, interval: float = SAVE_INTERVAL):
        self.store = store
        self.settings = settings
        self._save_later = Debouncer(self._write, interval)

    def _write(self, value: Mapping[str, float]) -> bool:
        return self.store.set(self.storage_path, json.dumps(dict(value)))

    def save(self, value: Mapping[str, float]) -> None:
        self._save_later(value)

    def flush(self) -> None:
        self._save_later.flush()

    def get(self, default: Mapping[str, float]) -> Dict[str, float]:
        """Explicit transform, else the stored one, else `default`."""
        for candidate in (parse_json(self.settings.transform), self.store.get_parsed(self.storage_path)):
            if isinstance(candidate, Mapping) and all(k in candidate for k in ("x", "y", "k")):
                return {k: float(candidate[k]) for k in ("x", "y", "k")}
        return dict(default)

    def clear(self) -> None:
        self._save_later.cancel()
        self.store.remove(self.storage_path)
