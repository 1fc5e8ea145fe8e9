"""Diagram settings.

Recognised keys use the camelCase names of the embedding API
(`floatMode`, `maxZoomIn`, ...) or their snake_case attribute names.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..errors import SettingsError

# Flags that have a toggle routine on the diagram.
FLAGS = ("toolbar", "grouping", "float_mode", "show_ip_address")
ZOOM_BOUNDS = ("max_zoom_in", "max_zoom_out")

_ALIASES: Dict[str, str] = {
    "floatMode": "float_mode",
    "showIpAddress": "show_ip_address",
    "groupPadding": "group_padding",
    "groupBorderWidth": "group_border_width",
    "zoomInMult": "zoom_in_mult",
    "zoomOutMult": "zoom_out_mult",
    "maxZoomIn": "max_zoom_in",
    "maxZoomOut": "max_zoom_out",
}


@dataclass
class Settings:
    toolbar: bool = False
    grouping: bool = True
    float_mode: bool = True
    show_ip_address: bool = True
    group_padding: float = 75
    group_border_width: float = 10
    zoom_in_mult: float = 1.25
    zoom_out_mult: float = 0.8
    max_zoom_in: float = 8
    max_zoom_out: float = 0.1

    # Explicit layout / transform override what is stored.
    layout: Optional[Any] = None
    transform: Optional[Any] = None

    # Canvas size in pixels.
    width: int = 1200
    height: int = 800

    @staticmethod
    def normalize_key(key: str) -> str:
        name = _ALIASES.get(key, key)
        if name not in _FIELD_NAMES:
            raise SettingsError(f"Unknown setting: {key!r}")
        return name

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]] = None, **defaults: Any) -> "Settings":
        """Build settings from `d` layered over `defaults` and the class defaults."""
        values: Dict[str, Any] = {}
        for key, value in defaults.items():
            values[cls.normalize_key(key)] = value
        for key, value in (d or {}).items():
            values[cls.normalize_key(key)] = value
        for flag in FLAGS:
            if flag in values and not isinstance(values[flag], bool):
                raise SettingsError(f"{flag} must be a boolean value")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def scale_extent(self) -> tuple:
        return (self.max_zoom_out, self.max_zoom_in)


_FIELD_NAMES = {f.name for f in fields(Settings)}


def load_settings(path: str | Path) -> Dict[str, Any]:
    """Read a settings mapping from a YAML (or JSON) file.

    Returns the raw mapping; pass it to `Settings.from_dict` or `create`.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        import yaml

        data = yaml.safe_load(text)
    data = data or {}
    if not isinstance(data, dict):
        raise SettingsError(f"{p}: settings file must contain a mapping")
    # validate keys early, keep caller's spelling
    for key in data:
        Settings.normalize_key(key)
    return data
