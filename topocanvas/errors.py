"""Exception types raised by topocanvas."""

from __future__ import annotations

from typing import Any, Dict, List


class TopoCanvasError(Exception):
    """Base class for topocanvas errors."""


class UnresolvedEdgeError(TopoCanvasError):
    """A link references a node name that is not part of the ingested set."""

    def __init__(self, edges: List[Dict[str, Any]]):
        self.edges = edges
        names = ", ".join(f"{e.get('source')}->{e.get('target')}" for e in edges[:5])
        more = f" (+{len(edges) - 5} more)" if len(edges) > 5 else ""
        super().__init__(f"{len(edges)} link(s) with unknown endpoints: {names}{more}")


class LayerBusyError(TopoCanvasError):
    """The current layer is mid-transition and cannot accept another push."""


class SettingsError(TopoCanvasError, ValueError):
    """An invalid settings key or value."""
