"""
topocanvas: force-directed network topology diagrams.

Main interface: create()
"""

__version__ = "0.1.0"

from .diagram import Diagram, create
from .errors import LayerBusyError, SettingsError, TopoCanvasError, UnresolvedEdgeError

__all__ = [
    "Diagram",
    "create",
    "LayerBusyError",
    "SettingsError",
    "TopoCanvasError",
    "UnresolvedEdgeError",
]
