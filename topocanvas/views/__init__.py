"""Render surfaces and SVG output."""

from .surface import GestureContext, RenderSurface, SurfaceEvents, TopologySurface
from .svg import COLORS, Style, SVGCanvas, save_png, svg_string_to_png_bytes

__all__ = [
    "GestureContext",
    "RenderSurface",
    "SurfaceEvents",
    "TopologySurface",
    "COLORS",
    "Style",
    "SVGCanvas",
    "save_png",
    "svg_string_to_png_bytes",
]
