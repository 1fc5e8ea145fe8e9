"""
Python-native SVG primitives for topology diagrams.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

# Color Palette (light canvas, as the diagram is embedded in dashboards)
COLORS = {
    "bg": "#ffffff",
    "inset_bg": "#eeeeee",
    "text": "#000000",
    "muted": "#7d8590",
    # Groups
    "group_fill": "#99d9ea",
    "group_stroke": "#83bad6",
    # Links
    "static_wan": "black",
    "warning": "red",
    "link": "green",
    # Nodes
    "node_fill": "#eeeeee",
    "node_stroke": "grey",
    "focus": "#facc15",
}

FONT_FAMILY = "Arial, Helvetica, sans-serif"


@dataclass
class Style:
    fill: str = "none"
    stroke: str = "none"
    stroke_width: float = 1.0
    stroke_dasharray: Optional[str] = None
    opacity: float = 1.0
    font_size: int = 16
    font_family: str = FONT_FAMILY
    font_weight: str = "normal"
    text_anchor: str = "start"
    display: Optional[str] = None
    visibility: Optional[str] = None


class SVGCanvas:
    """
    Lightweight SVG generator.

    Elements are appended in paint order. `open_group`/`close_group` wrap
    elements in a `<g>` carrying a transform (the viewport) or opacity (a
    fading layer).
    """

    def __init__(self, width: int = 1200, height: int = 800, background: Optional[str] = None):
        self.width = width
        self.height = height
        self.elements: List[str] = []
        self.bg_color = background or COLORS["bg"]

    def open_group(self, transform: Optional[str] = None, opacity: Optional[float] = None, css_class: Optional[str] = None):
        attrs = []
        if css_class:
            attrs.append(f'class="{html.escape(css_class, quote=True)}"')
        if transform:
            attrs.append(f'transform="{transform}"')
        if opacity is not None:
            attrs.append(f'opacity="{opacity}"')
        self.elements.append(f"<g {' '.join(attrs)}>" if attrs else "<g>")

    def close_group(self):
        self.elements.append("</g>")

    def add_rect(self, x: float, y: float, w: float, h: float, rx: float = 0, style: Style | None = None):
        """Draw a rectangle."""
        attrs = self._style_to_attrs(style or Style())
        self.elements.append(f'<rect x="{x}" y="{y}" width="{w}" height="{h}" rx="{rx}" {attrs} />')

    def add_circle(self, cx: float, cy: float, r: float, style: Style | None = None):
        """Draw a circle."""
        attrs = self._style_to_attrs(style or Style())
        self.elements.append(f'<circle cx="{cx}" cy="{cy}" r="{r}" {attrs} />')

    def add_text(self, x: float, y: float, text: str, style: Style | None = None):
        """Draw text."""
        attrs = self._style_to_attrs(style or Style())
        self.elements.append(f'<text x="{x}" y="{y}" {attrs}>{html.escape(str(text))}</text>')

    def add_image(self, x: float, y: float, w: float, h: float, href: str, opacity: float = 1.0):
        safe_href = html.escape(str(href), quote=True)
        self.elements.append(
            f'<image x="{x}" y="{y}" width="{w}" height="{h}" href="{safe_href}" opacity="{opacity}" />'
        )

    def add_line(self, x1: float, y1: float, x2: float, y2: float, style: Style | None = None):
        """Draw a line."""
        attrs = self._style_to_attrs(style or Style())
        self.elements.append(f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y2}" {attrs} />')

    def _style_to_attrs(self, style: Style) -> str:
        """Convert Style object to SVG attributes string."""
        attrs = [
            f'fill="{style.fill}"',
            f'stroke="{style.stroke}"',
            f'stroke-width="{style.stroke_width}"',
            f'opacity="{style.opacity}"',
            f'font-family="{style.font_family}"',
            f'font-size="{style.font_size}px"',
            f'font-weight="{style.font_weight}"',
            f'text-anchor="{style.text_anchor}"',
        ]
        if style.stroke_dasharray:
            attrs.append(f'stroke-dasharray="{style.stroke_dasharray}"')
        if style.display:
            attrs.append(f'display="{style.display}"')
        if style.visibility:
            attrs.append(f'visibility="{style.visibility}"')
        return " ".join(attrs)

    def render(self) -> str:
        """Generate full SVG string."""
        content = "\n".join(self.elements)

        return f"""<?xml version="1.0" encoding="UTF-8" standalone="no"?>
<svg width="{self.width}" height="{self.height}" viewBox="0 0 {self.width} {self.height}"
     xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink">
    <rect width="100%" height="100%" fill="{self.bg_color}" />
    {content}
</svg>"""


# --- Rasterization helpers ---


def svg_string_to_png_bytes(svg: str) -> bytes:
    """Convert an SVG string to PNG bytes."""
    # cairosvg loads libcairo on import; only PNG export needs it
    import cairosvg

    return cairosvg.svg2png(bytestring=svg.encode("utf-8"))


def save_png(svg: str, png_path: str | Path) -> bytes:
    """Save SVG-rendered content to a PNG on disk and return the bytes."""
    out_path = Path(png_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    png_bytes = svg_string_to_png_bytes(svg)
    out_path.write_bytes(png_bytes)
    return png_bytes
