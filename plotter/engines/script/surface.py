"""
Drawing surfaces for script execution.

A Surface is an offscreen <svg> root plus the `draw` capability object bound to
it. The factory keeps every live surface attached until it is disposed; the
sandbox creates one per execution and disposes it on every exit path.

Coordinates are in inches: the root is width*DPI x height*DPI pixels with
viewBox "0 0 width height".
"""

import logging
import re
import threading
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Sequence
from typing import Any

from plotter.models import ViewportSize, format_number

_log = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

# XML 1.0 cannot carry these characters; only the prefixes the export binds are allowed
_XML_ILLEGAL_RE = re.compile(r"[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010FFFF]")
_ATTR_NAME_RE = re.compile(r"(?:(?:xlink|xml):)?[A-Za-z_][A-Za-z0-9_.-]*")


class SurfaceClosedError(RuntimeError):
    """Raised when the script touches a surface that was disposed or cancelled."""

    pass


def _num(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    return format_number(float(value))


def _text(value: Any) -> str:
    text = str(value)
    bad = _XML_ILLEGAL_RE.search(text)
    if bad is not None:
        raise ValueError(f"character {bad.group()!r} cannot be written to SVG")
    return text


def _attr_name(name: Any) -> str:
    name = str(name)
    if not _ATTR_NAME_RE.fullmatch(name) or name.lower().startswith("xmlns"):
        raise ValueError(f"invalid attribute name: {name!r}")
    return name


def _points(points: Iterable[Sequence[float]]) -> str:
    return " ".join(f"{_num(p[0])},{_num(p[1])}" for p in points)


class Box:
    """Read-only (x, y, width, height) returned by draw.viewbox()."""

    __slots__ = ("x", "y", "width", "height")

    def __init__(self, x: float, y: float, width: float, height: float) -> None:
        self.x = x
        self.y = y
        self.width = width
        self.height = height

    def __repr__(self) -> str:
        return f"Box(x={self.x}, y={self.y}, width={self.width}, height={self.height})"


class Shape:
    """Fluent wrapper around one SVG element; every setter returns self."""

    def __init__(self, surface: "Surface", element: ET.Element) -> None:
        self._surface = surface
        self._el = element

    def attr(self, name: str, value: Any) -> "Shape":
        self._surface.check()
        self._el.set(_attr_name(name), _text(value) if isinstance(value, str) else _num(value))
        return self

    def fill(self, color: str) -> "Shape":
        return self.attr("fill", color)

    def stroke(
        self,
        color: str | None = None,
        width: float | None = None,
        *,
        linecap: str | None = None,
        linejoin: str | None = None,
        opacity: float | None = None,
    ) -> "Shape":
        self._surface.check()
        if color is not None:
            self.attr("stroke", color)
        if width is not None:
            self.attr("stroke-width", width)
        if linecap is not None:
            self.attr("stroke-linecap", linecap)
        if linejoin is not None:
            self.attr("stroke-linejoin", linejoin)
        if opacity is not None:
            self.attr("stroke-opacity", opacity)
        return self

    def move(self, x: float, y: float) -> "Shape":
        self._surface.check()
        tag = self._el.tag
        if tag == "circle":
            r = float(self._el.get("r", "0"))
            return self.attr("cx", x + r).attr("cy", y + r)
        if tag == "ellipse":
            rx = float(self._el.get("rx", "0"))
            ry = float(self._el.get("ry", "0"))
            return self.attr("cx", x + rx).attr("cy", y + ry)
        if tag in ("rect", "text"):
            return self.attr("x", x).attr("y", y)
        return self._transform(f"translate({_num(x)} {_num(y)})")

    def center(self, cx: float, cy: float) -> "Shape":
        self._surface.check()
        tag = self._el.tag
        if tag in ("circle", "ellipse"):
            return self.attr("cx", cx).attr("cy", cy)
        if tag == "rect":
            w = float(self._el.get("width", "0"))
            h = float(self._el.get("height", "0"))
            return self.attr("x", cx - w / 2).attr("y", cy - h / 2)
        return self._transform(f"translate({_num(cx)} {_num(cy)})")

    def rotate(self, degrees: float, cx: float | None = None, cy: float | None = None) -> "Shape":
        if cx is None or cy is None:
            return self._transform(f"rotate({_num(degrees)})")
        return self._transform(f"rotate({_num(degrees)} {_num(cx)} {_num(cy)})")

    def translate(self, dx: float, dy: float) -> "Shape":
        return self._transform(f"translate({_num(dx)} {_num(dy)})")

    def scale(self, sx: float, sy: float | None = None) -> "Shape":
        return self._transform(f"scale({_num(sx)} {_num(sx if sy is None else sy)})")

    def _transform(self, op: str) -> "Shape":
        self._surface.check()
        current = self._el.get("transform")
        self._el.set("transform", f"{current} {op}" if current else op)
        return self


class Container(Shape):
    """Element that can hold shapes (the root drawing and groups)."""

    def _add(self, tag: str, **attrs: str) -> ET.Element:
        self._surface.check()
        return ET.SubElement(self._el, tag, attrs)

    def circle(self, diameter: float) -> Shape:
        r = float(_num(diameter)) / 2
        return Shape(self._surface, self._add("circle", r=_num(r), cx=_num(r), cy=_num(r)))

    def ellipse(self, width: float, height: float) -> Shape:
        rx, ry = float(_num(width)) / 2, float(_num(height)) / 2
        return Shape(
            self._surface,
            self._add("ellipse", rx=_num(rx), ry=_num(ry), cx=_num(rx), cy=_num(ry)),
        )

    def rect(self, width: float, height: float) -> Shape:
        return Shape(self._surface, self._add("rect", width=_num(width), height=_num(height)))

    def line(self, x1: float, y1: float, x2: float, y2: float) -> Shape:
        return Shape(
            self._surface,
            self._add("line", x1=_num(x1), y1=_num(y1), x2=_num(x2), y2=_num(y2)),
        )

    def polyline(self, points: Iterable[Sequence[float]]) -> Shape:
        return Shape(self._surface, self._add("polyline", points=_points(points)))

    def polygon(self, points: Iterable[Sequence[float]]) -> Shape:
        return Shape(self._surface, self._add("polygon", points=_points(points)))

    def path(self, d: str) -> Shape:
        return Shape(self._surface, self._add("path", d=_text(d)))

    def text(self, content: str) -> Shape:
        content = _text(content)
        el = self._add("text")
        el.text = content
        return Shape(self._surface, el)

    def group(self) -> "Container":
        return Container(self._surface, self._add("g"))


class Drawing(Container):
    """The capability object handed to scripts as `draw`."""

    def viewbox(self) -> Box:
        self._surface.check()
        vp = self._surface.viewport
        return Box(0.0, 0.0, vp.width, vp.height)

    @property
    def width(self) -> float:
        return self._surface.viewport.width

    @property
    def height(self) -> float:
        return self._surface.viewport.height

    def checkpoint(self) -> None:
        """Explicit suspension point for long pure-computation loops."""
        self._surface.check()

    def clear(self) -> "Drawing":
        self._surface.check()
        for child in list(self._el):
            self._el.remove(child)
        return self


class Surface:
    """One execution's drawing target. Use as a context manager."""

    def __init__(self, factory: "DrawingSurfaceFactory", viewport: ViewportSize, dpi: int) -> None:
        self._factory = factory
        self.viewport = viewport
        px_w, px_h = viewport.pixel_size(dpi)
        self._root = ET.Element(
            "svg",
            {
                "xmlns": SVG_NS,
                "xmlns:xlink": XLINK_NS,
                "version": "1.1",
                "width": _num(px_w),
                "height": _num(px_h),
                "viewBox": viewport.view_box,
            },
        )
        self._cancelled = threading.Event()
        self._disposed = False
        self.draw = Drawing(self, self._root)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def check(self) -> None:
        """Suspension point: stop the script if the surface is gone or cancelled."""
        if self._disposed:
            raise SurfaceClosedError("drawing surface has been disposed")
        if self._cancelled.is_set():
            raise SurfaceClosedError("drawing surface was cancelled")

    def cancel(self) -> None:
        self._cancelled.set()

    def serialize(self) -> str:
        if self._disposed:
            raise SurfaceClosedError("drawing surface has been disposed")
        return ET.tostring(self._root, encoding="unicode")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._cancelled.set()
        self._factory._detach(self)

    def __enter__(self) -> "Surface":
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()


class DrawingSurfaceFactory:
    """Creates surfaces sized to a viewport and tracks which are still attached."""

    def __init__(self, dpi: int = 96) -> None:
        self.dpi = dpi
        self._live: set[int] = set()
        self._lock = threading.Lock()

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def create(self, viewport: ViewportSize) -> Surface:
        surface = Surface(self, viewport, self.dpi)
        with self._lock:
            self._live.add(id(surface))
        _log.debug("surface attached: %s (%s)", viewport.label, viewport.view_box)
        return surface

    def _detach(self, surface: Surface) -> None:
        with self._lock:
            self._live.discard(id(surface))
