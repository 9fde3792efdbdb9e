"""
Export artifacts: standalone SVG files and file names.

export_svg() takes the markup a surface produced and returns a document with an
XML declaration, explicit SVG/XLink namespaces and viewBox "0 0 W H" in
viewport inches. Every child element and attribute is preserved.
"""

import re
import xml.etree.ElementTree as ET

from plotter.engines.script.surface import SVG_NS, XLINK_NS
from plotter.models import ViewportSize

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

SVG_SUFFIX = ".svg"
JSON_SUFFIX = ".json"

MAX_FILENAME_LENGTH = 255
_INVALID_FILENAME_RE = re.compile(r'[<>:"/\\|?*]')


def _strip_namespaces(el: ET.Element) -> None:
    """Turn ElementTree's {ns}tag names back into plain / xlink: prefixed names."""
    for node in el.iter():
        if isinstance(node.tag, str) and node.tag.startswith(f"{{{SVG_NS}}}"):
            node.tag = node.tag[len(SVG_NS) + 2 :]
        for key in list(node.attrib):
            if key.startswith(f"{{{XLINK_NS}}}"):
                node.attrib[f"xlink:{key[len(XLINK_NS) + 2 :]}"] = node.attrib.pop(key)


def export_svg(markup: str, viewport: ViewportSize) -> str:
    """
    Standalone SVG document for markup rendered at viewport.

    Raises ValueError for empty or unparseable markup or when no <svg> root is found.
    """
    if not markup or not isinstance(markup, str):
        raise ValueError("Invalid SVG markup: must be a non-empty string")
    try:
        root = ET.fromstring(markup)
    except ET.ParseError as e:
        raise ValueError("Failed to parse SVG markup: invalid XML") from e

    _strip_namespaces(root)
    if root.tag != "svg":
        svg = root.find(".//svg")
        if svg is None:
            raise ValueError("No SVG element found in markup")
        root = svg

    root.set("xmlns", SVG_NS)
    root.set("xmlns:xlink", XLINK_NS)
    root.set("viewBox", viewport.view_box)
    return f"{XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}"


def export_filename(name: str, suffix: str) -> str:
    """Project name -> download file name; a trailing .json is replaced, not doubled."""
    base = (name or "").strip()
    if base.lower().endswith(JSON_SUFFIX):
        base = base[: -len(JSON_SUFFIX)]
    if base.lower().endswith(suffix):
        base = base[: -len(suffix)]
    return f"{base or 'untitled'}{suffix}"


def validate_filename(filename: str) -> str:
    """Trimmed filename; ValueError if empty, too long or holding path/reserved characters."""
    name = (filename or "").strip()
    if not name:
        raise ValueError("Filename is required")
    if len(name) > MAX_FILENAME_LENGTH:
        raise ValueError(f"Filename must be {MAX_FILENAME_LENGTH} characters or less")
    if _INVALID_FILENAME_RE.search(name):
        raise ValueError("Filename contains invalid characters")
    return name
