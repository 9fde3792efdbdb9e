"""Unit tests for core.export: standalone SVG documents and download names."""

import asyncio
import xml.etree.ElementTree as ET

import pytest

from plotter.core.export import (
    XML_DECLARATION,
    export_filename,
    export_svg,
    validate_filename,
)
from plotter.engines.script import ScriptSandbox
from plotter.engines.script.surface import SVG_NS, XLINK_NS
from plotter.models import Success, ViewportSize


def _render(script: str, viewport: ViewportSize) -> str:
    sandbox = ScriptSandbox(timeout_ms=2000)
    try:
        outcome = asyncio.run(sandbox.execute(script, viewport))
    finally:
        sandbox.shutdown()
    assert isinstance(outcome, Success)
    return outcome.markup


class TestExportSvg:
    def test_six_by_six_viewbox(self, viewport: ViewportSize) -> None:
        markup = _render("draw.circle(1).center(3, 3)", viewport)
        svg = export_svg(markup, viewport)
        assert svg.startswith(XML_DECLARATION)
        assert 'viewBox="0 0 6 6"' in svg
        assert f'xmlns="{SVG_NS}"' in svg
        assert f'xmlns:xlink="{XLINK_NS}"' in svg

    def test_children_preserved(self, viewport: ViewportSize) -> None:
        markup = _render(
            "g = draw.group()\ng.circle(1)\ng.rect(1, 2).move(1, 1)\ndraw.path('M 0 0 L 1 1')",
            viewport,
        )
        root = ET.fromstring(export_svg(markup, viewport).split("\n", 1)[1])
        tags = [child.tag for child in root]
        assert tags == [f"{{{SVG_NS}}}g", f"{{{SVG_NS}}}path"]
        assert len(list(root[0])) == 2

    def test_fractional_viewport(self) -> None:
        vp = ViewportSize(width=8.5, height=11, label="8.5x11")
        svg = export_svg(_render("", vp), vp)
        assert 'viewBox="0 0 8.5 11"' in svg

    def test_svg_nested_in_wrapper(self, viewport: ViewportSize) -> None:
        markup = '<div><svg><circle r="1"/></svg></div>'
        svg = export_svg(markup, viewport)
        assert "<circle" in svg
        assert "<div" not in svg

    @pytest.mark.parametrize("markup", ["", "<svg", "<div><p/></div>"])
    def test_rejects_bad_markup(self, markup: str, viewport: ViewportSize) -> None:
        with pytest.raises(ValueError):
            export_svg(markup, viewport)


class TestExportFilename:
    @pytest.mark.parametrize(
        "name,suffix,expected",
        [
            ("Spiral", ".svg", "Spiral.svg"),
            ("Spiral.json", ".svg", "Spiral.svg"),
            ("Spiral.json", ".json", "Spiral.json"),
            ("Spiral.svg", ".svg", "Spiral.svg"),
            ("  ", ".svg", "untitled.svg"),
        ],
    )
    def test_names(self, name: str, suffix: str, expected: str) -> None:
        assert export_filename(name, suffix) == expected


class TestValidateFilename:
    def test_trims(self) -> None:
        assert validate_filename("  Spiral  ") == "Spiral"

    @pytest.mark.parametrize("filename", ["", "a<b", "a|b", "C:\\art", "q?", "x" * 256])
    def test_rejects(self, filename: str) -> None:
        with pytest.raises(ValueError):
            validate_filename(filename)
