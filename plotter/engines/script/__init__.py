"""
Script engine (Python, RestrictedPython).

Exports: ScriptSandbox, DrawingSurfaceFactory, Surface, classify, compile_script,
build_restricted_globals.
"""

from .errors import Phase, classify
from .executor import ScriptSandbox
from .sandbox import ScriptUnit, build_restricted_globals, compile_script, compile_unit
from .surface import Drawing, DrawingSurfaceFactory, Surface, SurfaceClosedError

__all__ = [
    "ScriptSandbox",
    "DrawingSurfaceFactory",
    "Surface",
    "Drawing",
    "SurfaceClosedError",
    "Phase",
    "classify",
    "ScriptUnit",
    "compile_script",
    "compile_unit",
    "build_restricted_globals",
]
