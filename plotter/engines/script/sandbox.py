"""
RestrictedPython sandbox for artist scripts.

Allowed: safe builtins, list/dict/set/tuple/len/range/min/max/sum/abs/sorted/
enumerate/zip/map/filter/any/all/reversed/round, the math and random modules,
print (collected into the log) and the `draw` capability object.

Blocked: open, exec, eval, __import__, compile, underscore names and attributes,
attribute writes on foreign objects.

This is capability discipline, not a security boundary.
"""

import ast
import builtins
import logging
import math
import operator
import random
from collections.abc import Callable
from typing import Any

from RestrictedPython import compile_restricted
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

_log = logging.getLogger(__name__)

SCRIPT_FILENAME = "<script>"

_MISSING = object()

_INPLACE_OPS: dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "^=": operator.ixor,
    "|=": operator.ior,
    "@=": operator.imatmul,
}

_EXPOSED_BUILTINS = (
    "list", "dict", "set", "tuple", "len", "range", "min", "max", "sum", "abs",
    "sorted", "enumerate", "zip", "map", "filter", "any", "all", "reversed", "round",
)


class _LoggedPrint(PrintCollector):
    """print() inside a script goes to the debug log instead of stdout."""

    def write(self, text: str) -> None:
        super().write(text)
        if text.strip():
            _log.debug("script print: %s", text.rstrip("\n"))


def _inplacevar(op: str, x: Any, y: Any) -> Any:
    fn = _INPLACE_OPS.get(op)
    if fn is None:
        raise SyntaxError(f"unsupported augmented assignment: {op}")
    return fn(x, y)


def _apply(f: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return f(*args, **kwargs)


def _make_getattr(checkpoint: Callable[[], None] | None) -> Callable[..., Any]:
    """safer_getattr that raises AttributeError on a miss and honours cancellation."""

    def guarded_getattr(obj: Any, name: str, *default: Any) -> Any:
        if checkpoint is not None:
            checkpoint()
        if default:
            return safer_getattr(obj, name, default[0])
        value = safer_getattr(obj, name, _MISSING)
        if value is _MISSING:
            raise AttributeError(
                f"'{type(obj).__name__}' object has no attribute '{name}'"
            )
        return value

    return guarded_getattr


def _make_guard_globals(checkpoint: Callable[[], None] | None) -> dict[str, Any]:
    """Guards required by RestrictedPython's rewritten bytecode."""
    return {
        "_getattr_": _make_getattr(checkpoint),
        "_getiter_": default_guarded_getiter,
        "_getitem_": default_guarded_getitem,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_apply_": _apply,
        "_print_": _LoggedPrint,
        "__metaclass__": type,
    }


def _make_extra_globals() -> dict[str, Any]:
    """Language-level helpers every script may use: math, random."""
    return {"math": math, "random": random}


def compile_script(script: str, filename: str = SCRIPT_FILENAME) -> Any:
    """
    Compile script with RestrictedPython. Raises SyntaxError on failure.

    Plain parse errors keep their lineno/offset; policy violations reported by
    RestrictedPython come back as one SyntaxError whose message lists every
    'Line N: ...' entry.
    """
    ast.parse(script, filename, "exec")
    try:
        code = compile_restricted(script, filename, "exec")
    except SyntaxError as e:
        errors = e.args[0] if e.args else None
        if isinstance(errors, list | tuple):
            raise SyntaxError("; ".join(str(err) for err in errors)) from None
        raise
    if code is None:
        raise SyntaxError("RestrictedPython: compile failed")
    return code


def build_restricted_globals(
    context_dict: dict[str, Any],
    *,
    checkpoint: Callable[[], None] | None = None,
) -> dict[str, Any]:
    """
    Build the globals dict for exec(compiled, globals): safe builtins, guards,
    extra (math, random) and context (draw).
    """
    safe = dict(safe_builtins)
    g: dict[str, Any] = {
        "__builtins__": safe,
        "__name__": "script",
    }
    g.update(_make_guard_globals(checkpoint))
    g.update(_make_extra_globals())
    for name in _EXPOSED_BUILTINS:
        obj = safe.get(name, getattr(builtins, name, None))
        if obj is not None:
            g[name] = obj
    g.update(context_dict)
    return g


class ScriptUnit:
    """A compiled script as a callable whose only parameter is the capability object."""

    def __init__(self, code: Any) -> None:
        self._code = code

    def __call__(self, draw: Any) -> None:
        g = build_restricted_globals(
            {"draw": draw}, checkpoint=getattr(draw, "checkpoint", None)
        )
        exec(self._code, g)


def compile_unit(script: str) -> ScriptUnit:
    return ScriptUnit(compile_script(script))
