"""
Turn raw script failures into ExecutionFault values.

classify() is pure and total: whatever it is handed, it returns a fault and
never raises.
"""

import re
import traceback
from enum import Enum
from typing import Any

from plotter.models import ExecutionFault, FaultKind

from .sandbox import SCRIPT_FILENAME


class Phase(str, Enum):
    """Where the failure was observed."""

    COMPILE = "compile"
    EXECUTION = "execution"


_TRACE_POSITION_RE = re.compile(re.escape(SCRIPT_FILENAME) + r":(\d+):(\d+)")
_TRACE_LINE_RE = re.compile(
    r'File "' + re.escape(SCRIPT_FILENAME) + r'", line (\d+)'
)
_MESSAGE_LINE_RE = re.compile(r"\bline (\d+)", re.IGNORECASE)


def _message_of(raw: Any) -> str:
    if isinstance(raw, SyntaxError) and raw.msg:
        return str(raw.msg)
    if isinstance(raw, BaseException):
        text = str(raw)
        if not text:
            return type(raw).__name__
        return f"{type(raw).__name__}: {text}"
    if raw is None:
        return "Unknown error"
    return str(raw)


def _is_parse_failure(raw: Any) -> bool:
    return isinstance(raw, SyntaxError)


def _structured_position(raw: Any) -> tuple[int | None, int | None]:
    """SyntaxError attributes, then the innermost traceback frame inside the script."""
    if isinstance(raw, SyntaxError) and raw.lineno:
        return raw.lineno, raw.offset or None
    tb = getattr(raw, "__traceback__", None)
    if tb is None:
        return None, None
    line: int | None = None
    column: int | None = None
    for frame in traceback.extract_tb(tb):
        if frame.filename == SCRIPT_FILENAME and frame.lineno:
            line = frame.lineno
            colno = getattr(frame, "colno", None)
            column = colno + 1 if colno is not None else None
    return line, column


def _trace_position(raw: Any) -> tuple[int | None, int | None]:
    """Scan a formatted trace for '<script>:L:C' or 'File "<script>", line L'."""
    if not isinstance(raw, BaseException):
        return None, None
    text = "".join(traceback.format_exception(raw))
    matches = _TRACE_POSITION_RE.findall(text)
    if matches:
        line, column = matches[-1]
        return int(line), int(column)
    lines = _TRACE_LINE_RE.findall(text)
    if lines:
        return int(lines[-1]), None
    return None, None


def _message_position(message: str) -> int | None:
    m = _MESSAGE_LINE_RE.search(message)
    return int(m.group(1)) if m else None


def classify(raw: Any, phase: Phase) -> ExecutionFault:
    """
    Build an ExecutionFault from a raw failure.

    kind is compile when the phase hint says so or the failure is a parse error,
    execution otherwise. Position comes from the first source that yields one:
    structured attributes, the formatted trace, the message text.
    """
    try:
        message = _message_of(raw)
    except Exception:
        message = "Unknown error"
    kind = (
        FaultKind.COMPILE
        if phase == Phase.COMPILE or _is_parse_failure(raw)
        else FaultKind.EXECUTION
    )
    line: int | None = None
    column: int | None = None
    try:
        line, column = _structured_position(raw)
        if line is None:
            line, column = _trace_position(raw)
        if line is None:
            line = _message_position(message)
    except Exception:
        line, column = None, None
    return ExecutionFault(kind=kind, message=message, line=line, column=column)
