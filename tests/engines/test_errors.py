"""Unit tests for engines.script.errors.classify."""

import pytest

from plotter.engines.script.errors import Phase, classify
from plotter.engines.script.sandbox import compile_script, compile_unit
from plotter.engines.script.surface import DrawingSurfaceFactory
from plotter.models import FaultKind, ViewportSize


def _raised_by(script: str, viewport: ViewportSize) -> Exception:
    factory = DrawingSurfaceFactory()
    with factory.create(viewport) as surface:
        try:
            compile_unit(script)(surface.draw)
        except Exception as e:
            return e
    raise AssertionError("script did not raise")


class TestKind:
    def test_compile_hint(self) -> None:
        fault = classify(ValueError("bad"), Phase.COMPILE)
        assert fault.kind == FaultKind.COMPILE

    def test_syntax_error_is_compile_even_with_execution_hint(self) -> None:
        fault = classify(SyntaxError("invalid syntax"), Phase.EXECUTION)
        assert fault.kind == FaultKind.COMPILE

    def test_runtime_error_is_execution(self) -> None:
        fault = classify(ZeroDivisionError("division by zero"), Phase.EXECUTION)
        assert fault.kind == FaultKind.EXECUTION
        assert fault.message == "ZeroDivisionError: division by zero"


class TestPosition:
    def test_syntax_error_line_and_column(self) -> None:
        with pytest.raises(SyntaxError) as exc_info:
            compile_script("x = 1\ny = (\n")
        fault = classify(exc_info.value, Phase.COMPILE)
        assert fault.kind == FaultKind.COMPILE
        assert fault.line is not None
        assert fault.column is not None

    def test_restricted_policy_error_line_from_message(self) -> None:
        with pytest.raises(SyntaxError) as exc_info:
            compile_script("x = 1\n_hidden = 2\n")
        fault = classify(exc_info.value, Phase.COMPILE)
        assert fault.line == 2

    def test_runtime_error_line_from_traceback(self, viewport: ViewportSize) -> None:
        e = _raised_by("a = 1\nb = 2\nc = a / 0\n", viewport)
        fault = classify(e, Phase.EXECUTION)
        assert fault.kind == FaultKind.EXECUTION
        assert fault.line == 3
        assert fault.message.startswith("ZeroDivisionError")

    def test_line_from_message_text(self) -> None:
        fault = classify(RuntimeError("failed at line 7"), Phase.EXECUTION)
        assert fault.line == 7
        assert fault.column is None

    def test_no_position(self) -> None:
        fault = classify(RuntimeError("no position here"), Phase.EXECUTION)
        assert fault.line is None
        assert fault.column is None


class TestTotal:
    def test_none(self) -> None:
        fault = classify(None, Phase.EXECUTION)
        assert fault.message == "Unknown error"
        assert fault.kind == FaultKind.EXECUTION

    def test_plain_string(self) -> None:
        fault = classify("Line 4: something odd", Phase.EXECUTION)
        assert fault.message == "Line 4: something odd"
        assert fault.line == 4

    def test_exception_without_message(self) -> None:
        fault = classify(KeyError(), Phase.EXECUTION)
        assert fault.message == "KeyError"

    def test_broken_str_does_not_raise(self) -> None:
        class Weird(Exception):
            def __str__(self) -> str:
                raise RuntimeError("no str for you")

        fault = classify(Weird(), Phase.EXECUTION)
        assert fault.message == "Unknown error"

    def test_describe(self) -> None:
        fault = classify(SyntaxError("invalid syntax"), Phase.COMPILE)
        assert fault.describe().startswith("Syntax Error: invalid syntax")
