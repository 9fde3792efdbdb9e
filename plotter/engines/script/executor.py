"""
ScriptSandbox: execute(script, viewport) -> ExecutionOutcome.

Compiles with RestrictedPython, runs the unit on a worker thread against a fresh
surface, and races it against SCRIPT_EXEC_TIMEOUT_MS. Always disposes the
surface before returning.

The timeout cancels the surface, so the script stops at its next suspension
point (any draw call or guarded attribute access). A body that never reaches
one keeps its worker thread busy until it finishes; Python threads cannot be
killed from outside.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from plotter.core.config import settings
from plotter.models import (
    ExecutionFault,
    ExecutionOutcome,
    Failure,
    FaultKind,
    Success,
    ViewportSize,
)

from .errors import Phase, classify
from .sandbox import compile_unit
from .surface import DrawingSurfaceFactory

_log = logging.getLogger(__name__)


def timeout_fault(timeout_ms: int) -> ExecutionFault:
    return ExecutionFault(
        kind=FaultKind.TIMEOUT,
        message=f"Code execution timed out after {timeout_ms / 1000:g} seconds",
    )


class ScriptSandbox:
    """
    Run one artist script against one freshly created drawing surface.
    """

    def __init__(
        self,
        factory: DrawingSurfaceFactory | None = None,
        *,
        timeout_ms: int | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._factory = factory or DrawingSurfaceFactory(dpi=settings.SURFACE_DPI)
        self._timeout_ms = (
            timeout_ms if timeout_ms is not None else settings.SCRIPT_EXEC_TIMEOUT_MS
        )
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or settings.SCRIPT_MAX_WORKERS,
            thread_name_prefix="plotter-script",
        )

    @property
    def factory(self) -> DrawingSurfaceFactory:
        return self._factory

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    async def execute(self, script: str, viewport: ViewportSize) -> ExecutionOutcome:
        """
        Compile, invoke and serialize. Never raises for script faults: compile
        errors, runtime errors and timeouts all come back as Failure.
        """
        with self._factory.create(viewport) as surface:
            try:
                unit = compile_unit(script)
            except Exception as e:
                _log.debug("script compile failed: %s", e)
                return Failure(classify(e, Phase.COMPILE))

            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(self._pool, unit, surface.draw)
            try:
                await asyncio.wait_for(future, timeout=self._timeout_ms / 1000)
            except TimeoutError as e:
                if not future.cancelled():
                    # the script itself raised TimeoutError
                    return Failure(classify(e, Phase.EXECUTION))
                surface.cancel()
                _log.warning("script timed out after %sms", self._timeout_ms)
                return Failure(timeout_fault(self._timeout_ms))
            except Exception as e:
                _log.debug("script execution failed: %s", e)
                return Failure(classify(e, Phase.EXECUTION))

            return Success(markup=surface.serialize())

    def shutdown(self) -> None:
        """Stop accepting work; running scripts are not waited for."""
        self._pool.shutdown(wait=False, cancel_futures=True)
