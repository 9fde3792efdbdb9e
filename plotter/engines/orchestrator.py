"""
RenderOrchestrator: debounced, sequence-numbered script execution.

States: IDLE -> EXECUTING -> RENDERED | FAULTED. Every transition into EXECUTING
takes a new seq; a result is committed only if its seq is still the latest, so
the last issued execution wins even when an older one resolves later.

Edits are debounced on EDIT_DEBOUNCE_MS; a burst becomes one execution
carrying the last script, and a successful render is persisted straight away.
With LIVE_PREVIEW on, the preview follows the shorter LIVE_DEBOUNCE_MS window
while persistence keeps the EDIT_DEBOUNCE_MS quiet window: live renders update
the current project and the snapshot is written once the editor has been quiet
for the longer window. regenerate() skips both timers. In-flight sandbox calls
are never cancelled, only ignored.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from plotter.core.config import settings
from plotter.core.project_store import ProjectStore
from plotter.engines.script import Phase, ScriptSandbox, classify
from plotter.models import (
    ExecutionFault,
    ExecutionOutcome,
    Failure,
    Project,
    Success,
    ValidationFault,
    ViewportSize,
)

_log = logging.getLogger(__name__)


class RenderState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    RENDERED = "rendered"
    FAULTED = "faulted"


class PreviewTarget(Protocol):
    def render(self, markup: str) -> None: ...

    def clear(self) -> None: ...


class FaultDisplay(Protocol):
    def show(self, fault: ExecutionFault) -> None: ...

    def clear_fault(self) -> None: ...


class EditorSurface(Protocol):
    def get_value(self) -> str: ...

    def set_value(self, text: str) -> None: ...

    def on_change(self, callback: Callable[[str], None]) -> None: ...

    def mark_fault_line(self, line: int, message: str) -> None: ...

    def clear_fault(self) -> None: ...


class RenderOrchestrator:
    """
    Owns the current outcome and seq. The only writer of the project
    (through ProjectStore) after a successful render.
    """

    def __init__(
        self,
        sandbox: ScriptSandbox,
        store: ProjectStore,
        *,
        preview: PreviewTarget,
        faults: FaultDisplay | None = None,
        editor: EditorSurface | None = None,
        edit_debounce_ms: int | None = None,
        live_debounce_ms: int | None = None,
        live_preview: bool | None = None,
    ) -> None:
        self._sandbox = sandbox
        self._store = store
        self._preview = preview
        self._faults = faults
        self._editor = editor
        self.edit_debounce_ms = (
            settings.EDIT_DEBOUNCE_MS if edit_debounce_ms is None else edit_debounce_ms
        )
        self.live_debounce_ms = (
            settings.LIVE_DEBOUNCE_MS if live_debounce_ms is None else live_debounce_ms
        )
        self.live_preview = settings.LIVE_PREVIEW if live_preview is None else live_preview

        self._state = RenderState.IDLE
        self._seq = 0
        self._outcome: ExecutionOutcome | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._persist_timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        project = store.current
        self._script = project.script if project is not None else ""
        self._viewport = project.viewport if project is not None else None

        if editor is not None:
            editor.on_change(self.on_edit)

    # -----------------------------------------------------------------
    # Read-only view
    # -----------------------------------------------------------------

    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def seq(self) -> int:
        return self._seq

    @property
    def outcome(self) -> ExecutionOutcome | None:
        return self._outcome

    @property
    def script(self) -> str:
        return self._script

    @property
    def viewport(self) -> ViewportSize | None:
        return self._viewport

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def quiet_window_ms(self) -> int:
        return self.live_debounce_ms if self.live_preview else self.edit_debounce_ms

    @property
    def persist_window_ms(self) -> int:
        return self.edit_debounce_ms

    # -----------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------

    def on_edit(self, script: str) -> None:
        """Record the latest script and (re)start the quiet-period timer."""
        self._script = script
        self._schedule()

    def set_viewport(self, viewport: ViewportSize) -> None:
        """A viewport change follows the same debounce path as an edit."""
        if not isinstance(viewport, ViewportSize):
            raise ValidationFault("Invalid viewport size")
        self._viewport = viewport
        self._schedule()

    async def regenerate(self) -> ExecutionOutcome | None:
        """
        Execute now with a fresh seq. Returns the outcome if it was committed,
        None if a newer execution superseded it.
        """
        self.cancel_pending()
        self._cancel_persist()
        return await self._execute()

    async def _execute(self) -> ExecutionOutcome | None:
        if self._viewport is None:
            _log.warning("regenerate requested without a viewport; ignored")
            return None
        script, viewport = self._script, self._viewport
        self._seq += 1
        seq = self._seq
        self._state = RenderState.EXECUTING
        _log.debug("execution #%s started (%s chars, %s)", seq, len(script), viewport.label)

        try:
            outcome = await self._sandbox.execute(script, viewport)
        except Exception as e:
            _log.error("sandbox raised for execution #%s", seq, exc_info=True)
            outcome = Failure(classify(e, Phase.EXECUTION))

        if seq != self._seq:
            _log.debug("execution #%s discarded; latest is #%s", seq, self._seq)
            return None
        self._commit(outcome, script, viewport)
        return outcome

    def reset(self, project: Project) -> None:
        """
        Start over for a new or loaded project: drop the pending timer, make any
        in-flight result stale, clear preview and faults.
        """
        self.cancel_pending()
        self._cancel_persist()
        self._seq += 1
        self._script = project.script
        self._viewport = project.viewport
        self._outcome = None
        self._state = RenderState.IDLE
        self._preview.clear()
        if self._faults is not None:
            self._faults.clear_fault()
        if self._editor is not None:
            self._editor.set_value(project.script)
            self._editor.clear_fault()

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def drain(self) -> None:
        """Wait until no timer is pending and no execution is running."""
        while self._timer is not None or self._persist_timer is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(self.quiet_window_ms / 1000 / 4 or 0.001)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _schedule(self) -> None:
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.quiet_window_ms / 1000, self._fire)
        if self.live_preview:
            if self._persist_timer is not None:
                self._persist_timer.cancel()
            self._persist_timer = loop.call_later(
                self.persist_window_ms / 1000, self._flush_persist
            )

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._execute())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_persist(self) -> None:
        if self._persist_timer is not None:
            self._persist_timer.cancel()
            self._persist_timer = None

    def _flush_persist(self) -> None:
        # the store only ever holds successfully rendered projects
        self._persist_timer = None
        try:
            self._store.persist()
        except Exception:
            _log.error("failed to persist rendered project", exc_info=True)

    def _commit(self, outcome: ExecutionOutcome, script: str, viewport: ViewportSize) -> None:
        self._outcome = outcome
        if isinstance(outcome, Success):
            self._state = RenderState.RENDERED
            self._preview.render(outcome.markup)
            if self._faults is not None:
                self._faults.clear_fault()
            if self._editor is not None:
                self._editor.clear_fault()
            try:
                if self._store.current is not None:
                    self._store.update(script=script, viewport=viewport)
                    if self._persist_timer is None:
                        self._store.persist()
            except Exception:
                _log.error("failed to record rendered project", exc_info=True)
            _log.debug("execution #%s rendered", self._seq)
            return

        fault = outcome.fault
        self._state = RenderState.FAULTED
        if self._faults is not None:
            self._faults.show(fault)
        if self._editor is not None:
            if fault.line is not None:
                self._editor.mark_fault_line(fault.line, fault.message)
            else:
                self._editor.clear_fault()
        _log.info("execution #%s faulted: %s", self._seq, fault.describe())
