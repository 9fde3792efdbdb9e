"""
PlotterSession: the editor application in one object.

Wires ProjectStore, ScriptSandbox, RenderOrchestrator, PreviewPanel and
EditorBuffer together and exposes the user-level actions: new, open, save,
edit, change viewport, regenerate and export.
"""

import logging
from typing import Any

from plotter.core.config import settings
from plotter.core.export import SVG_SUFFIX, export_filename, export_svg
from plotter.core.preview import EditorBuffer, PreviewPanel
from plotter.core.project_store import (
    DEFAULT_PROJECT_NAME,
    ProjectStore,
    coerce_viewport,
)
from plotter.core.storage import PersistenceGateway
from plotter.engines.orchestrator import RenderOrchestrator
from plotter.engines.script import ScriptSandbox
from plotter.models import (
    DEFAULT_VIEWPORT,
    ExecutionFault,
    Failure,
    FaultKind,
    Project,
    ValidationFault,
    ViewportSize,
)

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT = '''\
# Welcome to the plotter editor.
#
# `draw` is a drawing sized to the selected viewport. Every unit is an inch.
# `math` and `random` are available; print() goes to the server log.

# 1. Viewport dimensions
box = draw.viewbox()
center_x = box.width / 2
center_y = box.height / 2

# 2. Drawing parameters
diameter = 1        # circle diameter in inches
orbit = 2           # distance from the center in inches
count = 12          # circles in the ring

# 3. A ring of circles
for i in range(count):
    angle = math.radians(i * 360 / count)
    x = center_x + math.cos(angle) * orbit
    y = center_y + math.sin(angle) * orbit
    draw.circle(diameter).center(x, y).fill("none").stroke("#000", 0.02)

# 4. One circle in the middle
draw.circle(diameter * 1.5).center(center_x, center_y).fill("none").stroke("#000", 0.02)

# Tips for pen plotters:
#   use fill("none"), plotters draw outlines only
#   keep stroke widths between 0.01 and 0.05 inches
#   draw.group() collects shapes; .rotate(), .scale() and .translate() transform them
#
#   draw.rect(w, h).move(x, y)
#   draw.line(x1, y1, x2, y2)
#   draw.polygon([(x1, y1), (x2, y2), (x3, y3)])
#   draw.path("M 0 0 L 1 1")
'''


class ExportFailed(Exception):
    """The script faulted while rendering for export."""

    def __init__(self, fault: ExecutionFault) -> None:
        super().__init__(fault.describe())
        self.fault = fault


class PlotterSession:
    def __init__(
        self,
        store: ProjectStore | None = None,
        sandbox: ScriptSandbox | None = None,
        *,
        edit_debounce_ms: int | None = None,
        live_debounce_ms: int | None = None,
        live_preview: bool | None = None,
    ) -> None:
        self.store = store if store is not None else ProjectStore(PersistenceGateway())
        self.sandbox = sandbox if sandbox is not None else ScriptSandbox()
        self.preview = PreviewPanel()
        self.editor = EditorBuffer()
        self.orchestrator = RenderOrchestrator(
            self.sandbox,
            self.store,
            preview=self.preview,
            faults=self.preview,
            editor=self.editor,
            edit_debounce_ms=edit_debounce_ms,
            live_debounce_ms=live_debounce_ms,
            live_preview=live_preview,
        )
        self._started = False

    @property
    def project(self) -> Project | None:
        return self.store.current

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> Project:
        """Restore the session project, or create the default one; render once."""
        project = self.store.restore()
        if project is None:
            logger.info("no saved session found; creating %r", DEFAULT_PROJECT_NAME)
            project = self.store.create(DEFAULT_PROJECT_NAME, DEFAULT_VIEWPORT, DEFAULT_SCRIPT)
            self.store.persist()
        else:
            logger.info("restored project %r from session storage", project.name)
        self._activate(project)
        self._started = True
        await self.orchestrator.regenerate()
        return project

    async def close(self) -> None:
        self.orchestrator.cancel_pending()
        await self.orchestrator.drain()
        self.sandbox.shutdown()
        self._started = False

    # -----------------------------------------------------------------
    # Actions
    # -----------------------------------------------------------------

    async def new_project(
        self,
        name: str,
        viewport: ViewportSize | dict[str, Any],
        script: str | None = None,
    ) -> Project:
        if isinstance(name, str):
            name = name.strip()
        project = self.store.create(
            name, coerce_viewport(viewport), DEFAULT_SCRIPT if script is None else script
        )
        self.store.persist()
        self._activate(project)
        await self.orchestrator.regenerate()
        return project

    async def open(self, text: str | bytes) -> Project:
        """Load an exchange document. On ValidationFault nothing changes."""
        project = self.store.load_document(text)
        logger.info("opened project %r", project.name)
        self._activate(project)
        await self.orchestrator.regenerate()
        return project

    async def save(self, filename: str | None = None) -> tuple[str, str]:
        """
        Let pending edits settle, then return (file name, exchange document).
        The document carries the editor's script even when it does not render.
        """
        await self.orchestrator.drain()
        return self.store.save_document(
            filename,
            script=self.orchestrator.script,
            viewport=self.orchestrator.viewport,
        )

    def edit(self, script: str) -> None:
        if not isinstance(script, str):
            raise ValidationFault("Invalid script: must be a string")
        self.editor.set_value(script, notify=True)

    def set_viewport(self, viewport: ViewportSize | dict[str, Any]) -> ViewportSize:
        vp = coerce_viewport(viewport)
        self.preview.set_viewport(vp)
        self.orchestrator.set_viewport(vp)
        return vp

    async def regenerate(self) -> dict[str, Any]:
        await self.orchestrator.regenerate()
        return self.view()

    async def export(self) -> tuple[str, str]:
        """
        Render the editor's script on a fresh surface and return
        (file name, standalone SVG). Nothing in the session changes.
        """
        project = self.store.current
        viewport = self.orchestrator.viewport
        if project is None or viewport is None:
            raise ValidationFault("No current project to export")
        outcome = await self.sandbox.execute(self.orchestrator.script, viewport)
        if isinstance(outcome, Failure):
            raise ExportFailed(outcome.fault)
        try:
            svg = export_svg(outcome.markup, viewport)
        except ValueError as e:
            logger.warning("export of %r produced unusable markup: %s", project.name, e)
            raise ExportFailed(ExecutionFault(FaultKind.EXECUTION, str(e))) from e
        return export_filename(project.name, SVG_SUFFIX), svg

    # -----------------------------------------------------------------
    # View
    # -----------------------------------------------------------------

    def view(
        self,
        container_width: float | None = None,
        container_height: float | None = None,
    ) -> dict[str, Any]:
        fault = self.preview.fault
        size = self.preview.display_size(
            container_width, container_height, dpi=settings.SURFACE_DPI
        )
        viewport = self.orchestrator.viewport
        return {
            "state": self.orchestrator.state.value,
            "seq": self.orchestrator.seq,
            "pending": self.orchestrator.pending,
            "markup": self.preview.markup,
            "fault": fault.to_dict() if fault is not None else None,
            "fault_text": fault.describe() if fault is not None else None,
            "viewport": viewport.model_dump() if viewport is not None else None,
            "display_size": (
                {"width": size[0], "height": size[1]} if size is not None else None
            ),
        }

    def _activate(self, project: Project) -> None:
        self.preview.set_viewport(project.viewport)
        self.orchestrator.reset(project)
