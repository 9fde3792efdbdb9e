"""
In-process collaborators for the render orchestrator: the preview panel, the
fault display and the editor buffer. The HTTP layer reads their state; a
desktop or browser front end would implement the same protocols.
"""

import logging
import threading
from collections.abc import Callable

from plotter.models import ExecutionFault, ViewportSize

_log = logging.getLogger(__name__)

DEFAULT_CONTAINER_WIDTH = 800
DEFAULT_CONTAINER_HEIGHT = 600
FIT_MARGIN = 0.9


def fit_to_container(
    viewport: ViewportSize,
    container_width: float | None = None,
    container_height: float | None = None,
    *,
    dpi: int = 96,
) -> tuple[float, float]:
    """
    Display size in pixels for viewport inside a container, keeping the aspect
    ratio and leaving a 10% margin on the constraining side.
    """
    cw = container_width or DEFAULT_CONTAINER_WIDTH
    ch = container_height or DEFAULT_CONTAINER_HEIGHT
    px_w, px_h = viewport.pixel_size(dpi)
    if cw / ch > viewport.width / viewport.height:
        # container is wider than the viewport: fit to height
        scale = (ch * FIT_MARGIN) / px_h
    else:
        scale = (cw * FIT_MARGIN) / px_w
    return px_w * scale, px_h * scale


class PreviewPanel:
    """Last rendered markup plus the single fault currently shown."""

    def __init__(self, viewport: ViewportSize | None = None) -> None:
        self.viewport = viewport
        self._markup: str | None = None
        self._fault: ExecutionFault | None = None

    @property
    def markup(self) -> str | None:
        return self._markup

    @property
    def fault(self) -> ExecutionFault | None:
        return self._fault

    def render(self, markup: str) -> None:
        self._markup = markup

    def clear(self) -> None:
        self._markup = None
        self._fault = None

    def show(self, fault: ExecutionFault) -> None:
        """Replace whatever fault was shown before."""
        self._fault = fault

    def clear_fault(self) -> None:
        self._fault = None

    def set_viewport(self, viewport: ViewportSize) -> None:
        self.viewport = viewport

    def display_size(
        self,
        container_width: float | None = None,
        container_height: float | None = None,
        *,
        dpi: int = 96,
    ) -> tuple[float, float] | None:
        if self.viewport is None:
            return None
        return fit_to_container(self.viewport, container_width, container_height, dpi=dpi)


class EditorBuffer:
    """Minimal text-editing surface: value, change subscription, one fault marker."""

    def __init__(self, value: str = "") -> None:
        self._value = value
        self._listeners: list[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self.fault_line: int | None = None
        self.fault_message: str | None = None

    def get_value(self) -> str:
        return self._value

    def set_value(self, text: str, *, notify: bool = False) -> None:
        with self._lock:
            self._value = text
            listeners = list(self._listeners)
        if notify:
            for callback in listeners:
                try:
                    callback(text)
                except Exception:
                    _log.error("error in editor change listener", exc_info=True)

    def on_change(self, callback: Callable[[str], None]) -> None:
        with self._lock:
            self._listeners.append(callback)

    def mark_fault_line(self, line: int, message: str) -> None:
        self.fault_line = line
        self.fault_message = message

    def clear_fault(self) -> None:
        self.fault_line = None
        self.fault_message = None
