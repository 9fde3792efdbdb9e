"""
Pydantic schemas for the editor HTTP API.

Request bodies for project/* and response shapes for project/* and render/*.
"""

from pydantic import BaseModel, ConfigDict, Field

from plotter.models import ViewportSize

# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class ProjectNewIn(BaseModel):
    """Body for POST /project/new. Omitting code gives the starter script."""

    name: str = Field(..., min_length=1, max_length=100)
    viewport: ViewportSize
    code: str | None = None


class CodeIn(BaseModel):
    """Body for PUT /project/code."""

    code: str


class ProjectPublic(BaseModel):
    """Current project in exchange-document shape."""

    model_config = ConfigDict(populate_by_name=True)

    version: str
    name: str
    code: str
    viewport: ViewportSize
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class EditAccepted(BaseModel):
    """202 body for debounced edits."""

    pending: bool
    seq: int
    quiet_window_ms: int


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


class FaultPublic(BaseModel):
    kind: str
    message: str
    line: int | None = None
    column: int | None = None


class DisplaySize(BaseModel):
    width: float
    height: float


class PreviewPublic(BaseModel):
    """Render state as the preview pane shows it."""

    state: str
    seq: int
    pending: bool
    markup: str | None = None
    fault: FaultPublic | None = None
    fault_text: str | None = None
    viewport: ViewportSize | None = None
    display_size: DisplaySize | None = None


class ExportFaultOut(BaseModel):
    detail: str
    fault: FaultPublic

