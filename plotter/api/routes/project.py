"""
Project endpoints: current project, presets, new, edit, open and save.

Edits (code, viewport) are debounced and answered with 202; the render and the
session write happen when the quiet window closes. Open takes the exchange
document as the raw request body.
"""

from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request, Response, status

from plotter.api.deps import SessionDep
from plotter.models import VIEWPORT_PRESETS, ViewportSize
from plotter.schemas import CodeIn, EditAccepted, ProjectNewIn, ProjectPublic

router = APIRouter(prefix="/project", tags=["project"])


def _accepted(session: SessionDep) -> EditAccepted:
    orchestrator = session.orchestrator
    return EditAccepted(
        pending=orchestrator.pending,
        seq=orchestrator.seq,
        quiet_window_ms=orchestrator.quiet_window_ms,
    )


def attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}


@router.get("/", response_model=ProjectPublic)
async def read_project(session: SessionDep) -> ProjectPublic:
    project = session.project
    if project is None:
        raise HTTPException(status_code=404, detail="No current project")
    return ProjectPublic.model_validate(project.to_document())


@router.get("/presets", response_model=list[ViewportSize])
async def list_presets() -> list[ViewportSize]:
    return list(VIEWPORT_PRESETS)


@router.post("/new", response_model=ProjectPublic, status_code=201)
async def new_project(session: SessionDep, body: ProjectNewIn) -> ProjectPublic:
    """Create a project (starter script unless code is given) and render it once."""
    project = await session.new_project(body.name, body.viewport, body.code)
    return ProjectPublic.model_validate(project.to_document())


@router.put("/code", response_model=EditAccepted, status_code=status.HTTP_202_ACCEPTED)
async def update_code(session: SessionDep, body: CodeIn) -> EditAccepted:
    session.edit(body.code)
    return _accepted(session)


@router.put(
    "/viewport", response_model=EditAccepted, status_code=status.HTTP_202_ACCEPTED
)
async def update_viewport(session: SessionDep, body: ViewportSize) -> EditAccepted:
    session.set_viewport(body)
    return _accepted(session)


@router.post("/open", response_model=ProjectPublic)
async def open_project(session: SessionDep, request: Request) -> ProjectPublic:
    """
    Body: an exchange document (application/json). An invalid document is
    rejected with 422 and the current project is kept.
    """
    project = await session.open(await request.body())
    return ProjectPublic.model_validate(project.to_document())


@router.get("/save")
async def save_project(session: SessionDep, filename: str | None = None) -> Response:
    """Exchange document as a download; filename renames the project first."""
    name, text = await session.save(filename)
    return Response(
        content=text,
        media_type="application/json",
        headers=attachment(name),
    )
