from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from plotter.api.deps import SessionDep
from plotter.api.routes.project import attachment
from plotter.core.session import ExportFailed
from plotter.schemas import ExportFaultOut, PreviewPublic

router = APIRouter(prefix="/render", tags=["render"])


@router.post("/regenerate", response_model=PreviewPublic)
async def regenerate(session: SessionDep) -> PreviewPublic:
    """Execute the current script now, skipping the debounce window."""
    return PreviewPublic.model_validate(await session.regenerate())


@router.get("/preview", response_model=PreviewPublic)
async def read_preview(
    session: SessionDep,
    container_width: float | None = None,
    container_height: float | None = None,
) -> PreviewPublic:
    return PreviewPublic.model_validate(session.view(container_width, container_height))


@router.get(
    "/export",
    response_model=None,
    responses={422: {"model": ExportFaultOut}},
)
async def export(session: SessionDep) -> Response:
    """
    Standalone SVG of the editor's current script as a download.

    The script runs again on a fresh surface; preview and project are not
    touched. A faulting script gives 422 with the fault.
    """
    try:
        filename, svg = await session.export()
    except ExportFailed as e:
        return JSONResponse(
            status_code=422,
            content={"detail": f"Failed to export SVG: {e}", "fault": e.fault.to_dict()},
        )
    return Response(content=svg, media_type="image/svg+xml", headers=attachment(filename))
