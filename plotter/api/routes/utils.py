from fastapi import APIRouter
from fastapi.responses import JSONResponse

from plotter.api.deps import SessionDep
from plotter.core.health import liveness_check, readiness_check

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/liveness/", response_model=None)
async def liveness() -> bool | JSONResponse:
    """
    Liveness probe: is the process alive and responsive? No storage I/O.
    """
    ok, failures = liveness_check()
    if not ok:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Process unhealthy", "data": failures},
        )
    return True


@router.get("/health-check/", response_model=None)
async def health_check(session: SessionDep) -> bool | JSONResponse:
    """
    Readiness probe: session started and session storage reachable.

    Returns 200 with true when ready; 503 with the failing checks otherwise.
    """
    ok, failures = readiness_check(session)
    if not ok:
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "message": "Service Unavailable",
                "data": failures,
            },
        )
    return True
