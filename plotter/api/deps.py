from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from plotter.core.session import PlotterSession


def build_session() -> PlotterSession:
    """The single editor session the service hosts; storage chosen by settings."""
    return PlotterSession()


def get_session(request: Request) -> PlotterSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Editor session is not started",
        )
    return session


SessionDep = Annotated[PlotterSession, Depends(get_session)]
