"""
Health-check helpers for liveness and readiness probes.

Liveness:  is the process alive and not deadlocked?  (cheap, no I/O)
Readiness: can it serve traffic?  (session started + storage reachable)
"""

import logging

from plotter.core.config import settings
from plotter.core.session import PlotterSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Individual dependency checks
# ---------------------------------------------------------------------------

def check_storage(session: PlotterSession) -> bool:
    """Throwaway write + delete through the session's gateway."""
    gateway = session.store.gateway
    if gateway is None:
        return True
    return gateway.is_available()


def storage_required() -> bool:
    """Memory storage is always reachable; file and redis need a probe."""
    return settings.STORAGE_BACKEND != "memory"


# ---------------------------------------------------------------------------
# Composite probes
# ---------------------------------------------------------------------------

def liveness_check() -> tuple[bool, list[str]]:
    """No I/O. Return format matches readiness_check."""
    return (True, [])


def readiness_check(session: PlotterSession) -> tuple[bool, list[str]]:
    """
    Returns (ok, list of failure messages). A degraded store does not stop the
    editor from working, but it is reported so the user knows saves are
    memory-only.
    """
    failures: list[str] = []

    if not session.started:
        failures.append("session_not_started")

    if storage_required() and not check_storage(session):
        logger.warning("storage probe failed during readiness check")
        failures.append("storage")

    return (len(failures) == 0, failures)
