from collections.abc import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from plotter.core.project_store import ProjectStore
from plotter.core.session import PlotterSession
from plotter.core.storage import MemoryBackend, PersistenceGateway
from plotter.engines.script import ScriptSandbox
from plotter.main import app
from plotter.models import ViewportSize


def memory_session(backend: MemoryBackend | None = None) -> PlotterSession:
    store = ProjectStore(PersistenceGateway(backend or MemoryBackend()))
    return PlotterSession(
        store,
        ScriptSandbox(timeout_ms=2000),
        edit_debounce_ms=50,
        live_debounce_ms=20,
    )


@pytest.fixture
def viewport() -> ViewportSize:
    return ViewportSize(width=6, height=6, label="6x6")


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def gateway(backend: MemoryBackend) -> PersistenceGateway:
    return PersistenceGateway(backend)


@pytest.fixture
def store(gateway: PersistenceGateway) -> ProjectStore:
    return ProjectStore(gateway)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with patch("plotter.api.deps.build_session", memory_session):
        with TestClient(app) as c:
            yield c
