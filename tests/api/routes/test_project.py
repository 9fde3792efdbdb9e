"""Tests for /api/v1/project routes."""

import json

from fastapi.testclient import TestClient

from plotter.core.config import settings
from plotter.core.project_store import DEFAULT_PROJECT_NAME

PROJECT = f"{settings.API_V1_STR}/project"


def _document(**overrides: object) -> dict[str, object]:
    doc: dict[str, object] = {
        "version": "1.0",
        "name": "Opened Art",
        "code": "draw.rect(2, 2).center(2, 2)",
        "viewport": {"width": 4, "height": 5, "label": "4x5"},
        "createdAt": "2025-03-01T10:00:00.000Z",
        "updatedAt": "2025-03-02T10:00:00.000Z",
    }
    doc.update(overrides)
    return doc


def test_read_default_project(client: TestClient) -> None:
    r = client.get(f"{PROJECT}/")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == DEFAULT_PROJECT_NAME
    assert data["version"] == "1.0"
    assert data["viewport"]["label"] == "8.5x11"
    assert set(data) == {"version", "name", "code", "viewport", "createdAt", "updatedAt"}


def test_presets(client: TestClient) -> None:
    r = client.get(f"{PROJECT}/presets")
    assert r.status_code == 200
    assert [p["label"] for p in r.json()] == ["8.5x11", "11x8.5", "6x6", "4x5"]


def test_new_project_with_starter_script(client: TestClient) -> None:
    r = client.post(
        f"{PROJECT}/new",
        json={"name": "Square", "viewport": {"width": 6, "height": 6, "label": "6x6"}},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "Square"
    assert data["createdAt"] == data["updatedAt"]
    assert "draw.circle" in data["code"]


def test_new_project_rejects_bad_viewport(client: TestClient) -> None:
    r = client.post(
        f"{PROJECT}/new",
        json={"name": "Bad", "viewport": {"width": 0, "height": 6, "label": "bad"}},
    )
    assert r.status_code == 422
    assert client.get(f"{PROJECT}/").json()["name"] == DEFAULT_PROJECT_NAME


def test_update_code_is_accepted_and_debounced(client: TestClient) -> None:
    r = client.put(f"{PROJECT}/code", json={"code": "draw.line(0, 0, 1, 1)"})
    assert r.status_code == 202
    data = r.json()
    assert data["pending"] is True
    assert data["quiet_window_ms"] == 50


def test_update_viewport_rejects_invalid(client: TestClient) -> None:
    r = client.put(f"{PROJECT}/viewport", json={"width": "wide", "height": 6, "label": "x"})
    assert r.status_code == 422
    r = client.put(f"{PROJECT}/viewport", json={"width": 11, "height": 8.5, "label": "11x8.5"})
    assert r.status_code == 202


def test_open_project(client: TestClient) -> None:
    r = client.post(
        f"{PROJECT}/open",
        content=json.dumps(_document()),
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Opened Art"
    assert client.get(f"{PROJECT}/").json()["code"] == "draw.rect(2, 2).center(2, 2)"


def test_open_invalid_document_keeps_current(client: TestClient) -> None:
    before = client.get(f"{PROJECT}/").json()
    r = client.post(f"{PROJECT}/open", content=json.dumps(_document(version="9.9")))
    assert r.status_code == 422
    assert "version" in r.json()["detail"]
    r = client.post(f"{PROJECT}/open", content="not json at all")
    assert r.status_code == 422
    assert client.get(f"{PROJECT}/").json() == before


def test_save_project_as_attachment(client: TestClient) -> None:
    r = client.get(f"{PROJECT}/save", params={"filename": "My Plot"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/json")
    assert "attachment" in r.headers["content-disposition"]
    assert "My%20Plot.json" in r.headers["content-disposition"]
    assert r.json()["name"] == "My Plot"
    assert client.get(f"{PROJECT}/").json()["name"] == "My Plot"


def test_save_then_open_round_trip(client: TestClient) -> None:
    client.put(f"{PROJECT}/code", json={"code": 'draw.text("quotes \\" and ✓")'})
    saved = client.get(f"{PROJECT}/save").content
    client.post(f"{PROJECT}/new", json={"name": "Other", "viewport": {"width": 6, "height": 6, "label": "6x6"}})
    r = client.post(f"{PROJECT}/open", content=saved)
    assert r.status_code == 200
    assert r.json()["code"] == 'draw.text("quotes \\" and ✓")'


def test_new_project_name_is_trimmed_and_bounded(client: TestClient) -> None:
    vp = {"width": 6, "height": 6, "label": "6x6"}
    r = client.post(f"{PROJECT}/new", json={"name": "  Padded  ", "viewport": vp})
    assert r.json()["name"] == "Padded"
    r = client.post(f"{PROJECT}/new", json={"name": "n" * 101, "viewport": vp})
    assert r.status_code == 422


def test_save_rejects_invalid_filename(client: TestClient) -> None:
    r = client.get(f"{PROJECT}/save", params={"filename": "bad/name"})
    assert r.status_code == 422
    assert r.json()["detail"] == "Filename contains invalid characters"
