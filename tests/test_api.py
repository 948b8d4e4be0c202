"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from curupira.api import create_api
from curupira.app import CurupiraApp
from curupira.config import Config


@pytest.fixture
def http(tmp_path):
    config = Config()
    config.screenshots.directory = str(tmp_path)
    app = CurupiraApp.create(config)
    with TestClient(create_api(app, manage_lifecycle=False)) as client:
        yield client


def test_health(http):
    response = http.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_status_when_disconnected(http):
    data = http.get("/status").json()
    assert data["connected"] is False
    assert data["sessions"] == []
    assert data["events"] == 0
    assert data["tools"] > 0


def test_sessions_empty(http):
    assert http.get("/sessions").json() == {"sessions": []}


def test_tools_listing(http):
    data = http.get("/tools").json()
    assert data["count"] == len(data["tools"])
    assert any(t["name"] == "chrome_status" for t in data["tools"])


def test_call_tool(http):
    response = http.post("/tools/chrome_status")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["data"]["connected"] is False


def test_unknown_tool_is_a_result_not_an_http_error(http):
    response = http.post("/tools/nope", json={})
    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Unknown tool: nope"}


def test_invalid_arguments(http):
    response = http.post("/tools/dom_click", json={"selector": 5})
    assert response.json()["success"] is False
    assert response.json()["error"].startswith("Invalid arguments for dom_click: selector:")


def test_tool_needs_session(http):
    response = http.post("/tools/cdp_evaluate", json={"expression": "document.title"})
    assert response.json()["success"] is False
    assert "No active Chrome session" in response.json()["error"]
