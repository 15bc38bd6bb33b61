from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

import app.main as main_module
from app.config import Settings
from routing.router import ToolRouter


def _settings(tmp_path: Path, **overrides) -> Settings:
    return Settings(
        _env_file=None,
        mcp_config_path=tmp_path / "config.toml",
        user_metadata_path=tmp_path / "users.json",
        **overrides,
    )


def test_health_reports_missing_search_backend(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "settings", _settings(tmp_path, tool_search_url=None))

    with TestClient(main_module.app) as client:
        response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "initializing"
    assert "not configured" in payload["error"]


def test_startup_wires_router_and_watcher(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "settings", _settings(tmp_path, tool_search_url="http://search.local"))

    with TestClient(main_module.app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert isinstance(main_module.app.state.tool_router, ToolRouter)
        assert main_module.app.state.config_watcher is not None
