from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from domain.models import RiskPolicy, ToolDescriptor, ToolSearchRequest, ToolSearchResponse, UserMcpPolicy, UserMetadata
from api.routes_tools import router as tools_router
from infrastructure.runtime_errors import ToolSearchError, UserMetadataError
from routing.router import ToolRouter


class _Search:
    def __init__(self) -> None:
        self.calls = 0
        self.error: Exception | None = None

    async def __call__(self, request: ToolSearchRequest) -> ToolSearchResponse:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ToolSearchResponse(
            results=[
                ToolDescriptor(qualified_name="mcp__foo__list", server="foo", tool="list", description="List items"),
                ToolDescriptor(
                    qualified_name="mcp__foo__read_file",
                    server="foo",
                    tool="read_file",
                    description="Read a file",
                    input_schema={"type": "object", "required": ["target"]},
                ),
            ]
        )


async def _metadata(user_id: str) -> UserMetadata | None:
    if user_id == "broken":
        raise UserMetadataError("User metadata is not valid JSON")
    if user_id == "user-1":
        return UserMetadata(id=user_id, mcp=UserMcpPolicy(risk_overrides={"mcp__foo__list": "read"}))
    return None


def _build_app(search: _Search | None = None) -> tuple[FastAPI, _Search]:
    search = search or _Search()
    app = FastAPI()
    app.state.tool_router = ToolRouter(
        search,
        base_risk_policy=RiskPolicy(force_write=["mcp__foo__list"]),
        user_metadata_provider=_metadata,
    )
    app.include_router(tools_router)
    return app, search


def test_registry_endpoint_lists_tools_by_server() -> None:
    app, _ = _build_app()
    client = TestClient(app)
    response = client.get("/tools/registry", params={"userId": "user-2"})
    assert response.status_code == 200
    payload = response.json()
    assert [tool["qualifiedName"] for tool in payload["tools"]] == ["mcp__foo__list", "mcp__foo__read_file"]
    assert payload["servers"] == {"foo": ["mcp__foo__list", "mcp__foo__read_file"]}
    assert payload["tools"][0]["risk"] == "write"
    assert payload["tools"][1]["requiredFields"] == ["target"]


def test_resolve_endpoint_applies_user_policy() -> None:
    app, _ = _build_app()
    client = TestClient(app)
    response = client.post("/tools/resolve", json={"userId": "user-1", "qualifiedName": "mcp__foo__list"})
    assert response.status_code == 200
    assert response.json()["risk"] == "read"


def test_decide_endpoint_returns_action() -> None:
    app, _ = _build_app()
    client = TestClient(app)

    invoke = client.post("/tools/decide", json={"userId": "user-1", "qualifiedName": "mcp__foo__list"})
    confirm = client.post("/tools/decide", json={"userId": "user-2", "qualifiedName": "mcp__foo__list"})
    clarify = client.post(
        "/tools/decide",
        json={"userId": "user-2", "qualifiedName": "mcp__foo__read_file", "args": {"other": 1}},
    )

    assert invoke.json()["action"] == "invoke"
    assert confirm.json()["action"] == "confirm"
    assert clarify.json()["action"] == "clarify"
    assert clarify.json()["missingFields"] == ["target"]
    assert clarify.json()["args"] == {"other": 1}


def test_unknown_tool_is_404() -> None:
    app, _ = _build_app()
    client = TestClient(app)
    response = client.post("/tools/decide", json={"userId": "user-1", "qualifiedName": "mcp__foo__nope"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown tool: mcp__foo__nope"


def test_search_failure_is_502() -> None:
    search = _Search()
    search.error = ToolSearchError("backend down", status_code=503)
    app, _ = _build_app(search)
    client = TestClient(app)
    response = client.get("/tools/registry", params={"userId": "user-1"})
    assert response.status_code == 502
    assert "backend down" in response.json()["detail"]


def test_metadata_failure_is_422() -> None:
    app, _ = _build_app()
    client = TestClient(app)
    response = client.post("/tools/resolve", json={"userId": "broken", "qualifiedName": "mcp__foo__list"})
    assert response.status_code == 422


def test_invalidate_forces_refetch() -> None:
    app, search = _build_app()
    client = TestClient(app)
    client.get("/tools/registry", params={"userId": "user-1"})
    client.get("/tools/registry", params={"userId": "user-1"})
    assert search.calls == 1

    response = client.post("/tools/invalidate")
    assert response.status_code == 200
    assert response.json() == {"invalidated": True}

    client.get("/tools/registry", params={"userId": "user-1"})
    assert search.calls == 2


def test_missing_router_is_503() -> None:
    app = FastAPI()
    app.include_router(tools_router)
    client = TestClient(app)
    response = client.get("/tools/registry", params={"userId": "user-1"})
    assert response.status_code == 503
