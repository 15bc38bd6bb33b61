from __future__ import annotations

import asyncio

from domain.enums import RiskLevel
from domain.models import ToolDescriptor, ToolSearchRequest, ToolSearchResponse
from registry.builder import build_registry, refresh_registry


def _response() -> ToolSearchResponse:
    return ToolSearchResponse.from_payload(
        {
            "query": "tool",
            "total_matches": 3,
            "results": [
                {
                    "qualified_name": "mcp__fs__read_file",
                    "server": "fs",
                    "tool": "read_file",
                    "description": "Read a file",
                    "schema": {
                        "input": {
                            "type": "object",
                            "required": ["path", 7],
                            "properties": {"path": {"type": "string"}},
                        }
                    },
                },
                {
                    "qualified_name": "mcp__gh__list_issues",
                    "server": "gh",
                    "tool": "list_issues",
                    "description": "List issues",
                },
                {
                    "qualified_name": "mcp__fs__stat",
                    "server": "fs",
                    "tool": "stat",
                },
            ],
        }
    )


def test_search_response_payload_is_decoded() -> None:
    response = _response()
    assert response.total_matches == 3
    assert response.results[1] == ToolDescriptor(
        qualified_name="mcp__gh__list_issues",
        server="gh",
        tool="list_issues",
        description="List issues",
        input_schema=None,
    )


def test_build_registry_indexes_by_name_and_server() -> None:
    registry = build_registry(_response())

    assert len(registry) == 3
    assert registry.servers() == ["fs", "gh"]
    assert [tool.qualified_name for tool in registry.tools_by_server["fs"]] == [
        "mcp__fs__read_file",
        "mcp__fs__stat",
    ]
    read_file = registry.get("mcp__fs__read_file")
    assert read_file is not None
    assert read_file.name == "read_file"
    assert read_file.required_fields == ("path",)
    assert read_file.risk == RiskLevel.WRITE
    assert registry.get("mcp__gh__list_issues").risk == RiskLevel.READ
    assert registry.get("missing") is None


def test_indices_hold_the_same_definitions() -> None:
    registry = build_registry(_response())
    by_server = [tool for tools in registry.tools_by_server.values() for tool in tools]
    assert sorted(by_server, key=lambda tool: tool.qualified_name) == sorted(
        registry.tools(), key=lambda tool: tool.qualified_name
    )


def test_duplicate_qualified_name_keeps_latest_in_both_indices() -> None:
    response = ToolSearchResponse(
        results=[
            ToolDescriptor(qualified_name="dup", server="a", tool="dup", description="first"),
            ToolDescriptor(qualified_name="dup", server="b", tool="dup", description="second"),
        ]
    )
    registry = build_registry(response)
    assert len(registry) == 1
    assert registry.get("dup").description == "second"
    assert registry.servers() == ["b"]


def test_build_registry_uses_injected_classifier() -> None:
    registry = build_registry(_response(), risk_classifier=lambda _tool: RiskLevel.UNKNOWN)
    assert {tool.risk for tool in registry.tools()} == {RiskLevel.UNKNOWN}


def test_refresh_registry_always_requests_schemas() -> None:
    requests: list[ToolSearchRequest] = []

    async def search(request: ToolSearchRequest) -> ToolSearchResponse:
        requests.append(request)
        return _response()

    registry = asyncio.run(refresh_registry(search, query="files", server="fs", limit=5))

    assert len(registry) == 3
    assert requests == [ToolSearchRequest(query="files", server="fs", include_schema=True, limit=5)]
    assert requests[0].to_payload() == {
        "query": "files",
        "server": "fs",
        "include_schema": True,
        "limit": 5,
    }
