"""Building tool registries from search backend responses."""
from __future__ import annotations

from collections.abc import Awaitable, Callable

from domain.enums import RiskLevel
from domain.models import (
    ToolDefinition,
    ToolDescriptor,
    ToolRegistry,
    ToolSearchRequest,
    ToolSearchResponse,
)
from registry.risk_classifier import RiskClassifier, required_fields_of

ToolSearch = Callable[[ToolSearchRequest], Awaitable[ToolSearchResponse]]
RiskClassifierFn = Callable[[ToolDescriptor], RiskLevel]

DEFAULT_QUERY = "tool"
DEFAULT_LIMIT = 200


def build_registry(
    response: ToolSearchResponse,
    *,
    risk_classifier: RiskClassifierFn | None = None,
) -> ToolRegistry:
    classifier = risk_classifier or RiskClassifier()
    by_name: dict[str, ToolDefinition] = {}
    by_server: dict[str, list[ToolDefinition]] = {}

    for descriptor in response.results:
        entry = ToolDefinition(
            qualified_name=descriptor.qualified_name,
            server=descriptor.server,
            name=descriptor.tool,
            description=descriptor.description,
            input_schema=descriptor.input_schema,
            required_fields=required_fields_of(descriptor.input_schema),
            risk=classifier(descriptor),
        )
        previous = by_name.get(entry.qualified_name)
        if previous is not None:
            # Later duplicates win in both indices.
            server_tools = by_server[previous.server]
            server_tools.remove(previous)
            if not server_tools:
                del by_server[previous.server]
        by_name[entry.qualified_name] = entry
        by_server.setdefault(entry.server, []).append(entry)

    return ToolRegistry(tools_by_qualified_name=by_name, tools_by_server=by_server)


async def refresh_registry(
    search: ToolSearch,
    *,
    query: str = DEFAULT_QUERY,
    server: str | None = None,
    limit: int = DEFAULT_LIMIT,
    risk_classifier: RiskClassifierFn | None = None,
) -> ToolRegistry:
    request = ToolSearchRequest(query=query, server=server, include_schema=True, limit=limit)
    response = await search(request)
    return build_registry(response, risk_classifier=risk_classifier)
