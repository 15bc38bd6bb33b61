"""Agent session bound to one user and its tool router."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from domain.models import Decision, RiskPolicy, ToolDefinition
from registry.builder import DEFAULT_LIMIT, DEFAULT_QUERY, ToolSearch
from registry.manager import DEFAULT_TTL_MS
from routing.router import ConfigWatcher, ToolRouter, UserMetadataProvider


@dataclass
class ToolSession:
    user_id: str
    tool_router: ToolRouter

    async def resolve(self, qualified_name: str) -> ToolDefinition | None:
        return await self.tool_router.resolve_tool(self.user_id, qualified_name)

    async def decide(self, qualified_name: str, args: dict[str, Any]) -> Decision | None:
        return await self.tool_router.decide_for_user(self.user_id, qualified_name, args)

    def close(self) -> None:
        self.tool_router.close()


def create_session(
    user_id: str,
    search: ToolSearch,
    *,
    query: str = DEFAULT_QUERY,
    server: str | None = None,
    limit: int = DEFAULT_LIMIT,
    ttl_ms: float = DEFAULT_TTL_MS,
    base_risk_policy: RiskPolicy | None = None,
    user_metadata_provider: UserMetadataProvider | None = None,
    config_watcher: ConfigWatcher | None = None,
) -> ToolSession:
    router = ToolRouter(
        search,
        query=query,
        server=server,
        limit=limit,
        ttl_ms=ttl_ms,
        base_risk_policy=base_risk_policy,
        user_metadata_provider=user_metadata_provider,
        config_watcher=config_watcher,
    )
    return ToolSession(user_id=user_id, tool_router=router)
