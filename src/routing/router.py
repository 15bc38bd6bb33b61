"""Per-user tool routing on top of cached registries."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from domain.models import Decision, RiskPolicy, ToolDefinition, ToolRegistry, UserMetadata
from registry.builder import DEFAULT_LIMIT, DEFAULT_QUERY, ToolSearch
from registry.decision import decide_invocation
from registry.manager import DEFAULT_TTL_MS, RegistryManager
from registry.risk_classifier import RiskClassifier
from routing.policy_merger import merge_risk_policy, policy_key

logger = logging.getLogger(__name__)

UserMetadataProvider = Callable[[str], Awaitable[UserMetadata | None]]


class ConfigWatcher(Protocol):
    def on_change(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        ...


@dataclass
class _UserRegistryState:
    manager: RegistryManager
    policy_key: str


class ToolRouter:
    """Resolves tools and decisions per user under that user's effective policy."""

    def __init__(
        self,
        search: ToolSearch,
        *,
        query: str = DEFAULT_QUERY,
        server: str | None = None,
        limit: int = DEFAULT_LIMIT,
        ttl_ms: float = DEFAULT_TTL_MS,
        base_risk_policy: RiskPolicy | None = None,
        user_metadata_provider: UserMetadataProvider | None = None,
        config_watcher: ConfigWatcher | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._search = search
        self._query = query or DEFAULT_QUERY
        self._server = server
        self._limit = limit or DEFAULT_LIMIT
        self._ttl_ms = ttl_ms
        self._base_policy = base_risk_policy or RiskPolicy()
        self._user_metadata_provider = user_metadata_provider
        self._clock = clock
        self._user_registries: dict[str, _UserRegistryState] = {}
        self._unsubscribe: Callable[[], None] | None = None
        if config_watcher is not None:
            self._unsubscribe = config_watcher.on_change(self._on_config_change)

    async def get_registry_for_user(
        self,
        user_id: str,
        *,
        query: str | None = None,
        server: str | None = None,
        limit: int | None = None,
        force: bool = False,
    ) -> ToolRegistry:
        manager = await self._get_registry_manager(user_id)
        return await manager.get_registry(
            query=query or self._query,
            server=server if server is not None else self._server,
            limit=limit or self._limit,
            force=force,
        )

    async def resolve_tool(
        self,
        user_id: str,
        qualified_name: str,
        *,
        query: str | None = None,
        server: str | None = None,
        limit: int | None = None,
        force: bool = False,
    ) -> ToolDefinition | None:
        registry = await self.get_registry_for_user(
            user_id, query=query, server=server, limit=limit, force=force
        )
        return registry.get(qualified_name)

    async def decide_for_user(
        self,
        user_id: str,
        qualified_name: str,
        args: dict[str, Any],
        *,
        query: str | None = None,
        server: str | None = None,
        limit: int | None = None,
        force: bool = False,
    ) -> Decision | None:
        tool = await self.resolve_tool(
            user_id, qualified_name, query=query, server=server, limit=limit, force=force
        )
        if tool is None:
            return None
        return decide_invocation(tool, args)

    def invalidate_all(self) -> None:
        for state in self._user_registries.values():
            state.manager.invalidate()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._user_registries.clear()

    def _on_config_change(self, _config: Any) -> None:
        logger.info("Tool server configuration changed; invalidating %s user registries", len(self._user_registries))
        self.invalidate_all()

    async def _get_policy_for_user(self, user_id: str) -> RiskPolicy:
        if self._user_metadata_provider is None:
            return self._base_policy
        metadata = await self._user_metadata_provider(user_id)
        return merge_risk_policy(self._base_policy, metadata.mcp if metadata else None)

    async def _get_registry_manager(self, user_id: str) -> RegistryManager:
        policy = await self._get_policy_for_user(user_id)
        key = policy_key(policy)
        existing = self._user_registries.get(user_id)
        if existing is not None and existing.policy_key == key:
            return existing.manager
        if existing is not None:
            logger.info("Effective risk policy changed for user %s; rebuilding registry manager", user_id)
        manager = RegistryManager(
            self._search,
            query=self._query,
            server=self._server,
            limit=self._limit,
            ttl_ms=self._ttl_ms,
            risk_classifier=RiskClassifier(policy),
            clock=self._clock,
        )
        self._user_registries[user_id] = _UserRegistryState(manager=manager, policy_key=key)
        return manager
