"""Cached tool registry with TTL, single-flight refresh and invalidation."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from app.observability import metrics, traced_span
from domain.models import RiskPolicy, ToolRegistry
from registry.builder import (
    DEFAULT_LIMIT,
    DEFAULT_QUERY,
    RiskClassifierFn,
    ToolSearch,
    refresh_registry,
)
from registry.risk_classifier import RiskClassifier

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000


def _now_ms() -> float:
    return time.time() * 1000


class RegistryManager:
    """Owns one cached registry and refreshes it from the search backend.

    At most one backend call is outstanding at a time; callers arriving while a
    refresh is in flight share its result. ``invalidate`` bumps a generation
    counter so a refresh that started earlier never overwrites the cleared cache.
    """

    def __init__(
        self,
        search: ToolSearch,
        *,
        query: str = DEFAULT_QUERY,
        server: str | None = None,
        limit: int = DEFAULT_LIMIT,
        ttl_ms: float = DEFAULT_TTL_MS,
        risk_classifier: RiskClassifierFn | None = None,
        risk_policy: RiskPolicy | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._search = search
        self._ttl_ms = ttl_ms
        self._risk_classifier = risk_classifier or RiskClassifier(risk_policy)
        self._clock = clock or _now_ms
        self._registry: ToolRegistry | None = None
        self._last_updated: float | None = None
        self._inflight: asyncio.Task[ToolRegistry] | None = None
        self._generation = 0
        self._last_query = query or DEFAULT_QUERY
        self._last_server = server
        self._last_limit = limit or DEFAULT_LIMIT

    async def get_registry(
        self,
        *,
        query: str | None = None,
        server: str | None = None,
        limit: int | None = None,
        force: bool = False,
    ) -> ToolRegistry:
        registry = self._registry
        if registry is None or self._should_refresh(query=query, server=server, limit=limit, force=force):
            return await self._do_refresh(query=query, server=server, limit=limit)
        return registry

    async def refresh(
        self,
        *,
        query: str | None = None,
        server: str | None = None,
        limit: int | None = None,
    ) -> ToolRegistry:
        return await self._do_refresh(query=query, server=server, limit=limit)

    def invalidate(self) -> None:
        self._generation += 1
        self._registry = None
        self._last_updated = None
        self._inflight = None

    def last_updated(self) -> float | None:
        return self._last_updated

    def _should_refresh(
        self,
        *,
        query: str | None,
        server: str | None,
        limit: int | None,
        force: bool,
    ) -> bool:
        if force or self._registry is None or self._last_updated is None:
            return True
        if self._ttl_ms <= 0:
            return True
        if self._clock() - self._last_updated >= self._ttl_ms:
            return True
        if query and query != self._last_query:
            return True
        if server is not None and server != self._last_server:
            return True
        if limit and limit != self._last_limit:
            return True
        return False

    async def _do_refresh(
        self,
        *,
        query: str | None,
        server: str | None,
        limit: int | None,
    ) -> ToolRegistry:
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(
                self._run_refresh(
                    query=query or self._last_query,
                    server=self._last_server if server is None else server,
                    limit=limit or self._last_limit,
                    generation=self._generation,
                )
            )
            self._inflight = task
        else:
            metrics.inc("registry.refresh.joined")
        # Shielded so one cancelled caller does not cancel the refresh for the others.
        return await asyncio.shield(task)

    async def _run_refresh(
        self,
        *,
        query: str,
        server: str | None,
        limit: int,
        generation: int,
    ) -> ToolRegistry:
        metrics.inc("registry.refresh.started")
        logger.debug("Refreshing tool registry (query=%r, server=%r, limit=%s)", query, server, limit)
        try:
            with traced_span("registry.refresh"):
                registry = await refresh_registry(
                    self._search,
                    query=query,
                    server=server,
                    limit=limit,
                    risk_classifier=self._risk_classifier,
                )
            if generation != self._generation:
                metrics.inc("registry.refresh.discarded")
                logger.info(
                    "Registry refresh finished after invalidation (generation %s -> %s); result not cached",
                    generation,
                    self._generation,
                )
                return registry
            self._registry = registry
            self._last_updated = self._clock()
            self._last_query = query
            self._last_server = server
            self._last_limit = limit
            logger.debug("Tool registry refreshed: %s tools", len(registry))
            return registry
        except Exception as exc:
            metrics.inc("registry.refresh.failed")
            logger.warning("Tool registry refresh failed (query=%r, server=%r): %s", query, server, exc)
            raise
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None
