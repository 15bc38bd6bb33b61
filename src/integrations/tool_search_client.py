"""Async HTTP client for the tool-search backend."""
from __future__ import annotations

from typing import Any

import httpx

from app.config import Settings
from domain.models import ToolSearchRequest, ToolSearchResponse
from infrastructure.runtime_errors import ToolSearchError


class HttpToolSearchClient:
    """Calls ``POST {base_url}/search`` and decodes the tool descriptors."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpToolSearchClient":
        if not settings.tool_search_url:
            raise ValueError("tool_search_url is not configured")
        return cls(base_url=settings.tool_search_url, timeout_s=settings.tool_search_timeout_s)

    async def __call__(self, request: ToolSearchRequest) -> ToolSearchResponse:
        return await self.search(request)

    async def search(self, request: ToolSearchRequest) -> ToolSearchResponse:
        payload = await self._post_json("/search", request.to_payload())
        try:
            return ToolSearchResponse.from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise ToolSearchError(f"Tool search returned malformed results: {exc}") from exc

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise ToolSearchError(f"Tool search request failed: {exc}") from exc
        return self._decode_response(response)

    def _decode_response(self, response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            raise ToolSearchError(
                f"Tool search error ({response.status_code}): {self._error_detail(response)}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ToolSearchError("Tool search returned invalid JSON payload") from exc
        if not isinstance(payload, dict):
            raise ToolSearchError("Tool search returned unsupported payload type")
        return payload

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text.strip() or "unknown search error"
        if isinstance(payload, dict):
            detail = payload.get("detail")
            if isinstance(detail, str) and detail:
                return detail
        return response.text.strip() or "unknown search error"
