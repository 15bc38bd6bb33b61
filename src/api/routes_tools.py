"""Tool catalog and invocation-decision endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status

from api.schemas import (
    DecideRequest,
    DecisionDto,
    InvalidateResponse,
    ResolveToolRequest,
    ToolDefinitionDto,
    ToolRegistryDto,
)
from infrastructure.runtime_errors import ToolGatewayError, ToolSearchError, UserMetadataError

router = APIRouter(prefix="/tools", tags=["tools"])

logger = logging.getLogger(__name__)


def _get_tool_router(request: Request):
    tool_router = getattr(request.app.state, "tool_router", None)
    if not tool_router:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tool router is not initialized",
        )
    return tool_router


def _gateway_to_http_error(exc: ToolGatewayError) -> HTTPException:
    if isinstance(exc, ToolSearchError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if isinstance(exc, UserMetadataError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def _unknown_tool(qualified_name: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown tool: {qualified_name}")


@router.get("/registry", response_model=ToolRegistryDto, response_model_by_alias=True)
async def get_registry(
    request: Request,
    user_id: str = Query(..., alias="userId", min_length=1),
    query: str | None = None,
    server: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    force: bool = False,
) -> ToolRegistryDto:
    tool_router = _get_tool_router(request)
    try:
        registry = await tool_router.get_registry_for_user(
            user_id, query=query, server=server, limit=limit, force=force
        )
    except ToolGatewayError as exc:
        logger.warning("Registry lookup failed for user %s: %s", user_id, exc)
        raise _gateway_to_http_error(exc) from exc
    return ToolRegistryDto.from_domain(registry)


@router.post("/resolve", response_model=ToolDefinitionDto, response_model_by_alias=True)
async def resolve_tool(payload: ResolveToolRequest, request: Request) -> ToolDefinitionDto:
    tool_router = _get_tool_router(request)
    try:
        tool = await tool_router.resolve_tool(
            payload.user_id,
            payload.qualified_name,
            query=payload.query,
            server=payload.server,
            limit=payload.limit,
            force=payload.force,
        )
    except ToolGatewayError as exc:
        raise _gateway_to_http_error(exc) from exc
    if tool is None:
        raise _unknown_tool(payload.qualified_name)
    return ToolDefinitionDto.from_domain(tool)


@router.post("/decide", response_model=DecisionDto, response_model_by_alias=True)
async def decide(payload: DecideRequest, request: Request) -> DecisionDto:
    tool_router = _get_tool_router(request)
    try:
        decision = await tool_router.decide_for_user(
            payload.user_id,
            payload.qualified_name,
            payload.args,
            query=payload.query,
            server=payload.server,
            limit=payload.limit,
            force=payload.force,
        )
    except ToolGatewayError as exc:
        raise _gateway_to_http_error(exc) from exc
    if decision is None:
        raise _unknown_tool(payload.qualified_name)
    logger.info(
        "Decision for user %s on %s: %s",
        payload.user_id,
        payload.qualified_name,
        decision.action.value,
    )
    return DecisionDto.from_domain(decision)


@router.post("/invalidate", response_model=InvalidateResponse, response_model_by_alias=True)
async def invalidate(request: Request) -> InvalidateResponse:
    tool_router = _get_tool_router(request)
    tool_router.invalidate_all()
    return InvalidateResponse(invalidated=True)
