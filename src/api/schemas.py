"""Pydantic request and response schemas for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from domain.enums import DecisionAction, RiskLevel
from domain.models import Decision, ToolDefinition, ToolRegistry


def _to_camel(value: str) -> str:
    """Convert snake_case to camelCase for JSON."""

    parts = value.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class ApiBaseModel(BaseModel):
    """Base API model with camelCase aliases and populate_by_name."""

    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )


class ToolDefinitionDto(ApiBaseModel):
    qualified_name: str = Field(..., description="Globally unique tool name")
    server: str = Field(..., description="Owning tool server")
    name: str = Field(..., description="Tool name local to its server")
    description: str | None = None
    input_schema: dict[str, Any] | None = None
    required_fields: list[str] = Field(default_factory=list)
    risk: RiskLevel

    @classmethod
    def from_domain(cls, tool: ToolDefinition) -> "ToolDefinitionDto":
        return cls(
            qualified_name=tool.qualified_name,
            server=tool.server,
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
            required_fields=list(tool.required_fields),
            risk=tool.risk,
        )


class ToolRegistryDto(ApiBaseModel):
    tools: list[ToolDefinitionDto] = Field(default_factory=list)
    servers: dict[str, list[str]] = Field(
        default_factory=dict, description="Qualified names per server in catalog order"
    )

    @classmethod
    def from_domain(cls, registry: ToolRegistry) -> "ToolRegistryDto":
        return cls(
            tools=[ToolDefinitionDto.from_domain(tool) for tool in registry.tools()],
            servers={
                server: [tool.qualified_name for tool in tools]
                for server, tools in registry.tools_by_server.items()
            },
        )


class ResolveToolRequest(ApiBaseModel):
    user_id: str = Field(..., min_length=1)
    qualified_name: str = Field(..., min_length=1)
    query: str | None = None
    server: str | None = None
    limit: int | None = Field(default=None, ge=1)
    force: bool = False


class DecideRequest(ResolveToolRequest):
    args: dict[str, Any] = Field(default_factory=dict)


class DecisionDto(ApiBaseModel):
    action: DecisionAction
    reason: str
    tool: ToolDefinitionDto
    args: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] | None = None

    @classmethod
    def from_domain(cls, decision: Decision) -> "DecisionDto":
        return cls(
            action=decision.action,
            reason=decision.reason,
            tool=ToolDefinitionDto.from_domain(decision.tool),
            args=dict(decision.args),
            missing_fields=decision.missing_fields,
        )


class InvalidateResponse(ApiBaseModel):
    invalidated: bool = True
