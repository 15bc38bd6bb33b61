"""Domain models for tool descriptors, risk policies, registries and decisions."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from .enums import DecisionAction, RiskLevel


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool as returned by the search backend."""

    qualified_name: str
    server: str
    tool: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ToolDescriptor":
        schema = payload.get("schema")
        input_schema = schema.get("input") if isinstance(schema, dict) else None
        description = payload.get("description")
        return cls(
            qualified_name=str(payload["qualified_name"]),
            server=str(payload["server"]),
            tool=str(payload["tool"]),
            description=str(description) if description is not None else None,
            input_schema=input_schema if isinstance(input_schema, dict) else None,
        )


@dataclass(frozen=True)
class ToolSearchRequest:
    query: str
    server: str | None = None
    include_schema: bool = True
    limit: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": self.query, "include_schema": self.include_schema}
        if self.server is not None:
            payload["server"] = self.server
        if self.limit is not None:
            payload["limit"] = self.limit
        return payload


@dataclass
class ToolSearchResponse:
    results: list[ToolDescriptor] = field(default_factory=list)
    total_matches: int | None = None
    query: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ToolSearchResponse":
        raw_results = payload.get("results") or []
        if not isinstance(raw_results, list):
            raise ValueError("Search response 'results' must be a list")
        total = payload.get("total_matches")
        query = payload.get("query")
        return cls(
            results=[ToolDescriptor.from_payload(item) for item in raw_results if isinstance(item, dict)],
            total_matches=int(total) if total is not None else None,
            query=str(query) if query is not None else None,
        )


@dataclass(frozen=True)
class LiteralRule:
    """Force rule matched as a normalized substring."""

    text: str

    def describe(self) -> dict[str, Any]:
        return {"literal": self.text}


@dataclass(frozen=True)
class PatternRule:
    """Force rule matched as a regular expression against raw and normalized text."""

    pattern: re.Pattern[str]

    @classmethod
    def compile(cls, source: str, flags: int = 0) -> "PatternRule":
        return cls(re.compile(source, flags))

    def describe(self) -> dict[str, Any]:
        return {"pattern": self.pattern.pattern, "flags": int(self.pattern.flags)}


MatchRule = LiteralRule | PatternRule


def as_match_rule(value: MatchRule | str | re.Pattern[str]) -> MatchRule:
    if isinstance(value, (LiteralRule, PatternRule)):
        return value
    if isinstance(value, re.Pattern):
        return PatternRule(value)
    if isinstance(value, str):
        return LiteralRule(value)
    raise TypeError(f"Unsupported match rule: {value!r}")


def as_match_rules(values: Iterable[MatchRule | str | re.Pattern[str]] | None) -> list[MatchRule]:
    return [as_match_rule(value) for value in values or ()]


@dataclass
class RiskPolicy:
    """Keyword vocabularies and forced rules used by the risk classifier.

    Keyword lists left as ``None`` fall back to the built-in vocabulary.
    """

    read_verbs: list[str] | None = None
    write_verbs: list[str] | None = None
    sensitive_fields: list[str] | None = None
    write_fields: list[str] | None = None
    read_only_hints: list[str] | None = None
    write_hints: list[str] | None = None
    force_read: list[MatchRule] = field(default_factory=list)
    force_write: list[MatchRule] = field(default_factory=list)
    overrides: dict[str, RiskLevel] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.force_read = as_match_rules(self.force_read)
        self.force_write = as_match_rules(self.force_write)
        self.overrides = {
            name: level if isinstance(level, RiskLevel) else RiskLevel.from_string(str(level))
            for name, level in (self.overrides or {}).items()
        }


@dataclass(frozen=True)
class ToolDefinition:
    """Classified, registry-ready view of a tool descriptor."""

    qualified_name: str
    server: str
    name: str
    description: str | None
    input_schema: dict[str, Any] | None
    required_fields: tuple[str, ...]
    risk: RiskLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "qualified_name": self.qualified_name,
            "server": self.server,
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
            "required_fields": list(self.required_fields),
            "risk": self.risk.value,
        }


@dataclass(frozen=True)
class ToolRegistry:
    """Two indices over the same set of tool definitions."""

    tools_by_qualified_name: dict[str, ToolDefinition]
    tools_by_server: dict[str, list[ToolDefinition]]

    def get(self, qualified_name: str) -> ToolDefinition | None:
        return self.tools_by_qualified_name.get(qualified_name)

    def tools(self) -> list[ToolDefinition]:
        return list(self.tools_by_qualified_name.values())

    def servers(self) -> list[str]:
        return list(self.tools_by_server.keys())

    def __len__(self) -> int:
        return len(self.tools_by_qualified_name)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.tools_by_qualified_name


@dataclass
class UserMcpPolicy:
    """Per-user override document consumed by the policy merger."""

    risk_policy: RiskPolicy | None = None
    read_only_tools: list[MatchRule] = field(default_factory=list)
    write_tools: list[MatchRule] = field(default_factory=list)
    risk_overrides: dict[str, RiskLevel] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.read_only_tools = as_match_rules(self.read_only_tools)
        self.write_tools = as_match_rules(self.write_tools)
        self.risk_overrides = {
            name: level if isinstance(level, RiskLevel) else RiskLevel.from_string(str(level))
            for name, level in (self.risk_overrides or {}).items()
        }


@dataclass
class UserMetadata:
    id: str
    mcp: UserMcpPolicy | None = None


@dataclass
class Decision:
    """Outcome of the invocation decision for one proposed tool call."""

    action: DecisionAction
    reason: str
    tool: ToolDefinition
    args: dict[str, Any]
    missing_fields: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action.value,
            "reason": self.reason,
            "tool": self.tool.to_dict(),
            "args": dict(self.args),
        }
        if self.missing_fields is not None:
            data["missing_fields"] = list(self.missing_fields)
        return data
