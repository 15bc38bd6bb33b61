"""Enumerations shared by the registry, routing and decision layers."""
from __future__ import annotations

from enum import Enum


class RiskLevel(str, Enum):
    """Classifier verdict on how safe a tool invocation is to automate."""

    READ = "read"
    WRITE = "write"
    UNKNOWN = "unknown"

    @property
    def allows_auto_invoke(self) -> bool:
        """Only read-only tools may run without explicit confirmation."""
        return self is RiskLevel.READ

    @classmethod
    def from_string(cls, value: str) -> "RiskLevel":
        normalized = value.strip().casefold()
        try:
            return cls(normalized)
        except ValueError as error:
            raise ValueError(f"Unsupported risk level: {value}") from error


class DecisionAction(str, Enum):
    """What the agent should do with a proposed tool call."""

    INVOKE = "invoke"
    CLARIFY = "clarify"
    CONFIRM = "confirm"
