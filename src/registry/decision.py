"""Invocation decisions for resolved tools."""
from __future__ import annotations

from typing import Any

from domain.enums import DecisionAction
from domain.models import Decision, ToolDefinition


def find_missing_required_fields(required_fields: tuple[str, ...] | list[str], args: dict[str, Any]) -> list[str]:
    # An explicit None counts as not supplied; empty strings and zeros do not.
    return [name for name in required_fields if args.get(name) is None]


def decide_invocation(tool: ToolDefinition, args: dict[str, Any]) -> Decision:
    """Decide whether a proposed call may run, needs arguments, or needs confirmation."""

    missing = find_missing_required_fields(tool.required_fields, args)
    if missing:
        return Decision(
            action=DecisionAction.CLARIFY,
            reason="Missing required tool arguments.",
            tool=tool,
            args=args,
            missing_fields=missing,
        )

    if not tool.risk.allows_auto_invoke:
        return Decision(
            action=DecisionAction.CONFIRM,
            reason="Tool classified as write or unknown risk.",
            tool=tool,
            args=args,
        )

    return Decision(
        action=DecisionAction.INVOKE,
        reason="Read-only tool with required arguments present.",
        tool=tool,
        args=args,
    )
