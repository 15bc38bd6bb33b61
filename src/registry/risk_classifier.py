"""Keyword-driven risk classification of external tools."""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from domain.enums import RiskLevel
from domain.models import LiteralRule, MatchRule, PatternRule, RiskPolicy, ToolDescriptor

logger = logging.getLogger(__name__)

DEFAULT_READ_VERBS: tuple[str, ...] = (
    "get",
    "list",
    "fetch",
    "read",
    "search",
    "query",
    "describe",
    "inspect",
    "view",
    "status",
    "check",
    "lookup",
    "preview",
    "analyze",
    "scan",
    "crawl",
    "scrape",
)

DEFAULT_WRITE_VERBS: tuple[str, ...] = (
    "create",
    "update",
    "delete",
    "remove",
    "add",
    "set",
    "patch",
    "post",
    "put",
    "deploy",
    "restart",
    "start",
    "stop",
    "run",
    "execute",
    "install",
    "uninstall",
    "grant",
    "revoke",
    "upload",
    "import",
    "export",
    "merge",
    "push",
    "commit",
    "schedule",
    "cancel",
    "approve",
    "deny",
    "charge",
    "transfer",
    "send",
)

DEFAULT_SENSITIVE_FIELDS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "key",
    "credential",
    "auth",
    "bearer",
    "private",
    "env",
    "filesystem",
    "path",
    "command",
    "sql",
    "script",
    "code",
)

DEFAULT_WRITE_FIELDS: tuple[str, ...] = (
    "create",
    "update",
    "delete",
    "remove",
    "write",
    "execute",
    "run",
    "deploy",
)

DEFAULT_READ_ONLY_HINTS: tuple[str, ...] = (
    "read only",
    "readonly",
    "no side effects",
    "no side-effects",
    "non mutating",
    "non-mutating",
)

DEFAULT_WRITE_HINTS: tuple[str, ...] = (
    "mutating",
    "side effect",
    "side-effect",
    "destructive",
    "dangerous",
    "write",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize_text(value: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to single spaces and trim."""

    return _NON_ALNUM_RE.sub(" ", value.lower()).strip()


def normalize_keywords(values: Iterable[str]) -> list[str]:
    normalized = (normalize_text(value) for value in values)
    return [value for value in normalized if value]


def has_keyword(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def rule_matches(rule: MatchRule, normalized_text: str, raw_text: str) -> bool:
    if isinstance(rule, LiteralRule):
        literal = normalize_text(rule.text)
        return bool(literal) and literal in normalized_text
    if isinstance(rule, PatternRule):
        return bool(rule.pattern.search(raw_text) or rule.pattern.search(normalized_text))
    raise TypeError(f"Unsupported match rule: {rule!r}")


def matches_any(rules: Iterable[MatchRule], normalized_text: str, raw_text: str) -> bool:
    return any(rule_matches(rule, normalized_text, raw_text) for rule in rules)


def collect_schema_fields(schema: dict[str, Any] | None) -> list[str]:
    """Collect every required entry and property key of a nested input schema."""

    if not isinstance(schema, dict):
        return []
    fields: dict[str, None] = {}
    seen: set[int] = set()
    stack: list[dict[str, Any]] = [schema]

    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        required = current.get("required")
        if isinstance(required, list):
            for entry in required:
                if isinstance(entry, str):
                    fields.setdefault(normalize_text(entry), None)

        properties = current.get("properties")
        if isinstance(properties, dict):
            for key, value in properties.items():
                fields.setdefault(normalize_text(str(key)), None)
                if isinstance(value, dict):
                    stack.append(value)

    return [name for name in fields if name]


def required_fields_of(schema: dict[str, Any] | None) -> tuple[str, ...]:
    if not isinstance(schema, dict):
        return ()
    required = schema.get("required")
    if not isinstance(required, list):
        return ()
    return tuple(entry for entry in required if isinstance(entry, str))


class RiskClassifier:
    """Classifies tools as read, write or unknown under one effective policy."""

    def __init__(self, policy: RiskPolicy | None = None) -> None:
        policy = policy or RiskPolicy()
        self.policy = policy
        self._read_verbs = normalize_keywords(_or_default(policy.read_verbs, DEFAULT_READ_VERBS))
        self._write_verbs = normalize_keywords(_or_default(policy.write_verbs, DEFAULT_WRITE_VERBS))
        self._sensitive_fields = normalize_keywords(
            _or_default(policy.sensitive_fields, DEFAULT_SENSITIVE_FIELDS)
        )
        self._write_fields = normalize_keywords(_or_default(policy.write_fields, DEFAULT_WRITE_FIELDS))
        self._read_only_hints = normalize_keywords(
            _or_default(policy.read_only_hints, DEFAULT_READ_ONLY_HINTS)
        )
        self._write_hints = normalize_keywords(_or_default(policy.write_hints, DEFAULT_WRITE_HINTS))
        self._force_read = list(policy.force_read)
        self._force_write = list(policy.force_write)
        self._overrides = dict(policy.overrides)

    def __call__(self, tool: ToolDescriptor) -> RiskLevel:
        return self.classify(tool)

    def classify(self, tool: ToolDescriptor) -> RiskLevel:
        override = self._overrides.get(tool.qualified_name)
        if override is not None:
            return override

        raw_text = " ".join((tool.qualified_name, tool.tool, tool.description or ""))
        text = normalize_text(raw_text)

        if matches_any(self._force_write, text, raw_text):
            return RiskLevel.WRITE
        if matches_any(self._force_read, text, raw_text):
            return RiskLevel.READ

        schema_text = " ".join(collect_schema_fields(tool.input_schema))
        signals = {
            "write_verb": has_keyword(text, self._write_verbs),
            "write_field": has_keyword(schema_text, self._write_fields),
            "sensitive_field": has_keyword(schema_text, self._sensitive_fields),
            "write_hint": has_keyword(text, self._write_hints),
            "read_signal": has_keyword(text, self._read_only_hints) or has_keyword(text, self._read_verbs),
        }

        if signals["write_verb"] or signals["write_field"] or signals["sensitive_field"] or signals["write_hint"]:
            level = RiskLevel.WRITE
        elif signals["read_signal"]:
            level = RiskLevel.READ
        else:
            level = RiskLevel.UNKNOWN
        logger.debug(
            "Classified %s as %s (signals=%s)",
            tool.qualified_name,
            level.value,
            [name for name, active in signals.items() if active],
        )
        return level


def _or_default(values: list[str] | None, default: tuple[str, ...]) -> Iterable[str]:
    return default if values is None else values
