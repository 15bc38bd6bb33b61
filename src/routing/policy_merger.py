"""Merging base risk policies with per-user override documents."""
from __future__ import annotations

import hashlib
import json
from typing import Any

from domain.models import MatchRule, RiskPolicy, UserMcpPolicy
from registry.risk_classifier import (
    DEFAULT_READ_ONLY_HINTS,
    DEFAULT_READ_VERBS,
    DEFAULT_SENSITIVE_FIELDS,
    DEFAULT_WRITE_FIELDS,
    DEFAULT_WRITE_HINTS,
    DEFAULT_WRITE_VERBS,
)

_KEYWORD_FIELDS: dict[str, tuple[str, ...]] = {
    "read_verbs": DEFAULT_READ_VERBS,
    "write_verbs": DEFAULT_WRITE_VERBS,
    "sensitive_fields": DEFAULT_SENSITIVE_FIELDS,
    "write_fields": DEFAULT_WRITE_FIELDS,
    "read_only_hints": DEFAULT_READ_ONLY_HINTS,
    "write_hints": DEFAULT_WRITE_HINTS,
}


def merge_unique(base: list[str] | tuple[str, ...], extra: list[str] | None) -> list[str]:
    merged = list(base)
    seen = set(merged)
    for value in extra or ():
        if value not in seen:
            seen.add(value)
            merged.append(value)
    return merged


def _merge_keywords(base: list[str] | None, extra: list[str] | None, default: tuple[str, ...]) -> list[str] | None:
    if not extra:
        return list(base) if base is not None else None
    # Extending an unset list starts from the built-in vocabulary.
    return merge_unique(default if base is None else base, extra)


def merge_risk_policy(base: RiskPolicy, user: UserMcpPolicy | None) -> RiskPolicy:
    """Combine a base policy with a user's override document.

    Keyword lists are unioned, force rules concatenated (base, user policy,
    then the user's dedicated tool lists) and overrides shallow-merged with the
    user's top-level ``risk_overrides`` winning.
    """

    if user is None:
        return base
    fragment = user.risk_policy or RiskPolicy()
    keywords = {
        name: _merge_keywords(getattr(base, name), getattr(fragment, name), default)
        for name, default in _KEYWORD_FIELDS.items()
    }
    return RiskPolicy(
        **keywords,
        force_read=[*base.force_read, *fragment.force_read, *user.read_only_tools],
        force_write=[*base.force_write, *fragment.force_write, *user.write_tools],
        overrides={**base.overrides, **fragment.overrides, **user.risk_overrides},
    )


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def _describe_rules(rules: list[MatchRule]) -> list[dict[str, Any]]:
    described = {_canonical_json(rule.describe()): rule.describe() for rule in rules}
    return [described[key] for key in sorted(described)]


def _effective_keywords(values: list[str] | None, default: tuple[str, ...]) -> list[str]:
    return sorted(set(default if values is None else values))


def policy_document(policy: RiskPolicy) -> dict[str, Any]:
    """Canonical, JSON-serializable representation of a policy.

    Order and repeats do not change classification, so lists are sorted and
    deduplicated and unset vocabularies are written out in full.
    """

    document: dict[str, Any] = {
        name: _effective_keywords(getattr(policy, name), default)
        for name, default in _KEYWORD_FIELDS.items()
    }
    document["force_read"] = _describe_rules(policy.force_read)
    document["force_write"] = _describe_rules(policy.force_write)
    document["overrides"] = {name: level.value for name, level in sorted(policy.overrides.items())}
    return document


def policy_key(policy: RiskPolicy) -> str:
    payload = _canonical_json(policy_document(policy))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
