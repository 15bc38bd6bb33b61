from __future__ import annotations

import re

from domain.enums import RiskLevel
from domain.models import LiteralRule, PatternRule, RiskPolicy, ToolDescriptor
from registry.risk_classifier import RiskClassifier, collect_schema_fields, normalize_text


def _tool(
    name: str,
    *,
    server: str = "foo",
    description: str | None = None,
    schema: dict | None = None,
) -> ToolDescriptor:
    return ToolDescriptor(
        qualified_name=f"mcp__{server}__{name}",
        server=server,
        tool=name,
        description=description,
        input_schema=schema,
    )


def test_normalize_text_collapses_punctuation() -> None:
    assert normalize_text("  MCP__Foo--Bar!! baz ") == "mcp foo bar baz"
    assert normalize_text("___") == ""


def test_classification_is_idempotent() -> None:
    classifier = RiskClassifier()
    tool = _tool("list", description="List available items")
    assert classifier.classify(tool) == classifier.classify(tool) == RiskLevel.READ


def test_override_wins_over_every_signal() -> None:
    tool = ToolDescriptor(
        qualified_name="list_secrets",
        server="vault",
        tool="list_secrets",
        description="list",
    )
    classifier = RiskClassifier(RiskPolicy(overrides={"list_secrets": RiskLevel.WRITE}))
    assert classifier.classify(tool) == RiskLevel.WRITE

    downgrade = RiskClassifier(RiskPolicy(overrides={"mcp__foo__delete": "read"}))
    assert downgrade(_tool("delete", description="Destructive delete")) == RiskLevel.READ


def test_sensitive_field_outranks_read_verb() -> None:
    tool = _tool(
        "get",
        description="Get a resource",
        schema={"type": "object", "required": ["command"], "properties": {"command": {"type": "string"}}},
    )
    assert RiskClassifier().classify(tool) == RiskLevel.WRITE


def test_nested_schema_fields_are_inspected() -> None:
    tool = _tool(
        "lookup",
        description="Lookup",
        schema={
            "type": "object",
            "properties": {
                "options": {
                    "type": "object",
                    "properties": {"api_token": {"type": "string"}},
                },
            },
        },
    )
    assert "api token" in collect_schema_fields(tool.input_schema)
    assert RiskClassifier().classify(tool) == RiskLevel.WRITE


def test_write_verb_and_hint_classify_as_write() -> None:
    classifier = RiskClassifier()
    assert classifier(_tool("create_issue", description="Create an issue")) == RiskLevel.WRITE
    assert classifier(_tool("frobnicate", description="Destructive operation")) == RiskLevel.WRITE


def test_read_only_hint_classifies_as_read() -> None:
    tool = _tool("frobnicate", description="Read-only helper")
    assert RiskClassifier().classify(tool) == RiskLevel.READ


def test_side_effect_hint_outranks_read_hint() -> None:
    tool = _tool("frobnicate", description="Looks read-only but has side effects")
    assert RiskClassifier().classify(tool) == RiskLevel.WRITE


def test_no_signal_is_unknown() -> None:
    assert RiskClassifier().classify(_tool("frobnicate", description="Does things")) == RiskLevel.UNKNOWN


def test_force_write_checked_before_force_read() -> None:
    policy = RiskPolicy(force_read=["mcp__foo__list"], force_write=["mcp__foo__list"])
    assert RiskClassifier(policy).classify(_tool("list", description="List items")) == RiskLevel.WRITE


def test_force_read_literal_is_normalized() -> None:
    policy = RiskPolicy(force_read=[LiteralRule("Deploy-Preview")])
    tool = _tool("deploy_preview", description="Deploy a preview environment")
    assert RiskClassifier().classify(tool) == RiskLevel.WRITE
    assert RiskClassifier(policy).classify(tool) == RiskLevel.READ


def test_force_pattern_matches_raw_text() -> None:
    policy = RiskPolicy(force_write=[PatternRule(re.compile(r"__billing__"))])
    tool = _tool("status", server="billing", description="Billing status")
    assert RiskClassifier().classify(tool) == RiskLevel.READ
    assert RiskClassifier(policy).classify(tool) == RiskLevel.WRITE


def test_custom_vocabulary_replaces_defaults() -> None:
    policy = RiskPolicy(write_verbs=["purge"], read_verbs=[], sensitive_fields=[], write_hints=[])
    classifier = RiskClassifier(policy)
    assert classifier(_tool("purge_cache", description="Purge")) == RiskLevel.WRITE
    assert classifier(_tool("delete_item", description="Remove")) == RiskLevel.UNKNOWN


def test_schema_cycles_do_not_loop() -> None:
    schema: dict = {"type": "object", "properties": {}}
    schema["properties"]["self"] = schema
    assert collect_schema_fields(schema) == ["self"]
