"""Per-user policy overrides loaded from a JSON metadata document."""
from __future__ import annotations

import asyncio
import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from app.config import Settings
from domain.enums import RiskLevel
from domain.models import LiteralRule, MatchRule, PatternRule, RiskPolicy, UserMcpPolicy, UserMetadata
from infrastructure.runtime_errors import UserMetadataError

logger = logging.getLogger(__name__)

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


class _DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PatternRuleDocument(_DocumentModel):
    pattern: str = Field(..., min_length=1)
    flags: str = ""


RuleEntry = str | PatternRuleDocument


class RiskPolicyDocument(_DocumentModel):
    read_verbs: list[str] | None = None
    write_verbs: list[str] | None = None
    sensitive_fields: list[str] | None = None
    write_fields: list[str] | None = None
    read_only_hints: list[str] | None = None
    write_hints: list[str] | None = None
    force_read: list[RuleEntry] = Field(default_factory=list)
    force_write: list[RuleEntry] = Field(default_factory=list)
    overrides: dict[str, RiskLevel] = Field(default_factory=dict)


class UserMcpPolicyDocument(_DocumentModel):
    risk_policy: RiskPolicyDocument | None = None
    read_only_tools: list[RuleEntry] = Field(default_factory=list)
    write_tools: list[RuleEntry] = Field(default_factory=list)
    risk_overrides: dict[str, RiskLevel] = Field(default_factory=dict)


class UserRecordDocument(_DocumentModel):
    id: str | None = None
    mcp: UserMcpPolicyDocument | None = None


class DocumentShape(str, Enum):
    """Layouts a metadata document may use to hold user records."""

    USER_LIST = "user_list"
    USERS_MAP = "users_map"
    KEYED_RECORD = "keyed_record"
    FLAT_RECORD = "flat_record"
    NO_MATCH = "no_match"


def locate_user_record(user_id: str, document: Any) -> tuple[DocumentShape, dict[str, Any] | None]:
    """Find the record for ``user_id`` and report which layout held it."""

    if isinstance(document, list):
        for item in document:
            if isinstance(item, dict) and item.get("id") == user_id:
                return DocumentShape.USER_LIST, item
        return DocumentShape.NO_MATCH, None

    if not isinstance(document, dict):
        return DocumentShape.NO_MATCH, None

    users = document.get("users")
    if isinstance(users, dict):
        entry = users.get(user_id)
        if isinstance(entry, dict):
            return DocumentShape.USERS_MAP, entry
        return DocumentShape.NO_MATCH, None

    entry = document.get(user_id)
    if isinstance(entry, dict):
        return DocumentShape.KEYED_RECORD, entry

    if document.get("id") == user_id:
        return DocumentShape.FLAT_RECORD, document

    return DocumentShape.NO_MATCH, None


def _to_rule(entry: RuleEntry) -> MatchRule:
    if isinstance(entry, str):
        return LiteralRule(entry)
    flags = 0
    for letter in entry.flags:
        if letter not in _REGEX_FLAGS:
            raise UserMetadataError(f"Unsupported pattern flag {letter!r} in {entry.pattern!r}")
        flags |= _REGEX_FLAGS[letter]
    try:
        return PatternRule.compile(entry.pattern, flags)
    except re.error as exc:
        raise UserMetadataError(f"Invalid pattern {entry.pattern!r}: {exc}") from exc


def _to_risk_policy(document: RiskPolicyDocument) -> RiskPolicy:
    return RiskPolicy(
        read_verbs=document.read_verbs,
        write_verbs=document.write_verbs,
        sensitive_fields=document.sensitive_fields,
        write_fields=document.write_fields,
        read_only_hints=document.read_only_hints,
        write_hints=document.write_hints,
        force_read=[_to_rule(entry) for entry in document.force_read],
        force_write=[_to_rule(entry) for entry in document.force_write],
        overrides=dict(document.overrides),
    )


def _to_user_policy(document: UserMcpPolicyDocument) -> UserMcpPolicy:
    return UserMcpPolicy(
        risk_policy=_to_risk_policy(document.risk_policy) if document.risk_policy else None,
        read_only_tools=[_to_rule(entry) for entry in document.read_only_tools],
        write_tools=[_to_rule(entry) for entry in document.write_tools],
        risk_overrides=dict(document.risk_overrides),
    )


def parse_user_metadata(user_id: str, raw: str) -> UserMetadata | None:
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UserMetadataError(f"User metadata is not valid JSON: {exc}") from exc

    shape, record = locate_user_record(user_id, document)
    if record is None:
        logger.debug("No metadata record for user %s", user_id)
        return None

    try:
        parsed = UserRecordDocument.model_validate(record)
    except ValidationError as exc:
        raise UserMetadataError(f"Invalid metadata for user {user_id} ({shape.value}): {exc}") from exc
    return UserMetadata(
        id=user_id,
        mcp=_to_user_policy(parsed.mcp) if parsed.mcp else None,
    )


class FileUserMetadataProvider:
    """Reads user metadata from an inline JSON document or a file on every lookup."""

    def __init__(self, path: Path | None = None, *, inline: str | None = None) -> None:
        self._path = path
        self._inline = inline

    @classmethod
    def from_settings(cls, settings: Settings) -> "FileUserMetadataProvider":
        return cls(settings.user_metadata_path, inline=settings.user_metadata)

    async def __call__(self, user_id: str) -> UserMetadata | None:
        raw = await self._read_source()
        if raw is None:
            return None
        return parse_user_metadata(user_id, raw)

    async def _read_source(self) -> str | None:
        if self._inline and self._inline.strip():
            return self._inline
        if self._path is None:
            return None
        try:
            return await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise UserMetadataError(f"User metadata file {self._path} is not valid UTF-8: {exc}") from exc
