"""Application configuration."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ROOT_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = ROOT_DIR / ".env"
CODEX_HOME = Path.home() / ".codex"

# Only load the file when present to avoid noisy warnings.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)

_REDACTED_FIELDS = ("user_metadata",)


class Settings(BaseSettings):
    """Runtime settings for the tool gateway."""

    model_config = SettingsConfigDict(
        env_prefix="TOOL_GATEWAY_",
        env_file=ENV_PATH,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="tool-gateway", description="Service name")
    api_prefix: str = Field(default="/api/v1", description="HTTP API prefix")
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Root log level")

    tool_search_url: str | None = Field(default=None, description="Base URL of the tool-search backend")
    tool_search_timeout_s: float = Field(default=30.0, gt=0, description="Search request timeout")

    registry_query: str = Field(default="tool", min_length=1, description="Default catalog query")
    registry_server: str | None = Field(default=None, description="Restrict the catalog to one server")
    registry_limit: int = Field(default=200, ge=1, description="Maximum tools per refresh")
    registry_ttl_ms: int = Field(default=60_000, ge=0, description="Registry cache TTL; 0 refreshes every call")

    mcp_config_path: Path = Field(
        default=CODEX_HOME / "config.toml",
        description="Tool server configuration file watched for changes",
        validation_alias=AliasChoices("CODEX_CONFIG_PATH", "TOOL_GATEWAY_MCP_CONFIG_PATH"),
    )
    config_poll_interval_s: float = Field(default=0.5, gt=0, description="Config file poll interval")
    config_debounce_s: float = Field(default=0.1, ge=0, description="Quiet period before a config change fires")

    user_metadata: str | None = Field(
        default=None,
        description="Inline user metadata JSON; wins over the file",
        validation_alias=AliasChoices("CODEX_USER_METADATA", "TOOL_GATEWAY_USER_METADATA"),
    )
    user_metadata_path: Path = Field(
        default=CODEX_HOME / "user-metadata.json",
        description="User metadata JSON file",
        validation_alias=AliasChoices(
            "CODEX_USER_METADATA_PATH", "TOOL_GATEWAY_USER_METADATA_PATH"
        ),
    )

    @field_validator("mcp_config_path", "user_metadata_path")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"log_level must be a logging level name, got {value!r}")
        return normalized

    def safe_model_dump(self) -> dict[str, Any]:
        dumped = self.model_dump()
        for name in _REDACTED_FIELDS:
            if dumped.get(name):
                dumped[name] = "***"
        return dumped


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    logging.getLogger(__name__).debug("Config loaded: %s", settings.safe_model_dump())
    return settings
