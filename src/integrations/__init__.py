"""Integrations with the search backend, configuration file and user metadata."""

from integrations.config_watcher import ChangeDebouncer, McpConfig, McpConfigWatcher
from integrations.tool_search_client import HttpToolSearchClient
from integrations.user_metadata import FileUserMetadataProvider, parse_user_metadata

__all__ = [
    "ChangeDebouncer",
    "FileUserMetadataProvider",
    "HttpToolSearchClient",
    "McpConfig",
    "McpConfigWatcher",
    "parse_user_metadata",
]
