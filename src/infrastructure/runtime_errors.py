"""Shared runtime-level exceptions."""
from __future__ import annotations


class ToolGatewayError(RuntimeError):
    """Base error for registry, routing and collaborator failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolSearchError(ToolGatewayError):
    """Raised when the tool-search backend call fails."""


class UserMetadataError(ToolGatewayError):
    """Raised when a user-metadata document cannot be parsed."""
