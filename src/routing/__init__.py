"""Per-user policy merging and tool routing."""

from routing.policy_merger import merge_risk_policy, policy_key
from routing.router import ConfigWatcher, ToolRouter, UserMetadataProvider
from routing.session import ToolSession, create_session

__all__ = [
    "ConfigWatcher",
    "ToolRouter",
    "ToolSession",
    "UserMetadataProvider",
    "create_session",
    "merge_risk_policy",
    "policy_key",
]
