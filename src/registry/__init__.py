"""Tool registry, risk classification and invocation decisions."""

from registry.builder import ToolSearch, build_registry, refresh_registry
from registry.decision import decide_invocation
from registry.manager import RegistryManager
from registry.risk_classifier import RiskClassifier

__all__ = [
    "RegistryManager",
    "RiskClassifier",
    "ToolSearch",
    "build_registry",
    "decide_invocation",
    "refresh_registry",
]
