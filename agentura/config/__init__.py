"""Configuration package."""

from .settings import (
    ArchiveSettings,
    ExecutionSettings,
    GatewaySettings,
    GovernanceSettings,
    ModelRoutingSettings,
    ObservabilitySettings,
    SafetySettings,
    Settings,
    get_settings,
)

__all__ = [
    "ArchiveSettings",
    "ExecutionSettings",
    "GatewaySettings",
    "GovernanceSettings",
    "ModelRoutingSettings",
    "ObservabilitySettings",
    "SafetySettings",
    "Settings",
    "get_settings",
]
