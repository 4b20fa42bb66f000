"""Agent kinds, definitions and the registry."""

from .registry import AgentRegistry, build_agent_registry, default_definitions
from .schema import AgentDefinition, AgentKind, GenerationConfig, ToolSpec

__all__ = [
    "AgentDefinition",
    "AgentKind",
    "AgentRegistry",
    "GenerationConfig",
    "ToolSpec",
    "build_agent_registry",
    "default_definitions",
]
