"""Agent kind and definition types.

The registry is a closed mapping: every ``AgentKind`` has exactly one
``AgentDefinition``, so an invalid kind cannot be represented.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from agentura.tools.declarations import ToolSpec

# Terminal marker for the supervisor loop; never a valid AgentKind value.
FINAL = "__final__"


class AgentKind(str, Enum):
    """Specialist roles known to the orchestrator."""

    ROUTER = "Router"
    PLANNER = "Planner"
    RESEARCH = "Research"
    CODE = "Code"
    CRITIQUE = "Critique"
    RETRY = "Retry"
    VISION = "Vision"
    CREATIVE = "Creative"
    DATA_ANALYST = "DataAnalyst"
    MAINTENANCE = "Maintenance"
    RERANKER = "Reranker"
    VERIFIER = "Verifier"
    CHAT = "Chat"
    COMPLEX = "Complex"
    SUPERVISOR = "Supervisor"
    EMBEDDER = "Embedder"

    @classmethod
    def parse(cls, value: Any) -> Optional["AgentKind"]:
        """Lenient lookup by value or member name; None when unknown."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        for kind in cls:
            if text.lower() in (kind.value.lower(), kind.name.lower()):
                return kind
        return None


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Per-agent generation parameters."""

    temperature: Optional[float] = None
    json_mode: bool = False
    max_tokens: Optional[int] = None


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    """Immutable configuration of one agent kind."""

    kind: AgentKind
    title: str
    description: str
    model_slot: str
    instruction_template: str = ""
    config: GenerationConfig = field(default_factory=GenerationConfig)
    tools: Tuple[ToolSpec, ...] = ()
    user_facing: bool = False
    plan_step: bool = False

    def render_instruction(self, **values: Any) -> str:
        """Fill placeholder slots; unknown placeholders are left untouched."""

        if not self.instruction_template:
            return ""
        return self.instruction_template.format_map(_KeepMissing(values))

    def tool_names(self) -> Tuple[str, ...]:
        return tuple(tool.name for tool in self.tools)
