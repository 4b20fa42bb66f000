"""Agent registry: one immutable definition per agent kind."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from agentura.models import MODEL_KEYS
from agentura.tools.declarations import CODE_INTERPRETER, MUSICFX_TOOL, SEARCH_ARCHIVE, VEO_TOOL

from . import prompts
from .schema import AgentDefinition, AgentKind, GenerationConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_AGENTS_CONFIG = Path(__file__).resolve().parent.parent / "config" / "agents.yaml"


class AgentRegistry:
    """Closed mapping from ``AgentKind`` to ``AgentDefinition``.

    Construction fails unless every kind is defined, so lookups never miss.
    """

    def __init__(self, definitions: Mapping[AgentKind, AgentDefinition]):
        missing = [kind.value for kind in AgentKind if kind not in definitions]
        if missing:
            raise ValueError(f"Agent registry is missing definitions for: {', '.join(missing)}")
        for kind, definition in definitions.items():
            if definition.kind is not kind:
                raise ValueError(f"Definition for {kind.value} declares kind {definition.kind.value}")
        self._definitions: Dict[AgentKind, AgentDefinition] = dict(definitions)

    def get(self, kind: AgentKind) -> AgentDefinition:
        return self._definitions[kind]

    def all(self) -> List[AgentDefinition]:
        return [self._definitions[kind] for kind in AgentKind]

    # ========== Role queries ==========

    def user_facing_kinds(self) -> List[AgentKind]:
        """Kinds the router may select."""
        return [kind for kind in AgentKind if self._definitions[kind].user_facing]

    def plan_step_kinds(self) -> List[AgentKind]:
        """Kinds a plan step may be bound to."""
        return [kind for kind in AgentKind if self._definitions[kind].plan_step]

    def is_user_facing(self, kind: AgentKind) -> bool:
        return self._definitions[kind].user_facing

    def describe_routes(self) -> str:
        """Render the router's route list."""
        return "\n".join(
            f"- {definition.kind.value}: {definition.description}"
            for definition in self.all()
            if definition.user_facing
        )


def default_definitions() -> Dict[AgentKind, AgentDefinition]:
    """Built-in definitions for every agent kind."""

    json_strict = GenerationConfig(temperature=0.0, json_mode=True)

    definitions = [
        # ========== Meta agents ==========
        AgentDefinition(
            kind=AgentKind.ROUTER,
            title="Router",
            description="Classifies requests into routes.",
            model_slot="base",
            instruction_template=prompts.ROUTER_PROMPT,
            config=json_strict,
        ),
        AgentDefinition(
            kind=AgentKind.PLANNER,
            title="Planner",
            description="Multi-step goals that need several specialists or ordered stages.",
            model_slot="reason",
            instruction_template=prompts.PLANNER_PROMPT,
            config=GenerationConfig(temperature=0.2, json_mode=True),
            user_facing=True,
        ),
        AgentDefinition(
            kind=AgentKind.SUPERVISOR,
            title="Supervisor",
            description="Chooses the next agent during a workflow.",
            model_slot="reason",
            instruction_template=prompts.SUPERVISOR_PROMPT,
            config=json_strict,
        ),
        AgentDefinition(
            kind=AgentKind.CRITIQUE,
            title="Critic",
            description="Scores outputs against the goal.",
            model_slot="reason",
            instruction_template=prompts.CRITIC_PROMPT,
            config=json_strict,
        ),
        AgentDefinition(
            kind=AgentKind.RETRY,
            title="Prompt optimiser",
            description="Rewrites a failed prompt using a critique.",
            model_slot="reason",
            instruction_template=prompts.RETRY_PROMPT,
            config=GenerationConfig(temperature=0.3),
        ),
        AgentDefinition(
            kind=AgentKind.VERIFIER,
            title="Constitution guard",
            description="Classifies text as SAFE or VIOLATION.",
            model_slot="base",
            instruction_template=prompts.CONSTITUTION_PROMPT,
            config=GenerationConfig(temperature=0.0, max_tokens=5),
        ),
        AgentDefinition(
            kind=AgentKind.RERANKER,
            title="Reranker",
            description="Scores archive passages for relevance.",
            model_slot="base",
            instruction_template=prompts.RERANKER_PROMPT,
            config=GenerationConfig(temperature=0.0, max_tokens=8),
        ),
        AgentDefinition(
            kind=AgentKind.EMBEDDER,
            title="Embedder",
            description="Produces embedding vectors.",
            model_slot="embedding",
        ),
        # ========== Worker agents ==========
        AgentDefinition(
            kind=AgentKind.CHAT,
            title="Chat",
            description="General conversation, simple questions, greetings and anything else.",
            model_slot="chat",
            instruction_template=prompts.CHAT_PROMPT,
            config=GenerationConfig(temperature=0.7),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.RESEARCH,
            title="Researcher",
            description="Fact finding, news, summaries with sources, questions about stored documents.",
            model_slot="chat",
            instruction_template=prompts.RESEARCH_PROMPT,
            config=GenerationConfig(temperature=0.3),
            tools=(SEARCH_ARCHIVE,),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.COMPLEX,
            title="Deep reasoner",
            description="Hard reasoning, math proofs, multi-constraint analysis.",
            model_slot="reason",
            instruction_template=prompts.COMPLEX_PROMPT,
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.CODE,
            title="Coder",
            description="Writing, running or debugging code.",
            model_slot="code",
            instruction_template=prompts.CODE_PROMPT,
            config=GenerationConfig(temperature=0.1),
            tools=(CODE_INTERPRETER,),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.DATA_ANALYST,
            title="Data analyst",
            description="Statistics, datasets, numeric analysis and charts.",
            model_slot="code",
            instruction_template=prompts.DATA_ANALYST_PROMPT,
            config=GenerationConfig(temperature=0.1),
            tools=(CODE_INTERPRETER,),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.VISION,
            title="Vision",
            description="Questions about images.",
            model_slot="vision",
            instruction_template=prompts.VISION_PROMPT,
            config=GenerationConfig(temperature=0.2),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.CREATIVE,
            title="Creative director",
            description="Stories, poems, marketing copy, video or music ideas.",
            model_slot="chat",
            instruction_template=prompts.CREATIVE_PROMPT,
            config=GenerationConfig(temperature=0.9),
            tools=(VEO_TOOL, MUSICFX_TOOL),
            user_facing=True,
            plan_step=True,
        ),
        AgentDefinition(
            kind=AgentKind.MAINTENANCE,
            title="Archive maintenance",
            description="Questions about the local archive's contents and upkeep.",
            model_slot="base",
            instruction_template=prompts.MAINTENANCE_PROMPT,
            user_facing=True,
            plan_step=True,
        ),
    ]
    return {definition.kind: definition for definition in definitions}


def _load_overrides(path: Path) -> Dict[str, Dict[str, Any]]:
    if not path.exists():
        LOGGER.debug(f"Agent overrides not found: {path}")
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    agents = data.get("agents") or {}
    if not isinstance(agents, dict):
        raise ValueError(f"'agents' in {path} must be a mapping")
    LOGGER.info(f"Loaded agent overrides for {len(agents)} kinds from {path}")
    return agents


def _apply_override(definition: AgentDefinition, override: Dict[str, Any]) -> AgentDefinition:
    changes: Dict[str, Any] = {}
    slot = override.get("model_slot")
    if slot is not None:
        if slot not in MODEL_KEYS:
            raise ValueError(f"Unknown model slot '{slot}' for agent {definition.kind.value}")
        changes["model_slot"] = slot
    config_changes = {
        key: override[key] for key in ("temperature", "max_tokens") if key in override
    }
    if config_changes:
        changes["config"] = replace(definition.config, **config_changes)
    return replace(definition, **changes) if changes else definition


def build_agent_registry(overrides_path: Optional[str | Path] = None) -> AgentRegistry:
    """Build the registry from built-in definitions plus optional YAML overrides."""

    definitions = default_definitions()
    path = Path(overrides_path) if overrides_path else DEFAULT_AGENTS_CONFIG
    for name, override in _load_overrides(path).items():
        kind = AgentKind.parse(name)
        if kind is None:
            LOGGER.warning(f"Ignoring override for unknown agent kind: {name}")
            continue
        definitions[kind] = _apply_override(definitions[kind], override or {})
    return AgentRegistry(definitions)
