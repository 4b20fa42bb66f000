"""Orchestration components: routing, planning, execution, critique."""

from .agent_runner import AgentRun, AgentRunner
from .critic import Critic
from .guard import REFUSAL_TEXT, ConstitutionGuard
from .planner import Planner
from .reflexion import PromptRefiner, clean_prompt
from .router import Router, RoutingResult
from .step_executor import StepExecutor, StepOutcome, build_step_prompt
from .supervisor import Supervisor, SupervisorDecision, parse_decision

__all__ = [
    "AgentRun",
    "AgentRunner",
    "ConstitutionGuard",
    "Critic",
    "Planner",
    "PromptRefiner",
    "REFUSAL_TEXT",
    "Router",
    "RoutingResult",
    "StepExecutor",
    "StepOutcome",
    "Supervisor",
    "SupervisorDecision",
    "build_step_prompt",
    "clean_prompt",
    "parse_decision",
]
