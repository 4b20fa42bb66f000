"""Shared state definition for the supervisor graph."""

from __future__ import annotations

import operator
from typing import Annotated, Any, Dict, List, Literal, Optional, TypedDict

from agentura.agents.schema import FINAL, AgentKind
from agentura.session.models import CritiqueResult, FileAttachment

RunStatus = Literal["running", "done", "error", "stopped", "refused"]

TERMINAL_STATUSES = frozenset({"done", "error", "stopped", "refused"})


class GraphExecutionState(TypedDict, total=False):
    """Working state of one top-level request; discarded after finalize."""

    # ========== Request ==========
    message_id: str               # Assistant message receiving output and trace
    user_message_id: str
    goal: str                     # Original user goal
    current_prompt: str           # Prompt fed to the planner (replaced by reflexion)
    file: Optional[FileAttachment]
    repo_context: Optional[str]
    forced_agent: Optional[AgentKind]

    # ========== Routing and plan ==========
    route: Optional[AgentKind]
    plan_id: Optional[str]

    # ========== Execution ==========
    history: Annotated[List[str], operator.add]  # Append-only trace
    last_output: Any
    last_sources: List[Dict[str, str]]
    last_error: Optional[str]
    next_agent: str               # AgentKind value or FINAL
    critique: Optional[CritiqueResult]

    # ========== Governance ==========
    retries_used: int
    retry_budget: int
    loops: int
    max_loops: int
    status: RunStatus


__all__ = ["FINAL", "GraphExecutionState", "RunStatus", "TERMINAL_STATUSES"]
