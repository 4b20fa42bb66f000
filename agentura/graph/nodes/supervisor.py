"""Supervisor node: choose the next meta-agent after a dispatch."""

from __future__ import annotations

import logging
from typing import Any, Dict

from agentura.agents.schema import FINAL
from agentura.components.supervisor import Supervisor
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.store import SessionStore
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.json_utils import to_display_text
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import stopped_update

LOGGER = logging.getLogger("agentura.graph.supervisor")

SNAPSHOT_OUTPUT_CHARS = 2000
SNAPSHOT_HISTORY_LINES = 8


def build_snapshot(state: GraphExecutionState, store: SessionStore) -> Dict[str, Any]:
    """Compact view of the run the supervisor decides on."""

    snapshot: Dict[str, Any] = {
        "goal": state.get("goal", ""),
        "recent_history": list(state.get("history", []))[-SNAPSHOT_HISTORY_LINES:],
        "last_output": to_display_text(state.get("last_output"))[:SNAPSHOT_OUTPUT_CHARS],
        "last_error": state.get("last_error"),
        "retries_used": state.get("retries_used", 0),
        "retry_budget": state.get("retry_budget", 0),
    }
    if state.get("plan_id"):
        plan = store.get_plan(state["plan_id"])
        snapshot["plan"] = [
            {
                "step_id": step.step_id,
                "agent": step.agent.value,
                "status": step.status.value,
                "description": step.description,
            }
            for step in plan.steps
        ]
    critique = state.get("critique")
    if critique is not None:
        snapshot["critique_average"] = round(critique.average, 2)
        snapshot["critique"] = critique.critique
    return snapshot


def build_supervisor_node(
    *,
    supervisor: Supervisor,
    store: SessionStore,
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("supervisor")
    async def supervisor_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "supervisor", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "supervisor")

        loops = state.get("loops", 0) + 1
        max_loops = state.get("max_loops", 12)
        if loops > max_loops:
            line = tracer(state, "supervisor", f"Loop limit reached ({max_loops}); finishing with the current output.")
            updates = {"loops": loops, "status": "done", "next_agent": FINAL, "history": [line]}
            log_node_exit(LOGGER, "supervisor", updates)
            return updates

        decision = await supervisor.decide(build_snapshot(state, store))
        line = tracer(state, "supervisor", f"Next: {decision.next_agent}. {decision.reason}".strip())
        updates = {"loops": loops, "next_agent": decision.next_agent, "history": [line]}
        log_node_exit(LOGGER, "supervisor", updates)
        return updates

    return supervisor_node
