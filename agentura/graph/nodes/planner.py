"""Planner node: decompose the (possibly refined) prompt into a plan."""

from __future__ import annotations

import logging
from typing import Optional

from agentura.agents import AgentKind, AgentRegistry
from agentura.archive.reflexion_memory import ReflexionMemory
from agentura.components.planner import Planner
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.store import SessionStore
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import continue_in_new_message, recall_lessons, stopped_update

LOGGER = logging.getLogger("agentura.graph.planner")


def build_planner_node(
    *,
    planner: Planner,
    agent_registry: AgentRegistry,
    store: SessionStore,
    memory: Optional[ReflexionMemory],
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("planner")
    async def planner_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "planner", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "planner")

        message_id = state["message_id"]
        prompt = state.get("current_prompt") or state.get("goal", "")
        if state.get("repo_context"):
            prompt = f"{state['repo_context']}\n\n{prompt}"

        lessons, lines = await recall_lessons(memory, tracer, state, "planner", prompt)

        plan = await planner.plan(prompt, agent_registry.plan_step_kinds(), lessons)

        current = store.get_message(message_id)
        if current.plan is not None or state.get("retries_used", 0) > 0:
            # Keep the earlier attempt visible: close its message, open a new one.
            message_id, line = continue_in_new_message(
                store, tracer, state, "planner", AgentKind.PLANNER,
                "Revised plan created; continuing in a new message.", lines, plan=plan,
            )
            lines.append(line)
        else:
            store.update_message(message_id, plan=plan, agent=AgentKind.PLANNER)

        lines.append(
            tracer(state, "planner", f"Plan {plan.id} created with {len(plan.steps)} step(s).", message_id=message_id)
        )
        updates = {
            "message_id": message_id,
            "plan_id": plan.id,
            "next_agent": "dispatch",
            "last_error": None,
            "history": lines,
        }
        log_node_exit(LOGGER, "planner", updates)
        return updates

    return planner_node
