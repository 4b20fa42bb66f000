"""Reflexion node: rewrite the prompt from the critique and try again."""

from __future__ import annotations

import logging
from typing import Optional

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.archive.reflexion_memory import ReflexionMemory
from agentura.components.reflexion import PromptRefiner
from agentura.config import GovernanceSettings
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.utils.error_handler import AgenturaError, with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import record_lesson, stopped_update
from .critic import critique_input

LOGGER = logging.getLogger("agentura.graph.reflexion")


def build_reflexion_node(
    *,
    refiner: PromptRefiner,
    memory: Optional[ReflexionMemory],
    governance: GovernanceSettings,
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("reflexion")
    async def reflexion_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "reflexion", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "reflexion")

        # A failed refinement still spends the budget.
        retries_used = state.get("retries_used", 0) + 1
        original = state.get("current_prompt") or state.get("goal", "")
        output = critique_input(state)
        critique = state["critique"].critique if state.get("critique") is not None else ""

        try:
            new_prompt = await refiner.refine(original, output, critique)
        except AgenturaError as e:
            lines = [tracer(state, "reflexion", f"Refinement failed ({e.user_message}); keeping the current output.")]
            lines += await record_lesson(
                memory, tracer, state, "reflexion", prompt=original, output=output, critique=critique
            )
            updates = {"retries_used": retries_used, "next_agent": FINAL, "history": lines}
            log_node_exit(LOGGER, "reflexion", updates)
            return updates

        lines = await record_lesson(
            memory, tracer, state, "reflexion", prompt=original, output=output, critique=critique, fix=new_prompt
        )

        # Normal chat mode never plans, so the same agent answers the refined prompt.
        route = state.get("route")
        if governance.chat_mode == "normal" and route is not None and route != AgentKind.PLANNER:
            next_agent = route.value
        else:
            next_agent = AgentKind.PLANNER.value

        lines.append(tracer(state, "reflexion", f"Retrying with a refined prompt via {next_agent}: {new_prompt[:200]}"))
        updates = {
            "retries_used": retries_used,
            "current_prompt": new_prompt,
            "critique": None,
            "next_agent": next_agent,
            "history": lines,
        }
        log_node_exit(LOGGER, "reflexion", updates)
        return updates

    return reflexion_node
