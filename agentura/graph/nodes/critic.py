"""Critique node: score the latest output and decide whether to retry."""

from __future__ import annotations

import logging
from typing import Optional

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.archive.reflexion_memory import ReflexionMemory
from agentura.components.critic import Critic
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.models import GroundingSource
from agentura.session.store import SessionStore
from agentura.utils.error_handler import AgenturaError, with_error_boundary
from agentura.utils.json_utils import to_display_text
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import record_lesson, stopped_update

LOGGER = logging.getLogger("agentura.graph.critic")


def critique_input(state: GraphExecutionState) -> str:
    output = to_display_text(state.get("last_output"))
    error = state.get("last_error")
    if error and error not in output:
        output = f"{output}\n\nError:\n{error}" if output else f"Error:\n{error}"
    return output


def build_critic_node(
    *,
    critic: Critic,
    store: SessionStore,
    memory: Optional[ReflexionMemory],
    quality_threshold: float,
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("critic")
    async def critic_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "critic", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "critic")

        output = critique_input(state)
        sources = [GroundingSource(**source) for source in state.get("last_sources") or []]
        try:
            result = await critic.critique(state.get("goal", ""), output, sources)
        except AgenturaError as e:
            line = tracer(state, "critic", f"Critique unavailable ({e.user_message}); keeping the current output.")
            updates = {"next_agent": FINAL, "history": [line]}
            log_node_exit(LOGGER, "critic", updates)
            return updates

        store.update_message(state["message_id"], critique=result)
        lines = [tracer(state, "critic", f"Critique average {result.average:.2f}/5. {result.critique}".strip())]

        retries_used = state.get("retries_used", 0)
        retry_budget = state.get("retry_budget", 0)
        if result.average >= quality_threshold:
            next_agent = FINAL
        elif retries_used < retry_budget:
            next_agent = AgentKind.RETRY.value
            lines.append(tracer(state, "critic", "Below the quality threshold; refining the prompt."))
        else:
            next_agent = FINAL
            lines.append(tracer(state, "critic", "Below the quality threshold; retry budget spent."))
            lines += await record_lesson(
                memory,
                tracer,
                state,
                "critic",
                prompt=state.get("current_prompt") or state.get("goal", ""),
                output=output,
                critique=result.critique,
            )

        updates = {"critique": result, "next_agent": next_agent, "history": lines}
        log_node_exit(LOGGER, "critic", updates)
        return updates

    return critic_node
