"""Single-agent execution for requests that need no plan."""

from __future__ import annotations

import logging
from typing import List

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.components.agent_runner import AgentRunner
from agentura.config import GovernanceSettings
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.models import FunctionCall, GroundingSource
from agentura.session.store import SessionStore
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import continue_in_new_message, stopped_update

LOGGER = logging.getLogger("agentura.graph.single_agent")


def build_single_agent_node(
    *,
    runner: AgentRunner,
    store: SessionStore,
    governance: GovernanceSettings,
    tracer: Tracer,
    run_control: RunControl,
):
    critique_kinds = {AgentKind.parse(name) for name in governance.critique_single_agent_kinds} - {None}

    @with_error_boundary("single_agent")
    async def single_agent_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "single_agent", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "single_agent")

        kind: AgentKind = state["route"]
        message_id = state["message_id"]
        lines: List[str] = []
        if state.get("retries_used", 0) > 0:
            # The earlier answer stays in its own message.
            message_id, line = continue_in_new_message(
                store, tracer, state, "single_agent", kind, "Retrying; continuing in a new message."
            )
            lines.append(line)
        goal = state.get("goal", "")
        prompt = state.get("current_prompt") or goal
        if state.get("repo_context"):
            prompt = f"{state['repo_context']}\n\n{prompt}"

        def publish(text: str) -> None:
            store.update_message(message_id, content=text)

        def trace(text: str) -> str:
            return tracer(state, "single_agent", text, message_id=message_id)

        lines.append(trace(f"Running {kind.value}."))
        history = store.recent_messages(governance.router_history_window, before=state.get("user_message_id"))
        run = await runner.run(kind, prompt, history=history, file=state.get("file"), on_text=publish)

        sources = [GroundingSource(**source) for source in run.sources]
        calls = [FunctionCall(id=call.id, name=call.name, args=call.args) for call in run.function_calls]
        store.update_message(message_id, sources=sources, function_calls=calls)
        for call in calls:
            lines.append(trace(f"Tool call: {call.name}."))

        output = run.output
        if run.error is not None:
            lines.append(trace(f"{kind.value} tool run failed: {run.error[:200]}"))
        elif run.tool_results:
            base = f"{run.text}\n\n" if run.text else ""
            explanation = await runner.synthesize(goal, run.output, on_text=lambda text: publish(base + text))
            output = base + explanation
            lines.append(trace("Tool output explained by Chat."))

        needs_critique = run.error is not None or kind in critique_kinds
        updates = {
            "message_id": message_id,
            "last_output": output,
            "last_sources": run.sources,
            "last_error": run.error,
            "next_agent": AgentKind.CRITIQUE.value if needs_critique else FINAL,
            "history": lines,
        }
        log_node_exit(LOGGER, "single_agent", updates)
        return updates

    return single_agent_node
