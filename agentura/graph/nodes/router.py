"""Router node: resolve the agent kind for the request."""

from __future__ import annotations

import logging

from agentura.agents import AgentKind
from agentura.components.router import Router
from agentura.config import GovernanceSettings
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.store import SessionStore
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import stopped_update

LOGGER = logging.getLogger("agentura.graph.router")


def build_router_node(
    *,
    router: Router,
    store: SessionStore,
    governance: GovernanceSettings,
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("router")
    async def router_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "router", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "router")

        lines = []
        file = state.get("file")
        forced = state.get("forced_agent")

        if file is not None and file.is_image:
            kind = AgentKind.VISION
            lines.append(tracer(state, "router", "Image attached; routing to Vision."))
        elif forced is not None:
            kind = forced
            lines.append(tracer(state, "router", f"Agent forced by user: {kind.value}."))
        else:
            history = store.recent_messages(governance.router_history_window, before=state.get("user_message_id"))
            result = await router.classify(state.get("goal", ""), history, file)
            kind = result.kind
            note = " (fallback)" if result.fell_back else ""
            lines.append(tracer(state, "router", f"Routed to {kind.value}{note}, complexity {result.complexity}/10. {result.reason}".strip()))

        if kind == AgentKind.PLANNER and governance.chat_mode == "normal":
            kind = AgentKind.CHAT
            lines.append(tracer(state, "router", "Planning is disabled in normal chat mode; answering directly with Chat."))

        store.update_message(state["message_id"], agent=kind)
        updates = {"route": kind, "next_agent": kind.value, "history": lines}
        log_node_exit(LOGGER, "router", updates)
        return updates

    return router_node
