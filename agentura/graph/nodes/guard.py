"""Input constitution check, run before any agent work."""

from __future__ import annotations

import logging

from agentura.agents.schema import FINAL
from agentura.components.guard import REFUSAL_TEXT, ConstitutionGuard
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import stopped_update

LOGGER = logging.getLogger("agentura.graph.guard")


def build_guard_node(*, guard: ConstitutionGuard, tracer: Tracer, run_control: RunControl):
    @with_error_boundary("guard")
    async def guard_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "guard", state)
        if run_control.stop_requested:
            return stopped_update(tracer, state, "guard")

        if not guard.enabled:
            return {}

        if await guard.is_allowed(state.get("goal", "")):
            updates = {"history": [tracer(state, "guard", "Input passed the constitution check.")]}
        else:
            updates = {
                "status": "refused",
                "next_agent": FINAL,
                "last_output": REFUSAL_TEXT,
                "history": [tracer(state, "guard", "Input violates the constitution; request refused.")],
            }
        log_node_exit(LOGGER, "guard", updates)
        return updates

    return guard_node
